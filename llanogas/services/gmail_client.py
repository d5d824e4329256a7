"""
Gmail REST client for the shared correspondence mailbox.

Authenticates with the offline refresh token from settings and exposes only
the calls the ingestion loop and the notification mailer need. Every
provider failure surfaces as ``TransientExternalError``.
"""

import logging
from typing import Any, Protocol

import httpx

from llanogas.core.config import settings
from llanogas.core.exceptions import TransientExternalError

logger = logging.getLogger(__name__)

GMAIL_TOKEN_URL = "https://oauth2.googleapis.com/token"
GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"
_GMAIL_MESSAGES_URL = f"{GMAIL_API_BASE}/messages"
_GMAIL_MESSAGE_GET_URL = f"{GMAIL_API_BASE}/messages/{{message_id}}"
_GMAIL_BATCH_MODIFY_URL = f"{GMAIL_API_BASE}/messages/batchModify"
_GMAIL_SEND_URL = f"{GMAIL_API_BASE}/messages/send"

DEFAULT_TIMEOUT = 30.0


class MailboxClient(Protocol):
    """What the ingestion loop needs from a mailbox provider."""

    async def list_unread_message_ids(self, label_id: str, max_results: int) -> list[str]: ...

    async def get_message(self, message_id: str) -> dict[str, Any]: ...

    async def mark_as_read(self, message_ids: list[str]) -> None: ...

    async def aclose(self) -> None: ...


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or "unknown error"
    error = payload.get("error")
    if isinstance(error, dict):
        return error.get("message") or "unknown error"
    return payload.get("error_description") or str(error or "unknown error")


def _raise_for_gmail_status(response: httpx.Response) -> None:
    if response.status_code in (401, 403):
        raise TransientExternalError(
            f"Gmail rechazó las credenciales ({response.status_code}): {_error_detail(response)}",
            status_code=response.status_code,
        )
    if response.status_code >= 400:
        raise TransientExternalError(
            f"Gmail API error {response.status_code}: {_error_detail(response)}",
            status_code=response.status_code,
        )


async def refresh_access_token(
    http: httpx.AsyncClient,
    *,
    client_id: str,
    client_secret: str,
    refresh_token: str,
) -> str:
    """
    Exchange the refresh token for an access token.

    Raises:
        TransientExternalError: credentials missing, revoked or provider down
    """
    if not (client_id and client_secret and refresh_token):
        raise TransientExternalError("Credenciales de Gmail no configuradas")
    try:
        response = await http.post(
            GMAIL_TOKEN_URL,
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            timeout=DEFAULT_TIMEOUT,
        )
    except httpx.HTTPError as e:
        raise TransientExternalError(f"Gmail token refresh failed: {e}") from e

    if response.status_code >= 400:
        raise TransientExternalError(
            f"Gmail token refresh failed ({response.status_code}): {_error_detail(response)}",
            status_code=response.status_code,
        )
    access_token = response.json().get("access_token")
    if not access_token:
        raise TransientExternalError("Gmail token refresh returned no access_token")
    return access_token


class GmailClient:
    """Async Gmail API client bound to one access token."""

    def __init__(self, access_token: str, http: httpx.AsyncClient | None = None):
        self._access_token = access_token
        self._http = http or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)

    @classmethod
    async def from_settings(cls, http: httpx.AsyncClient | None = None) -> "GmailClient":
        """Build a client from GMAIL_* settings, refreshing the access token."""
        http = http or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        try:
            token = await refresh_access_token(
                http,
                client_id=settings.GMAIL_CLIENT_ID,
                client_secret=settings.GMAIL_CLIENT_SECRET,
                refresh_token=settings.GMAIL_REFRESH_TOKEN,
            )
        except TransientExternalError:
            await http.aclose()
            raise
        return cls(token, http=http)

    async def __aenter__(self) -> "GmailClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            raise TransientExternalError(f"Gmail request failed: {e}") from e
        _raise_for_gmail_status(response)
        return response

    async def list_unread_message_ids(self, label_id: str, max_results: int) -> list[str]:
        response = await self._request(
            "GET",
            _GMAIL_MESSAGES_URL,
            params={"labelIds": label_id, "q": "is:unread", "maxResults": max_results},
        )
        return [m["id"] for m in response.json().get("messages", []) if m.get("id")]

    async def get_message(self, message_id: str) -> dict[str, Any]:
        response = await self._request(
            "GET",
            _GMAIL_MESSAGE_GET_URL.format(message_id=message_id),
            params={"format": "full"},
        )
        return response.json()

    async def mark_as_read(self, message_ids: list[str]) -> None:
        """Remove the UNREAD label from all ids in one batchModify call."""
        if not message_ids:
            return
        await self._request(
            "POST",
            _GMAIL_BATCH_MODIFY_URL,
            json={"ids": message_ids, "removeLabelIds": ["UNREAD"]},
        )

    async def send_raw(self, raw: str) -> dict[str, Any]:
        """Send a base64url-encoded RFC 2822 message."""
        response = await self._request("POST", _GMAIL_SEND_URL, json={"raw": raw})
        return response.json()
