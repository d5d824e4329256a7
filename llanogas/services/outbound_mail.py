"""Outbound case notification emails sent from the shared mailbox."""

import base64
import html
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Awaitable, Callable, Protocol
from uuid import UUID

from llanogas.core.config import settings
from llanogas.services.gmail_client import GmailClient

logger = logging.getLogger(__name__)


class NotificationMailer(Protocol):
    async def send_case_notification(
        self,
        to_address: str,
        case_reference: str,
        case_subject: str,
        action: str,
        case_id: UUID,
    ) -> None: ...


def build_case_notification_html(
    case_reference: str,
    case_subject: str,
    action: str,
    case_url: str,
) -> str:
    """HTML body for a case notification email."""
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: #1e40af; color: white; padding: 20px; text-align: center;">
    <h1>LLANOGAS</h1>
    <p>Sistema de Gestión de Correspondencia</p>
  </div>
  <div style="padding: 20px; background: #f8fafc;">
    <h2>{html.escape(action)}</h2>
    <p><strong>Caso:</strong> {html.escape(case_reference)}</p>
    <p><strong>Asunto:</strong> {html.escape(case_subject)}</p>
    <p><a href="{html.escape(case_url, quote=True)}">Ver caso</a></p>
  </div>
  <div style="padding: 12px; text-align: center; color: #64748b; font-size: 12px;">
    Este es un mensaje automático, por favor no responda a este correo.
  </div>
</div>
"""


def build_raw_message(sender: str, to_address: str, subject: str, html_body: str) -> str:
    """Encode an HTML email as base64url for the Gmail send endpoint."""
    msg = MIMEMultipart("alternative")
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    msg["To"] = to_address
    msg["From"] = sender
    msg["Subject"] = subject
    return base64.urlsafe_b64encode(msg.as_bytes()).decode()


class GmailNotificationMailer:
    """Sends notifications through the Gmail send API with a fresh token per message."""

    def __init__(
        self,
        client_factory: Callable[[], Awaitable[GmailClient]] = GmailClient.from_settings,
        sender: str | None = None,
        frontend_url: str | None = None,
    ):
        self._client_factory = client_factory
        self._sender = sender or settings.GMAIL_SENDER_EMAIL or "me"
        self._frontend_url = (frontend_url or settings.FRONTEND_URL).rstrip("/")

    async def send_case_notification(
        self,
        to_address: str,
        case_reference: str,
        case_subject: str,
        action: str,
        case_id: UUID,
    ) -> None:
        body = build_case_notification_html(
            case_reference,
            case_subject,
            action,
            f"{self._frontend_url}/dashboard/bandeja/{case_id}",
        )
        raw = build_raw_message(
            self._sender, to_address, f"Notificación de Caso - {action}", body
        )
        async with await self._client_factory() as client:
            result = await client.send_raw(raw)
        logger.info("Case notification sent: %s", result.get("id"))


def get_notification_mailer() -> NotificationMailer:
    """FastAPI dependency; overridden in tests."""
    return GmailNotificationMailer()
