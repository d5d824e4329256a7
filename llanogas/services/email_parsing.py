"""
Parsing of Gmail ``format=full`` message payloads.

Pure functions: header lookup, recursive MIME part walk, body decoding,
attachment listing, radicado extraction and the lightweight content hints
(priority, responsible, due date) used to pre-classify inbound mail.
"""

import base64
import binascii
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.message import Message
from email.utils import parseaddr, parsedate_to_datetime
from typing import Any, Iterator

from llanogas.db.enums import Priority

# Ordered: first pattern with a match wins. Tokens must contain a digit so
# words that merely follow a keyword ("ref: adjunto") are not captured.
_TOKEN = r"([A-Za-z0-9-]*\d[A-Za-z0-9-]*)"
RADICADO_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        rf"\bradicado\b[:\s]*{_TOKEN}",
        rf"\brad\b[:\s]*{_TOKEN}",
        rf"\bno[.:][:\s]*{_TOKEN}",
        rf"\bn[úu]mero\b[:\s]*{_TOKEN}",
        rf"\bref\b[:\s]*{_TOKEN}",
    )
)

_KEYWORD_SPLIT = re.compile(r"[\s,.;:_\-()\[\]\"']+")
_DATE_IN_TEXT = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})")


@dataclass
class ContentHints:
    responsible: str | None = None
    due_date: datetime | None = None
    priority: Priority | None = None


@dataclass
class ParsedEmail:
    message_id: str
    thread_id: str | None
    from_address: str
    from_name: str | None
    from_domain: str | None
    to_address: str | None
    subject: str
    body_text: str
    body_html: str | None
    received_at: datetime
    radicado: str | None
    keywords: list[str] = field(default_factory=list)
    attachments: list[dict[str, Any]] = field(default_factory=list)
    hints: ContentHints = field(default_factory=ContentHints)


# =============================================================================
# MIME payload helpers
# =============================================================================


def decode_base64url(data: str | None, charset: str | None = None) -> str:
    """Decode a Gmail body ``data`` field; bad padding or bytes never raise."""
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return ""
    try:
        return raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")


def get_header(headers: list[dict[str, str]] | None, name: str) -> str | None:
    """Case-insensitive header lookup (first occurrence)."""
    wanted = name.lower()
    for header in headers or []:
        if (header.get("name") or "").lower() == wanted:
            return header.get("value")
    return None


def _part_charset(part: dict[str, Any]) -> str | None:
    content_type = get_header(part.get("headers"), "Content-Type")
    if not content_type:
        return None
    msg = Message()
    msg["Content-Type"] = content_type
    return msg.get_content_charset()


def walk_parts(part: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Depth-first walk over a payload and all nested parts."""
    yield part
    for child in part.get("parts") or []:
        yield from walk_parts(child)


def extract_bodies(payload: dict[str, Any]) -> tuple[str, str | None]:
    """Return (plain text, html) using the first part of each type."""
    text_body: str | None = None
    html_body: str | None = None
    for part in walk_parts(payload):
        mime_type = (part.get("mimeType") or "").lower()
        if part.get("filename"):
            continue
        data = (part.get("body") or {}).get("data")
        if not data:
            continue
        if mime_type == "text/plain" and text_body is None:
            text_body = decode_base64url(data, _part_charset(part))
        elif mime_type == "text/html" and html_body is None:
            html_body = decode_base64url(data, _part_charset(part))
    return text_body or "", html_body


def extract_attachments(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """List attachment metadata (content is fetched on demand, never stored)."""
    attachments = []
    for part in walk_parts(payload):
        filename = part.get("filename")
        body = part.get("body") or {}
        if filename and body.get("attachmentId"):
            attachments.append(
                {
                    "filename": filename,
                    "mime_type": part.get("mimeType") or "application/octet-stream",
                    "size": body.get("size") or 0,
                    "attachment_id": body["attachmentId"],
                }
            )
    return attachments


def html_to_text(html_body: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"<[^>]*>", " ", html_body).replace("&nbsp;", " ")).strip()


# =============================================================================
# Content heuristics
# =============================================================================


def normalize_radicado(value: str | None) -> str | None:
    """Canonical stored form of a radicado: trimmed and upper-cased."""
    value = (value or "").strip()
    return value.upper() or None


def extract_radicado(text: str) -> str | None:
    """First radicado token found by the ordered patterns, upper-cased."""
    if not text:
        return None
    for pattern in RADICADO_PATTERNS:
        match = pattern.search(text)
        if match:
            token = normalize_radicado(match.group(1).strip("-"))
            if token:
                return token
    return None


def sender_address(from_header: str) -> str:
    return parseaddr(from_header or "")[1].strip().lower()


def sender_name(from_header: str) -> str | None:
    """Display name, falling back to the address local part."""
    name, address = parseaddr(from_header or "")
    name = name.strip().strip('"')
    if name:
        return name
    if "@" in address:
        return address.split("@", 1)[0]
    return None


def sender_domain(from_header: str) -> str | None:
    address = sender_address(from_header)
    if "@" not in address:
        return None
    return address.rsplit("@", 1)[1] or None


def subject_keywords(subject: str, limit: int = 10) -> list[str]:
    """Lower-cased subject words longer than three characters."""
    words = [w for w in _KEYWORD_SPLIT.split((subject or "").lower()) if len(w) > 3]
    return list(dict.fromkeys(words))[:limit]


def _parse_text_date(value: str) -> datetime | None:
    match = _DATE_IN_TEXT.search(value)
    if not match:
        return None
    day, month, year = (int(g) for g in match.groups())
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_content_hints(text: str) -> ContentHints:
    """
    Scan body lines for responsible, due date and priority markers.

    Later lines override earlier ones.
    """
    hints = ContentHints()
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        lower = line.lower()
        if not lower:
            continue
        if lower.startswith(("responsable:", "contacto:")):
            hints.responsible = line.split(":", 1)[1].strip() or hints.responsible
        if "vencimiento" in lower or "fecha límite" in lower or "fecha limite" in lower:
            hints.due_date = _parse_text_date(line) or hints.due_date
        if "urgente" in lower or "alta prioridad" in lower:
            hints.priority = Priority.ALTA
        elif "media prioridad" in lower:
            hints.priority = Priority.MEDIA
        elif "baja prioridad" in lower:
            hints.priority = Priority.BAJA
    return hints


def _received_at(message: dict[str, Any], date_header: str | None) -> datetime:
    internal = message.get("internalDate")
    if internal:
        try:
            return datetime.fromtimestamp(int(internal) / 1000, tz=timezone.utc)
        except (TypeError, ValueError):
            pass
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
        except (TypeError, ValueError):
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def parse_gmail_message(message: dict[str, Any]) -> ParsedEmail:
    """Turn a Gmail ``format=full`` message resource into a ParsedEmail."""
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []

    from_header = get_header(headers, "From") or ""
    subject = get_header(headers, "Subject") or ""
    body_text, body_html = extract_bodies(payload)
    searchable_body = body_text or html_to_text(body_html or "")

    return ParsedEmail(
        message_id=message["id"],
        thread_id=message.get("threadId"),
        from_address=from_header,
        from_name=sender_name(from_header),
        from_domain=sender_domain(from_header),
        to_address=get_header(headers, "To"),
        subject=subject,
        body_text=body_text,
        body_html=body_html,
        received_at=_received_at(message, get_header(headers, "Date")),
        radicado=extract_radicado(f"{subject} {searchable_body}"),
        keywords=subject_keywords(subject),
        attachments=extract_attachments(payload),
        hints=parse_content_hints(searchable_body),
    )
