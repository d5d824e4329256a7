"""Structured logging helpers."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    user_id: UUID | str | None = None,
    case_id: UUID | str | None = None,
    message_id: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict for ``extra=``; ids only, never bodies."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if case_id:
        context["case_id"] = str(case_id)
    if message_id:
        context["message_id"] = message_id
    if request_id:
        context["request_id"] = request_id
    return context
