"""Pydantic schemas for ingested emails."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class EmailRead(BaseModel):
    id: UUID
    message_id: str
    from_address: str
    from_name: str | None
    from_domain: str | None
    to_address: str | None
    subject: str
    received_at: datetime
    radicado: str | None
    keywords: list[str]
    attachments: list[dict]
    detected_priority: str | None
    processed: bool
    classified: bool
    entity_id: UUID | None
    case_id: UUID | None

    model_config = {"from_attributes": True}


class EmailDetail(EmailRead):
    body_text: str | None
    body_html: str | None
    detected_responsible: str | None


class EmailListResponse(BaseModel):
    items: list[EmailRead]
    total: int
    page: int
    page_size: int
    total_pages: int


class EmailLinkRequest(BaseModel):
    case_id: UUID
