"""Pydantic schemas for regulatory entities."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class EntityCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    acronym: str = Field(..., min_length=1, max_length=50)
    color: str = Field(..., min_length=1, max_length=20)
    email: str | None = None
    description: str | None = None
    email_domains: list[str] = []
    keywords: list[str] = []
    response_days: int = Field(15, ge=1, le=365)
    default_responsible_id: UUID | None = None


class EntityRead(BaseModel):
    id: UUID
    name: str
    acronym: str
    color: str
    email: str | None
    description: str | None
    email_domains: list[str]
    keywords: list[str]
    response_days: int
    default_responsible_id: UUID | None
    is_active: bool
    created_at: datetime
    case_count: int = 0

    model_config = {"from_attributes": True}
