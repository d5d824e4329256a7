"""Pydantic schemas for cases, activities and transitions."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from llanogas.db.enums import ActivityType, CaseState, Priority


class CaseCreate(BaseModel):
    """Request schema for registering a case."""

    subject: str = Field(..., min_length=1, max_length=500)
    entity_id: UUID
    description: str | None = None
    priority: Priority = Priority.MEDIA
    inbound_radicado: str | None = Field(None, max_length=100)
    responsible_user_id: UUID | None = None
    received_at: datetime | None = None
    due_at: datetime | None = None
    source_email_id: UUID | None = None


class CaseUpdate(BaseModel):
    """Request schema for editing a case (partial). State is not editable."""

    subject: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    priority: Priority | None = None
    due_at: datetime | None = None
    responsible_user_id: UUID | None = None
    inbound_radicado: str | None = Field(None, max_length=100)
    outbound_radicado: str | None = Field(None, max_length=100)


class UserSummary(BaseModel):
    id: UUID
    name: str
    email: str

    model_config = {"from_attributes": True}


class EntitySummary(BaseModel):
    id: UUID
    name: str
    acronym: str
    color: str

    model_config = {"from_attributes": True}


class CaseRead(BaseModel):
    id: UUID
    subject: str
    description: str | None
    priority: Priority
    state: CaseState
    approval_stage: CaseState
    entity: EntitySummary
    responsible: UserSummary | None
    creator: UserSummary | None
    inbound_radicado: str | None
    outbound_radicado: str | None
    received_at: datetime
    due_at: datetime | None
    assigned_at: datetime | None
    review_submitted_at: datetime | None
    reviewed_at: datetime | None
    approved_at: datetime | None
    legal_signed_at: datetime | None
    sent_at: datetime | None
    acknowledged_at: datetime | None
    closed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class CaseListItem(BaseModel):
    id: UUID
    subject: str
    priority: Priority
    state: CaseState
    entity: EntitySummary
    responsible: UserSummary | None
    inbound_radicado: str | None
    received_at: datetime
    due_at: datetime | None

    model_config = {"from_attributes": True}


class CaseListResponse(BaseModel):
    items: list[CaseListItem]
    total: int


class ActivityCreate(BaseModel):
    description: str = Field(..., min_length=1)


class ActivityRead(BaseModel):
    id: UUID
    case_id: UUID
    user: UserSummary
    activity_type: ActivityType
    description: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AssignRequest(BaseModel):
    responsible_user_id: UUID


class ReviewDecisionRequest(BaseModel):
    comments: str | None = None


class SendFinalRequest(BaseModel):
    outbound_radicado: str | None = Field(None, max_length=100)


class TransitionResponse(BaseModel):
    """Result of a case transition endpoint."""

    message: str
    case_id: UUID
    state: CaseState
    activity_ids: list[UUID]
    revision_id: UUID | None = None
    approval_id: UUID | None = None
    assigned_to: str | None = None
