"""Pydantic schemas for the deadline calendar."""

from datetime import date
from uuid import UUID

from pydantic import BaseModel

from llanogas.services.calendar_service import CalendarEventType


class CalendarEventRead(BaseModel):
    id: UUID
    title: str
    date: date
    type: CalendarEventType
    case_id: UUID
    entity: str
    priority: str
    state: str

    model_config = {"from_attributes": True}


class CalendarEventsResponse(BaseModel):
    events: list[CalendarEventRead]
