"""Calendar Router - due dates and pending reviews/approvals."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from llanogas.core.deps import get_current_session, get_db
from llanogas.core.exceptions import ValidationError
from llanogas.schemas.auth import UserSession
from llanogas.schemas.calendar import CalendarEventRead, CalendarEventsResponse
from llanogas.services import calendar_service

router = APIRouter()


@router.get("/events", response_model=CalendarEventsResponse)
def list_events(
    start: date | None = Query(None, description="First day (YYYY-MM-DD)"),
    end: date | None = Query(None, description="Last day, inclusive (YYYY-MM-DD)"),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    if start and end and end < start:
        raise ValidationError("La fecha final debe ser posterior a la inicial")
    events = calendar_service.get_events(db, start=start, end=end)
    return CalendarEventsResponse(
        events=[CalendarEventRead.model_validate(e) for e in events]
    )
