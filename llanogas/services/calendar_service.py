"""
Deadline calendar.

Builds one event per case for the calendar view: cases whose due date
falls in the requested window, plus cases received in the last week.
Cases waiting on legal review or approval are shown as such; every other
case is shown as a due date.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload

from llanogas.db.enums import CaseState
from llanogas.db.models import Case
from llanogas.utils.business_days import BOGOTA_TZ, as_utc

DEFAULT_WINDOW_DAYS = 30
RECENT_DAYS = 7


class CalendarEventType(str, Enum):
    VENCIMIENTO = "vencimiento"
    REVISION = "revision"
    APROBACION = "aprobacion"


@dataclass
class CalendarEvent:
    id: UUID
    title: str
    date: date
    type: CalendarEventType
    case_id: UUID
    entity: str
    priority: str
    state: str


def _local_bounds(
    start: date | None, end: date | None, now: datetime
) -> tuple[datetime, datetime]:
    """Window in UTC; dates are Bogotá calendar days, ``end`` inclusive."""
    if start is None:
        start_at = now
    else:
        start_at = datetime.combine(start, time.min, tzinfo=BOGOTA_TZ).astimezone(timezone.utc)
    if end is None:
        end_at = now + timedelta(days=DEFAULT_WINDOW_DAYS)
    else:
        end_at = datetime.combine(
            end + timedelta(days=1), time.min, tzinfo=BOGOTA_TZ
        ).astimezone(timezone.utc)
    return start_at, end_at


def _to_event(case: Case) -> CalendarEvent:
    if case.state == CaseState.EN_REVISION.value:
        type_, title = CalendarEventType.REVISION, f"Revisión - {case.subject}"
    elif case.state == CaseState.EN_APROBACION.value:
        type_, title = CalendarEventType.APROBACION, f"Aprobación - {case.subject}"
    elif case.due_at:
        type_, title = CalendarEventType.VENCIMIENTO, f"Vencimiento - {case.subject}"
    else:
        type_, title = CalendarEventType.VENCIMIENTO, case.subject

    when = as_utc(case.due_at or case.received_at).astimezone(BOGOTA_TZ).date()
    return CalendarEvent(
        id=case.id,
        title=title,
        date=when,
        type=type_,
        case_id=case.id,
        entity=case.entity.acronym,
        priority=case.priority,
        state=case.state,
    )


def get_events(
    db: Session,
    start: date | None = None,
    end: date | None = None,
    now: datetime | None = None,
) -> list[CalendarEvent]:
    """
    Calendar events between ``start`` and ``end`` (Bogotá dates, inclusive).

    Without ``start`` the window opens now; without ``end`` it closes
    30 days from now. Newest received first.
    """
    now = now or datetime.now(timezone.utc)
    start_at, end_at = _local_bounds(start, end, now)

    cases = (
        db.query(Case)
        .options(joinedload(Case.entity))
        .filter(
            or_(
                and_(Case.due_at.isnot(None), Case.due_at >= start_at, Case.due_at < end_at),
                and_(
                    Case.received_at >= now - timedelta(days=RECENT_DAYS),
                    Case.received_at < end_at,
                ),
            )
        )
        .order_by(Case.received_at.desc())
        .all()
    )
    return [_to_event(case) for case in cases]
