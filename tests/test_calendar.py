"""Tests for the deadline calendar."""

from datetime import date, datetime, timedelta, timezone

from llanogas.db.enums import CaseState
from llanogas.services import calendar_service
from llanogas.services.calendar_service import CalendarEventType


def _age(db, case, days: int):
    case.received_at = datetime.now(timezone.utc) - timedelta(days=days)
    db.commit()
    return case


def test_events_by_state_and_due_date(db, make_case):
    now = datetime.now(timezone.utc)
    due = _age(db, make_case(CaseState.EN_REDACCION, due_at=now + timedelta(days=5)), 20)
    review = _age(
        db,
        make_case(CaseState.EN_REVISION, due_at=now + timedelta(days=3), subject="Tarifas"),
        20,
    )
    approval = make_case(CaseState.EN_APROBACION, subject="Subsidios")
    _age(db, make_case(CaseState.EN_REDACCION, due_at=now + timedelta(days=60)), 20)
    _age(db, make_case(CaseState.ASIGNADO), 20)

    events = {e.case_id: e for e in calendar_service.get_events(db, now=now)}

    assert set(events) == {due.id, review.id, approval.id}
    assert events[due.id].type is CalendarEventType.VENCIMIENTO
    assert events[due.id].title.startswith("Vencimiento - ")
    assert events[review.id].type is CalendarEventType.REVISION
    assert events[review.id].title == "Revisión - Tarifas"
    assert events[approval.id].type is CalendarEventType.APROBACION
    assert events[approval.id].title == "Aprobación - Subsidios"
    assert events[approval.id].entity == "SSPD"


def test_explicit_window_uses_bogota_dates(db, make_case):
    now = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)
    # 02:00 UTC on Mar 21 is still Mar 20 in Bogotá
    inside = make_case(due_at=datetime(2025, 3, 21, 2, 0, tzinfo=timezone.utc))
    outside = make_case(due_at=datetime(2025, 3, 21, 6, 0, tzinfo=timezone.utc))
    for case in (inside, outside):
        case.received_at = datetime(2025, 1, 2, 15, 0, tzinfo=timezone.utc)
    db.commit()

    events = calendar_service.get_events(
        db, start=date(2025, 3, 15), end=date(2025, 3, 20), now=now
    )

    assert [e.case_id for e in events] == [inside.id]
    assert events[0].date == date(2025, 3, 20)


async def test_calendar_endpoint(client_for, manager_user, make_case):
    make_case(CaseState.EN_REVISION)

    async with client_for(manager_user) as c:
        response = await c.get("/calendar/events")
        inverted = await c.get(
            "/calendar/events", params={"start": "2025-03-20", "end": "2025-03-01"}
        )

    assert response.status_code == 200
    [event] = response.json()["events"]
    assert event["type"] == "revision"
    assert event["priority"] == "MEDIA"
    assert inverted.status_code == 422


async def test_calendar_requires_session(client):
    assert (await client.get("/calendar/events")).status_code == 401
