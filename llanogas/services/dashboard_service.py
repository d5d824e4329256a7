"""Dashboard and metrics aggregation."""

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from llanogas.db.enums import CaseState, OPEN_CASE_STATES, RESOLVED_CASE_STATES
from llanogas.db.models import Case, Entity
from llanogas.utils.business_days import as_utc

METRIC_RANGES = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1a": timedelta(days=365),
}


def _average_days_to_close(db: Session, since: datetime | None = None) -> float:
    query = db.query(Case.received_at, Case.closed_at).filter(
        Case.state == CaseState.CERRADO.value,
        Case.closed_at.isnot(None),
    )
    if since is not None:
        query = query.filter(Case.received_at >= since)
    durations = [
        (as_utc(closed_at) - as_utc(received_at)).total_seconds() / 86400
        for received_at, closed_at in query.all()
    ]
    if not durations:
        return 0.0
    return round(sum(durations) / len(durations), 1)


def get_dashboard(db: Session, due_soon_days: int = 3, now: datetime | None = None) -> dict[str, Any]:
    """Headline counters and the five most recently received cases."""
    now = now or datetime.now(timezone.utc)
    open_states = [s.value for s in OPEN_CASE_STATES]

    total = db.query(func.count(Case.id)).scalar() or 0
    pending = db.query(func.count(Case.id)).filter(Case.state.in_(open_states)).scalar() or 0
    due_soon = (
        db.query(func.count(Case.id))
        .filter(
            Case.state.in_(open_states),
            Case.due_at.isnot(None),
            Case.due_at >= now,
            Case.due_at <= now + timedelta(days=due_soon_days),
        )
        .scalar()
        or 0
    )
    resolved = (
        db.query(func.count(Case.id))
        .filter(Case.state.in_([s.value for s in RESOLVED_CASE_STATES]))
        .scalar()
        or 0
    )
    recent = (
        db.query(Case)
        .options(joinedload(Case.entity))
        .order_by(Case.received_at.desc())
        .limit(5)
        .all()
    )
    return {
        "total_cases": total,
        "pending_cases": pending,
        "due_soon_cases": due_soon,
        "resolved_cases": resolved,
        "average_days_to_close": _average_days_to_close(db),
        "recent_cases": recent,
    }


def get_metrics(db: Session, range_key: str = "30d", now: datetime | None = None) -> dict[str, Any]:
    """Case counts by state and entity for cases received within the range."""
    now = now or datetime.now(timezone.utc)
    since = now - METRIC_RANGES.get(range_key, METRIC_RANGES["30d"])

    by_state = dict(
        db.query(Case.state, func.count(Case.id))
        .filter(Case.received_at >= since)
        .group_by(Case.state)
        .all()
    )
    by_entity = (
        db.query(Entity.acronym, func.count(Case.id))
        .join(Case, Case.entity_id == Entity.id)
        .filter(Case.received_at >= since)
        .group_by(Entity.acronym)
        .order_by(func.count(Case.id).desc())
        .all()
    )
    return {
        "range": range_key if range_key in METRIC_RANGES else "30d",
        "total_cases": sum(by_state.values()),
        "by_state": {state.value: by_state.get(state.value, 0) for state in CaseState},
        "by_entity": [{"entity": acronym, "count": count} for acronym, count in by_entity],
        "average_days_to_close": _average_days_to_close(db, since=since),
    }
