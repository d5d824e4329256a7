"""Dashboard Router - headline counters and metrics."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from llanogas.core.config import settings
from llanogas.core.deps import get_current_session, get_db, require_roles
from llanogas.db.enums import CaseState, Priority, ROLES_CAN_VIEW_METRICS
from llanogas.schemas.auth import UserSession
from llanogas.services import dashboard_service

router = APIRouter()


class RecentCase(BaseModel):
    id: UUID
    subject: str
    state: CaseState
    priority: Priority
    entity_acronym: str
    received_at: datetime
    due_at: datetime | None


class DashboardResponse(BaseModel):
    total_cases: int
    pending_cases: int
    due_soon_cases: int
    resolved_cases: int
    average_days_to_close: float
    recent_cases: list[RecentCase]


class EntityCount(BaseModel):
    entity: str
    count: int


class MetricsResponse(BaseModel):
    range: str
    total_cases: int
    by_state: dict[str, int]
    by_entity: list[EntityCount]
    average_days_to_close: float


@router.get("", response_model=DashboardResponse)
def get_dashboard(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    data = dashboard_service.get_dashboard(db, due_soon_days=settings.DUE_SOON_DAYS)
    data["recent_cases"] = [
        RecentCase(
            id=case.id,
            subject=case.subject,
            state=CaseState(case.state),
            priority=Priority(case.priority),
            entity_acronym=case.entity.acronym,
            received_at=case.received_at,
            due_at=case.due_at,
        )
        for case in data["recent_cases"]
    ]
    return DashboardResponse(**data)


@router.get("/metrics", response_model=MetricsResponse)
def get_metrics(
    range: str = Query("30d", pattern="^(7d|30d|90d|1a)$"),
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_METRICS)),
    db: Session = Depends(get_db),
):
    return dashboard_service.get_metrics(db, range_key=range)
