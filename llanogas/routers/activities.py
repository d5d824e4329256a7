"""Activities Router - cross-case audit trail."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from llanogas.core.deps import get_current_session, get_db
from llanogas.schemas.auth import UserSession
from llanogas.schemas.case import ActivityRead
from llanogas.services import activity_service

router = APIRouter()


@router.get("", response_model=list[ActivityRead])
def list_activities(
    case_id: UUID | None = Query(None),
    user_id: UUID | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return activity_service.list_activities(db, case_id=case_id, user_id=user_id, limit=limit)
