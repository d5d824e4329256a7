"""
Notifications Router - /me/notifications endpoints.

Provides notification listing and read status.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from llanogas.core.deps import get_current_session, get_db, require_csrf_header
from llanogas.schemas.auth import UserSession
from llanogas.services import notification_service


router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================


class NotificationRead(BaseModel):
    """Notification response."""
    id: UUID
    type: str
    title: str
    message: str
    case_id: UUID | None
    read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    items: list[NotificationRead]
    unread_count: int


class UnreadCountResponse(BaseModel):
    """Unread count only (for polling)."""
    count: int


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """List the current user's notifications, newest first."""
    notifications = notification_service.get_notifications(
        db,
        user_id=session.user_id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return NotificationListResponse(
        items=[NotificationRead.model_validate(n) for n in notifications],
        unread_count=notification_service.get_unread_count(db, session.user_id),
    )


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return UnreadCountResponse(
        count=notification_service.get_unread_count(db, session.user_id)
    )


@router.patch(
    "/notifications/{notification_id}/read",
    response_model=NotificationRead,
    dependencies=[Depends(require_csrf_header)],
)
def mark_notification_read(
    notification_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    notification = notification_service.mark_read(db, notification_id, session.user_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notificación no encontrada")
    return notification


@router.post(
    "/notifications/read-all",
    dependencies=[Depends(require_csrf_header)],
)
def mark_all_notifications_read(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    count = notification_service.mark_all_read(db, session.user_id)
    return {"marked_read": count}
