"""
Notification Service - handles in-app notifications.

Provides CRUD for notifications and the fan-out helpers used by case
transitions and email ingestion. Fan-out after a committed operation goes
through ``notify_best_effort`` so a failing insert never reaches the caller.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from llanogas.db.enums import ADMIN_ROLES, NotificationType
from llanogas.db.models import Notification, User

logger = logging.getLogger(__name__)


# =============================================================================
# Notification CRUD
# =============================================================================


def create_notification(
    db: Session,
    user_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    case_id: Optional[UUID] = None,
) -> Notification:
    """Create a notification."""
    notification = Notification(
        user_id=user_id,
        case_id=case_id,
        type=type.value,
        title=title,
        message=message,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def get_notifications(
    db: Session,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> list[Notification]:
    """Get notifications for user, newest first."""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()


def get_unread_count(db: Session, user_id: UUID) -> int:
    """Get count of unread notifications."""
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False),
    ).count()


def mark_read(db: Session, notification_id: UUID, user_id: UUID) -> Optional[Notification]:
    """Mark a notification as read (scoped to its owner)."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if notification and not notification.read:
        notification.read = True
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: UUID) -> int:
    """Mark all notifications as read. Returns count updated."""
    count = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False),
    ).update({"read": True, "read_at": datetime.now(timezone.utc)})
    db.commit()
    return count


# =============================================================================
# Fan-out helpers
# =============================================================================


def get_admin_user_ids(db: Session) -> list[UUID]:
    """Active users holding an administrator role."""
    rows = db.query(User.id).filter(
        User.role.in_([role.value for role in ADMIN_ROLES]),
        User.is_active.is_(True),
    ).all()
    return [row[0] for row in rows]


def notify_users(
    db: Session,
    user_ids: Iterable[UUID | None],
    type: NotificationType,
    title: str,
    message: str,
    case_id: Optional[UUID] = None,
) -> int:
    """
    Create one notification per distinct active user.

    ``None`` ids (unset responsible/creator) are skipped. Returns the
    number of notifications created.
    """
    wanted = list(dict.fromkeys(uid for uid in user_ids if uid))
    if not wanted:
        return 0

    active_ids = {
        row[0]
        for row in db.query(User.id).filter(User.id.in_(wanted), User.is_active.is_(True)).all()
    }
    created = 0
    for uid in wanted:
        if uid not in active_ids:
            continue
        db.add(
            Notification(
                user_id=uid,
                case_id=case_id,
                type=type.value,
                title=title,
                message=message,
            )
        )
        created += 1
    db.commit()
    return created


def notify_best_effort(db: Session, label: str, action: Callable[[], object]) -> bool:
    """
    Run a notification fan-out after the main work has committed.

    Failures roll back only the notification inserts and are logged.
    """
    try:
        action()
    except Exception:
        db.rollback()
        logger.exception("Notification fan-out failed: %s", label)
        return False
    return True
