"""Activity logging service - centralized case audit trail."""

from uuid import UUID

from sqlalchemy.orm import Session

from llanogas.db.enums import ActivityType
from llanogas.db.models import Activity


def log_activity(
    db: Session,
    case_id: UUID,
    user_id: UUID,
    activity_type: ActivityType,
    description: str,
) -> Activity:
    """
    Log a case activity.

    Args:
        db: Database session
        case_id: The case this activity is for
        user_id: Acting user (always required)
        activity_type: Type of activity (from ActivityType enum)
        description: Free-text description shown in the case timeline

    Returns:
        The created activity entry
    """
    activity = Activity(
        case_id=case_id,
        user_id=user_id,
        activity_type=activity_type.value,
        description=description,
    )
    db.add(activity)
    db.flush()  # Don't commit - let caller control transaction
    return activity


def list_activities(
    db: Session,
    case_id: UUID | None = None,
    user_id: UUID | None = None,
    limit: int = 50,
) -> list[Activity]:
    """Most recent activities first, optionally filtered by case and user."""
    query = db.query(Activity)
    if case_id:
        query = query.filter(Activity.case_id == case_id)
    if user_id:
        query = query.filter(Activity.user_id == user_id)
    return query.order_by(Activity.created_at.desc()).limit(limit).all()
