"""SQLAlchemy ORM models."""

from llanogas.db.models.auth import User
from llanogas.db.models.cases import Activity, Approval, Case, Revision
from llanogas.db.models.emails import Email
from llanogas.db.models.entities import Entity
from llanogas.db.models.notifications import Notification

__all__ = [
    "Activity",
    "Approval",
    "Case",
    "Email",
    "Entity",
    "Notification",
    "Revision",
    "User",
]
