"""Enum definitions for application constants."""

from llanogas.db.enums.auth import Role
from llanogas.db.enums.cases import (
    ActivityType,
    CaseState,
    OPEN_CASE_STATES,
    Priority,
    RESOLVED_CASE_STATES,
    ReviewState,
)
from llanogas.db.enums.notifications import NotificationType
from llanogas.db.enums.permissions import (
    ADMIN_ROLES,
    ROLES_CAN_APPROVE,
    ROLES_CAN_ASSIGN,
    ROLES_CAN_MANAGE_CASES,
    ROLES_CAN_MANAGE_ENTITIES,
    ROLES_CAN_MANAGE_USERS,
    ROLES_CAN_REVIEW,
    ROLES_CAN_SYNC_MAIL,
    ROLES_CAN_VIEW_METRICS,
)

__all__ = [
    "ADMIN_ROLES",
    "ActivityType",
    "CaseState",
    "NotificationType",
    "OPEN_CASE_STATES",
    "Priority",
    "RESOLVED_CASE_STATES",
    "ROLES_CAN_APPROVE",
    "ROLES_CAN_ASSIGN",
    "ROLES_CAN_MANAGE_CASES",
    "ROLES_CAN_MANAGE_ENTITIES",
    "ROLES_CAN_MANAGE_USERS",
    "ROLES_CAN_REVIEW",
    "ROLES_CAN_SYNC_MAIL",
    "ROLES_CAN_VIEW_METRICS",
    "ReviewState",
    "Role",
]
