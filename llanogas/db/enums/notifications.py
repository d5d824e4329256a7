from enum import Enum


class NotificationType(str, Enum):
    """In-app notification severity."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
