from datetime import datetime, timezone


def utcnow() -> datetime:
    """Column default for timestamps."""
    return datetime.now(timezone.utc)
