"""Rate limiting configuration for the API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from llanogas.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)

# Single-process deployment: in-memory counters
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)

SYNC_LIMIT = f"{max(settings.RATE_LIMIT_SYNC, 1)}/minute"
LOGIN_LIMIT = f"{max(settings.RATE_LIMIT_LOGIN, 1)}/minute"
