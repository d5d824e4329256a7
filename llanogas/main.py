"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from llanogas.core.config import settings
from llanogas.core.exceptions import InvalidStateError, LlanogasError
from llanogas.db.session import engine

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from llanogas.core.rate_limit import limiter

# ============================================================================
# Gmail polling loop (in-process, optional)
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the mailbox poller alongside the API when enabled."""
    from llanogas.services.gmail_sync_service import get_gmail_sync_service

    service = get_gmail_sync_service()
    if settings.GMAIL_SYNC_ENABLED and settings.gmail_configured:
        service.start()
    try:
        yield
    finally:
        service.stop()


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    lifespan=lifespan,
    title="LLANOGAS API",
    description="Regulatory correspondence, case lifecycle and Gmail ingestion",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


@app.exception_handler(LlanogasError)
async def llanogas_error_handler(request: Request, exc: LlanogasError):
    """Render domain errors as ``{"detail": ...}`` with the class status code."""
    body: dict = {"detail": exc.message}
    if isinstance(exc, InvalidStateError):
        body["current_state"] = exc.current_state
        body["required_states"] = exc.required_states
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


# ============================================================================
# Routers
# ============================================================================

from llanogas.routers import (  # noqa: E402
    activities,
    auth,
    calendar,
    cases,
    dashboard,
    emails,
    entities,
    gmail_sync,
    notifications,
    users,
)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(cases.router, prefix="/cases", tags=["cases"])
app.include_router(activities.router, prefix="/activities", tags=["activities"])
app.include_router(emails.router, prefix="/emails", tags=["emails"])
app.include_router(entities.router, prefix="/entities", tags=["entities"])
app.include_router(notifications.router, prefix="/me", tags=["notifications"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
app.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
app.include_router(gmail_sync.router, prefix="/gmail", tags=["gmail"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
