"""Authentication router - password login and session management."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from llanogas.core.config import settings
from llanogas.core.deps import COOKIE_NAME, get_current_session, get_db, require_csrf_header
from llanogas.core.rate_limit import LOGIN_LIMIT, limiter
from llanogas.core.security import create_session_token
from llanogas.core.structured_logging import build_log_context
from llanogas.db.models import User
from llanogas.schemas.auth import LoginRequest, MeResponse, UserSession
from llanogas.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _me(user: User) -> MeResponse:
    return MeResponse(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        position=user.position,
        process=user.process,
    )


# =============================================================================
# Login / Logout
# =============================================================================

@router.post("/login", response_model=MeResponse, dependencies=[Depends(require_csrf_header)])
@limiter.limit(LOGIN_LIMIT)
def login(
    request: Request,
    response: Response,
    data: LoginRequest,
    db: Session = Depends(get_db),
):
    """
    Verify email and password and set the session cookie.

    Unknown email, wrong password and inactive account all answer with the
    same 401 so the response does not reveal which accounts exist.
    """
    user = user_service.authenticate(db, data.email, data.password)
    if not user:
        logger.info("Failed login attempt")
        raise HTTPException(status_code=401, detail="Credenciales inválidas")

    token = create_session_token(
        user_id=user.id,
        role=user.role,
        token_version=user.token_version,
    )
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    logger.info("User logged in", extra=build_log_context(user_id=user.id))
    return _me(user)


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(
    response: Response,
    session: UserSession = Depends(get_current_session),
):
    """Clear the session cookie."""
    response.delete_cookie(COOKIE_NAME, path="/")
    logger.info("User logged out", extra=build_log_context(user_id=session.user_id))
    return {"status": "logged_out"}


# =============================================================================
# Session
# =============================================================================

@router.get("/me", response_model=MeResponse)
def get_me(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Current user, used by the frontend to bootstrap auth state."""
    return _me(user_service.get_user(db, session.user_id))
