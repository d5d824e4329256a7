"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from llanogas.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "llanogas_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """
    Get authenticated user from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    # Import here to avoid circular imports
    from llanogas.core.security import decode_session_token
    from llanogas.db.models import User

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="No autorizado")

    try:
        payload = decode_session_token(token)
        user_id = UUID(str(payload["sub"]))
    except Exception:
        raise HTTPException(status_code=401, detail="Sesión inválida")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="Usuario no encontrado")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Cuenta deshabilitada")

    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Sesión revocada")

    return user


def get_current_session(request: Request, db: Session = Depends(get_db)):
    """
    Get session context: user_id, role, email, name.

    This is the PRIMARY auth dependency for most endpoints; the acting
    user of every case transition comes from here.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: Unknown role
    """
    from llanogas.db.enums import Role
    from llanogas.schemas.auth import UserSession

    user = get_current_user(request, db)

    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(user.role):
        raise HTTPException(
            status_code=403,
            detail=f"Rol desconocido '{user.role}'. Contacte al administrador.",
        )

    return UserSession(
        user_id=user.id,
        role=Role(user.role),
        email=user.email,
        name=user.name,
    )


def require_roles(allowed_roles):
    """
    Dependency factory for role-based authorization.

    Usage:
        session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_CASES))
    """
    def dependency(request: Request, db: Session = Depends(get_db)):
        session = get_current_session(request, db)
        if session.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Rol '{session.role.value}' no autorizado para esta acción",
            )
        return session
    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )
