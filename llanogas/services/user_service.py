"""User service - accounts, credentials and deactivation."""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from llanogas.core.exceptions import ConflictError, NotFoundError, ValidationError
from llanogas.core.security import hash_password, verify_password
from llanogas.core.structured_logging import build_log_context
from llanogas.db.enums import Role
from llanogas.db.models import User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

# Fields editable through update_user; password and is_active are handled apart
EDITABLE_FIELDS = ("name", "email", "role", "position", "process")


def _clean_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _check_password(password: str | None) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres"
        )
    return password


def get_user(db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("Usuario no encontrado")
    return user


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == _clean_email(email)).first()


def list_users(db: Session, include_inactive: bool = True) -> list[User]:
    """Users, newest first."""
    query = db.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.created_at.desc()).all()


def create_user(db: Session, data: dict[str, Any]) -> User:
    """
    Create a user with a hashed password.

    ``password`` may be omitted only when ``require_password`` is False
    (CLI bootstrap); such users cannot sign in until one is set.

    Raises:
        ValidationError: name, email or role missing, or weak password
        ConflictError: email already registered
    """
    name = (data.get("name") or "").strip()
    email = _clean_email(data.get("email"))
    role = data.get("role")
    if not name or not email or not role:
        raise ValidationError("Nombre, email y rol son requeridos")

    password = data.get("password")
    if password or data.get("require_password", True):
        password = _check_password(password)

    if get_user_by_email(db, email):
        raise ConflictError("Ya existe un usuario con este email")

    user = User(
        name=name,
        email=email,
        role=Role(role).value,
        position=data.get("position"),
        process=data.get("process"),
        password_hash=hash_password(password) if password else None,
        is_active=data.get("is_active", True),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User created", extra=build_log_context(user_id=user.id))
    return user


def update_user(db: Session, user_id: UUID, updates: dict[str, Any]) -> User:
    """
    Apply a partial update.

    A new password or a change of role or active flag revokes existing
    sessions.

    Raises:
        NotFoundError: user missing
        ValidationError: empty name or weak password
        ConflictError: email taken by another user
    """
    user = get_user(db, user_id)
    revoke = False

    for key, value in updates.items():
        if key not in EDITABLE_FIELDS:
            continue
        if key == "name":
            value = (value or "").strip()
            if not value:
                raise ValidationError("El nombre no puede estar vacío")
        if key == "email":
            value = _clean_email(value)
            other = get_user_by_email(db, value)
            if other and other.id != user.id:
                raise ConflictError("Ya existe un usuario con este email")
        if key == "role" and value is not None:
            value = Role(value).value
            revoke = revoke or value != user.role
        setattr(user, key, value)

    if updates.get("password"):
        user.password_hash = hash_password(_check_password(updates["password"]))
        revoke = True

    if "is_active" in updates and updates["is_active"] is not None:
        if updates["is_active"] and not user.is_active:
            user.is_active = True
            user.deactivated_at = None
        elif not updates["is_active"] and user.is_active:
            user.is_active = False
            user.deactivated_at = datetime.now(timezone.utc)
            revoke = True

    if revoke:
        user.token_version += 1
    db.commit()
    db.refresh(user)
    return user


def deactivate_user(db: Session, user_id: UUID, actor_user_id: UUID) -> User:
    """
    Deactivate a user and revoke their sessions. Users are never deleted.

    Raises:
        NotFoundError: user missing
        ValidationError: an administrator deactivating themselves
    """
    if user_id == actor_user_id:
        raise ValidationError("No puede inactivar su propio usuario")
    user = get_user(db, user_id)
    if user.is_active:
        user.is_active = False
        user.deactivated_at = datetime.now(timezone.utc)
        user.token_version += 1
        db.commit()
        db.refresh(user)
        logger.info(
            "User deactivated by %s",
            actor_user_id,
            extra=build_log_context(user_id=user.id),
        )
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    """Active user matching the credentials, or None."""
    user = get_user_by_email(db, email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def revoke_sessions(db: Session, user: User) -> int:
    """Bump ``token_version`` so every issued cookie stops validating."""
    user.token_version += 1
    db.commit()
    return user.token_version
