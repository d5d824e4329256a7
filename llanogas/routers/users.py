"""Users Router - account administration (system administrators only)."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from llanogas.core.deps import get_db, require_csrf_header, require_roles
from llanogas.db.enums import ROLES_CAN_MANAGE_USERS
from llanogas.schemas.auth import UserSession
from llanogas.schemas.user import UserCreate, UserDeactivateResponse, UserRead, UserUpdate
from llanogas.services import user_service

router = APIRouter()


@router.get("", response_model=list[UserRead])
def list_users(
    include_inactive: bool = Query(True),
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, include_inactive=include_inactive)


@router.post(
    "",
    response_model=UserRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_user(
    data: UserCreate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    return user_service.create_user(db, data.model_dump())


@router.patch(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_user(
    user_id: UUID,
    data: UserUpdate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    return user_service.update_user(db, user_id, data.model_dump(exclude_unset=True))


@router.delete(
    "/{user_id}",
    response_model=UserDeactivateResponse,
    dependencies=[Depends(require_csrf_header)],
)
def deactivate_user(
    user_id: UUID,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    """Deactivate rather than delete; the user's sessions are revoked."""
    user = user_service.deactivate_user(db, user_id, session.user_id)
    return UserDeactivateResponse(
        message="Usuario inactivado correctamente",
        user=UserRead.model_validate(user),
    )
