"""Entities Router - regulatory bodies."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from llanogas.core.deps import get_current_session, get_db, require_csrf_header, require_roles
from llanogas.db.enums import ROLES_CAN_MANAGE_ENTITIES
from llanogas.schemas.auth import UserSession
from llanogas.schemas.entity import EntityCreate, EntityRead
from llanogas.services import entity_service

router = APIRouter()


def _to_read(entity, case_count: int = 0) -> EntityRead:
    read = EntityRead.model_validate(entity)
    read.case_count = case_count
    return read


@router.get("", response_model=list[EntityRead])
def list_entities(
    include_inactive: bool = Query(False),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    rows = entity_service.list_entities(db, active_only=not include_inactive)
    return [_to_read(entity, count) for entity, count in rows]


@router.post(
    "",
    response_model=EntityRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_entity(
    data: EntityCreate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_ENTITIES)),
    db: Session = Depends(get_db),
):
    return _to_read(entity_service.create_entity(db, data.model_dump()))
