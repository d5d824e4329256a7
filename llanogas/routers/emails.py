"""Emails Router - ingested correspondence."""

import math
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from llanogas.core.deps import get_current_session, get_db, require_csrf_header, require_roles
from llanogas.db.enums import Priority, ROLES_CAN_MANAGE_CASES
from llanogas.schemas.auth import UserSession
from llanogas.schemas.email import EmailDetail, EmailLinkRequest, EmailListResponse, EmailRead
from llanogas.services import email_ingestion_service

router = APIRouter()


@router.get("", response_model=EmailListResponse)
def list_emails(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: str | None = Query(None),
    entity: str | None = Query(None, description="Entity acronym"),
    with_radicado: bool | None = Query(None),
    domain: str | None = Query(None),
    priority: Priority | None = Query(None),
    processed: bool | None = Query(None),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    emails, total = email_ingestion_service.list_emails(
        db,
        page=page,
        page_size=page_size,
        search=search,
        entity=entity,
        with_radicado=with_radicado,
        domain=domain,
        priority=priority,
        processed=processed,
    )
    return EmailListResponse(
        items=[EmailRead.model_validate(e) for e in emails],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )


@router.get("/{email_id}", response_model=EmailDetail)
def get_email(
    email_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return email_ingestion_service.get_email(db, email_id)


@router.post(
    "/{email_id}/link",
    response_model=EmailRead,
    dependencies=[Depends(require_csrf_header)],
)
def link_email(
    email_id: UUID,
    data: EmailLinkRequest,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_CASES)),
    db: Session = Depends(get_db),
):
    return email_ingestion_service.link_email_manually(db, email_id, data.case_id, session.user_id)
