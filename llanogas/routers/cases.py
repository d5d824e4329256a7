"""
Cases Router - /cases endpoints.

CRUD, case timeline and one POST endpoint per lifecycle transition. The
acting user of every transition is taken from the session.
"""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from llanogas.core.background import run_best_effort
from llanogas.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_roles,
)
from llanogas.db.enums import (
    CaseState,
    Priority,
    ROLES_CAN_APPROVE,
    ROLES_CAN_ASSIGN,
    ROLES_CAN_MANAGE_CASES,
    ROLES_CAN_REVIEW,
)
from llanogas.schemas.auth import UserSession
from llanogas.schemas.case import (
    ActivityCreate,
    ActivityRead,
    AssignRequest,
    CaseCreate,
    CaseListItem,
    CaseListResponse,
    CaseRead,
    CaseUpdate,
    ReviewDecisionRequest,
    SendFinalRequest,
    TransitionResponse,
)
from llanogas.services import activity_service, case_service, case_transition_service
from llanogas.services.case_transition_service import TransitionOutcome
from llanogas.services.outbound_mail import NotificationMailer, get_notification_mailer

router = APIRouter()


def _transition_response(
    outcome: TransitionOutcome, background_tasks: BackgroundTasks
) -> TransitionResponse:
    """Schedule follow-ups after the response and build the body."""
    for follow_up in outcome.follow_ups:
        background_tasks.add_task(run_best_effort, follow_up)
    return TransitionResponse(
        message=outcome.message,
        case_id=outcome.case.id,
        state=CaseState(outcome.case.state),
        activity_ids=[a.id for a in outcome.activities],
        revision_id=outcome.data.get("revision_id"),
        approval_id=outcome.data.get("approval_id"),
        assigned_to=outcome.data.get("assigned_to"),
    )


# =============================================================================
# CRUD
# =============================================================================


@router.get("", response_model=CaseListResponse)
def list_cases(
    state: CaseState | None = Query(None),
    priority: Priority | None = Query(None),
    entity: str | None = Query(None, description="Entity acronym"),
    search: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    cases, total = case_service.list_cases(
        db,
        state=state,
        priority=priority,
        entity=entity,
        search=search,
        limit=limit,
        offset=offset,
    )
    return CaseListResponse(
        items=[CaseListItem.model_validate(c) for c in cases],
        total=total,
    )


@router.post(
    "",
    response_model=CaseRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_case(
    data: CaseCreate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_CASES)),
    db: Session = Depends(get_db),
):
    case = case_service.create_case(db, data.model_dump(), creator_user_id=session.user_id)
    return case_service.get_case(db, case.id)


@router.get("/{case_id}", response_model=CaseRead)
def get_case(
    case_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return case_service.get_case(db, case_id)


@router.patch(
    "/{case_id}",
    response_model=CaseRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_case(
    case_id: UUID,
    data: CaseUpdate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_CASES)),
    db: Session = Depends(get_db),
):
    case_service.update_case(db, case_id, data.model_dump(exclude_unset=True))
    return case_service.get_case(db, case_id)


# =============================================================================
# Timeline
# =============================================================================


@router.get("/{case_id}/activities", response_model=list[ActivityRead])
def list_case_activities(
    case_id: UUID,
    limit: int = Query(50, ge=1, le=500),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    case_service.get_case(db, case_id)
    return activity_service.list_activities(db, case_id=case_id, limit=limit)


@router.post(
    "/{case_id}/activities",
    response_model=ActivityRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_comment(
    case_id: UUID,
    data: ActivityCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return case_service.add_comment(db, case_id, session.user_id, data.description)


# =============================================================================
# Transitions
# =============================================================================


@router.post(
    "/{case_id}/assign",
    response_model=TransitionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def assign_case(
    case_id: UUID,
    data: AssignRequest,
    background_tasks: BackgroundTasks,
    session: UserSession = Depends(require_roles(ROLES_CAN_ASSIGN)),
    db: Session = Depends(get_db),
):
    outcome = case_transition_service.assign_case(
        db, case_id, session.user_id, data.responsible_user_id
    )
    return _transition_response(outcome, background_tasks)


@router.post(
    "/{case_id}/start-drafting",
    response_model=TransitionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def start_drafting(
    case_id: UUID,
    background_tasks: BackgroundTasks,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_CASES)),
    db: Session = Depends(get_db),
):
    outcome = case_transition_service.start_drafting(db, case_id, session.user_id)
    return _transition_response(outcome, background_tasks)


@router.post(
    "/{case_id}/legal-review",
    response_model=TransitionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def submit_for_legal_review(
    case_id: UUID,
    background_tasks: BackgroundTasks,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_CASES)),
    db: Session = Depends(get_db),
):
    outcome = case_transition_service.submit_for_legal_review(db, case_id, session.user_id)
    return _transition_response(outcome, background_tasks)


@router.post(
    "/{case_id}/approve-review",
    response_model=TransitionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def approve_review(
    case_id: UUID,
    background_tasks: BackgroundTasks,
    data: ReviewDecisionRequest | None = None,
    session: UserSession = Depends(require_roles(ROLES_CAN_REVIEW)),
    db: Session = Depends(get_db),
):
    outcome = case_transition_service.approve_review(
        db, case_id, session.user_id, comments=data.comments if data else None
    )
    return _transition_response(outcome, background_tasks)


@router.post(
    "/{case_id}/approve",
    response_model=TransitionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def approve_case(
    case_id: UUID,
    background_tasks: BackgroundTasks,
    data: ReviewDecisionRequest | None = None,
    session: UserSession = Depends(require_roles(ROLES_CAN_APPROVE)),
    db: Session = Depends(get_db),
):
    outcome = case_transition_service.approve_case(
        db, case_id, session.user_id, comments=data.comments if data else None
    )
    return _transition_response(outcome, background_tasks)


@router.post(
    "/{case_id}/send-final",
    response_model=TransitionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def send_final(
    case_id: UUID,
    background_tasks: BackgroundTasks,
    data: SendFinalRequest | None = None,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_CASES)),
    db: Session = Depends(get_db),
):
    outcome = case_transition_service.send_final(
        db,
        case_id,
        session.user_id,
        outbound_radicado=data.outbound_radicado if data else None,
    )
    return _transition_response(outcome, background_tasks)


@router.post(
    "/{case_id}/close",
    response_model=TransitionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def close_case(
    case_id: UUID,
    background_tasks: BackgroundTasks,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_CASES)),
    db: Session = Depends(get_db),
    mailer: NotificationMailer = Depends(get_notification_mailer),
):
    outcome = case_transition_service.close_case(db, case_id, session.user_id, mailer=mailer)
    return _transition_response(outcome, background_tasks)
