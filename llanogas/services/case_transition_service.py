"""
Case transition operations.

Each operation loads the case, checks the transition table, applies all
writes (state, timestamps, Activity, Revision/Approval rows) and commits
once. Any error rolls the whole transaction back; database failures
surface as ``InternalError``.

Work that must not influence the outcome (outbound email) is returned as
``FollowUp`` objects in ``TransitionOutcome.follow_ups`` for the caller to
run after the response. In-app notifications are written after the commit
through ``notification_service.notify_best_effort``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from llanogas.core.background import FollowUp
from llanogas.core.exceptions import InternalError, NotFoundError
from llanogas.core.structured_logging import build_log_context
from llanogas.db.enums import NotificationType, ReviewState, Role
from llanogas.db.models import Activity, Approval, Case, Revision, User
from llanogas.services import notification_service
from llanogas.services.case_state_machine import CaseEvent, apply_transition, next_transition
from llanogas.services.email_parsing import normalize_radicado
from llanogas.services.outbound_mail import NotificationMailer

logger = logging.getLogger(__name__)

CASE_NOT_FOUND = "Caso no encontrado"
NO_ACTIVE_REVIEWER = "No se encontró ningún Revisor Jurídico activo."
NO_ACTIVE_APPROVER = "No se encontró ningún Aprobador activo."
PERSISTENCE_FAILED = "No se pudo guardar el cambio de estado del caso."


@dataclass
class TransitionOutcome:
    """Committed result of a transition plus post-commit follow-ups."""

    case: Case
    message: str
    activities: list[Activity]
    data: dict[str, Any] = field(default_factory=dict)
    follow_ups: list[FollowUp] = field(default_factory=list)


# =============================================================================
# Helpers
# =============================================================================


def _load_case_for_update(db: Session, case_id: UUID) -> Case:
    """Load the case row, locking it where the backend supports it."""
    case = db.query(Case).filter(Case.id == case_id).with_for_update().first()
    if not case:
        raise NotFoundError(CASE_NOT_FOUND)
    return case


def _first_active_user_with_role(db: Session, role: Role) -> User | None:
    """First active user holding ``role`` (by creation order)."""
    return (
        db.query(User)
        .filter(User.role == role.value, User.is_active.is_(True))
        .order_by(User.created_at.asc())
        .first()
    )


def _log_outcome(case: Case, actor_user_id: UUID, message: str) -> None:
    logger.info(
        "%s (state=%s)",
        message,
        case.state,
        extra=build_log_context(user_id=actor_user_id, case_id=case.id),
    )


# =============================================================================
# Transitions
# =============================================================================


def assign_case(
    db: Session,
    case_id: UUID,
    actor_user_id: UUID,
    responsible_user_id: UUID,
) -> TransitionOutcome:
    """RECIBIDO -> ASIGNADO, setting the responsible user."""
    try:
        case = _load_case_for_update(db, case_id)
        responsible = db.query(User).filter(
            User.id == responsible_user_id, User.is_active.is_(True)
        ).first()
        if not responsible:
            raise NotFoundError("Usuario responsable no encontrado o inactivo")

        case.responsible_user_id = responsible.id
        activity = apply_transition(
            db,
            case,
            CaseEvent.ASSIGN,
            actor_user_id,
            description=f"Caso asignado a {responsible.name}",
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(PERSISTENCE_FAILED) from e
    except Exception:
        db.rollback()
        raise

    message = "Caso asignado."
    _log_outcome(case, actor_user_id, message)
    notification_service.notify_best_effort(
        db,
        "case_assigned",
        lambda: notification_service.notify_users(
            db,
            [responsible.id],
            NotificationType.INFO,
            "Caso asignado",
            f"Se te asignó el caso {case.reference}: {case.subject}",
            case_id=case.id,
        ),
    )
    return TransitionOutcome(
        case=case,
        message=message,
        activities=[activity],
        data={"assigned_to": responsible.name},
    )


def start_drafting(db: Session, case_id: UUID, actor_user_id: UUID) -> TransitionOutcome:
    """ASIGNADO -> EN_REDACCION."""
    try:
        case = _load_case_for_update(db, case_id)
        activity = apply_transition(db, case, CaseEvent.START_DRAFTING, actor_user_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(PERSISTENCE_FAILED) from e
    except Exception:
        db.rollback()
        raise

    message = "Redacción iniciada."
    _log_outcome(case, actor_user_id, message)
    return TransitionOutcome(case=case, message=message, activities=[activity])


def submit_for_legal_review(
    db: Session,
    case_id: UUID,
    actor_user_id: UUID,
) -> TransitionOutcome:
    """
    EN_REDACCION -> EN_REVISION with a PENDIENTE Revision.

    The reviewer is the first active REVISOR_JURIDICO; a missing reviewer
    is reported before the state precondition.

    Raises:
        NotFoundError: case or reviewer missing
        InvalidStateError: case not in EN_REDACCION
    """
    try:
        case = _load_case_for_update(db, case_id)
        reviewer = _first_active_user_with_role(db, Role.REVISOR_JURIDICO)
        if not reviewer:
            raise NotFoundError(NO_ACTIVE_REVIEWER)

        next_transition(case.state, CaseEvent.SUBMIT_FOR_LEGAL_REVIEW)

        revision = Revision(
            case_id=case.id,
            reviewer_id=reviewer.id,
            state=ReviewState.PENDIENTE.value,
        )
        db.add(revision)
        activity = apply_transition(
            db,
            case,
            CaseEvent.SUBMIT_FOR_LEGAL_REVIEW,
            actor_user_id,
            description=f"Caso enviado a revisión legal a {reviewer.name}",
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(PERSISTENCE_FAILED) from e
    except Exception:
        db.rollback()
        raise

    message = "Solicitud de revisión legal creada y asignada."
    _log_outcome(case, actor_user_id, message)
    notification_service.notify_best_effort(
        db,
        "legal_review_requested",
        lambda: notification_service.notify_users(
            db,
            [reviewer.id],
            NotificationType.INFO,
            "Revisión legal solicitada",
            f"El caso {case.reference} requiere tu revisión legal",
            case_id=case.id,
        ),
    )
    return TransitionOutcome(
        case=case,
        message=message,
        activities=[activity],
        data={"revision_id": revision.id, "assigned_to": reviewer.name},
    )


def approve_review(
    db: Session,
    case_id: UUID,
    actor_user_id: UUID,
    comments: str | None = None,
) -> TransitionOutcome:
    """
    EN_REVISION -> EN_APROBACION.

    Closes the pending Revision as APROBADA and opens a PENDIENTE Approval
    for the first active APROBADOR.
    """
    now = datetime.now(timezone.utc)
    try:
        case = _load_case_for_update(db, case_id)
        next_transition(case.state, CaseEvent.APPROVE_REVIEW)

        approver = _first_active_user_with_role(db, Role.APROBADOR)
        if not approver:
            raise NotFoundError(NO_ACTIVE_APPROVER)

        revision = (
            db.query(Revision)
            .filter(
                Revision.case_id == case.id,
                Revision.state == ReviewState.PENDIENTE.value,
            )
            .order_by(Revision.created_at.desc())
            .first()
        )
        if revision:
            revision.state = ReviewState.APROBADA.value
            revision.comments = comments
            revision.reviewed_at = now

        approval = Approval(
            case_id=case.id,
            approver_id=approver.id,
            state=ReviewState.PENDIENTE.value,
        )
        db.add(approval)
        activity = apply_transition(
            db, case, CaseEvent.APPROVE_REVIEW, actor_user_id, now=now
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(PERSISTENCE_FAILED) from e
    except Exception:
        db.rollback()
        raise

    message = "Revisión legal aprobada, caso enviado a aprobación."
    _log_outcome(case, actor_user_id, message)
    notification_service.notify_best_effort(
        db,
        "approval_requested",
        lambda: notification_service.notify_users(
            db,
            [approver.id],
            NotificationType.INFO,
            "Aprobación solicitada",
            f"El caso {case.reference} requiere tu aprobación",
            case_id=case.id,
        ),
    )
    return TransitionOutcome(
        case=case,
        message=message,
        activities=[activity],
        data={"approval_id": approval.id, "assigned_to": approver.name},
    )


def approve_case(
    db: Session,
    case_id: UUID,
    actor_user_id: UUID,
    comments: str | None = None,
) -> TransitionOutcome:
    """EN_APROBACION -> FIRMA_LEGAL, closing the pending Approval."""
    now = datetime.now(timezone.utc)
    try:
        case = _load_case_for_update(db, case_id)
        next_transition(case.state, CaseEvent.APPROVE)

        approval = (
            db.query(Approval)
            .filter(
                Approval.case_id == case.id,
                Approval.state == ReviewState.PENDIENTE.value,
            )
            .order_by(Approval.created_at.desc())
            .first()
        )
        if approval:
            approval.state = ReviewState.APROBADA.value
            approval.comments = comments
            approval.decided_at = now

        activity = apply_transition(db, case, CaseEvent.APPROVE, actor_user_id, now=now)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(PERSISTENCE_FAILED) from e
    except Exception:
        db.rollback()
        raise

    message = "Caso aprobado, pendiente de firma legal."
    _log_outcome(case, actor_user_id, message)
    return TransitionOutcome(
        case=case,
        message=message,
        activities=[activity],
        data={"approval_id": approval.id if approval else None},
    )


def send_final(
    db: Session,
    case_id: UUID,
    actor_user_id: UUID,
    outbound_radicado: str | None = None,
) -> TransitionOutcome:
    """
    FIRMA_LEGAL -> ENVIADO, stamping signature and sent timestamps.

    Raises:
        NotFoundError: case missing
        InvalidStateError: case not in FIRMA_LEGAL
    """
    try:
        case = _load_case_for_update(db, case_id)
        activity = apply_transition(db, case, CaseEvent.SEND_FINAL, actor_user_id)
        outbound_radicado = normalize_radicado(outbound_radicado)
        if outbound_radicado:
            case.outbound_radicado = outbound_radicado
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(PERSISTENCE_FAILED) from e
    except Exception:
        db.rollback()
        raise

    message = "Comunicado final enviado."
    _log_outcome(case, actor_user_id, message)
    return TransitionOutcome(case=case, message=message, activities=[activity])


def close_case(
    db: Session,
    case_id: UUID,
    actor_user_id: UUID,
    mailer: NotificationMailer | None = None,
) -> TransitionOutcome:
    """
    ENVIADO -> CON_ACUSE -> CERRADO in one transaction.

    Writes two activities (ACUSE_RECIBO, CAMBIO_ESTADO). After commit the
    case users are notified in-app and, when a mailer is given, the
    responsible user gets an email as a follow-up.

    Raises:
        NotFoundError: case missing
        InvalidStateError: case not in ENVIADO
    """
    now = datetime.now(timezone.utc)
    try:
        case = _load_case_for_update(db, case_id)
        acknowledged = apply_transition(
            db, case, CaseEvent.ACKNOWLEDGE_RECEIPT, actor_user_id, now=now
        )
        closed = apply_transition(db, case, CaseEvent.CLOSE, actor_user_id, now=now)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(PERSISTENCE_FAILED) from e
    except Exception:
        db.rollback()
        raise

    message = "Caso cerrado con éxito, Acuse de Recibo registrado."
    _log_outcome(case, actor_user_id, message)

    notification_service.notify_best_effort(
        db,
        "case_closed",
        lambda: notification_service.notify_users(
            db,
            [case.responsible_user_id, case.creator_user_id]
            + notification_service.get_admin_user_ids(db),
            NotificationType.SUCCESS,
            "Caso completado",
            f"El caso {case.reference} ha sido cerrado exitosamente",
            case_id=case.id,
        ),
    )

    follow_ups: list[FollowUp] = []
    responsible = case.responsible
    if mailer is not None and responsible is not None and responsible.email:
        # Capture plain values; the session is gone when the follow-up runs
        to_address = responsible.email
        reference = case.reference
        subject = case.subject
        closed_case_id = case.id

        async def _send_closure_email() -> None:
            await mailer.send_case_notification(
                to_address=to_address,
                case_reference=reference,
                case_subject=subject,
                action="Caso cerrado",
                case_id=closed_case_id,
            )

        follow_ups.append(FollowUp(label=f"closure_email:{case.id}", run=_send_closure_email))

    return TransitionOutcome(
        case=case,
        message=message,
        activities=[acknowledged, closed],
        follow_ups=follow_ups,
    )
