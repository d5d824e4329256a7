"""
Case lifecycle transition table.

Every state change a case can go through is declared once in
``TRANSITIONS`` as ``(source, event) -> Transition``. Services look
transitions up here instead of checking states themselves, so the table is
the single place that decides what is legal. The table is validated at
import time and can be exercised without a web framework or database.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from llanogas.core.exceptions import InvalidStateError
from llanogas.core.structured_logging import build_log_context
from llanogas.db.enums import ActivityType, CaseState
from llanogas.db.models import Activity, Case
from llanogas.services import activity_service

logger = logging.getLogger(__name__)


class CaseEvent(str, Enum):
    ASSIGN = "assign"
    START_DRAFTING = "start_drafting"
    SUBMIT_FOR_LEGAL_REVIEW = "submit_for_legal_review"
    APPROVE_REVIEW = "approve_review"
    APPROVE = "approve"
    SEND_FINAL = "send_final"
    ACKNOWLEDGE_RECEIPT = "acknowledge_receipt"
    CLOSE = "close"


# Case columns a transition may stamp with the transition time
STAMPABLE_COLUMNS = frozenset(
    {
        "assigned_at",
        "review_submitted_at",
        "reviewed_at",
        "approved_at",
        "legal_signed_at",
        "sent_at",
        "acknowledged_at",
        "closed_at",
    }
)


@dataclass(frozen=True)
class Transition:
    source: CaseState
    event: CaseEvent
    target: CaseState
    activity_type: ActivityType
    description: str
    stamps: tuple[str, ...] = ()


TRANSITIONS: dict[tuple[CaseState, CaseEvent], Transition] = {
    (t.source, t.event): t
    for t in (
        Transition(
            CaseState.RECIBIDO,
            CaseEvent.ASSIGN,
            CaseState.ASIGNADO,
            ActivityType.ASIGNACION,
            "Caso asignado",
            ("assigned_at",),
        ),
        Transition(
            CaseState.ASIGNADO,
            CaseEvent.START_DRAFTING,
            CaseState.EN_REDACCION,
            ActivityType.CAMBIO_ESTADO,
            "Inicio de redacción de la respuesta",
        ),
        Transition(
            CaseState.EN_REDACCION,
            CaseEvent.SUBMIT_FOR_LEGAL_REVIEW,
            CaseState.EN_REVISION,
            ActivityType.ENVIO_REVISION,
            "Caso enviado a revisión legal",
            ("review_submitted_at",),
        ),
        Transition(
            CaseState.EN_REVISION,
            CaseEvent.APPROVE_REVIEW,
            CaseState.EN_APROBACION,
            ActivityType.REVISION_APROBADA,
            "Revisión legal aprobada",
            ("reviewed_at",),
        ),
        Transition(
            CaseState.EN_APROBACION,
            CaseEvent.APPROVE,
            CaseState.FIRMA_LEGAL,
            ActivityType.APROBACION,
            "Respuesta aprobada, pendiente de firma legal",
            ("approved_at",),
        ),
        Transition(
            CaseState.FIRMA_LEGAL,
            CaseEvent.SEND_FINAL,
            CaseState.ENVIADO,
            ActivityType.ENVIO_FINAL,
            "Comunicado final firmado y enviado",
            ("legal_signed_at", "sent_at"),
        ),
        Transition(
            CaseState.ENVIADO,
            CaseEvent.ACKNOWLEDGE_RECEIPT,
            CaseState.CON_ACUSE,
            ActivityType.ACUSE_RECIBO,
            "Acuse de recibo del comunicado final registrado.",
            ("acknowledged_at",),
        ),
        Transition(
            CaseState.CON_ACUSE,
            CaseEvent.CLOSE,
            CaseState.CERRADO,
            ActivityType.CAMBIO_ESTADO,
            "Caso cerrado y archivado de forma definitiva.",
            ("closed_at",),
        ),
    )
}


def validate_transition_table(table: dict[tuple[CaseState, CaseEvent], Transition]) -> None:
    """
    Check a transition table for structural mistakes.

    Raises:
        ValueError: key/transition mismatch, non-forward target, a
            transition out of the terminal state, or an unknown stamp column
    """
    for (source, event), transition in table.items():
        if (transition.source, transition.event) != (source, event):
            raise ValueError(f"Transition registered under wrong key: {source}/{event}")
        if source.is_terminal:
            raise ValueError(f"No transition may leave {source.value}")
        if transition.target.order <= source.order:
            raise ValueError(
                f"{event.value} moves {source.value} back to {transition.target.value}"
            )
        unknown = set(transition.stamps) - STAMPABLE_COLUMNS
        if unknown:
            raise ValueError(f"{event.value} stamps unknown columns: {sorted(unknown)}")


validate_transition_table(TRANSITIONS)


def states_accepting(event: CaseEvent) -> list[CaseState]:
    """States from which ``event`` is legal."""
    return [source for (source, ev) in TRANSITIONS if ev == event]


def next_transition(state: CaseState | str, event: CaseEvent) -> Transition:
    """
    Look up the transition for ``event`` from ``state``.

    Raises:
        InvalidStateError: event not legal from the current state
    """
    current = CaseState(state)
    transition = TRANSITIONS.get((current, event))
    if transition is None:
        required = states_accepting(event)
        required_text = ", ".join(s.value for s in required) or "ninguno"
        raise InvalidStateError(
            f"No se puede ejecutar '{event.value}': el caso está en estado "
            f"{current.value} y se requiere {required_text}.",
            current_state=current.value,
            required_states=[s.value for s in required],
        )
    return transition


def set_state(case: Case, state: CaseState) -> None:
    """Write state and approval stage together."""
    case.state = state.value
    case.approval_stage = state.value


def apply_transition(
    db: Session,
    case: Case,
    event: CaseEvent,
    actor_user_id: UUID,
    description: str | None = None,
    now: datetime | None = None,
) -> Activity:
    """
    Move ``case`` along ``event`` and append exactly one Activity.

    Flushes but does not commit; the caller owns the transaction.
    """
    transition = next_transition(case.state, event)
    now = now or datetime.now(timezone.utc)

    set_state(case, transition.target)
    for column in transition.stamps:
        setattr(case, column, now)

    activity = activity_service.log_activity(
        db,
        case_id=case.id,
        user_id=actor_user_id,
        activity_type=transition.activity_type,
        description=description or transition.description,
    )
    logger.info(
        "Case transition %s: %s -> %s",
        event.value,
        transition.source.value,
        transition.target.value,
        extra=build_log_context(user_id=actor_user_id, case_id=case.id),
    )
    return activity


def iter_transitions() -> Iterable[Transition]:
    """Transitions in lifecycle order."""
    return sorted(TRANSITIONS.values(), key=lambda t: t.source.order)
