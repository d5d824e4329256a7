"""Case service - intake, queries, edits and comments."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from llanogas.core.exceptions import NotFoundError, ValidationError
from llanogas.core.structured_logging import build_log_context
from llanogas.db.enums import (
    ActivityType,
    CaseState,
    NotificationType,
    OPEN_CASE_STATES,
    Priority,
)
from llanogas.db.models import Activity, Case, Email, Entity, Notification, User
from llanogas.services import activity_service, notification_service
from llanogas.services.case_state_machine import set_state
from llanogas.services.email_parsing import normalize_radicado
from llanogas.utils.business_days import add_business_days, as_utc, start_of_local_day

logger = logging.getLogger(__name__)

# Fields editable through update_case; state only moves through transitions
EDITABLE_FIELDS = (
    "subject",
    "description",
    "priority",
    "due_at",
    "responsible_user_id",
    "inbound_radicado",
    "outbound_radicado",
)


def get_case(db: Session, case_id: UUID) -> Case:
    """
    Raises:
        NotFoundError: case missing
    """
    case = (
        db.query(Case)
        .options(joinedload(Case.entity), joinedload(Case.responsible), joinedload(Case.creator))
        .filter(Case.id == case_id)
        .first()
    )
    if not case:
        raise NotFoundError("Caso no encontrado")
    return case


def list_cases(
    db: Session,
    state: CaseState | None = None,
    priority: Priority | None = None,
    entity: str | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Case], int]:
    """
    List cases, newest received first.

    ``entity`` matches the entity acronym; ``search`` matches subject,
    description and both radicados (case-insensitive).
    """
    query = db.query(Case)
    if state:
        query = query.filter(Case.state == state.value)
    if priority:
        query = query.filter(Case.priority == priority.value)
    if entity:
        query = query.join(Entity, Case.entity_id == Entity.id).filter(
            Entity.acronym == entity.strip().upper()
        )
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Case.subject.ilike(pattern),
                Case.description.ilike(pattern),
                Case.inbound_radicado.ilike(pattern),
                Case.outbound_radicado.ilike(pattern),
            )
        )
    total = query.count()
    cases = (
        query.options(joinedload(Case.entity), joinedload(Case.responsible))
        .order_by(Case.received_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return cases, total


def create_case(db: Session, data: dict[str, Any], creator_user_id: UUID) -> Case:
    """
    Register a case manually (or from an ingested email).

    Raises:
        ValidationError: subject or entity missing
        NotFoundError: entity or source email not found
    """
    subject = (data.get("subject") or "").strip()
    entity_id = data.get("entity_id")
    if not subject or not entity_id:
        raise ValidationError("Asunto y entidad son requeridos")

    entity = db.query(Entity).filter(Entity.id == entity_id).first()
    if not entity:
        raise NotFoundError("Entidad no encontrada")

    source_email = None
    if data.get("source_email_id"):
        source_email = db.query(Email).filter(Email.id == data["source_email_id"]).first()
        if not source_email:
            raise NotFoundError("Email no encontrado")

    received_at = as_utc(data.get("received_at") or datetime.now(timezone.utc))
    if data.get("due_at"):
        due_at = as_utc(data["due_at"])
    else:
        due_at = add_business_days(received_at, entity.response_days)
    priority = data.get("priority") or Priority.MEDIA

    try:
        case = Case(
            subject=subject,
            description=data.get("description"),
            priority=Priority(priority).value,
            entity_id=entity.id,
            responsible_user_id=data.get("responsible_user_id") or entity.default_responsible_id,
            creator_user_id=creator_user_id,
            inbound_radicado=normalize_radicado(data.get("inbound_radicado")),
            received_at=received_at,
            due_at=due_at,
        )
        set_state(case, CaseState.RECIBIDO)
        db.add(case)
        db.flush()

        description = "Caso creado manualmente"
        if source_email is not None:
            source_email.case_id = case.id
            source_email.processed = True
            description = f"Caso creado a partir del correo '{source_email.subject}'"

        activity_service.log_activity(
            db,
            case_id=case.id,
            user_id=creator_user_id,
            activity_type=ActivityType.CREACION,
            description=description,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(case)
    logger.info(
        "Case created",
        extra=build_log_context(user_id=creator_user_id, case_id=case.id),
    )
    return case


def update_case(db: Session, case_id: UUID, updates: dict[str, Any]) -> Case:
    """Apply a partial update restricted to EDITABLE_FIELDS."""
    case = get_case(db, case_id)
    for key, value in updates.items():
        if key not in EDITABLE_FIELDS:
            continue
        if key == "priority" and value is not None:
            value = Priority(value).value
        if key == "responsible_user_id" and value is not None:
            if not db.query(User).filter(User.id == value, User.is_active.is_(True)).first():
                raise NotFoundError("Usuario responsable no encontrado o inactivo")
        if key == "due_at" and value is not None:
            value = as_utc(value)
        if key in ("inbound_radicado", "outbound_radicado"):
            value = normalize_radicado(value)
        if key == "subject" and not (value or "").strip():
            raise ValidationError("El asunto no puede estar vacío")
        setattr(case, key, value)
    db.commit()
    db.refresh(case)
    return case


def add_comment(db: Session, case_id: UUID, user_id: UUID, description: str) -> Activity:
    """
    Append a COMENTARIO activity and notify the case responsible and creator.

    Raises:
        ValidationError: empty comment
        NotFoundError: case missing
    """
    text = (description or "").strip()
    if not text:
        raise ValidationError("La descripción es requerida")
    case = get_case(db, case_id)

    activity = activity_service.log_activity(
        db,
        case_id=case.id,
        user_id=user_id,
        activity_type=ActivityType.COMENTARIO,
        description=text,
    )
    db.commit()
    db.refresh(activity)

    preview = text if len(text) <= 100 else f"{text[:100]}..."
    notification_service.notify_best_effort(
        db,
        "case_comment",
        lambda: notification_service.notify_users(
            db,
            [uid for uid in (case.responsible_user_id, case.creator_user_id) if uid != user_id],
            NotificationType.INFO,
            "Nuevo comentario",
            f"Tienes un nuevo comentario en el caso {case.reference}: {preview}",
            case_id=case.id,
        ),
    )
    return activity


DUE_TITLES = ("Caso por vencer", "Caso vencido")


def _cases_reminded_since(db: Session, case_ids: list[UUID], since: datetime) -> set[UUID]:
    if not case_ids:
        return set()
    rows = (
        db.query(Notification.case_id)
        .filter(
            Notification.case_id.in_(case_ids),
            Notification.title.in_(DUE_TITLES),
            Notification.created_at >= since,
        )
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def notify_due_cases(db: Session, horizon_days: int, now: datetime | None = None) -> int:
    """
    Warn about open cases due within ``horizon_days`` (or already overdue).

    Notifies the responsible user and admins at most once per case per
    Bogotá calendar day. Returns the number of cases that produced
    notifications.
    """
    now = now or datetime.now(timezone.utc)
    cases = (
        db.query(Case)
        .filter(
            Case.state.in_([s.value for s in OPEN_CASE_STATES]),
            Case.due_at.isnot(None),
            Case.due_at <= now + timedelta(days=horizon_days),
        )
        .all()
    )
    reminded_today = _cases_reminded_since(db, [c.id for c in cases], start_of_local_day(now))
    admin_ids = notification_service.get_admin_user_ids(db)
    notified = 0
    for case in cases:
        if case.id in reminded_today:
            continue
        remaining = as_utc(case.due_at) - now
        days_left = remaining.days + (1 if remaining.seconds else 0)
        if remaining.total_seconds() <= 0:
            type_, title = NotificationType.ERROR, "Caso vencido"
            message = f"El caso {case.reference} ha vencido"
        else:
            type_, title = NotificationType.WARNING, "Caso por vencer"
            message = f"El caso {case.reference} vence en {days_left} días"
        created = notification_service.notify_users(
            db,
            [case.responsible_user_id, *admin_ids],
            type_,
            title,
            message,
            case_id=case.id,
        )
        if created:
            notified += 1
    return notified
