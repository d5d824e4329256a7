"""
Email ingestion and case linking.

``ingest_message`` stores one mailbox message (deduplicated by provider
message id), notifies administrators and links the email to a case when
its radicado matches. Notification failures are isolated from the insert.
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from llanogas.core.exceptions import NotFoundError
from llanogas.core.structured_logging import build_log_context
from llanogas.db.enums import ActivityType, NotificationType, Priority
from llanogas.db.models import Case, Email, Entity
from llanogas.services import activity_service, email_parsing, entity_service, notification_service

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    message_id: str
    email: Email | None
    created: bool
    linked_case_id: UUID | None = None

    @property
    def duplicate(self) -> bool:
        return not self.created


def get_email_by_message_id(db: Session, message_id: str) -> Email | None:
    return db.query(Email).filter(Email.message_id == message_id).first()


def ingest_message(db: Session, message: dict[str, Any]) -> IngestResult:
    """
    Persist one Gmail ``format=full`` message.

    Steps: parse, dedup by message id, detect entity, insert, notify
    admins (best effort), link by radicado. A duplicate that is still
    unlinked gets another linking attempt.
    """
    parsed = email_parsing.parse_gmail_message(message)
    log_context = build_log_context(message_id=parsed.message_id)

    existing = get_email_by_message_id(db, parsed.message_id)
    if existing:
        logger.info("Email already ingested, skipping insert", extra=log_context)
        # Row left unlinked by an attempt that failed after the insert
        linked_case = link_email_to_case(db, existing) if existing.case_id is None else None
        return IngestResult(
            message_id=parsed.message_id,
            email=existing,
            created=False,
            linked_case_id=linked_case.id if linked_case else None,
        )

    entity = entity_service.detect_entity_for_sender(db, parsed.from_address)
    email = Email(
        message_id=parsed.message_id,
        thread_id=parsed.thread_id,
        from_address=parsed.from_address,
        from_name=parsed.from_name,
        from_domain=parsed.from_domain,
        to_address=parsed.to_address,
        subject=parsed.subject,
        body_text=parsed.body_text,
        body_html=parsed.body_html,
        received_at=parsed.received_at,
        radicado=parsed.radicado,
        keywords=parsed.keywords,
        attachments=parsed.attachments,
        detected_priority=parsed.hints.priority.value if parsed.hints.priority else None,
        detected_responsible=parsed.hints.responsible,
        entity_id=entity.id if entity else None,
        classified=entity is not None,
        processed=False,
        notified=False,
    )
    db.add(email)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent ingestion of the same message won the insert
        db.rollback()
        logger.info("Email inserted concurrently, skipping", extra=log_context)
        return IngestResult(message_id=parsed.message_id, email=None, created=False)
    db.refresh(email)
    logger.info(
        "Email ingested (entity=%s, radicado=%s)",
        entity.acronym if entity else None,
        parsed.radicado,
        extra=log_context,
    )

    _notify_admins_new_email(db, email, entity.acronym if entity else None)

    linked_case_id = None
    if email.radicado:
        case = link_email_to_case(db, email)
        linked_case_id = case.id if case else None

    return IngestResult(
        message_id=parsed.message_id,
        email=email,
        created=True,
        linked_case_id=linked_case_id,
    )


def _notify_admins_new_email(db: Session, email: Email, entity_acronym: str | None) -> None:
    origin = entity_acronym or email.from_domain or email.from_address

    def _fan_out() -> None:
        notification_service.notify_users(
            db,
            notification_service.get_admin_user_ids(db),
            NotificationType.INFO,
            "Nuevo correo recibido",
            f"Correo de {origin}: {email.subject or '(sin asunto)'}",
        )
        email.notified = True
        db.commit()

    notification_service.notify_best_effort(db, f"new_email:{email.message_id}", _fan_out)


def find_case_by_radicado(db: Session, radicado: str) -> Case | None:
    """Case whose inbound or outbound radicado equals ``radicado`` once normalized."""
    radicado = email_parsing.normalize_radicado(radicado)
    if not radicado:
        return None
    return (
        db.query(Case)
        .filter(or_(Case.inbound_radicado == radicado, Case.outbound_radicado == radicado))
        .order_by(Case.received_at.desc())
        .first()
    )


def link_email_to_case(db: Session, email: Email) -> Case | None:
    """
    Link ``email`` to the case matching its radicado and mark it processed.

    Leaves the email untouched when nothing matches. Case users and admins
    are notified after the link is committed.
    """
    if not email.radicado or email.case_id:
        return None
    case = find_case_by_radicado(db, email.radicado)
    if not case:
        logger.info(
            "No case for radicado %s",
            email.radicado,
            extra=build_log_context(message_id=email.message_id),
        )
        return None

    email.case_id = case.id
    email.processed = True
    db.commit()
    logger.info(
        "Email linked to case by radicado %s",
        email.radicado,
        extra=build_log_context(case_id=case.id, message_id=email.message_id),
    )

    notification_service.notify_best_effort(
        db,
        f"email_linked:{email.message_id}",
        lambda: notification_service.notify_users(
            db,
            [case.responsible_user_id, case.creator_user_id]
            + notification_service.get_admin_user_ids(db),
            NotificationType.INFO,
            "Correo vinculado a caso",
            f"Nuevo correo para el caso {case.reference}: {email.subject or '(sin asunto)'}",
            case_id=case.id,
        ),
    )
    return case


def link_email_manually(
    db: Session,
    email_id: UUID,
    case_id: UUID,
    actor_user_id: UUID,
) -> Email:
    """
    Attach an email to a case chosen by a user and record it on the case.

    Raises:
        NotFoundError: email or case missing
    """
    email = get_email(db, email_id)
    case = db.query(Case).filter(Case.id == case_id).first()
    if not case:
        raise NotFoundError("Caso no encontrado")

    try:
        email.case_id = case.id
        email.processed = True
        activity_service.log_activity(
            db,
            case_id=case.id,
            user_id=actor_user_id,
            activity_type=ActivityType.EMAIL_VINCULADO,
            description=f"Correo '{email.subject or '(sin asunto)'}' vinculado al caso",
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(email)
    return email


def get_email(db: Session, email_id: UUID) -> Email:
    email = db.query(Email).filter(Email.id == email_id).first()
    if not email:
        raise NotFoundError("Email no encontrado")
    return email


def list_emails(
    db: Session,
    page: int = 1,
    page_size: int = 20,
    search: str | None = None,
    entity: str | None = None,
    with_radicado: bool | None = None,
    domain: str | None = None,
    priority: Priority | None = None,
    processed: bool | None = None,
) -> tuple[list[Email], int]:
    """Paginated ingested emails, newest first."""
    query = db.query(Email)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Email.subject.ilike(pattern),
                Email.from_address.ilike(pattern),
                Email.body_text.ilike(pattern),
                Email.radicado.ilike(pattern),
            )
        )
    if entity:
        query = query.join(Entity, Email.entity_id == Entity.id).filter(
            Entity.acronym == entity.strip().upper()
        )
    if with_radicado is True:
        query = query.filter(Email.radicado.isnot(None))
    elif with_radicado is False:
        query = query.filter(Email.radicado.is_(None))
    if domain:
        query = query.filter(Email.from_domain.ilike(f"%{domain.strip().lower()}%"))
    if priority:
        query = query.filter(Email.detected_priority == priority.value)
    if processed is not None:
        query = query.filter(Email.processed.is_(processed))

    total = query.count()
    emails = (
        query.order_by(Email.received_at.desc())
        .offset((max(page, 1) - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return emails, total
