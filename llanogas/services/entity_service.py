"""Regulatory entity service - CRUD and sender classification."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from llanogas.core.exceptions import ValidationError
from llanogas.db.models import Case, Entity
from llanogas.services.email_parsing import sender_domain

logger = logging.getLogger(__name__)


def _normalize_domains(domains: list[str] | None) -> list[str]:
    cleaned = []
    for domain in domains or []:
        value = domain.strip().lower().lstrip("@")
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


def list_entities(db: Session, active_only: bool = True) -> list[tuple[Entity, int]]:
    """Entities ordered by name, each with its case count."""
    case_counts = (
        db.query(Case.entity_id, func.count(Case.id).label("case_count"))
        .group_by(Case.entity_id)
        .subquery()
    )
    query = db.query(Entity, func.coalesce(case_counts.c.case_count, 0)).outerjoin(
        case_counts, case_counts.c.entity_id == Entity.id
    )
    if active_only:
        query = query.filter(Entity.is_active.is_(True))
    return [(entity, int(count)) for entity, count in query.order_by(Entity.name.asc()).all()]


def get_entity(db: Session, entity_id: UUID) -> Entity | None:
    return db.query(Entity).filter(Entity.id == entity_id).first()


def get_entity_by_acronym(db: Session, acronym: str) -> Entity | None:
    return db.query(Entity).filter(func.upper(Entity.acronym) == acronym.strip().upper()).first()


def create_entity(db: Session, data: dict[str, Any]) -> Entity:
    """
    Create a regulatory entity.

    Raises:
        ValidationError: name, acronym or color missing, or acronym taken
    """
    name = (data.get("name") or "").strip()
    acronym = (data.get("acronym") or "").strip().upper()
    color = (data.get("color") or "").strip()
    if not name or not acronym or not color:
        raise ValidationError("Nombre, sigla y color son requeridos")
    if get_entity_by_acronym(db, acronym):
        raise ValidationError(f"Ya existe una entidad con la sigla {acronym}")

    entity = Entity(
        name=name,
        acronym=acronym,
        color=color,
        email=data.get("email"),
        description=data.get("description"),
        email_domains=_normalize_domains(data.get("email_domains")),
        keywords=[k.strip().lower() for k in data.get("keywords") or [] if k.strip()],
        response_days=data.get("response_days") or 15,
        default_responsible_id=data.get("default_responsible_id"),
    )
    db.add(entity)
    db.commit()
    db.refresh(entity)
    logger.info("Entity created: %s", entity.acronym)
    return entity


def domain_matches(domain: str, registered: str) -> bool:
    """Exact match or subdomain of a registered domain."""
    domain = domain.lower()
    registered = registered.lower().lstrip("@")
    return domain == registered or domain.endswith("." + registered)


def detect_entity_for_sender(db: Session, from_header: str) -> Entity | None:
    """
    Active entity whose registered domains cover the sender's domain.

    The most specific (longest) matching registered domain wins.
    """
    domain = sender_domain(from_header)
    if not domain:
        return None

    best: tuple[int, Entity] | None = None
    for entity in db.query(Entity).filter(Entity.is_active.is_(True)).all():
        for registered in entity.email_domains or []:
            if domain_matches(domain, registered):
                if best is None or len(registered) > best[0]:
                    best = (len(registered), entity)
    return best[1] if best else None
