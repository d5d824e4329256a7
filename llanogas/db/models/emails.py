"""Ingested email ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from llanogas.db.base import Base
from llanogas.db.models.mixins import utcnow

if TYPE_CHECKING:
    from llanogas.db.models.cases import Case
    from llanogas.db.models.entities import Entity


class Email(Base):
    """
    One message ingested from the shared mailbox.

    ``message_id`` is the provider id and the dedup key. ``case_id`` is
    set at most once, when a radicado matches a case.
    """

    __tablename__ = "emails"
    __table_args__ = (
        Index("idx_emails_radicado", "radicado"),
        Index("idx_emails_from_domain", "from_domain"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    thread_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    from_address: Mapped[str] = mapped_column(String(500), nullable=False)
    from_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    from_domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    to_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    subject: Mapped[str] = mapped_column(String(1000), default="", nullable=False)
    body_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    body_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    received_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    radicado: Mapped[str | None] = mapped_column(String(100), nullable=True)
    keywords: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    attachments: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    detected_priority: Mapped[str | None] = mapped_column(String(20), nullable=True)
    detected_responsible: Mapped[str | None] = mapped_column(String(255), nullable=True)

    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    classified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    entity_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("entities.id", ondelete="SET NULL"), nullable=True
    )
    case_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    entity: Mapped["Entity | None"] = relationship()
    case: Mapped["Case | None"] = relationship(back_populates="emails")
