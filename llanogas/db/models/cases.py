"""Case, audit trail and review-cycle ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from llanogas.db.base import Base
from llanogas.db.enums import CaseState, Priority, ReviewState
from llanogas.db.models.mixins import utcnow

if TYPE_CHECKING:
    from llanogas.db.models.auth import User
    from llanogas.db.models.emails import Email
    from llanogas.db.models.entities import Entity


class Case(Base):
    """
    One regulatory correspondence matter.

    ``state`` and ``approval_stage`` are only written through the
    transition table and always hold the same value.
    """

    __tablename__ = "cases"
    __table_args__ = (
        Index("idx_cases_state", "state"),
        Index("idx_cases_inbound_radicado", "inbound_radicado"),
        Index("idx_cases_outbound_radicado", "outbound_radicado"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(
        String(20), default=Priority.MEDIA.value, nullable=False
    )
    state: Mapped[str] = mapped_column(
        String(30), default=CaseState.RECIBIDO.value, nullable=False
    )
    approval_stage: Mapped[str] = mapped_column(
        String(30), default=CaseState.RECIBIDO.value, nullable=False
    )

    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("entities.id"), nullable=False
    )
    responsible_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    creator_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    inbound_radicado: Mapped[str | None] = mapped_column(String(100), nullable=True)
    outbound_radicado: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Lifecycle timestamps
    received_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    due_at: Mapped[datetime | None] = mapped_column(nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(nullable=True)
    review_submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    legal_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    entity: Mapped["Entity"] = relationship()
    responsible: Mapped["User | None"] = relationship(foreign_keys=[responsible_user_id])
    creator: Mapped["User | None"] = relationship(foreign_keys=[creator_user_id])
    activities: Mapped[list["Activity"]] = relationship(
        back_populates="case", order_by="Activity.created_at"
    )
    emails: Mapped[list["Email"]] = relationship(back_populates="case")

    @property
    def reference(self) -> str:
        """Human reference used in notifications."""
        return self.inbound_radicado or str(self.id)


class Activity(Base):
    """Append-only audit entry. Never updated or deleted."""

    __tablename__ = "activities"
    __table_args__ = (Index("idx_activities_case_created", "case_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    activity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    case: Mapped["Case"] = relationship(back_populates="activities")
    user: Mapped["User"] = relationship()


class Revision(Base):
    """Legal review request for a case draft."""

    __tablename__ = "revisions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    state: Mapped[str] = mapped_column(
        String(20), default=ReviewState.PENDIENTE.value, nullable=False
    )
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    reviewer: Mapped["User"] = relationship()


class Approval(Base):
    """Final approval request after legal review."""

    __tablename__ = "approvals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    state: Mapped[str] = mapped_column(
        String(20), default=ReviewState.PENDIENTE.value, nullable=False
    )
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)

    approver: Mapped["User"] = relationship()
