"""Idempotency ledger for paid benefits and the entry reconciliation queue."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base
from .types import ID_TYPE, UTCDateTime

BENEFITS_GRANTED = "BenefitsGranted"


def payment_event_id(event_type: str, payment_intent_id: str) -> str:
    """Deterministic primary key for a payment event, e.g. ``BenefitsGranted-pi_123``."""

    if not payment_intent_id or not payment_intent_id.strip():
        raise ValueError("payment_intent_id must not be empty")
    return f"{event_type}-{payment_intent_id.strip()}"


class PaymentEvent(Base):
    """One processed payment side effect.

    The string primary key and the unique ``(payment_intent_id, event_type)``
    pair make a second attempt to grant the same benefits fail at insert time.
    """

    __tablename__ = "payment_events"

    id: Mapped[str] = mapped_column(String(120), primary_key=True)
    payment_intent_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    package_type: Mapped[str] = mapped_column(String(20), nullable=False)
    package_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    package_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    processed_by: Mapped[str] = mapped_column(String(10), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint(
            "payment_intent_id", "event_type", name="uq_payment_events_intent_type"
        ),
        CheckConstraint("processed_by IN ('api', 'webhook')", name="processed_by_known"),
        Index("ix_payment_events_user_timestamp", "user_id", "timestamp"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<PaymentEvent(id={self.id!r}, user_id={self.user_id})>"

    @classmethod
    def get_for_intent(
        cls, session: Session, payment_intent_id: str, event_type: str = BENEFITS_GRANTED
    ) -> Optional["PaymentEvent"]:
        return session.get(cls, payment_event_id(event_type, payment_intent_id))


class PendingEntryAward(Base):
    """Paid entries that could not be placed on any draw yet.

    Written when no active or queued draw exists; an operator (or
    :func:`sweeps.draws.awards.reconcile_pending_awards`) places them later.
    """

    __tablename__ = "pending_entry_awards"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    payment_event_id: Mapped[str] = mapped_column(
        String(120), ForeignKey("payment_events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    entries: Mapped[int] = mapped_column(Integer, nullable=False)
    mini_draw_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("draws.id", ondelete="SET NULL"), nullable=True
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    resolved_draw_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("draws.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint("entries > 0", name="entries_positive"),
        Index("ix_pending_entry_awards_status", "status"),
    )

    @classmethod
    def get_pending(cls, session: Session) -> list["PendingEntryAward"]:
        """Pending awards in arrival order."""

        stmt = select(cls).where(cls.status == "pending").order_by(cls.id)
        return list(session.scalars(stmt))
