"""Outbox of events emitted by the draw engine for external collaborators."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, ForeignKey, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base
from .types import ID_TYPE, UTCDateTime

WINNER_SELECTED = "winner_selected"


class DrawEvent(Base):
    """An event waiting to be delivered (email/SMS/marketing live elsewhere)."""

    __tablename__ = "draw_events"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("draws.id", ondelete="CASCADE"), nullable=False, index=True
    )
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    @classmethod
    def undelivered(cls, session: Session, event_type: Optional[str] = None) -> list["DrawEvent"]:
        stmt = select(cls).where(cls.delivered_at.is_(None))
        if event_type is not None:
            stmt = stmt.where(cls.event_type == event_type)
        return list(session.scalars(stmt.order_by(cls.id)))
