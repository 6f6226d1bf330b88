"""Permanent record of every winner selected for a draw cycle."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .types import ID_TYPE, UTCDateTime

if TYPE_CHECKING:
    from .draw import Draw


class DrawWinner(Base):
    """Winner snapshot that survives mini-draw cycle restarts."""

    __tablename__ = "draw_winners"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("draws.id", ondelete="CASCADE"), nullable=False, index=True
    )
    draw_type: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    cycle: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    entry_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """1-indexed position of the winning ticket within the cycle's ticket sequence."""

    total_entries: Mapped[int] = mapped_column(Integer, nullable=False)
    """Size of the ticket population at selection time."""

    selected_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    selection_method: Mapped[str] = mapped_column(String(20), nullable=False)
    selected_by: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prize_snapshot: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    draw: Mapped["Draw"] = relationship(back_populates="winners")

    __table_args__ = (
        UniqueConstraint("draw_id", "cycle", name="uq_draw_winners_draw_cycle"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DrawWinner(draw_id={d}, cycle={c}, user_id={u}, entry_number={n})>".format(
            d=self.draw_id, c=self.cycle, u=self.user_id, n=self.entry_number
        )
