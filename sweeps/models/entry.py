"""Per-user entry aggregates held by a draw."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, UniqueConstraint, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .enums import EntrySource
from .types import ID_TYPE, UTCDateTime

if TYPE_CHECKING:
    from .draw import Draw
    from .user import User


class DrawEntry(Base):
    """All entries one user holds in one cycle of one draw.

    Rows are written with an atomic upsert-and-increment (see
    :func:`sweeps.draws.store.atomic_increment_entry`) and are never deleted.
    ``total_entries`` always equals the sum of the four per-source counters.
    """

    __tablename__ = "draw_entries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Surrogate key; its order is the ticket order used for winner selection."""

    draw_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("draws.id", ondelete="CASCADE"), nullable=False, index=True
    )
    cycle: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    total_entries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    membership: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    one_time_package: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upsell: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mini_draw: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    first_added_date: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    last_updated_date: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    draw: Mapped["Draw"] = relationship(back_populates="entries")
    user: Mapped["User"] = relationship(back_populates="entries")

    __table_args__ = (
        UniqueConstraint("draw_id", "cycle", "user_id", name="uq_draw_entries_draw_cycle_user"),
        CheckConstraint("total_entries >= 0", name="total_entries_non_negative"),
        CheckConstraint(
            "membership >= 0 AND one_time_package >= 0 AND upsell >= 0 AND mini_draw >= 0",
            name="source_counts_non_negative",
        ),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DrawEntry(draw_id={d}, cycle={c}, user_id={u}, total_entries={t})>".format(
            d=self.draw_id, c=self.cycle, u=self.user_id, t=self.total_entries
        )

    @property
    def entries_by_source(self) -> dict[EntrySource, int]:
        """Per-channel breakdown keyed by :class:`EntrySource`."""

        return {source: getattr(self, source.column) or 0 for source in EntrySource}

    @classmethod
    def get_for_user(
        cls, session: Session, draw_id: int, user_id: int, cycle: int = 1
    ) -> Optional["DrawEntry"]:
        """Return the aggregate for ``user_id`` in ``draw_id``/``cycle``, if any."""

        return session.scalar(
            select(cls).where(
                cls.draw_id == draw_id, cls.cycle == cycle, cls.user_id == user_id
            )
        )
