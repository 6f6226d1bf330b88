"""Database models for major and mini prize draws."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from .base import Base
from .enums import DrawStatus, RepeatPolicy
from .types import ID_TYPE, UTCDateTime

if TYPE_CHECKING:
    from ..config import DrawSettings
    from .entry import DrawEntry
    from .winner import DrawWinner


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class WinnerRecord:
    """Read-only view of the winner embedded on a draw row."""

    user_id: int
    entry_number: int
    selected_date: datetime
    notified: bool
    selection_method: Optional[str]
    selected_by: Optional[int]


class Draw(Base):
    """A time-boxed prize giveaway with its own entry pool.

    ``Draw`` is the shared single-table base of :class:`MajorDraw` and
    :class:`MiniDraw`. The persisted ``status`` is a cache refreshed by the
    transition sweep; reads derive the effective status from the schedule
    with :func:`sweeps.draws.status.resolve_status`.
    """

    __tablename__ = "draws"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    draw_type: Mapped[str] = mapped_column(String(10), nullable=False)
    """Discriminator: ``"major"`` or ``"mini"``."""

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    prize_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    prize_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prize_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    prize_images: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    prize_category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    activation_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    """When the draw becomes visible and starts accepting entries."""

    freeze_entries_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    """After this instant entries no longer count toward the draw."""

    draw_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    """When the draw happens and becomes eligible for winner selection."""

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DrawStatus.QUEUED.value
    )
    """Last persisted status; may lag the schedule until the next sweep."""

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    """Legacy mirror of ``status == "active"``."""

    configuration_locked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    """One-way flag; once set, admin edits are rejected."""

    locked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    total_entries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Cached sum of the current cycle's aggregate ``total_entries``."""

    cycle: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Incremented each time a mini draw restarts; always 1 for major draws."""

    minimum_entries: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Mini draws close automatically once this many entries are held."""

    freeze_lead_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Per-draw override of the freeze lead time."""

    gap_grace_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Per-draw override of the post-completion display window."""

    winner_user_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    winner_entry_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    winner_selected_date: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    winner_notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    winner_selection_method: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True
    )
    winner_selected_by: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    entries: Mapped[list["DrawEntry"]] = relationship(
        back_populates="draw",
        cascade="all",
        order_by="DrawEntry.id",
    )
    """Entry aggregates across all cycles, in insertion order."""

    winners: Mapped[list["DrawWinner"]] = relationship(
        back_populates="draw",
        cascade="all",
        order_by="DrawWinner.cycle",
    )
    """Permanent winner history, one row per completed cycle."""

    __mapper_args__ = {"polymorphic_on": "draw_type"}

    __table_args__ = (
        CheckConstraint("total_entries >= 0", name="total_entries_non_negative"),
        CheckConstraint("cycle >= 1", name="cycle_positive"),
        CheckConstraint(
            "minimum_entries IS NULL OR minimum_entries >= 1",
            name="minimum_entries_positive",
        ),
        Index("ix_draws_type_status_activation", "draw_type", "status", "activation_date"),
        Index("ix_draws_status_draw_date", "status", "draw_date"),
    )

    def __init__(
        self,
        *,
        name: str,
        description: str = "",
        activation_date: Optional[datetime] = None,
        freeze_entries_at: Optional[datetime] = None,
        draw_date: Optional[datetime] = None,
        status: str | DrawStatus = DrawStatus.QUEUED,
        prize_name: Optional[str] = None,
        prize_description: Optional[str] = None,
        prize_value: Optional[Decimal | int | float] = None,
        prize_images: Optional[list[str]] = None,
        prize_category: Optional[str] = None,
        minimum_entries: Optional[int] = None,
        freeze_lead_minutes: Optional[int] = None,
        gap_grace_minutes: Optional[int] = None,
        configuration_locked: bool = False,
        cycle: int = 1,
        created_at: Optional[datetime] = None,
    ) -> None:
        if (
            minimum_entries is not None
            and getattr(self, "repeat_policy", None) is not RepeatPolicy.CYCLE_IN_PLACE
        ):
            raise ValueError("minimum_entries only applies to mini draws")
        status_value = DrawStatus(status).value
        self.name = name
        self.description = description
        self.activation_date = activation_date
        self.freeze_entries_at = freeze_entries_at
        self.draw_date = draw_date
        self.status = status_value
        self.is_active = status_value == DrawStatus.ACTIVE.value
        self.prize_name = prize_name
        self.prize_description = prize_description
        self.prize_value = Decimal(str(prize_value)) if prize_value is not None else None
        self.prize_images = list(prize_images) if prize_images is not None else None
        self.prize_category = prize_category
        self.minimum_entries = minimum_entries
        self.freeze_lead_minutes = freeze_lead_minutes
        self.gap_grace_minutes = gap_grace_minutes
        self.configuration_locked = configuration_locked
        self.locked_at = datetime.now(timezone.utc) if configuration_locked else None
        self.total_entries = 0
        self.cycle = cycle
        self.winner_notified = False
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<{cls}(id={id}, name={name!r}, status={status}, total_entries={total})>".format(
            cls=type(self).__name__,
            id=self.id,
            name=self.name,
            status=self.status,
            total=self.total_entries,
        )

    @validates(
        "activation_date",
        "freeze_entries_at",
        "draw_date",
        "locked_at",
        "winner_selected_date",
    )
    def _normalize_instant(self, _key: str, value: Optional[datetime]) -> Optional[datetime]:
        return _utc(value)

    @validates("status")
    def _validate_status(self, _key: str, value: str | DrawStatus) -> str:
        return DrawStatus(value).value

    @property
    def has_winner(self) -> bool:
        return self.winner_user_id is not None

    @property
    def winner(self) -> Optional[WinnerRecord]:
        """The embedded winner, or ``None`` while no winner is recorded."""

        if self.winner_user_id is None:
            return None
        return WinnerRecord(
            user_id=self.winner_user_id,
            entry_number=self.winner_entry_number,  # type: ignore[arg-type]
            selected_date=self.winner_selected_date,  # type: ignore[arg-type]
            notified=bool(self.winner_notified),
            selection_method=self.winner_selection_method,
            selected_by=self.winner_selected_by,
        )

    @property
    def current_entries(self) -> list["DrawEntry"]:
        """Aggregates of the current cycle in insertion order."""

        return [entry for entry in self.entries if entry.cycle == self.cycle]

    def freeze_lead(self, settings: "DrawSettings") -> timedelta:
        if self.freeze_lead_minutes is not None:
            return timedelta(minutes=self.freeze_lead_minutes)
        return settings.freeze_lead

    def gap_grace(self, settings: "DrawSettings") -> timedelta:
        if self.gap_grace_minutes is not None:
            return timedelta(minutes=self.gap_grace_minutes)
        return settings.gap_grace

    def prize_snapshot(self) -> dict[str, Any]:
        """JSON-serializable copy of the prize for winner history."""

        return {
            "name": self.prize_name,
            "description": self.prize_description,
            "value": str(self.prize_value) if self.prize_value is not None else None,
            "images": list(self.prize_images or []),
            "category": self.prize_category,
        }

    @classmethod
    def get_by_id(cls, session: Session, draw_id: int) -> Optional["Draw"]:
        """Return the draw with ``draw_id`` if it is an instance of ``cls``."""

        return session.scalar(select(cls).where(cls.id == draw_id))


class MajorDraw(Draw):
    """Flagship monthly draw. A new row is created for every period."""

    repeat_policy = RepeatPolicy.NEW_DRAW_PER_PERIOD

    __mapper_args__ = {"polymorphic_identity": "major"}


class MiniDraw(Draw):
    """Smaller recurring draw that restarts in place after each winner."""

    repeat_policy = RepeatPolicy.CYCLE_IN_PLACE

    __mapper_args__ = {"polymorphic_identity": "mini"}

    @property
    def entries_remaining(self) -> Optional[int]:
        """Entries left before the minimum-entries cap closes the draw."""

        if self.minimum_entries is None:
            return None
        return max(self.minimum_entries - (self.total_entries or 0), 0)


__all__ = ["Draw", "MajorDraw", "MiniDraw", "WinnerRecord"]
