"""Enumerations used by the draw models and the draw engine."""

from __future__ import annotations

import enum


class DrawStatus(str, enum.Enum):
    """Lifecycle status of a draw."""

    QUEUED = "queued"
    ACTIVE = "active"
    FROZEN = "frozen"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EntrySource(str, enum.Enum):
    """Channel through which a user earned draw entries."""

    MEMBERSHIP = "membership"
    ONE_TIME_PACKAGE = "one-time-package"
    UPSELL = "upsell"
    MINI_DRAW = "mini-draw"

    @property
    def column(self) -> str:
        """Name of the per-source counter column on :class:`DrawEntry`."""
        return self.value.replace("-", "_")


class SelectionMethod(str, enum.Enum):
    """How a winner was chosen."""

    RANDOM = "random"
    MANUAL = "manual"
    GOVERNMENT_APP = "government-app"


class RepeatPolicy(str, enum.Enum):
    """What happens when a draw of a given type repeats.

    Mini draws keep one rolling row and bump ``cycle``; major draws keep an
    immutable row per period and a new row is created for the next period.
    """

    CYCLE_IN_PLACE = "cycle-in-place"
    NEW_DRAW_PER_PERIOD = "new-draw-per-period"


LOCKED_STATUSES = frozenset({DrawStatus.FROZEN, DrawStatus.COMPLETED})
CLOSED_STATUSES = frozenset(
    {DrawStatus.FROZEN, DrawStatus.COMPLETED, DrawStatus.CANCELLED}
)


__all__ = [
    "DrawStatus",
    "EntrySource",
    "SelectionMethod",
    "RepeatPolicy",
    "LOCKED_STATUSES",
    "CLOSED_STATUSES",
]
