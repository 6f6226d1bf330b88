"""Effective lifecycle status of a draw.

The persisted ``draws.status`` column is a cache refreshed by write paths and
the periodic sweep. Reads derive the status from the schedule instead, so a
missed sweep never shows a stale status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .errors import InvalidStatusTransitionError
from .schedule import ensure_utc, format_in_timezone, utc_now
from ..models.draw import Draw
from ..models.enums import LOCKED_STATUSES, DrawStatus

logger = logging.getLogger(__name__)

MAJOR_TRANSITIONS: dict[DrawStatus, frozenset[DrawStatus]] = {
    DrawStatus.QUEUED: frozenset({DrawStatus.ACTIVE, DrawStatus.CANCELLED}),
    DrawStatus.ACTIVE: frozenset({DrawStatus.FROZEN, DrawStatus.CANCELLED}),
    DrawStatus.FROZEN: frozenset({DrawStatus.COMPLETED, DrawStatus.CANCELLED}),
    DrawStatus.COMPLETED: frozenset(),
    DrawStatus.CANCELLED: frozenset(),
}

# mini draws close on their entry cap as well as on the clock
MINI_TRANSITIONS: dict[DrawStatus, frozenset[DrawStatus]] = {
    **MAJOR_TRANSITIONS,
    DrawStatus.ACTIVE: frozenset(
        {DrawStatus.FROZEN, DrawStatus.COMPLETED, DrawStatus.CANCELLED}
    ),
}


@dataclass(frozen=True)
class DisplayStatus:
    """User-facing label for a draw.

    Attributes
    ----------
    label : str
        Short badge text, e.g. ``"Entries Closed"``.
    color : str
        One of ``"green"``, ``"yellow"``, ``"red"``, ``"blue"``, ``"gray"``.
    message : str
        One-line explanation shown under the badge.
    """

    label: str
    color: str
    message: str


def resolve_status(draw: Draw, now: Optional[datetime] = None) -> DrawStatus:
    """Derive the effective status of ``draw`` at ``now``.

    Parameters
    ----------
    draw : Draw
        Draw to inspect. It is never modified.
    now : Optional[datetime], default: None
        Reference instant; defaults to the current UTC time.

    Returns
    -------
    DrawStatus
        ``cancelled`` overrides everything. A persisted ``completed`` or a
        passed ``draw_date`` gives ``completed``. A persisted ``frozen`` or a
        passed ``freeze_entries_at`` gives ``frozen``. Before
        ``activation_date`` the draw is ``queued``; otherwise ``active``.
    """

    current = ensure_utc(now) if now is not None else utc_now()
    persisted = DrawStatus(draw.status)

    if persisted is DrawStatus.CANCELLED:
        return DrawStatus.CANCELLED
    if persisted is DrawStatus.COMPLETED or (
        draw.draw_date is not None and current >= ensure_utc(draw.draw_date)
    ):
        return DrawStatus.COMPLETED
    if persisted is DrawStatus.FROZEN or (
        draw.freeze_entries_at is not None
        and current >= ensure_utc(draw.freeze_entries_at)
    ):
        return DrawStatus.FROZEN
    if draw.activation_date is not None and current < ensure_utc(draw.activation_date):
        return DrawStatus.QUEUED
    return DrawStatus.ACTIVE


def persist_status(
    session: Session, draw: Draw, now: Optional[datetime] = None
) -> Optional[DrawStatus]:
    """Write the effective status of ``draw`` when it differs from the stored one.

    ``is_active`` is mirrored and the configuration lock is set once the
    status reaches ``frozen`` or ``completed``.

    Returns
    -------
    Optional[DrawStatus]
        The new status when a transition was written, ``None`` otherwise.
    """

    current = ensure_utc(now) if now is not None else utc_now()
    effective = resolve_status(draw, current)
    previous = DrawStatus(draw.status)
    if effective is previous:
        return None

    draw.status = effective.value
    draw.is_active = effective is DrawStatus.ACTIVE
    if effective in LOCKED_STATUSES and not draw.configuration_locked:
        draw.configuration_locked = True
        draw.locked_at = current
    session.flush()
    logger.info(
        "Draw %s status %s -> %s", draw.id, previous.value, effective.value
    )
    return effective


def validate_status_transition(
    current: DrawStatus | str, new: DrawStatus | str, *, mini: bool = False
) -> None:
    """Reject administrative status changes not allowed by the lifecycle.

    Raises
    ------
    InvalidStatusTransitionError
        If ``new`` is not reachable from ``current`` in one step.
    """

    current_status = DrawStatus(current)
    new_status = DrawStatus(new)
    table = MINI_TRANSITIONS if mini else MAJOR_TRANSITIONS
    if new_status not in table[current_status]:
        raise InvalidStatusTransitionError(
            f"Cannot transition from {current_status.value} to {new_status.value}"
        )


def display_status(
    draw: Draw, now: Optional[datetime] = None, *, tz: str = "UTC"
) -> DisplayStatus:
    """Return the badge/colour/message triple shown for ``draw``.

    A draw whose stored status still says ``active`` after its freeze instant
    is reported as "Closing Soon" until the sweep catches up.
    """

    effective = resolve_status(draw, now)

    if effective is DrawStatus.QUEUED:
        starts = (
            format_in_timezone(draw.activation_date, tz, "%d %b %Y")
            if draw.activation_date is not None
            else "soon"
        )
        return DisplayStatus("Coming Soon", "blue", f"Starts {starts}")
    if effective is DrawStatus.ACTIVE:
        return DisplayStatus("Active", "green", "Enter now to win!")
    if effective is DrawStatus.FROZEN:
        if draw.status == DrawStatus.ACTIVE.value:
            return DisplayStatus("Closing Soon", "yellow", "Entries closing soon!")
        return DisplayStatus("Entries Closed", "yellow", "Draw happening soon!")
    if effective is DrawStatus.COMPLETED:
        if draw.has_winner:
            return DisplayStatus("Completed", "gray", "Winner announced")
        return DisplayStatus("Completed", "gray", "Winner to be announced")
    return DisplayStatus("Cancelled", "red", "This draw has been cancelled")


__all__ = [
    "DisplayStatus",
    "resolve_status",
    "persist_status",
    "validate_status_transition",
    "display_status",
]
