"""Choose which draw receives new entries and which draw is displayed.

The two answers differ during the gap period between one draw completing
and the next activating: entries go to the next queued draw while the UI
keeps showing the draw that just ended for a grace window.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Type

from sqlalchemy.orm import Session

from . import store
from .errors import DrawLockedError, DrawNotFoundError, NoAvailableDrawError
from .schedule import ensure_utc, utc_now
from .status import resolve_status
from ..config import DrawSettings, load_settings
from ..models.draw import Draw, MajorDraw, MiniDraw
from ..models.enums import DrawStatus

logger = logging.getLogger(__name__)

# persisted statuses that may still resolve to active, frozen or queued
_LIVE_STATUSES = (
    DrawStatus.QUEUED.value,
    DrawStatus.ACTIVE.value,
    DrawStatus.FROZEN.value,
)


def _now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now is not None else utc_now()


def _resolved(
    session: Session, draw_cls: Type[Draw], now: datetime
) -> list[tuple[Draw, DrawStatus]]:
    draws = store.find_active_or_queued_draws(
        session, draw_cls, sort_by_activation=True, statuses=_LIVE_STATUSES
    )
    return [(draw, resolve_status(draw, now)) for draw in draws]


def _latest_activation(draw: Draw):
    return (draw.activation_date is not None, draw.activation_date, draw.id)


def get_entry_target_draw(
    session: Session,
    now: Optional[datetime] = None,
    *,
    draw_cls: Type[Draw] = MajorDraw,
) -> Draw:
    """Return the draw that new entries should count toward.

    The effectively active draw wins (the most recently activated one if
    several overlap). Otherwise the earliest-activating queued draw is used,
    however far in the future it opens. Frozen draws are never targets.

    Raises
    ------
    NoAvailableDrawError
        If no draw is active or queued.
    """

    current = _now(now)
    resolved = _resolved(session, draw_cls, current)

    active = [draw for draw, status in resolved if status is DrawStatus.ACTIVE]
    if active:
        target = max(active, key=_latest_activation)
        logger.debug("Entry target is active draw %s", target.id)
        return target

    queued = [draw for draw, status in resolved if status is DrawStatus.QUEUED]
    if queued:
        # list is already ordered by activation date
        target = queued[0]
        logger.debug("No active draw; entry target is queued draw %s", target.id)
        return target

    raise NoAvailableDrawError("No active or queued draw is available to receive entries")


def get_next_queued_draw(
    session: Session,
    now: Optional[datetime] = None,
    *,
    draw_cls: Type[Draw] = MajorDraw,
) -> Optional[Draw]:
    """Earliest-activating draw that is effectively still queued."""

    current = _now(now)
    for draw, status in _resolved(session, draw_cls, current):
        if status is DrawStatus.QUEUED:
            return draw
    return None


def get_display_draw(
    session: Session,
    now: Optional[datetime] = None,
    *,
    settings: Optional[DrawSettings] = None,
    draw_cls: Type[Draw] = MajorDraw,
) -> Optional[Draw]:
    """Return the draw the UI should show at ``now``.

    Order of preference:

    1. an active or frozen draw;
    2. the most recently completed draw while its ``draw_date`` lies within
       its gap grace window (per-draw override or the global setting);
    3. the earliest queued draw.

    Returns ``None`` when there is nothing to show.
    """

    current = _now(now)
    config = settings or load_settings()
    resolved = _resolved(session, draw_cls, current)

    live = [
        draw
        for draw, status in resolved
        if status in (DrawStatus.ACTIVE, DrawStatus.FROZEN)
    ]
    if live:
        return max(live, key=_latest_activation)

    for completed in store.find_recent_completed_draws(session, current, draw_cls, limit=1):
        if completed.draw_date is None:
            break
        if current - ensure_utc(completed.draw_date) <= completed.gap_grace(config):
            return completed

    for draw, status in resolved:
        if status is DrawStatus.QUEUED:
            return draw
    return None


def is_gap_period(
    session: Session,
    now: Optional[datetime] = None,
    *,
    draw_cls: Type[Draw] = MajorDraw,
) -> bool:
    """``True`` when no draw is active or frozen but a queued draw exists."""

    current = _now(now)
    statuses = {status for _, status in _resolved(session, draw_cls, current)}
    if DrawStatus.ACTIVE in statuses or DrawStatus.FROZEN in statuses:
        return False
    return DrawStatus.QUEUED in statuses


def get_target_mini_draw(
    session: Session, draw_id: int, now: Optional[datetime] = None
) -> MiniDraw:
    """Return mini draw ``draw_id`` if it can take entries right now.

    Raises
    ------
    DrawNotFoundError
        If no mini draw has that id.
    DrawLockedError
        If the mini draw is not active or already holds its minimum entries.
    """

    current = _now(now)
    draw = store.find_draw_by_id(session, draw_id, MiniDraw)
    if draw is None:
        raise DrawNotFoundError(f"Mini draw {draw_id} not found")
    status = resolve_status(draw, current)
    if status is not DrawStatus.ACTIVE:
        raise DrawLockedError(f"Mini draw {draw_id} is {status.value}")
    if draw.minimum_entries is not None and draw.total_entries >= draw.minimum_entries:
        raise DrawLockedError(f"Mini draw {draw_id} has reached its entry cap")
    return draw


__all__ = [
    "get_entry_target_draw",
    "get_next_queued_draw",
    "get_display_draw",
    "is_gap_period",
    "get_target_mini_draw",
]
