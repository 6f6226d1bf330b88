"""Periodic sweep that persists schedule-driven status transitions.

Reads never depend on the sweep having run; it only refreshes the stored
status cache, locks configurations and queues the next major draw.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import store
from .schedule import (
    calculate_activation_date,
    calculate_freeze_time,
    calculate_next_draw_creation_date,
    calculate_next_draw_date,
    ensure_utc,
    format_in_timezone,
    utc_now,
)
from .status import persist_status, resolve_status
from ..config import DrawSettings, load_settings
from ..models.draw import Draw, MajorDraw
from ..models.enums import DrawStatus

logger = logging.getLogger(__name__)

_SWEPT_STATUSES = (
    DrawStatus.QUEUED.value,
    DrawStatus.ACTIVE.value,
    DrawStatus.FROZEN.value,
)


@dataclass
class SweepResult:
    """Summary of one sweep run."""

    frozen: list[int] = field(default_factory=list)
    completed: list[int] = field(default_factory=list)
    activated: list[int] = field(default_factory=list)
    created_draw_id: Optional[int] = None

    @property
    def transitions(self) -> int:
        return len(self.frozen) + len(self.completed) + len(self.activated)


def current_major_draw(
    session: Session, now: Optional[datetime] = None
) -> Optional[MajorDraw]:
    """The effectively active or frozen major draw, latest activation first."""

    current = ensure_utc(now) if now is not None else utc_now()
    draws = store.find_active_or_queued_draws(
        session, MajorDraw, sort_by_activation=True, statuses=_SWEPT_STATUSES
    )
    live = [
        draw
        for draw in draws
        if resolve_status(draw, current) in (DrawStatus.ACTIVE, DrawStatus.FROZEN)
    ]
    return live[-1] if live else None


def should_create_next_draw(
    session: Session,
    now: Optional[datetime] = None,
    *,
    settings: Optional[DrawSettings] = None,
) -> bool:
    """``True`` once the current major draw is within the lead window of its
    draw date and no queued draw activates after it."""

    config = settings or load_settings()
    current = ensure_utc(now) if now is not None else utc_now()
    draw = current_major_draw(session, current)
    if draw is None or draw.draw_date is None:
        return False

    creation_at = calculate_next_draw_creation_date(
        draw.draw_date, config.tz, lead_days=config.next_draw_lead_days
    )
    if current < creation_at:
        return False

    successor = session.scalar(
        select(MajorDraw.id).where(
            MajorDraw.status == DrawStatus.QUEUED.value,
            MajorDraw.activation_date > draw.draw_date,
        )
    )
    return successor is None


def create_next_major_draw(
    session: Session,
    current: MajorDraw,
    *,
    settings: Optional[DrawSettings] = None,
) -> MajorDraw:
    """Queue the draw that follows ``current``, copying its name and prize.

    The successor activates at local midnight after ``current``'s draw date
    and is drawn ``cycle_days`` later at the local draw hour.
    """

    if current.draw_date is None:
        raise ValueError(f"Draw {current.id} has no draw date to schedule from")
    config = settings or load_settings()

    draw_date = calculate_next_draw_date(
        current.draw_date,
        config.tz,
        cycle_days=config.cycle_days,
        draw_hour=config.draw_hour_local,
    )
    successor = MajorDraw(
        name=current.name,
        description=current.description,
        activation_date=calculate_activation_date(current.draw_date, config.tz),
        freeze_entries_at=calculate_freeze_time(
            draw_date, current.freeze_lead(config).total_seconds() / 60
        ),
        draw_date=draw_date,
        status=DrawStatus.QUEUED,
        prize_name=current.prize_name,
        prize_description=current.prize_description,
        prize_value=current.prize_value,
        prize_images=current.prize_images,
        prize_category=current.prize_category,
        freeze_lead_minutes=current.freeze_lead_minutes,
        gap_grace_minutes=current.gap_grace_minutes,
    )
    session.add(successor)
    session.flush()
    logger.info(
        "Created queued draw %s: activation %s, draw %s",
        successor.id,
        format_in_timezone(successor.activation_date, config.tz),
        format_in_timezone(successor.draw_date, config.tz),
    )
    return successor


def run_transition_sweep(
    session: Session,
    now: Optional[datetime] = None,
    *,
    settings: Optional[DrawSettings] = None,
    create_next: bool = True,
) -> SweepResult:
    """Persist due transitions for every queued, active or frozen draw.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session. The caller commits.
    now : Optional[datetime], default: None
        Reference instant; defaults to the current UTC time.
    settings : Optional[DrawSettings], default: None
        Schedule settings; loaded from the environment when omitted.
    create_next : bool, default: True
        Also queue the next major draw when it is due.

    Returns
    -------
    SweepResult
        Ids of the draws that were frozen, completed and activated, and the
        id of the newly queued draw, if any.
    """

    config = settings or load_settings()
    current = ensure_utc(now) if now is not None else utc_now()
    result = SweepResult()

    for draw in store.find_active_or_queued_draws(
        session, Draw, sort_by_activation=True, statuses=_SWEPT_STATUSES
    ):
        transitioned = persist_status(session, draw, current)
        if transitioned is DrawStatus.FROZEN:
            result.frozen.append(draw.id)
        elif transitioned is DrawStatus.COMPLETED:
            result.completed.append(draw.id)
        elif transitioned is DrawStatus.ACTIVE:
            result.activated.append(draw.id)

    if create_next and should_create_next_draw(session, current, settings=config):
        base = current_major_draw(session, current)
        if base is not None:
            result.created_draw_id = create_next_major_draw(session, base, settings=config).id

    logger.info(
        "Transition sweep: %s frozen, %s completed, %s activated, next draw %s",
        len(result.frozen),
        len(result.completed),
        len(result.activated),
        result.created_draw_id if result.created_draw_id is not None else "not created",
    )
    return result


__all__ = [
    "SweepResult",
    "current_major_draw",
    "should_create_next_draw",
    "create_next_major_draw",
    "run_transition_sweep",
]
