"""Per-user entry accounting for draws."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import store
from .errors import DrawLockedError, InvalidEntryCountError, InvalidEntrySourceError
from .schedule import ensure_utc, utc_now
from .status import resolve_status
from ..models.draw import Draw, MiniDraw
from ..models.entry import DrawEntry
from ..models.enums import DrawStatus, EntrySource

logger = logging.getLogger(__name__)

ACCEPTING_STATUSES = frozenset({DrawStatus.ACTIVE, DrawStatus.QUEUED})


@dataclass(frozen=True)
class EntryDelta:
    """Outcome of a single :func:`add_entries` call.

    Attributes
    ----------
    draw_id : int
        Draw that received the entries.
    user_id : int
        User credited.
    source : EntrySource
        Channel the entries came from.
    added : int
        Number of entries added by this call.
    user_total : int
        The user's aggregate total in the draw's current cycle afterwards.
    draw_total : int
        The draw's cached total afterwards.
    closed : bool
        ``True`` when this call filled a mini draw up to its minimum entries
        and closed it.
    """

    draw_id: int
    user_id: int
    source: EntrySource
    added: int
    user_total: int
    draw_total: int
    closed: bool = False


def coerce_source(source: EntrySource | str) -> EntrySource:
    """Return ``source`` as an :class:`EntrySource` or raise ``InvalidEntrySourceError``."""

    if isinstance(source, EntrySource):
        return source
    try:
        return EntrySource(source)
    except ValueError as exc:
        raise InvalidEntrySourceError(f"Unknown entry source: {source!r}") from exc


def _validate_count(count: int) -> None:
    # bool is an int subclass; True is not a count
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise InvalidEntryCountError(f"Entry count must be a positive integer, got {count!r}")


def add_entries(
    session: Session,
    draw: Draw,
    user_id: int,
    source: EntrySource | str,
    count: int,
    *,
    now: Optional[datetime] = None,
) -> EntryDelta:
    """Credit ``count`` entries from ``source`` to ``user_id`` on ``draw``.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session. The caller commits.
    draw : Draw
        Persisted target draw.
    user_id : int
        Id of the user receiving the entries.
    source : EntrySource | str
        Entry channel; plain strings must be one of the enum values.
    count : int
        Number of entries, strictly positive.
    now : Optional[datetime], default: None
        Reference instant; defaults to the current UTC time.

    Returns
    -------
    EntryDelta
        Totals after the increment.

    Raises
    ------
    InvalidEntryCountError
        If ``count`` is not a positive integer.
    InvalidEntrySourceError
        If ``source`` is not a known channel.
    DrawLockedError
        If the draw is frozen, completed or cancelled (or a mini draw at its
        cap), either when checked or when the guarded update runs.

    Notes
    -----
    The ledger is not idempotent by content: calling it twice credits twice.
    Purchase flows guard it with a unique payment event first (see
    :func:`sweeps.draws.awards.award_entries`).

    Both writes are single atomic statements: a guarded
    ``UPDATE draws SET total_entries = total_entries + n`` that matches no row
    once the draw is closed, followed by an upsert-and-increment of the
    user's aggregate. The aggregate is only touched after the guard passed,
    and both run in one savepoint so a failed upsert also undoes the total.
    """

    entry_source = coerce_source(source)
    _validate_count(count)
    if draw.id is None:
        raise ValueError("Draw must be persisted before entries can be added")

    current = ensure_utc(now) if now is not None else utc_now()
    effective = resolve_status(draw, current)
    if effective not in ACCEPTING_STATUSES:
        raise DrawLockedError(f"Draw {draw.id} is {effective.value} and no longer accepts entries")

    with session.begin_nested():
        if not store.atomic_increment_draw_total(session, draw.id, count, current):
            raise DrawLockedError(f"Draw {draw.id} stopped accepting entries")
        user_total = store.atomic_increment_entry(
            session, draw.id, draw.cycle, user_id, entry_source, count, current
        )

    session.expire(draw, ["entries"])
    session.refresh(draw, ["total_entries", "updated_at"])

    closed = False
    if (
        isinstance(draw, MiniDraw)
        and draw.minimum_entries is not None
        and draw.total_entries >= draw.minimum_entries
    ):
        closed = _close_at_minimum(session, draw, current)

    logger.debug(
        "Added %s %s entries for user %s to draw %s (user total %s, draw total %s)",
        count,
        entry_source.value,
        user_id,
        draw.id,
        user_total,
        draw.total_entries,
    )
    return EntryDelta(
        draw_id=draw.id,
        user_id=user_id,
        source=entry_source,
        added=count,
        user_total=user_total,
        draw_total=draw.total_entries,
        closed=closed,
    )


def _close_at_minimum(session: Session, draw: Draw, now: datetime) -> bool:
    if draw.status == DrawStatus.COMPLETED.value:
        return False
    draw.status = DrawStatus.COMPLETED.value
    draw.is_active = False
    if not draw.configuration_locked:
        draw.configuration_locked = True
        draw.locked_at = now
    session.flush()
    logger.info(
        "Draw %s reached its minimum of %s entries and closed",
        draw.id,
        draw.minimum_entries,
    )
    return True


def entries_for_user(
    session: Session, draw: Draw, user_id: int, cycle: Optional[int] = None
) -> Optional[DrawEntry]:
    """The user's aggregate for ``cycle`` (default: the draw's current cycle)."""

    return DrawEntry.get_for_user(
        session, draw.id, user_id, cycle if cycle is not None else draw.cycle
    )


def current_aggregates(session: Session, draw: Draw) -> list[DrawEntry]:
    """Aggregates of the draw's current cycle in insertion order."""

    stmt = (
        select(DrawEntry)
        .where(DrawEntry.draw_id == draw.id, DrawEntry.cycle == draw.cycle)
        .order_by(DrawEntry.id)
    )
    return list(session.scalars(stmt))


def verify_entry_totals(session: Session, draw: Draw) -> list[str]:
    """Check the cached totals of ``draw`` against its aggregates.

    Returns
    -------
    list[str]
        Human-readable descriptions of every mismatch; empty when the draw
        total equals the sum of its current-cycle aggregates and every
        aggregate total equals the sum of its per-source counters.
    """

    problems: list[str] = []
    aggregate_sum = session.scalar(
        select(func.coalesce(func.sum(DrawEntry.total_entries), 0)).where(
            DrawEntry.draw_id == draw.id, DrawEntry.cycle == draw.cycle
        )
    )
    if aggregate_sum != draw.total_entries:
        problems.append(
            f"draw {draw.id}: cached total {draw.total_entries} != aggregate sum {aggregate_sum}"
        )
    for entry in current_aggregates(session, draw):
        by_source = sum(entry.entries_by_source.values())
        if by_source != entry.total_entries:
            problems.append(
                f"draw {draw.id} user {entry.user_id}: total {entry.total_entries} "
                f"!= per-source sum {by_source}"
            )
    if problems:
        logger.warning("Entry totals drifted for draw %s: %s", draw.id, "; ".join(problems))
    return problems


__all__ = [
    "EntryDelta",
    "coerce_source",
    "add_entries",
    "entries_for_user",
    "current_aggregates",
    "verify_entry_totals",
]
