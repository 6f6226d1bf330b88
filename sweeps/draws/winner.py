"""Weighted winner selection and winner bookkeeping."""

from __future__ import annotations

import logging
import random
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import store
from .errors import (
    DrawLockedError,
    DrawNotReadyError,
    InvalidEntryNumberError,
    NoEntriesError,
    WinnerAlreadySelectedError,
)
from .ledger import current_aggregates
from .schedule import ensure_utc, utc_now
from .status import resolve_status
from ..models.draw import Draw
from ..models.entry import DrawEntry
from ..models.enums import DrawStatus, RepeatPolicy, SelectionMethod
from ..models.winner import DrawWinner

if TYPE_CHECKING:
    from ..notifications.outbox import WinnerNotifier

logger = logging.getLogger(__name__)

SELECTABLE_STATUSES = frozenset({DrawStatus.FROZEN, DrawStatus.COMPLETED})


@dataclass(frozen=True)
class EntryRange:
    """Contiguous block of 1-indexed entry numbers owned by one user."""

    user_id: int
    first: int
    last: int

    @property
    def count(self) -> int:
        return self.last - self.first + 1


@dataclass(frozen=True)
class WinnerSelection:
    """Result of :func:`select_winner` or :func:`record_winner`.

    Attributes
    ----------
    draw_id : int
        Draw the winner belongs to.
    cycle : int
        Draw cycle the winner was selected for.
    user_id : int
        Winning user.
    entry_number : int
        1-indexed position of the winning ticket in the full ticket sequence.
    total_entries : int
        Size of the ticket population.
    selected_date : datetime
        When the winner was written.
    selection_method : SelectionMethod
        How the winner was chosen.
    selected_by : Optional[int]
        Admin who triggered the selection.
    """

    draw_id: int
    cycle: int
    user_id: int
    entry_number: int
    total_entries: int
    selected_date: datetime
    selection_method: SelectionMethod
    selected_by: Optional[int]


def entry_ranges(entries: Iterable[DrawEntry]) -> list[EntryRange]:
    """Assign each aggregate its block of entry numbers in insertion order.

    Examples
    --------
    Aggregates of 10 and 90 entries own ``1-10`` and ``11-100``.
    """

    ranges: list[EntryRange] = []
    cursor = 0
    for entry in entries:
        if entry.total_entries <= 0:
            continue
        ranges.append(
            EntryRange(user_id=entry.user_id, first=cursor + 1, last=cursor + entry.total_entries)
        )
        cursor += entry.total_entries
    return ranges


def ticket_owner(entries: Iterable[DrawEntry], entry_number: int) -> int:
    """Return the user owning 1-indexed ``entry_number``.

    Aggregates are consumed in the order given, each contributing
    ``total_entries`` tickets.

    Raises
    ------
    InvalidEntryNumberError
        If ``entry_number`` lies outside the ticket population.
    """

    if entry_number < 1:
        raise InvalidEntryNumberError(f"Entry number must be at least 1, got {entry_number}")
    remaining = entry_number
    for entry in entries:
        if remaining <= entry.total_entries:
            return entry.user_id
        remaining -= entry.total_entries
    raise InvalidEntryNumberError(f"Entry number {entry_number} is beyond the ticket population")


def _check_selectable(session: Session, draw: Draw, now: datetime) -> list[DrawEntry]:
    if draw.has_winner:
        raise WinnerAlreadySelectedError(f"Draw {draw.id} already has a winner")
    status = resolve_status(draw, now)
    if status is DrawStatus.CANCELLED:
        raise DrawLockedError(f"Draw {draw.id} is cancelled")
    if status not in SELECTABLE_STATUSES:
        raise DrawNotReadyError(
            f"Draw {draw.id} is {status.value}; entries must be frozen before selecting a winner"
        )
    entries = [entry for entry in current_aggregates(session, draw) if entry.total_entries > 0]
    if not draw.total_entries or not entries:
        raise NoEntriesError(f"Draw {draw.id} has no entries")
    return entries


def _write_winner(
    session: Session,
    draw: Draw,
    *,
    user_id: int,
    entry_number: int,
    total: int,
    method: SelectionMethod,
    selected_by: Optional[int],
    now: datetime,
    notifier: Optional["WinnerNotifier"],
) -> WinnerSelection:
    won = store.atomic_set_winner(
        session,
        draw.id,
        draw.cycle,
        {
            "user_id": user_id,
            "entry_number": entry_number,
            "selected_date": now,
            "selection_method": method.value,
            "selected_by": selected_by,
        },
        now,
    )
    if not won:
        session.refresh(draw)
        raise WinnerAlreadySelectedError(f"Draw {draw.id} already has a winner")

    session.refresh(draw)
    session.add(
        DrawWinner(
            draw_id=draw.id,
            draw_type=draw.draw_type,
            cycle=draw.cycle,
            user_id=user_id,
            entry_number=entry_number,
            total_entries=total,
            selected_date=now,
            selection_method=method.value,
            selected_by=selected_by,
            notified=False,
            prize_snapshot=draw.prize_snapshot(),
        )
    )
    session.flush()

    selection = WinnerSelection(
        draw_id=draw.id,
        cycle=draw.cycle,
        user_id=user_id,
        entry_number=entry_number,
        total_entries=total,
        selected_date=now,
        selection_method=method,
        selected_by=selected_by,
    )
    logger.info(
        "Selected user %s as winner of draw %s cycle %s with entry %s of %s (%s)",
        user_id,
        draw.id,
        draw.cycle,
        entry_number,
        total,
        method.value,
    )

    if notifier is None:
        from ..notifications.outbox import OutboxNotifier

        notifier = OutboxNotifier(session)
    notifier.winner_selected(draw, selection)
    return selection


def select_winner(
    session: Session,
    draw: Draw,
    *,
    selected_by: Optional[int],
    method: SelectionMethod | str = SelectionMethod.RANDOM,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
    notifier: Optional["WinnerNotifier"] = None,
) -> WinnerSelection:
    """Pick a winner for ``draw`` with probability proportional to entries.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session. The caller commits.
    draw : Draw
        Frozen or completed draw without a winner.
    selected_by : Optional[int]
        Id of the admin triggering the selection.
    method : SelectionMethod | str, default: ``"random"``
        Recorded selection method.
    rng : Optional[random.Random], default: None
        Random source; :class:`secrets.SystemRandom` when omitted. Pass a
        seeded :class:`random.Random` to reproduce a draw for audit.
    now : Optional[datetime], default: None
        Selection instant; defaults to the current UTC time.
    notifier : Optional[WinnerNotifier], default: None
        Receives the winner-selected event; defaults to the database outbox.

    Returns
    -------
    WinnerSelection
        The persisted winner.

    Raises
    ------
    WinnerAlreadySelectedError
        If a winner exists, including when a concurrent selection wins the
        compare-and-set.
    NoEntriesError
        If the draw's current cycle holds no entries.
    DrawNotReadyError
        If the draw is still queued or active.

    Notes
    -----
    One ticket is drawn uniformly from ``[0, total_entries)``. The reported
    entry number is the ticket's 1-indexed position in the sequence formed by
    walking the aggregates in insertion order, so the same population and the
    same random draw always give the same winner.
    """

    current = ensure_utc(now) if now is not None else utc_now()
    selection_method = SelectionMethod(method)
    entries = _check_selectable(session, draw, current)
    total = sum(entry.total_entries for entry in entries)

    source = rng if rng is not None else secrets.SystemRandom()
    ticket = source.randrange(total)
    entry_number = ticket + 1
    user_id = ticket_owner(entries, entry_number)

    return _write_winner(
        session,
        draw,
        user_id=user_id,
        entry_number=entry_number,
        total=total,
        method=selection_method,
        selected_by=selected_by,
        now=current,
        notifier=notifier,
    )


def record_winner(
    session: Session,
    draw: Draw,
    *,
    user_id: int,
    entry_number: int,
    selected_by: Optional[int],
    method: SelectionMethod | str = SelectionMethod.GOVERNMENT_APP,
    now: Optional[datetime] = None,
    notifier: Optional["WinnerNotifier"] = None,
) -> WinnerSelection:
    """Record a winner drawn outside the engine (manual or government app).

    Raises
    ------
    InvalidEntryNumberError
        If ``entry_number`` is outside the ticket population or not inside
        ``user_id``'s block of entry numbers.
    """

    current = ensure_utc(now) if now is not None else utc_now()
    selection_method = SelectionMethod(method)
    if selection_method is SelectionMethod.RANDOM:
        raise ValueError("Use select_winner for random selection")
    entries = _check_selectable(session, draw, current)
    total = sum(entry.total_entries for entry in entries)

    if not 1 <= entry_number <= total:
        raise InvalidEntryNumberError(
            f"Entry number {entry_number} is outside 1-{total} for draw {draw.id}"
        )
    owned = [r for r in entry_ranges(entries) if r.user_id == user_id]
    if not owned:
        raise InvalidEntryNumberError(f"User {user_id} has no entries in draw {draw.id}")
    if not any(r.first <= entry_number <= r.last for r in owned):
        raise InvalidEntryNumberError(
            f"Entry number {entry_number} does not belong to user {user_id} "
            f"(owns {owned[0].first}-{owned[0].last})"
        )

    return _write_winner(
        session,
        draw,
        user_id=user_id,
        entry_number=entry_number,
        total=total,
        method=selection_method,
        selected_by=selected_by,
        now=current,
        notifier=notifier,
    )


def mark_winner_notified(session: Session, draw: Draw) -> None:
    """Flip ``notified`` on the current winner; the only permitted winner edit."""

    if not draw.has_winner:
        raise ValueError(f"Draw {draw.id} has no winner to mark as notified")
    draw.winner_notified = True
    session.execute(
        update(DrawWinner)
        .where(DrawWinner.draw_id == draw.id, DrawWinner.cycle == draw.cycle)
        .values(notified=True)
        .execution_options(synchronize_session="fetch")
    )
    session.flush()


def start_next_cycle(
    session: Session, draw: Draw, *, now: Optional[datetime] = None
) -> Draw:
    """Restart a mini draw in place after its winner was selected.

    The winner stays in ``draw_winners``; the draw row is cleared, reopened,
    unlocked and its ``cycle`` incremented. Aggregates of the finished cycle
    are kept as history. Any freeze and draw instants are cleared so the new
    cycle does not resolve as frozen or completed.

    Raises
    ------
    TypeError
        If the draw type creates a new draw per period instead of cycling.
    """

    if getattr(draw, "repeat_policy", None) is not RepeatPolicy.CYCLE_IN_PLACE:
        raise TypeError(f"{type(draw).__name__} does not cycle in place")
    if not draw.has_winner:
        raise ValueError(f"Draw {draw.id} has no winner yet; cannot start a new cycle")

    current = ensure_utc(now) if now is not None else utc_now()
    finished = draw.cycle
    draw.winner_user_id = None
    draw.winner_entry_number = None
    draw.winner_selected_date = None
    draw.winner_notified = False
    draw.winner_selection_method = None
    draw.winner_selected_by = None
    draw.total_entries = 0
    draw.freeze_entries_at = None
    draw.draw_date = None
    draw.status = DrawStatus.ACTIVE.value
    draw.is_active = True
    draw.configuration_locked = False
    draw.locked_at = None
    draw.cycle = finished + 1
    draw.updated_at = current
    session.flush()
    session.expire(draw, ["entries"])
    logger.info("Mini draw %s finished cycle %s and restarted", draw.id, finished)
    return draw


__all__ = [
    "EntryRange",
    "WinnerSelection",
    "entry_ranges",
    "ticket_owner",
    "select_winner",
    "record_winner",
    "mark_winner_notified",
    "start_next_cycle",
]
