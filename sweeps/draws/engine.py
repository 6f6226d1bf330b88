"""Session-bound facade over the draw lifecycle operations."""

from __future__ import annotations

import random
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from sqlalchemy.orm import Session

from . import awards, ledger, lock, selector, status, winner
from .sweep import SweepResult, run_transition_sweep
from .schedule import utc_now
from ..config import DrawSettings, load_settings
from ..models.draw import Draw
from ..models.enums import DrawStatus, EntrySource, RepeatPolicy, SelectionMethod
from ..notifications.outbox import OutboxNotifier, WinnerNotifier


class DrawEngine:
    """Runs draw operations against one session with shared settings."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Optional[DrawSettings] = None,
        notifier: Optional[WinnerNotifier] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Create a draw engine bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence. The
            engine flushes; committing is left to the caller.
        settings : Optional[DrawSettings], default: None
            Schedule settings. Loaded from the environment when omitted.
        notifier : Optional[WinnerNotifier], default: None
            Receiver of winner-selected events. Defaults to the database
            outbox in ``session``.
        rng : Optional[random.Random], default: None
            Random source for winner selection; a system CSPRNG when omitted.
        clock : Callable[[], datetime], default: :func:`utc_now`
            Source of the current instant.
        """

        self._session = session
        self._settings = settings or load_settings()
        self._notifier = notifier or OutboxNotifier(session)
        self._rng = rng
        self._clock = clock

    @property
    def settings(self) -> DrawSettings:
        return self._settings

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self._clock()

    def status_of(self, draw: Draw, now: Optional[datetime] = None) -> DrawStatus:
        return status.resolve_status(draw, self._now(now))

    def display_status(self, draw: Draw, now: Optional[datetime] = None) -> status.DisplayStatus:
        return status.display_status(draw, self._now(now), tz=self._settings.display_timezone)

    def entry_target(self, now: Optional[datetime] = None) -> Draw:
        return selector.get_entry_target_draw(self._session, self._now(now))

    def display_draw(self, now: Optional[datetime] = None) -> Optional[Draw]:
        return selector.get_display_draw(
            self._session, self._now(now), settings=self._settings
        )

    def add_entries(
        self,
        draw: Draw,
        user_id: int,
        source: EntrySource | str,
        count: int,
        now: Optional[datetime] = None,
    ) -> ledger.EntryDelta:
        return ledger.add_entries(
            self._session, draw, user_id, source, count, now=self._now(now)
        )

    def award(self, now: Optional[datetime] = None, **purchase: Any) -> awards.AwardOutcome:
        """Grant a purchase's entries; see :func:`sweeps.draws.awards.award_entries`."""

        return awards.award_entries(self._session, now=self._now(now), **purchase)

    def select_winner(
        self,
        draw: Draw,
        *,
        selected_by: Optional[int],
        method: SelectionMethod | str = SelectionMethod.RANDOM,
        restart_mini: bool = True,
        now: Optional[datetime] = None,
    ) -> winner.WinnerSelection:
        """Select a winner; mini draws restart their next cycle afterwards.

        Parameters
        ----------
        draw : Draw
            Frozen or completed draw.
        selected_by : Optional[int]
            Admin triggering the selection.
        method : SelectionMethod | str, default: ``"random"``
            Recorded selection method.
        restart_mini : bool, default: True
            For draws that cycle in place, call
            :func:`sweeps.draws.winner.start_next_cycle` after the winner is
            stored.
        now : Optional[datetime], default: None
            Selection instant.
        """

        current = self._now(now)
        selection = winner.select_winner(
            self._session,
            draw,
            selected_by=selected_by,
            method=method,
            rng=self._rng,
            now=current,
            notifier=self._notifier,
        )
        if restart_mini and getattr(draw, "repeat_policy", None) is RepeatPolicy.CYCLE_IN_PLACE:
            winner.start_next_cycle(self._session, draw, now=current)
        return selection

    def is_locked(self, draw: Draw, now: Optional[datetime] = None) -> bool:
        return lock.is_locked(draw, self._now(now))

    def update_draw(
        self, draw: Draw, patch: Mapping[str, Any], now: Optional[datetime] = None
    ) -> Draw:
        return lock.update_draw_fields(self._session, draw, patch, now=self._now(now))

    def cancel(self, draw: Draw, now: Optional[datetime] = None) -> Draw:
        return lock.cancel_draw(self._session, draw, self._now(now))

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        return run_transition_sweep(
            self._session, self._now(now), settings=self._settings
        )


__all__ = ["DrawEngine"]
