"""Delivery of draw events to collaborators outside the engine."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional, Protocol

from sqlalchemy.orm import Session

from ..db.utils import dt_iso
from ..models.event import WINNER_SELECTED, DrawEvent

if TYPE_CHECKING:
    from ..draws.winner import WinnerSelection
    from ..models.draw import Draw


class WinnerNotifier(Protocol):
    """Anything that can be told a winner was selected."""

    def winner_selected(self, draw: "Draw", selection: "WinnerSelection") -> None:
        ...


def winner_payload(draw: "Draw", selection: "WinnerSelection") -> dict[str, Any]:
    """JSON-serializable description of a winner-selected event."""

    return {
        "event": WINNER_SELECTED,
        "draw_id": selection.draw_id,
        "draw_type": draw.draw_type,
        "draw_name": draw.name,
        "cycle": selection.cycle,
        "user_id": selection.user_id,
        "entry_number": selection.entry_number,
        "total_entries": selection.total_entries,
        "selected_date": dt_iso(selection.selected_date),
        "selection_method": selection.selection_method.value,
        "selected_by": selection.selected_by,
        "prize": draw.prize_snapshot(),
    }


class OutboxNotifier:
    """Writes events to ``draw_events`` in the caller's transaction."""

    def __init__(self, session: Session):
        self.session = session

    def winner_selected(self, draw: "Draw", selection: "WinnerSelection") -> None:
        self.session.add(
            DrawEvent(
                event_type=WINNER_SELECTED,
                draw_id=selection.draw_id,
                payload=winner_payload(draw, selection),
            )
        )
        self.session.flush()


def mark_delivered(
    session: Session, event: DrawEvent, when: Optional[datetime] = None
) -> None:
    event.delivered_at = when or datetime.now(timezone.utc)
    session.flush()


__all__ = ["WinnerNotifier", "OutboxNotifier", "winner_payload", "mark_delivered"]
