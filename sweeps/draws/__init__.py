"""Draw lifecycle engine: status, entries, selection, winners and locking."""

from .cache import TTLCache
from .engine import DrawEngine
from .errors import (
    ConfigurationLockedError,
    DrawError,
    DrawLockedError,
    DrawNotFoundError,
    DrawNotReadyError,
    InvalidEntryCountError,
    InvalidEntryNumberError,
    InvalidEntrySourceError,
    InvalidStatusTransitionError,
    NoAvailableDrawError,
    NoEntriesError,
    WinnerAlreadySelectedError,
)
from .awards import AwardOutcome, PaymentStatus, award_entries, payment_status, reconcile_pending_awards
from .ledger import EntryDelta, add_entries, verify_entry_totals
from .lock import cancel_draw, ensure_unlocked, is_locked, lock_configuration, update_draw_fields
from .selector import (
    get_display_draw,
    get_entry_target_draw,
    get_next_queued_draw,
    get_target_mini_draw,
    is_gap_period,
)
from .status import DisplayStatus, display_status, persist_status, resolve_status
from .sweep import SweepResult, run_transition_sweep
from .winner import (
    EntryRange,
    WinnerSelection,
    entry_ranges,
    mark_winner_notified,
    record_winner,
    select_winner,
    start_next_cycle,
)

__all__ = [
    "AwardOutcome",
    "ConfigurationLockedError",
    "DisplayStatus",
    "DrawEngine",
    "DrawError",
    "DrawLockedError",
    "DrawNotFoundError",
    "DrawNotReadyError",
    "EntryDelta",
    "EntryRange",
    "InvalidEntryCountError",
    "InvalidEntryNumberError",
    "InvalidEntrySourceError",
    "InvalidStatusTransitionError",
    "NoAvailableDrawError",
    "NoEntriesError",
    "PaymentStatus",
    "SweepResult",
    "TTLCache",
    "WinnerAlreadySelectedError",
    "WinnerSelection",
    "add_entries",
    "award_entries",
    "cancel_draw",
    "display_status",
    "ensure_unlocked",
    "entry_ranges",
    "get_display_draw",
    "get_entry_target_draw",
    "get_next_queued_draw",
    "get_target_mini_draw",
    "is_gap_period",
    "is_locked",
    "lock_configuration",
    "mark_winner_notified",
    "payment_status",
    "persist_status",
    "reconcile_pending_awards",
    "record_winner",
    "resolve_status",
    "run_transition_sweep",
    "select_winner",
    "start_next_cycle",
    "update_draw_fields",
    "verify_entry_totals",
]
