"""One-way configuration lock and guarded administrative edits."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from . import store
from .errors import ConfigurationLockedError
from .schedule import ensure_utc, utc_now, validate_draw_dates
from .status import resolve_status, validate_status_transition
from ..models.draw import Draw, MiniDraw
from ..models.enums import LOCKED_STATUSES, DrawStatus

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "prize_name",
        "prize_description",
        "prize_value",
        "prize_images",
        "prize_category",
        "minimum_entries",
        "activation_date",
        "freeze_entries_at",
        "draw_date",
        "freeze_lead_minutes",
        "gap_grace_minutes",
    }
)
_DATE_FIELDS = ("activation_date", "freeze_entries_at", "draw_date")


def is_locked(draw: Draw, now: Optional[datetime] = None) -> bool:
    """``True`` once the draw is frozen or completed, or its lock flag is set.

    Cancelled draws are not locked by status alone; a draw cancelled after
    its freeze keeps the flag set by :func:`cancel_draw`.
    """

    if draw.configuration_locked:
        return True
    return resolve_status(draw, now) in LOCKED_STATUSES


def ensure_unlocked(draw: Draw, now: Optional[datetime] = None) -> None:
    """Raise :class:`ConfigurationLockedError` if :func:`is_locked`."""

    if is_locked(draw, now):
        raise ConfigurationLockedError(
            f"Draw {draw.id} configuration is locked and cannot be edited"
        )


def lock_configuration(
    session: Session, draw: Draw, now: Optional[datetime] = None
) -> bool:
    """Set the one-way lock flag. Idempotent; the first ``locked_at`` is kept.

    Returns
    -------
    bool
        ``True`` if this call set the flag.
    """

    if draw.configuration_locked:
        return False
    draw.configuration_locked = True
    draw.locked_at = ensure_utc(now) if now is not None else utc_now()
    session.flush()
    logger.info("Locked configuration of draw %s", draw.id)
    return True


def _clean_patch(draw: Draw, patch: Mapping[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(patch) - EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(unknown)}")

    cleaned = dict(patch)
    for field in _DATE_FIELDS:
        if cleaned.get(field) is not None:
            cleaned[field] = ensure_utc(cleaned[field])
    if cleaned.get("prize_value") is not None:
        cleaned["prize_value"] = Decimal(str(cleaned["prize_value"]))
    if "name" in cleaned and not (cleaned["name"] or "").strip():
        raise ValueError("Draw name must not be empty")
    minimum = cleaned.get("minimum_entries")
    if minimum is not None and (isinstance(minimum, bool) or minimum < 1):
        raise ValueError("minimum_entries must be a positive integer")
    if minimum is not None and not isinstance(draw, MiniDraw):
        raise ValueError("minimum_entries only applies to mini draws")

    dates = {field: cleaned.get(field, getattr(draw, field)) for field in _DATE_FIELDS}
    if all(value is not None for value in dates.values()):
        validate_draw_dates(
            dates["activation_date"], dates["freeze_entries_at"], dates["draw_date"]
        )
    return cleaned


def update_draw_fields(
    session: Session,
    draw: Draw,
    patch: Mapping[str, Any],
    *,
    now: Optional[datetime] = None,
) -> Draw:
    """Apply an administrative edit to ``draw``.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session. The caller commits.
    draw : Draw
        Draw to edit.
    patch : Mapping[str, Any]
        Field values keyed by attribute name; only :data:`EDITABLE_FIELDS`.
    now : Optional[datetime], default: None
        Reference instant for the lock check.

    Returns
    -------
    Draw
        ``draw`` refreshed from the database.

    Raises
    ------
    ConfigurationLockedError
        If the draw is locked, either when checked or when the guarded update
        runs (a concurrent freeze).
    ValueError
        For unknown fields or an invalid schedule.
    """

    current = ensure_utc(now) if now is not None else utc_now()
    ensure_unlocked(draw, current)
    cleaned = _clean_patch(draw, patch)
    if not cleaned:
        return draw
    if not store.update_draw_fields_guarded(session, draw.id, cleaned, current):
        session.refresh(draw)
        raise ConfigurationLockedError(
            f"Draw {draw.id} configuration is locked and cannot be edited"
        )
    session.refresh(draw)
    logger.info("Updated draw %s fields: %s", draw.id, ", ".join(sorted(cleaned)))
    return draw


def cancel_draw(
    session: Session, draw: Draw, now: Optional[datetime] = None
) -> Draw:
    """Cancel ``draw``; allowed from any status before ``completed``.

    A draw cancelled while frozen keeps its configuration lock.

    Raises
    ------
    InvalidStatusTransitionError
        If the draw is already completed or cancelled.
    """

    current = ensure_utc(now) if now is not None else utc_now()
    effective = resolve_status(draw, current)
    validate_status_transition(
        effective, DrawStatus.CANCELLED, mini=isinstance(draw, MiniDraw)
    )
    if effective in LOCKED_STATUSES and not draw.configuration_locked:
        draw.configuration_locked = True
        draw.locked_at = current
    draw.status = DrawStatus.CANCELLED.value
    draw.is_active = False
    draw.updated_at = current
    session.flush()
    logger.info("Cancelled draw %s (was %s)", draw.id, effective.value)
    return draw


__all__ = [
    "EDITABLE_FIELDS",
    "is_locked",
    "ensure_unlocked",
    "lock_configuration",
    "update_draw_fields",
    "cancel_draw",
]
