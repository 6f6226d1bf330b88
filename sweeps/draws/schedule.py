"""Pure date arithmetic for draw schedules.

All instants are timezone-aware UTC ``datetime`` objects. Calendar rules
(local midnight, local draw hour) are evaluated in the configured display
timezone with :mod:`zoneinfo`, so daylight-saving changes are honoured.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

DEFAULT_COUNTDOWN_SECONDS_BELOW = timedelta(minutes=5)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive values are interpreted as UTC, matching how SQLite returns them.
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _zone(tz: ZoneInfo | str) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


def _local_to_utc(local: datetime, tz: ZoneInfo) -> datetime:
    return local.replace(tzinfo=tz).astimezone(timezone.utc)


def local_datetime_as_utc(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    *,
    tz: ZoneInfo | str,
) -> datetime:
    """Build a wall-clock time in ``tz`` and return it as UTC.

    Examples
    --------
    >>> local_datetime_as_utc(2024, 9, 30, 20, 0, tz="Australia/Sydney")
    datetime.datetime(2024, 9, 30, 10, 0, tzinfo=datetime.timezone.utc)
    """

    return _local_to_utc(datetime(year, month, day, hour, minute), _zone(tz))


def calculate_freeze_time(draw_date: datetime, lead_minutes: float = 30) -> datetime:
    """Instant at which entries stop counting: ``lead_minutes`` before the draw."""

    return ensure_utc(draw_date) - timedelta(minutes=lead_minutes)


def calculate_activation_date(draw_date: datetime, tz: ZoneInfo | str) -> datetime:
    """Local midnight following ``draw_date``, returned in UTC.

    A draw at 30 Sep 20:00 local activates its successor at 1 Oct 00:00 local.
    """

    zone = _zone(tz)
    local_draw = ensure_utc(draw_date).astimezone(zone)
    next_day = local_draw.date() + timedelta(days=1)
    return _local_to_utc(datetime.combine(next_day, time(0, 0)), zone)


def calculate_next_draw_date(
    start: datetime,
    tz: ZoneInfo | str,
    *,
    cycle_days: int = 30,
    draw_hour: int = 20,
) -> datetime:
    """Draw date ``cycle_days`` after ``start`` at ``draw_hour`` local time."""

    zone = _zone(tz)
    local_start = ensure_utc(start).astimezone(zone)
    target_day = local_start.date() + timedelta(days=cycle_days)
    return _local_to_utc(datetime.combine(target_day, time(draw_hour, 0)), zone)


def calculate_next_draw_creation_date(
    draw_date: datetime, tz: ZoneInfo | str, *, lead_days: int = 7
) -> datetime:
    """Local midnight ``lead_days`` before ``draw_date``, returned in UTC."""

    zone = _zone(tz)
    local_draw = ensure_utc(draw_date).astimezone(zone)
    creation_day = local_draw.date() - timedelta(days=lead_days)
    return _local_to_utc(datetime.combine(creation_day, time(0, 0)), zone)


def is_in_freeze_period(
    freeze_entries_at: datetime, draw_date: datetime, now: Optional[datetime] = None
) -> bool:
    """Return ``True`` between the freeze instant (inclusive) and the draw (exclusive)."""

    current = ensure_utc(now) if now is not None else utc_now()
    return ensure_utc(freeze_entries_at) <= current < ensure_utc(draw_date)


def was_payment_before_freeze(payment_created: datetime, freeze_entries_at: datetime) -> bool:
    """Return ``True`` when a payment was created strictly before the freeze."""

    return ensure_utc(payment_created) < ensure_utc(freeze_entries_at)


def time_until_freeze(
    freeze_entries_at: datetime, now: Optional[datetime] = None
) -> timedelta:
    """Time left before the freeze; zero once it has passed."""

    current = ensure_utc(now) if now is not None else utc_now()
    return max(ensure_utc(freeze_entries_at) - current, timedelta(0))


def time_until_draw(draw_date: datetime, now: Optional[datetime] = None) -> timedelta:
    """Time left before the draw; zero once it has passed."""

    current = ensure_utc(now) if now is not None else utc_now()
    return max(ensure_utc(draw_date) - current, timedelta(0))


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_countdown(remaining: timedelta) -> str:
    """Render ``remaining`` as e.g. ``"2 hours 15 minutes"``.

    Seconds are only shown while less than five minutes remain, e.g.
    ``"4 minutes 30 seconds"`` or ``"12 seconds"``.
    """

    total_seconds = max(int(remaining.total_seconds()), 0)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)

    parts: list[str] = []
    if hours > 0:
        parts.append(_plural(hours, "hour"))
    if hours > 0 or minutes > 0:
        parts.append(_plural(minutes, "minute"))
    if not parts or timedelta(seconds=total_seconds) < DEFAULT_COUNTDOWN_SECONDS_BELOW:
        parts.append(_plural(seconds, "second"))
    return " ".join(parts)


def format_in_timezone(
    value: datetime, tz: ZoneInfo | str, fmt: str = "%Y-%m-%d %H:%M:%S"
) -> str:
    """Format a UTC instant as wall-clock time in ``tz``."""

    return ensure_utc(value).astimezone(_zone(tz)).strftime(fmt)


def validate_draw_dates(
    activation_date: datetime,
    freeze_entries_at: datetime,
    draw_date: datetime,
    next_activation_date: Optional[datetime] = None,
) -> None:
    """Check that the schedule instants are strictly increasing.

    Raises
    ------
    ValueError
        If ``activation_date < freeze_entries_at < draw_date`` does not hold,
        or ``next_activation_date`` is given and not after ``draw_date``.
    """

    activation = ensure_utc(activation_date)
    freeze = ensure_utc(freeze_entries_at)
    draw = ensure_utc(draw_date)
    if activation >= freeze:
        raise ValueError("Activation date must be before freeze date")
    if freeze >= draw:
        raise ValueError("Freeze date must be before draw date")
    if next_activation_date is not None and draw >= ensure_utc(next_activation_date):
        raise ValueError("Draw date must be before the next activation date")


__all__ = [
    "utc_now",
    "ensure_utc",
    "local_datetime_as_utc",
    "calculate_freeze_time",
    "calculate_activation_date",
    "calculate_next_draw_date",
    "calculate_next_draw_creation_date",
    "is_in_freeze_period",
    "was_payment_before_freeze",
    "time_until_freeze",
    "time_until_draw",
    "format_countdown",
    "format_in_timezone",
    "validate_draw_dates",
]
