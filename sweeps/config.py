"""Runtime settings for the draw engine, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

DEFAULT_DISPLAY_TIMEZONE = "Australia/Sydney"
DEFAULT_FREEZE_LEAD_MINUTES = 30
DEFAULT_GAP_GRACE_HOURS = 4
DEFAULT_CYCLE_DAYS = 30
DEFAULT_DRAW_HOUR_LOCAL = 20
DEFAULT_NEXT_DRAW_LEAD_DAYS = 7
DEFAULT_PAYMENT_STATUS_CACHE_TTL_SECONDS = 30


@dataclass(frozen=True)
class DrawSettings:
    """Operational constants that govern the draw schedule.

    Attributes
    ----------
    display_timezone : str
        IANA timezone used for display and for local-midnight/local-hour
        schedule calculations. Storage is always UTC.
    freeze_lead_minutes : int
        Default gap between ``freeze_entries_at`` and ``draw_date``.
    gap_grace_hours : float
        How long a completed draw keeps being displayed before the next
        queued draw takes its place.
    cycle_days : int
        Length of the rolling major-draw period.
    draw_hour_local : int
        Local hour (0-23) at which major draws happen.
    next_draw_lead_days : int
        Days before the current draw date at which the next queued draw is created.
    winner_webhook_url : Optional[str]
        Endpoint receiving winner-selected events, when configured.
    payment_status_cache_ttl_seconds : float
        TTL for the payment-status read cache.
    """

    display_timezone: str = DEFAULT_DISPLAY_TIMEZONE
    freeze_lead_minutes: int = DEFAULT_FREEZE_LEAD_MINUTES
    gap_grace_hours: float = DEFAULT_GAP_GRACE_HOURS
    cycle_days: int = DEFAULT_CYCLE_DAYS
    draw_hour_local: int = DEFAULT_DRAW_HOUR_LOCAL
    next_draw_lead_days: int = DEFAULT_NEXT_DRAW_LEAD_DAYS
    winner_webhook_url: Optional[str] = None
    payment_status_cache_ttl_seconds: float = DEFAULT_PAYMENT_STATUS_CACHE_TTL_SECONDS

    def __post_init__(self) -> None:
        try:
            ZoneInfo(self.display_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(
                f"DRAW_DISPLAY_TIMEZONE is not a known timezone: {self.display_timezone!r}"
            ) from exc
        if self.freeze_lead_minutes < 0:
            raise ValueError("DRAW_FREEZE_LEAD_MINUTES must be non-negative")
        if self.gap_grace_hours < 0:
            raise ValueError("DRAW_GAP_GRACE_HOURS must be non-negative")
        if self.cycle_days <= 0:
            raise ValueError("DRAW_CYCLE_DAYS must be positive")
        if not 0 <= self.draw_hour_local <= 23:
            raise ValueError("DRAW_HOUR_LOCAL must be between 0 and 23")
        if self.next_draw_lead_days < 0:
            raise ValueError("NEXT_DRAW_LEAD_DAYS must be non-negative")
        if self.payment_status_cache_ttl_seconds < 0:
            raise ValueError("PAYMENT_STATUS_CACHE_TTL_SECONDS must be non-negative")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.display_timezone)

    @property
    def freeze_lead(self) -> timedelta:
        return timedelta(minutes=self.freeze_lead_minutes)

    @property
    def gap_grace(self) -> timedelta:
        return timedelta(hours=self.gap_grace_hours)


def _read_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' is not a valid number: {raw!r}") from exc


def load_settings(env: Optional[Mapping[str, str]] = None) -> DrawSettings:
    """Build :class:`DrawSettings` from ``env`` (default: ``os.environ`` after ``.env``).

    Parameters
    ----------
    env : Optional[Mapping[str, str]]
        Explicit environment mapping. When omitted, ``.env`` is loaded with
        :func:`dotenv.load_dotenv` and :data:`os.environ` is read.
    """

    if env is None:
        load_dotenv()
        env = os.environ

    webhook = env.get("WINNER_WEBHOOK_URL") or None
    return DrawSettings(
        display_timezone=env.get("DRAW_DISPLAY_TIMEZONE") or DEFAULT_DISPLAY_TIMEZONE,
        freeze_lead_minutes=_read_number(
            env, "DRAW_FREEZE_LEAD_MINUTES", DEFAULT_FREEZE_LEAD_MINUTES, int
        ),
        gap_grace_hours=_read_number(
            env, "DRAW_GAP_GRACE_HOURS", DEFAULT_GAP_GRACE_HOURS, float
        ),
        cycle_days=_read_number(env, "DRAW_CYCLE_DAYS", DEFAULT_CYCLE_DAYS, int),
        draw_hour_local=_read_number(
            env, "DRAW_HOUR_LOCAL", DEFAULT_DRAW_HOUR_LOCAL, int
        ),
        next_draw_lead_days=_read_number(
            env, "NEXT_DRAW_LEAD_DAYS", DEFAULT_NEXT_DRAW_LEAD_DAYS, int
        ),
        winner_webhook_url=webhook,
        payment_status_cache_ttl_seconds=_read_number(
            env,
            "PAYMENT_STATUS_CACHE_TTL_SECONDS",
            DEFAULT_PAYMENT_STATUS_CACHE_TTL_SECONDS,
            float,
        ),
    )


__all__ = ["DrawSettings", "load_settings"]
