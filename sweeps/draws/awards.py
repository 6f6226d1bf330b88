"""Entry awards for completed purchases.

A purchase is credited at most once: a ``BenefitsGranted`` payment event is
inserted first, inside a savepoint, and its unique key rejects any second
attempt before the ledger is touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .cache import TTLCache
from .errors import DrawLockedError, NoAvailableDrawError
from .ledger import EntryDelta, add_entries
from .schedule import ensure_utc, utc_now
from .selector import get_entry_target_draw, get_target_mini_draw
from ..models.draw import Draw
from ..models.enums import EntrySource
from ..models.payment import (
    BENEFITS_GRANTED,
    PaymentEvent,
    PendingEntryAward,
    payment_event_id,
)

logger = logging.getLogger(__name__)

PACKAGE_SOURCES: dict[str, EntrySource] = {
    "subscription": EntrySource.MEMBERSHIP,
    "one-time": EntrySource.ONE_TIME_PACKAGE,
    "upsell": EntrySource.UPSELL,
    "mini-draw": EntrySource.MINI_DRAW,
}

PROCESSED_BY = ("api", "webhook")


@dataclass(frozen=True)
class AwardOutcome:
    """Result of :func:`award_entries`.

    Attributes
    ----------
    payment_event_id : str
        Deterministic id of the ``BenefitsGranted`` event.
    already_processed : bool
        ``True`` when the payment had been credited before; nothing was added.
    delta : Optional[EntryDelta]
        Ledger result when entries were placed on a draw.
    pending_award_id : Optional[int]
        Reconciliation record id when no draw could take the entries.
    """

    payment_event_id: str
    already_processed: bool
    delta: Optional[EntryDelta] = None
    pending_award_id: Optional[int] = None


@dataclass(frozen=True)
class PaymentStatus:
    """Whether a payment's benefits have been granted."""

    payment_intent_id: str
    processed: bool
    package_type: Optional[str] = None
    package_name: Optional[str] = None
    entries: Optional[int] = None
    processed_by: Optional[str] = None
    timestamp: Optional[datetime] = None

    @property
    def status(self) -> str:
        return "completed" if self.processed else "pending"


def source_for_package(package_type: str) -> EntrySource:
    """Map a package type to the entry source it credits."""

    try:
        return PACKAGE_SOURCES[package_type]
    except KeyError:
        raise ValueError(f"Unknown package type: {package_type!r}") from None


def _target_draw(
    session: Session,
    source: EntrySource,
    mini_draw_id: Optional[int],
    now: datetime,
) -> Draw:
    if source is EntrySource.MINI_DRAW or (
        source is EntrySource.UPSELL and mini_draw_id is not None
    ):
        if mini_draw_id is None:
            raise ValueError("Mini-draw packages require a mini_draw_id")
        return get_target_mini_draw(session, mini_draw_id, now)
    return get_entry_target_draw(session, now)


def _place_entries(
    session: Session,
    *,
    user_id: int,
    source: EntrySource,
    entries: int,
    mini_draw_id: Optional[int],
    now: datetime,
) -> EntryDelta:
    draw = _target_draw(session, source, mini_draw_id, now)
    try:
        return add_entries(session, draw, user_id, source, entries, now=now)
    except DrawLockedError:
        if mini_draw_id is not None and source in (EntrySource.MINI_DRAW, EntrySource.UPSELL):
            raise
        # the target froze between selection and update; entries go to the next draw
        logger.debug("Draw %s locked during award, re-targeting", draw.id)
        session.expire(draw)
        retry = _target_draw(session, source, mini_draw_id, now)
        return add_entries(session, retry, user_id, source, entries, now=now)


def _record_pending(
    session: Session,
    *,
    event: PaymentEvent,
    source: EntrySource,
    entries: int,
    mini_draw_id: Optional[int],
    reason: str,
) -> PendingEntryAward:
    pending = PendingEntryAward(
        payment_event_id=event.id,
        user_id=event.user_id,
        source=source.value,
        entries=entries,
        mini_draw_id=mini_draw_id,
        reason=reason,
    )
    session.add(pending)
    session.flush()
    logger.critical(
        "No draw available for payment %s: %s entries for user %s queued for reconciliation (award %s)",
        event.payment_intent_id,
        entries,
        event.user_id,
        pending.id,
    )
    return pending


def award_entries(
    session: Session,
    *,
    payment_intent_id: str,
    user_id: int,
    package_type: str,
    entries: int,
    processed_by: str = "webhook",
    package_id: Optional[str] = None,
    package_name: Optional[str] = None,
    mini_draw_id: Optional[int] = None,
    extra: Optional[dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> AwardOutcome:
    """Grant the draw entries bought with a payment, exactly once.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session. The caller commits.
    payment_intent_id : str
        Payment processor id of the completed payment.
    user_id : int
        Purchasing user.
    package_type : str
        ``"subscription"``, ``"one-time"``, ``"upsell"`` or ``"mini-draw"``.
    entries : int
        Number of entries bought.
    processed_by : str, default: ``"webhook"``
        Which path completed the purchase: ``"api"`` or ``"webhook"``.
    package_id, package_name : Optional[str]
        Descriptive package fields stored on the payment event.
    mini_draw_id : Optional[int]
        Mini draw receiving mini-draw packages and mini-draw upsells.
    extra : Optional[dict[str, Any]]
        Additional data stored on the payment event.
    now : Optional[datetime], default: None
        Reference instant; defaults to the current UTC time.

    Returns
    -------
    AwardOutcome
        ``already_processed`` is set when the payment was credited before.

    Raises
    ------
    DrawLockedError
        If the named mini draw is closed or full. The payment event is
        rolled back so the purchase can be retried or refunded.
    DrawNotFoundError
        If the named mini draw does not exist.

    Notes
    -----
    When no major draw is active or queued the entries are written to
    ``pending_entry_awards`` and logged at ``CRITICAL`` instead of being
    dropped; the payment still counts as processed.
    """

    if processed_by not in PROCESSED_BY:
        raise ValueError(f"processed_by must be one of {PROCESSED_BY}, got {processed_by!r}")
    source = source_for_package(package_type)
    current = ensure_utc(now) if now is not None else utc_now()
    event_id = payment_event_id(BENEFITS_GRANTED, payment_intent_id)

    if session.get(PaymentEvent, event_id) is not None:
        logger.warning("Payment %s already processed; skipping entry award", payment_intent_id)
        return AwardOutcome(payment_event_id=event_id, already_processed=True)

    data: dict[str, Any] = {"entries": entries, "source": source.value}
    if mini_draw_id is not None:
        data["mini_draw_id"] = mini_draw_id
    if extra:
        data.update(extra)

    savepoint = session.begin_nested()
    try:
        event = PaymentEvent(
            id=event_id,
            payment_intent_id=payment_intent_id.strip(),
            event_type=BENEFITS_GRANTED,
            user_id=user_id,
            package_type=package_type,
            package_id=package_id,
            package_name=package_name,
            data=data,
            processed_by=processed_by,
            timestamp=current,
        )
        session.add(event)
        session.flush()
    except IntegrityError:
        savepoint.rollback()
        logger.warning(
            "Payment %s was processed concurrently; skipping entry award", payment_intent_id
        )
        return AwardOutcome(payment_event_id=event_id, already_processed=True)

    try:
        delta = _place_entries(
            session,
            user_id=user_id,
            source=source,
            entries=entries,
            mini_draw_id=mini_draw_id,
            now=current,
        )
    except NoAvailableDrawError as exc:
        pending = _record_pending(
            session,
            event=event,
            source=source,
            entries=entries,
            mini_draw_id=mini_draw_id,
            reason=str(exc),
        )
        savepoint.commit()
        return AwardOutcome(
            payment_event_id=event_id,
            already_processed=False,
            pending_award_id=pending.id,
        )
    except Exception:
        savepoint.rollback()
        raise

    event.data = {**data, "draw_id": delta.draw_id}
    session.flush()
    savepoint.commit()
    logger.info(
        "Awarded %s %s entries for payment %s to user %s in draw %s",
        entries,
        source.value,
        payment_intent_id,
        user_id,
        delta.draw_id,
    )
    return AwardOutcome(payment_event_id=event_id, already_processed=False, delta=delta)


def reconcile_pending_awards(
    session: Session, now: Optional[datetime] = None
) -> list[PendingEntryAward]:
    """Place queued awards on a draw now that one is available.

    Awards that still cannot be placed stay pending.

    Returns
    -------
    list[PendingEntryAward]
        Awards resolved by this call.
    """

    current = ensure_utc(now) if now is not None else utc_now()
    resolved: list[PendingEntryAward] = []
    for pending in PendingEntryAward.get_pending(session):
        source = EntrySource(pending.source)
        try:
            delta = _place_entries(
                session,
                user_id=pending.user_id,
                source=source,
                entries=pending.entries,
                mini_draw_id=pending.mini_draw_id,
                now=current,
            )
        except (NoAvailableDrawError, DrawLockedError) as exc:
            logger.warning("Pending award %s still unplaceable: %s", pending.id, exc)
            continue
        pending.status = "resolved"
        pending.resolved_draw_id = delta.draw_id
        pending.resolved_at = current
        session.flush()
        resolved.append(pending)
        logger.info("Resolved pending award %s into draw %s", pending.id, delta.draw_id)
    return resolved


def payment_status(
    session: Session,
    payment_intent_id: str,
    *,
    cache: Optional[TTLCache[PaymentStatus]] = None,
) -> PaymentStatus:
    """Return whether benefits were granted for ``payment_intent_id``.

    Only processed results are cached; a pending payment is looked up again
    on every call until its event appears.
    """

    key = payment_intent_id.strip()
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached

    event = PaymentEvent.get_for_intent(session, key)
    if event is None:
        return PaymentStatus(payment_intent_id=key, processed=False)

    status = PaymentStatus(
        payment_intent_id=key,
        processed=True,
        package_type=event.package_type,
        package_name=event.package_name,
        entries=(event.data or {}).get("entries"),
        processed_by=event.processed_by,
        timestamp=event.timestamp,
    )
    if cache is not None:
        cache.set(key, status)
    return status


__all__ = [
    "PACKAGE_SOURCES",
    "AwardOutcome",
    "PaymentStatus",
    "source_for_package",
    "award_entries",
    "reconcile_pending_awards",
    "payment_status",
]
