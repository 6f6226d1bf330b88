"""Persistence primitives for draws.

Every mutation here is a single SQL statement so concurrent writers never
lose updates: counters are incremented in the database, the winner is set
with a compare-and-set, and locked draws are excluded in the ``WHERE``
clause rather than checked beforehand. Callers own the transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional, Type, TypeVar

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session

from ..models.draw import Draw, MajorDraw
from ..models.entry import DrawEntry
from ..models.enums import DrawStatus, EntrySource

DrawT = TypeVar("DrawT", bound=Draw)

OPEN_STATUSES = (DrawStatus.QUEUED.value, DrawStatus.ACTIVE.value)


def _dialect_insert(session: Session):
    """Return the dialect-specific ``insert`` construct supporting upserts."""

    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        raise NotImplementedError(f"Atomic entry upsert is not supported on {dialect!r}")
    return insert


def find_draw_by_id(
    session: Session, draw_id: int, draw_cls: Type[DrawT] = Draw  # type: ignore[assignment]
) -> Optional[DrawT]:
    """Return the draw with ``draw_id`` when it is an instance of ``draw_cls``."""

    return session.scalar(select(draw_cls).where(draw_cls.id == draw_id))


def find_active_or_queued_draws(
    session: Session,
    draw_cls: Type[DrawT] = MajorDraw,  # type: ignore[assignment]
    *,
    sort_by_activation: bool = True,
    statuses: Iterable[str] = OPEN_STATUSES,
) -> list[DrawT]:
    """Draws whose stored status is in ``statuses`` (default queued/active).

    The stored status may lag the schedule; callers resolve the effective
    status of each row themselves.
    """

    stmt = select(draw_cls).where(draw_cls.status.in_(list(statuses)))
    if sort_by_activation:
        stmt = stmt.order_by(
            draw_cls.activation_date.is_(None),
            draw_cls.activation_date,
            draw_cls.id,
        )
    else:
        stmt = stmt.order_by(draw_cls.id)
    return list(session.scalars(stmt))


def find_recent_completed_draws(
    session: Session,
    now: datetime,
    draw_cls: Type[DrawT] = MajorDraw,  # type: ignore[assignment]
    *,
    limit: int = 5,
) -> list[DrawT]:
    """Completed draws, most recent ``draw_date`` first.

    Rows still stored as queued/active/frozen whose ``draw_date`` has passed
    count as completed.
    """

    stmt = (
        select(draw_cls)
        .where(
            or_(
                draw_cls.status == DrawStatus.COMPLETED.value,
                and_(
                    draw_cls.status.in_(
                        [
                            DrawStatus.QUEUED.value,
                            DrawStatus.ACTIVE.value,
                            DrawStatus.FROZEN.value,
                        ]
                    ),
                    draw_cls.draw_date.is_not(None),
                    draw_cls.draw_date <= now,
                ),
            )
        )
        .order_by(draw_cls.draw_date.is_(None), draw_cls.draw_date.desc(), draw_cls.id.desc())
        .limit(limit)
    )
    return list(session.scalars(stmt))


def atomic_increment_draw_total(
    session: Session, draw_id: int, count: int, now: datetime
) -> bool:
    """Add ``count`` to the draw's cached total if it still accepts entries.

    The guard rejects draws whose stored status is closed, whose freeze or
    draw instant has passed, or that have reached their minimum-entries cap.

    Returns
    -------
    bool
        ``False`` when no row matched, i.e. the draw is locked.
    """

    stmt = (
        update(Draw)
        .where(
            Draw.id == draw_id,
            Draw.status.in_(OPEN_STATUSES),
            or_(Draw.freeze_entries_at.is_(None), Draw.freeze_entries_at > now),
            or_(Draw.draw_date.is_(None), Draw.draw_date > now),
            or_(
                Draw.minimum_entries.is_(None),
                Draw.total_entries < Draw.minimum_entries,
            ),
        )
        .values(total_entries=Draw.total_entries + count, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return session.execute(stmt).rowcount == 1


def atomic_increment_entry(
    session: Session,
    draw_id: int,
    cycle: int,
    user_id: int,
    source: EntrySource,
    count: int,
    now: datetime,
) -> int:
    """Create or increment the user's aggregate in one ``INSERT ... ON CONFLICT``.

    Returns
    -------
    int
        The aggregate's ``total_entries`` after the increment.
    """

    insert = _dialect_insert(session)
    table = DrawEntry.__table__
    counters = {entry_source.column: 0 for entry_source in EntrySource}
    counters[source.column] = count

    stmt = insert(table).values(
        draw_id=draw_id,
        cycle=cycle,
        user_id=user_id,
        total_entries=count,
        first_added_date=now,
        last_updated_date=now,
        **counters,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.draw_id, table.c.cycle, table.c.user_id],
        set_={
            source.column: table.c[source.column] + stmt.excluded[source.column],
            "total_entries": table.c.total_entries + stmt.excluded.total_entries,
            "last_updated_date": stmt.excluded.last_updated_date,
        },
    )
    session.execute(stmt)
    return session.scalar(
        select(table.c.total_entries).where(
            table.c.draw_id == draw_id,
            table.c.cycle == cycle,
            table.c.user_id == user_id,
        )
    )


def atomic_set_winner(
    session: Session,
    draw_id: int,
    cycle: int,
    winner: dict[str, Any],
    now: datetime,
) -> bool:
    """Write the embedded winner only if none is present for ``cycle``.

    The same statement marks the draw completed and locks its configuration.

    Returns
    -------
    bool
        ``True`` when this call wrote the winner, ``False`` when another
        writer got there first.
    """

    stmt = (
        update(Draw)
        .where(
            Draw.id == draw_id,
            Draw.cycle == cycle,
            Draw.winner_user_id.is_(None),
            Draw.status != DrawStatus.CANCELLED.value,
        )
        .values(
            winner_user_id=winner["user_id"],
            winner_entry_number=winner["entry_number"],
            winner_selected_date=winner["selected_date"],
            winner_notified=False,
            winner_selection_method=winner["selection_method"],
            winner_selected_by=winner.get("selected_by"),
            status=DrawStatus.COMPLETED.value,
            is_active=False,
            configuration_locked=True,
            locked_at=func.coalesce(Draw.locked_at, now),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    return session.execute(stmt).rowcount == 1


def update_draw_fields_guarded(
    session: Session, draw_id: int, patch: dict[str, Any], now: datetime
) -> bool:
    """Apply ``patch`` unless the draw's configuration is locked.

    Returns
    -------
    bool
        ``False`` when the draw is locked (or does not exist).
    """

    stmt = (
        update(Draw)
        .where(Draw.id == draw_id, Draw.configuration_locked.is_(False))
        .values(**patch, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return session.execute(stmt).rowcount == 1


__all__ = [
    "find_draw_by_id",
    "find_active_or_queued_draws",
    "find_recent_completed_draws",
    "atomic_increment_draw_total",
    "atomic_increment_entry",
    "atomic_set_winner",
    "update_draw_fields_guarded",
]
