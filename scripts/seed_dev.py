from datetime import timedelta

from sweeps.config import load_settings
from sweeps.db.engine import get_sessionmaker, make_engine
from sweeps.draws import add_entries, select_winner
from sweeps.draws.schedule import (
    calculate_activation_date,
    calculate_freeze_time,
    calculate_next_draw_date,
    utc_now,
)
from sweeps.models import (
    Base,
    Admin,
    User,
    MajorDraw,
    MiniDraw,
    DrawStatus,
    EntrySource,
)


def main() -> None:
    """Seed the development database with sample draws and entries."""
    engine = make_engine()
    settings = load_settings()

    # Drop and recreate all tables
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    now = utc_now()
    tz = settings.tz

    with Session.begin() as session:
        admin = Admin(email="admin@example.com", name="draw_admin", role="superuser")
        alice = User(external_id="user_01", email="alice@example.com", display_name="Alice")
        bob = User(external_id="user_02", email="bob@example.com", display_name="Bob")
        session.add_all([admin, alice, bob])
        session.flush()

        # Last period's draw, already drawn
        past_draw_date = now - timedelta(days=2)
        past = MajorDraw(
            name="Monthly Major Draw",
            description="Flagship monthly prize.",
            activation_date=past_draw_date - timedelta(days=settings.cycle_days),
            freeze_entries_at=calculate_freeze_time(past_draw_date, settings.freeze_lead_minutes),
            draw_date=past_draw_date,
            status=DrawStatus.ACTIVE,
            prize_name="Ute Package",
            prize_value=65000,
            prize_category="vehicle",
        )
        session.add(past)
        session.flush()
        add_entries(
            session, past, alice.id, EntrySource.MEMBERSHIP, 10,
            now=past_draw_date - timedelta(days=5),
        )
        add_entries(
            session, past, bob.id, EntrySource.ONE_TIME_PACKAGE, 90,
            now=past_draw_date - timedelta(days=5),
        )
        select_winner(session, past, selected_by=admin.id, now=now)

        # Current period's draw, still queued until local midnight
        draw_date = calculate_next_draw_date(
            now, tz, cycle_days=settings.cycle_days, draw_hour=settings.draw_hour_local
        )
        upcoming = MajorDraw(
            name="Monthly Major Draw",
            description="Flagship monthly prize.",
            activation_date=calculate_activation_date(now, tz),
            freeze_entries_at=calculate_freeze_time(draw_date, settings.freeze_lead_minutes),
            draw_date=draw_date,
            status=DrawStatus.QUEUED,
            prize_name="Ute Package",
            prize_value=65000,
            prize_category="vehicle",
        )

        mini = MiniDraw(
            name="Weekend Mini Draw",
            description="Closes once 50 entries are sold.",
            status=DrawStatus.ACTIVE,
            prize_name="Tool Kit",
            prize_value=499,
            prize_category="tools",
            minimum_entries=50,
        )
        session.add_all([upcoming, mini])
        session.flush()
        add_entries(session, mini, alice.id, EntrySource.MINI_DRAW, 5, now=now)

    print("Development database seeded.")


if __name__ == "__main__":
    main()
