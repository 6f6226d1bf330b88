import unittest
from datetime import datetime, timedelta, timezone
from typing import Optional

from sweeps.config import DrawSettings
from sweeps.db.engine import make_engine, get_sessionmaker
from sweeps.models import Base, Admin, User, MajorDraw, MiniDraw, DrawStatus

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
SETTINGS = DrawSettings(display_timezone="Australia/Sydney")


def major_draw(
    *,
    activation: Optional[datetime] = None,
    freeze: Optional[datetime] = None,
    draw_date: Optional[datetime] = None,
    status: DrawStatus = DrawStatus.ACTIVE,
    name: str = "Major",
) -> MajorDraw:
    """Major draw that is active around NOW unless dates are overridden."""
    draw_date = draw_date if draw_date is not None else NOW + timedelta(days=10)
    return MajorDraw(
        name=name,
        activation_date=activation if activation is not None else NOW - timedelta(days=20),
        freeze_entries_at=freeze if freeze is not None else draw_date - timedelta(minutes=30),
        draw_date=draw_date,
        status=status,
        prize_name="Car",
        prize_value=50000,
    )


def mini_draw(*, minimum_entries: Optional[int] = 10, name: str = "Mini") -> MiniDraw:
    return MiniDraw(
        name=name,
        status=DrawStatus.ACTIVE,
        prize_name="Headphones",
        prize_value=399,
        minimum_entries=minimum_entries,
    )


class DrawTestCase(unittest.TestCase):
    """In-memory SQLite database with the draw schema and two users."""

    database_url = "sqlite+pysqlite:///:memory:"

    def setUp(self):
        self.engine = make_engine(self.database_url)
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)
        with self.Session() as session:
            admin = Admin(email="admin@example.com", name="admin")
            alice = User(external_id="alice", email="alice@example.com")
            bob = User(external_id="bob", email="bob@example.com")
            session.add_all([admin, alice, bob])
            session.commit()
            self.admin_id = admin.id
            self.alice_id = alice.id
            self.bob_id = bob.id

    def tearDown(self):
        self.engine.dispose()

    def add_draw(self, session, draw):
        session.add(draw)
        session.flush()
        return draw
