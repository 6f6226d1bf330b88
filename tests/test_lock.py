import unittest
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import update

from sweeps.draws.errors import ConfigurationLockedError, InvalidStatusTransitionError
from sweeps.draws.lock import (
    cancel_draw,
    ensure_unlocked,
    is_locked,
    lock_configuration,
    update_draw_fields,
)
from sweeps.draws.status import persist_status
from sweeps.models import Draw, DrawStatus

from draw_fixtures import NOW, DrawTestCase, major_draw, mini_draw


class TestIsLocked(DrawTestCase):
    def test_lock_follows_schedule(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            self.assertFalse(is_locked(draw, NOW))
            self.assertTrue(is_locked(draw, draw.freeze_entries_at))
            self.assertTrue(is_locked(draw, draw.draw_date + timedelta(days=1)))

    def test_cancelled_draw_is_not_locked_by_status(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw(status=DrawStatus.CANCELLED))
            self.assertFalse(is_locked(draw, NOW))

    def test_lock_is_monotonic(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            frozen_at = draw.freeze_entries_at
            persist_status(session, draw, frozen_at)
            self.assertTrue(draw.configuration_locked)
            self.assertEqual(draw.locked_at, frozen_at)

            # moving the clock back does not unlock
            self.assertTrue(is_locked(draw, NOW))
            with self.assertRaises(ConfigurationLockedError):
                ensure_unlocked(draw, NOW)

    def test_lock_configuration_is_idempotent(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            self.assertTrue(lock_configuration(session, draw, NOW))
            self.assertFalse(lock_configuration(session, draw, NOW + timedelta(hours=1)))
            self.assertEqual(draw.locked_at, NOW)


class TestUpdateDrawFields(DrawTestCase):
    def test_edits_unlocked_draw(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            with self.assertLogs("sweeps.draws.lock", level="INFO"):
                update_draw_fields(
                    session,
                    draw,
                    {"name": "Spring Car Draw", "prize_value": 42000, "prize_images": ["car.jpg"]},
                    now=NOW,
                )
            session.commit()
            self.assertEqual(draw.name, "Spring Car Draw")
            self.assertEqual(draw.prize_value, Decimal("42000"))
            self.assertEqual(draw.prize_images, ["car.jpg"])

    def test_rejected_after_freeze(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            with self.assertRaises(ConfigurationLockedError):
                update_draw_fields(session, draw, {"name": "Late"}, now=draw.freeze_entries_at)
            self.assertEqual(draw.name, "Major")

    def test_guarded_update_loses_race_with_lock(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            session.execute(
                update(Draw)
                .where(Draw.id == draw.id)
                .values(configuration_locked=True)
                .execution_options(synchronize_session=False)
            )
            self.assertFalse(draw.configuration_locked)
            with self.assertRaises(ConfigurationLockedError):
                update_draw_fields(session, draw, {"name": "Racing"}, now=NOW)
            self.assertTrue(draw.configuration_locked)
            self.assertEqual(draw.name, "Major")

    def test_unknown_fields(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            with self.assertRaises(ValueError) as ctx:
                update_draw_fields(session, draw, {"total_entries": 1000, "status": "active"}, now=NOW)
            self.assertIn("status, total_entries", str(ctx.exception))

    def test_empty_name(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            with self.assertRaises(ValueError):
                update_draw_fields(session, draw, {"name": "  "}, now=NOW)

    def test_schedule_must_stay_ordered(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            with self.assertRaises(ValueError) as ctx:
                update_draw_fields(
                    session, draw, {"draw_date": draw.freeze_entries_at - timedelta(hours=1)}, now=NOW
                )
            self.assertEqual(str(ctx.exception), "Freeze date must be before draw date")

    def test_minimum_entries_only_on_mini_draws(self):
        with self.Session() as session:
            major = self.add_draw(session, major_draw())
            mini = self.add_draw(session, mini_draw())
            with self.assertRaises(ValueError):
                update_draw_fields(session, major, {"minimum_entries": 20}, now=NOW)
            with self.assertRaises(ValueError):
                update_draw_fields(session, mini, {"minimum_entries": 0}, now=NOW)
            update_draw_fields(session, mini, {"minimum_entries": 20}, now=NOW)
            self.assertEqual(mini.minimum_entries, 20)


class TestCancelDraw(DrawTestCase):
    def test_cancel_active_draw(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            cancel_draw(session, draw, NOW)
            self.assertEqual(draw.status, DrawStatus.CANCELLED.value)
            self.assertFalse(draw.is_active)

    def test_cancel_frozen_draw(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            cancel_draw(session, draw, draw.freeze_entries_at)
            self.assertEqual(draw.status, DrawStatus.CANCELLED.value)

    def test_cancel_after_freeze_keeps_lock(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            after_freeze = draw.freeze_entries_at + timedelta(minutes=1)
            self.assertTrue(is_locked(draw, after_freeze))
            self.assertFalse(draw.configuration_locked)

            cancel_draw(session, draw, after_freeze)
            session.commit()
            self.assertTrue(draw.configuration_locked)
            self.assertEqual(draw.locked_at, after_freeze)
            self.assertTrue(is_locked(draw, after_freeze))
            with self.assertRaises(ConfigurationLockedError):
                update_draw_fields(session, draw, {"prize_name": "Boat"}, now=after_freeze)
            session.refresh(draw)
            self.assertEqual(draw.prize_name, "Car")

    def test_cancel_before_freeze_leaves_draw_unlocked(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            cancel_draw(session, draw, NOW)
            self.assertFalse(draw.configuration_locked)
            self.assertIsNone(draw.locked_at)

    def test_completed_and_cancelled_are_terminal(self):
        with self.Session() as session:
            done = self.add_draw(session, major_draw(status=DrawStatus.COMPLETED))
            with self.assertRaises(InvalidStatusTransitionError):
                cancel_draw(session, done, NOW)
            gone = self.add_draw(session, major_draw(status=DrawStatus.CANCELLED))
            with self.assertRaises(InvalidStatusTransitionError):
                cancel_draw(session, gone, NOW)


if __name__ == "__main__":
    unittest.main()
