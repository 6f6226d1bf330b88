import unittest
from datetime import timedelta

from sweeps.draws.errors import InvalidStatusTransitionError
from sweeps.draws.status import (
    display_status,
    persist_status,
    resolve_status,
    validate_status_transition,
)
from sweeps.models import DrawStatus

from draw_fixtures import NOW, DrawTestCase, major_draw, mini_draw


class TestResolveStatus(unittest.TestCase):
    def setUp(self):
        self.draw_date = NOW + timedelta(hours=2)
        self.draw = major_draw(
            activation=NOW - timedelta(days=1),
            freeze=self.draw_date - timedelta(minutes=30),
            draw_date=self.draw_date,
            status=DrawStatus.QUEUED,
        )

    def test_queued_before_activation(self):
        self.assertEqual(resolve_status(self.draw, NOW - timedelta(days=2)), DrawStatus.QUEUED)

    def test_active_after_activation(self):
        self.assertEqual(resolve_status(self.draw, NOW), DrawStatus.ACTIVE)

    def test_activation_instant_is_active(self):
        self.assertEqual(resolve_status(self.draw, self.draw.activation_date), DrawStatus.ACTIVE)

    def test_frozen_at_freeze_instant(self):
        self.assertEqual(resolve_status(self.draw, self.draw.freeze_entries_at), DrawStatus.FROZEN)

    def test_completed_at_draw_date(self):
        self.assertEqual(resolve_status(self.draw, self.draw_date), DrawStatus.COMPLETED)

    def test_cancelled_overrides_time(self):
        self.draw.status = DrawStatus.CANCELLED.value
        self.assertEqual(resolve_status(self.draw, NOW), DrawStatus.CANCELLED)
        self.assertEqual(resolve_status(self.draw, self.draw_date + timedelta(days=1)), DrawStatus.CANCELLED)

    def test_persisted_frozen_is_absorbing(self):
        self.draw.status = DrawStatus.FROZEN.value
        self.assertEqual(resolve_status(self.draw, NOW - timedelta(days=2)), DrawStatus.FROZEN)

    def test_persisted_completed_wins_over_schedule(self):
        self.draw.status = DrawStatus.COMPLETED.value
        self.assertEqual(resolve_status(self.draw, NOW), DrawStatus.COMPLETED)

    def test_resolve_does_not_write(self):
        resolve_status(self.draw, self.draw_date)
        self.assertEqual(self.draw.status, DrawStatus.QUEUED.value)

    def test_undated_mini_draw_is_active(self):
        self.assertEqual(resolve_status(mini_draw(), NOW), DrawStatus.ACTIVE)


class TestStatusTransitions(unittest.TestCase):
    def test_major_lifecycle(self):
        validate_status_transition(DrawStatus.QUEUED, DrawStatus.ACTIVE)
        validate_status_transition("active", "frozen")
        validate_status_transition("frozen", "completed")
        validate_status_transition("frozen", "cancelled")

    def test_terminal_statuses(self):
        for terminal in (DrawStatus.COMPLETED, DrawStatus.CANCELLED):
            with self.assertRaises(InvalidStatusTransitionError):
                validate_status_transition(terminal, DrawStatus.ACTIVE)
        with self.assertRaisesRegex(InvalidStatusTransitionError, "completed to cancelled"):
            validate_status_transition(DrawStatus.COMPLETED, DrawStatus.CANCELLED)

    def test_major_cannot_skip_freeze(self):
        with self.assertRaises(InvalidStatusTransitionError):
            validate_status_transition(DrawStatus.ACTIVE, DrawStatus.COMPLETED)

    def test_mini_closes_directly(self):
        validate_status_transition(DrawStatus.ACTIVE, DrawStatus.COMPLETED, mini=True)

    def test_invalid_status_is_value_error(self):
        with self.assertRaises(ValueError):
            validate_status_transition("active", "paused")


class TestDisplayStatus(unittest.TestCase):
    def test_labels(self):
        draw = major_draw(status=DrawStatus.QUEUED, activation=NOW + timedelta(days=1))
        self.assertEqual(display_status(draw, NOW, tz="Australia/Sydney").label, "Coming Soon")
        self.assertEqual(display_status(draw, NOW).color, "blue")

        draw = major_draw()
        self.assertEqual(display_status(draw, NOW).label, "Active")

        frozen_at = draw.freeze_entries_at + timedelta(minutes=1)
        lagging = display_status(draw, frozen_at)
        self.assertEqual((lagging.label, lagging.color), ("Closing Soon", "yellow"))

        draw.status = DrawStatus.FROZEN.value
        self.assertEqual(display_status(draw, frozen_at).label, "Entries Closed")

        done = display_status(draw, draw.draw_date)
        self.assertEqual((done.label, done.message), ("Completed", "Winner to be announced"))
        draw.winner_user_id = 1
        self.assertEqual(display_status(draw, draw.draw_date).message, "Winner announced")

        draw.status = DrawStatus.CANCELLED.value
        self.assertEqual(display_status(draw, NOW).color, "red")


class TestPersistStatus(DrawTestCase):
    def test_persists_transition_and_locks(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            self.assertIsNone(persist_status(session, draw, NOW))

            frozen_at = draw.freeze_entries_at
            with self.assertLogs("sweeps.draws.status", level="INFO"):
                self.assertEqual(persist_status(session, draw, frozen_at), DrawStatus.FROZEN)
            self.assertEqual(draw.status, "frozen")
            self.assertFalse(draw.is_active)
            self.assertTrue(draw.configuration_locked)
            self.assertEqual(draw.locked_at, frozen_at)

            later = draw.draw_date + timedelta(minutes=1)
            self.assertEqual(persist_status(session, draw, later), DrawStatus.COMPLETED)
            # first lock instant is kept
            self.assertEqual(draw.locked_at, frozen_at)

    def test_activation_mirrors_is_active(self):
        with self.Session() as session:
            draw = self.add_draw(
                session,
                major_draw(status=DrawStatus.QUEUED, activation=NOW + timedelta(hours=1)),
            )
            self.assertFalse(draw.is_active)
            self.assertEqual(persist_status(session, draw, NOW + timedelta(hours=1)), DrawStatus.ACTIVE)
            self.assertTrue(draw.is_active)
            self.assertFalse(draw.configuration_locked)


if __name__ == "__main__":
    unittest.main()
