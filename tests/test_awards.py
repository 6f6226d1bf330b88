import unittest
from datetime import timedelta

from sqlalchemy import func, select, update

from sweeps.draws.awards import (
    award_entries,
    payment_status,
    reconcile_pending_awards,
    source_for_package,
)
from sweeps.draws.cache import TTLCache
from sweeps.draws.errors import DrawLockedError, DrawNotFoundError
from sweeps.draws.ledger import entries_for_user
from sweeps.models import (
    Draw,
    DrawStatus,
    EntrySource,
    PaymentEvent,
    PendingEntryAward,
)

from draw_fixtures import NOW, DrawTestCase, major_draw, mini_draw


class TestSourceForPackage(unittest.TestCase):
    def test_mapping(self):
        self.assertIs(source_for_package("subscription"), EntrySource.MEMBERSHIP)
        self.assertIs(source_for_package("one-time"), EntrySource.ONE_TIME_PACKAGE)
        self.assertIs(source_for_package("upsell"), EntrySource.UPSELL)
        self.assertIs(source_for_package("mini-draw"), EntrySource.MINI_DRAW)
        with self.assertRaises(ValueError):
            source_for_package("gift-card")


class TestAwardEntries(DrawTestCase):
    def test_award_is_idempotent(self):
        with self.Session() as session:
            draw = self.add_draw(session, major_draw())
            first = award_entries(
                session,
                payment_intent_id="pi_123",
                user_id=self.alice_id,
                package_type="one-time",
                entries=25,
                package_name="Gold Pack",
                now=NOW,
            )
            session.commit()
            self.assertFalse(first.already_processed)
            self.assertEqual(first.payment_event_id, "BenefitsGranted-pi_123")
            assert first.delta is not None
            self.assertEqual(first.delta.draw_id, draw.id)

            with self.assertLogs("sweeps.draws.awards", level="WARNING"):
                second = award_entries(
                    session,
                    payment_intent_id="pi_123",
                    user_id=self.alice_id,
                    package_type="one-time",
                    entries=25,
                    processed_by="api",
                    now=NOW,
                )
            session.commit()
            self.assertTrue(second.already_processed)
            self.assertIsNone(second.delta)

            self.assertEqual(draw.total_entries, 25)
            entry = entries_for_user(session, draw, self.alice_id)
            assert entry is not None
            self.assertEqual(entry.one_time_package, 25)

            event = session.get(PaymentEvent, "BenefitsGranted-pi_123")
            self.assertEqual(event.processed_by, "webhook")
            self.assertEqual(event.data["draw_id"], draw.id)
            self.assertEqual(event.data["entries"], 25)

    def test_unknown_processed_by(self):
        with self.Session() as session:
            self.add_draw(session, major_draw())
            with self.assertRaises(ValueError):
                award_entries(
                    session, payment_intent_id="pi_1", user_id=self.alice_id,
                    package_type="one-time", entries=1, processed_by="cron", now=NOW,
                )

    def test_mini_draw_package_goes_to_named_mini_draw(self):
        with self.Session() as session:
            major = self.add_draw(session, major_draw())
            mini = self.add_draw(session, mini_draw(minimum_entries=100))
            outcome = award_entries(
                session,
                payment_intent_id="pi_mini",
                user_id=self.bob_id,
                package_type="mini-draw",
                entries=4,
                mini_draw_id=mini.id,
                now=NOW,
            )
            assert outcome.delta is not None
            self.assertEqual(outcome.delta.draw_id, mini.id)
            self.assertEqual(mini.total_entries, 4)
            self.assertEqual(major.total_entries, 0)

    def test_upsell_routing(self):
        with self.Session() as session:
            major = self.add_draw(session, major_draw())
            mini = self.add_draw(session, mini_draw(minimum_entries=100))
            to_mini = award_entries(
                session, payment_intent_id="pi_up1", user_id=self.bob_id,
                package_type="upsell", entries=2, mini_draw_id=mini.id, now=NOW,
            )
            to_major = award_entries(
                session, payment_intent_id="pi_up2", user_id=self.bob_id,
                package_type="upsell", entries=3, now=NOW,
            )
            self.assertEqual(to_mini.delta.draw_id, mini.id)
            self.assertEqual(to_major.delta.draw_id, major.id)
            self.assertEqual(entries_for_user(session, major, self.bob_id).upsell, 3)

    def test_mini_draw_package_requires_id(self):
        with self.Session() as session:
            self.add_draw(session, major_draw())
            with self.assertRaises(ValueError):
                award_entries(
                    session, payment_intent_id="pi_x", user_id=self.bob_id,
                    package_type="mini-draw", entries=1, now=NOW,
                )
            self.assertIsNone(session.get(PaymentEvent, "BenefitsGranted-pi_x"))

    def test_closed_mini_draw_rolls_back_event(self):
        with self.Session() as session:
            mini = self.add_draw(session, mini_draw())
            mini.status = DrawStatus.COMPLETED.value
            session.flush()
            with self.assertRaises(DrawLockedError):
                award_entries(
                    session, payment_intent_id="pi_closed", user_id=self.bob_id,
                    package_type="mini-draw", entries=1, mini_draw_id=mini.id, now=NOW,
                )
            with self.assertRaises(DrawNotFoundError):
                award_entries(
                    session, payment_intent_id="pi_missing", user_id=self.bob_id,
                    package_type="mini-draw", entries=1, mini_draw_id=9999, now=NOW,
                )
            session.commit()
            self.assertEqual(session.scalar(select(func.count()).select_from(PaymentEvent)), 0)

    def test_retargets_when_draw_freezes_mid_award(self):
        with self.Session() as session:
            current = self.add_draw(session, major_draw(name="current"))
            upcoming = self.add_draw(
                session,
                major_draw(
                    name="upcoming",
                    activation=NOW + timedelta(days=11),
                    draw_date=NOW + timedelta(days=41),
                    status=DrawStatus.QUEUED,
                ),
            )
            # another process froze the current draw; this session has not seen it
            session.execute(
                update(Draw)
                .where(Draw.id == current.id)
                .values(status=DrawStatus.FROZEN.value)
                .execution_options(synchronize_session=False)
            )
            outcome = award_entries(
                session, payment_intent_id="pi_race", user_id=self.alice_id,
                package_type="subscription", entries=6, now=NOW,
            )
            assert outcome.delta is not None
            self.assertEqual(outcome.delta.draw_id, upcoming.id)
            self.assertEqual(upcoming.total_entries, 6)
            self.assertEqual(current.total_entries, 0)


class TestPendingAwards(DrawTestCase):
    def test_no_draw_records_pending_award(self):
        with self.Session() as session:
            with self.assertLogs("sweeps.draws.awards", level="CRITICAL"):
                outcome = award_entries(
                    session, payment_intent_id="pi_gap", user_id=self.alice_id,
                    package_type="subscription", entries=8, now=NOW,
                )
            session.commit()
            self.assertFalse(outcome.already_processed)
            self.assertIsNone(outcome.delta)
            assert outcome.pending_award_id is not None

            pending = PendingEntryAward.get_pending(session)
            self.assertEqual([p.id for p in pending], [outcome.pending_award_id])
            self.assertEqual(pending[0].entries, 8)
            self.assertEqual(pending[0].source, "membership")
            self.assertIsNotNone(session.get(PaymentEvent, "BenefitsGranted-pi_gap"))

            # nothing to reconcile into yet
            self.assertEqual(reconcile_pending_awards(session, NOW), [])

            draw = self.add_draw(session, major_draw())
            resolved = reconcile_pending_awards(session, NOW)
            session.commit()
            self.assertEqual(len(resolved), 1)
            self.assertEqual(resolved[0].status, "resolved")
            self.assertEqual(resolved[0].resolved_draw_id, draw.id)
            self.assertEqual(resolved[0].resolved_at, NOW)
            self.assertEqual(draw.total_entries, 8)
            self.assertEqual(PendingEntryAward.get_pending(session), [])


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestPaymentStatus(DrawTestCase):
    def test_pending_then_completed(self):
        clock = FakeClock()
        cache = TTLCache(30, clock=clock)
        with self.Session() as session:
            self.add_draw(session, major_draw())
            status = payment_status(session, "pi_9", cache=cache)
            self.assertFalse(status.processed)
            self.assertEqual(status.status, "pending")
            self.assertEqual(len(cache), 0)

            award_entries(
                session, payment_intent_id="pi_9", user_id=self.alice_id,
                package_type="one-time", entries=5, package_name="Starter",
                processed_by="api", now=NOW,
            )
            status = payment_status(session, "pi_9", cache=cache)
            self.assertEqual(status.status, "completed")
            self.assertEqual(status.entries, 5)
            self.assertEqual(status.package_name, "Starter")
            self.assertEqual(status.processed_by, "api")
            self.assertEqual(status.timestamp, NOW)

            event = session.get(PaymentEvent, "BenefitsGranted-pi_9")
            event.package_name = "Renamed"
            session.flush()
            self.assertEqual(payment_status(session, "pi_9", cache=cache).package_name, "Starter")

            clock.now = 31
            self.assertEqual(payment_status(session, "pi_9", cache=cache).package_name, "Renamed")


if __name__ == "__main__":
    unittest.main()
