import unittest
from datetime import datetime, timedelta, timezone

from sweeps.draws.schedule import (
    calculate_activation_date,
    calculate_freeze_time,
    calculate_next_draw_creation_date,
    calculate_next_draw_date,
    ensure_utc,
    format_countdown,
    format_in_timezone,
    is_in_freeze_period,
    local_datetime_as_utc,
    time_until_draw,
    time_until_freeze,
    validate_draw_dates,
    was_payment_before_freeze,
)

SYDNEY = "Australia/Sydney"


class TestScheduleCalculations(unittest.TestCase):
    def test_local_datetime_as_utc_standard_time(self):
        # 30 Sep 2024 is before daylight saving starts (AEST, UTC+10)
        self.assertEqual(
            local_datetime_as_utc(2024, 9, 30, 20, 0, tz=SYDNEY),
            datetime(2024, 9, 30, 10, 0, tzinfo=timezone.utc),
        )

    def test_local_datetime_as_utc_daylight_saving(self):
        # January is AEDT, UTC+11
        self.assertEqual(
            local_datetime_as_utc(2025, 1, 15, 20, 0, tz=SYDNEY),
            datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc),
        )

    def test_freeze_time_defaults_to_thirty_minutes(self):
        draw_date = datetime(2024, 9, 30, 10, 0, tzinfo=timezone.utc)
        self.assertEqual(
            calculate_freeze_time(draw_date),
            datetime(2024, 9, 30, 9, 30, tzinfo=timezone.utc),
        )
        self.assertEqual(
            calculate_freeze_time(draw_date, lead_minutes=90),
            datetime(2024, 9, 30, 8, 30, tzinfo=timezone.utc),
        )

    def test_activation_is_local_midnight_after_draw(self):
        draw_date = local_datetime_as_utc(2024, 9, 30, 20, 0, tz=SYDNEY)
        activation = calculate_activation_date(draw_date, SYDNEY)
        self.assertEqual(activation, local_datetime_as_utc(2024, 10, 1, 0, 0, tz=SYDNEY))
        self.assertEqual(activation, datetime(2024, 9, 30, 14, 0, tzinfo=timezone.utc))

    def test_next_draw_date_is_thirty_days_later_at_draw_hour(self):
        start = local_datetime_as_utc(2024, 9, 30, 20, 0, tz=SYDNEY)
        next_draw = calculate_next_draw_date(start, SYDNEY)
        # crosses into daylight saving: 30 Oct 20:00 AEDT is 09:00 UTC
        self.assertEqual(next_draw, datetime(2024, 10, 30, 9, 0, tzinfo=timezone.utc))
        self.assertEqual(format_in_timezone(next_draw, SYDNEY, "%Y-%m-%d %H:%M"), "2024-10-30 20:00")

    def test_next_draw_date_custom_cycle(self):
        start = local_datetime_as_utc(2025, 3, 1, 12, 0, tz=SYDNEY)
        next_draw = calculate_next_draw_date(start, SYDNEY, cycle_days=7, draw_hour=19)
        self.assertEqual(format_in_timezone(next_draw, SYDNEY, "%Y-%m-%d %H:%M"), "2025-03-08 19:00")

    def test_next_draw_creation_date_is_local_midnight_a_week_before(self):
        draw_date = local_datetime_as_utc(2024, 9, 30, 20, 0, tz=SYDNEY)
        creation = calculate_next_draw_creation_date(draw_date, SYDNEY)
        self.assertEqual(creation, local_datetime_as_utc(2024, 9, 23, 0, 0, tz=SYDNEY))

    def test_ensure_utc_treats_naive_as_utc(self):
        naive = datetime(2025, 1, 1, 12, 0)
        self.assertEqual(ensure_utc(naive), datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))
        aware = datetime(2025, 1, 1, 23, 0, tzinfo=timezone(timedelta(hours=11)))
        self.assertEqual(ensure_utc(aware), datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))


class TestWindows(unittest.TestCase):
    def setUp(self):
        self.draw_date = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
        self.freeze = self.draw_date - timedelta(minutes=30)

    def test_freeze_period_bounds(self):
        self.assertFalse(is_in_freeze_period(self.freeze, self.draw_date, self.freeze - timedelta(seconds=1)))
        self.assertTrue(is_in_freeze_period(self.freeze, self.draw_date, self.freeze))
        self.assertTrue(is_in_freeze_period(self.freeze, self.draw_date, self.draw_date - timedelta(seconds=1)))
        self.assertFalse(is_in_freeze_period(self.freeze, self.draw_date, self.draw_date))

    def test_payment_before_freeze(self):
        self.assertTrue(was_payment_before_freeze(self.freeze - timedelta(seconds=1), self.freeze))
        self.assertFalse(was_payment_before_freeze(self.freeze, self.freeze))

    def test_time_until_never_negative(self):
        self.assertEqual(time_until_freeze(self.freeze, self.freeze - timedelta(minutes=5)), timedelta(minutes=5))
        self.assertEqual(time_until_freeze(self.freeze, self.draw_date), timedelta(0))
        self.assertEqual(time_until_draw(self.draw_date, self.draw_date + timedelta(hours=1)), timedelta(0))

    def test_validate_draw_dates(self):
        activation = self.draw_date - timedelta(days=30)
        validate_draw_dates(activation, self.freeze, self.draw_date)
        with self.assertRaisesRegex(ValueError, "Activation date must be before freeze date"):
            validate_draw_dates(self.freeze, self.freeze, self.draw_date)
        with self.assertRaisesRegex(ValueError, "Freeze date must be before draw date"):
            validate_draw_dates(activation, self.draw_date, self.draw_date)
        with self.assertRaisesRegex(ValueError, "next activation"):
            validate_draw_dates(activation, self.freeze, self.draw_date, self.draw_date)


class TestFormatCountdown(unittest.TestCase):
    def test_hours_and_minutes(self):
        self.assertEqual(format_countdown(timedelta(hours=2, minutes=15, seconds=40)), "2 hours 15 minutes")

    def test_singular_units(self):
        self.assertEqual(format_countdown(timedelta(hours=1, minutes=1)), "1 hour 1 minute")

    def test_hours_show_zero_minutes(self):
        self.assertEqual(format_countdown(timedelta(hours=3)), "3 hours 0 minutes")

    def test_seconds_shown_under_five_minutes(self):
        self.assertEqual(format_countdown(timedelta(minutes=4, seconds=30)), "4 minutes 30 seconds")
        self.assertEqual(format_countdown(timedelta(seconds=12)), "12 seconds")

    def test_seconds_hidden_from_five_minutes(self):
        self.assertEqual(format_countdown(timedelta(minutes=45, seconds=30)), "45 minutes")

    def test_zero_and_negative(self):
        self.assertEqual(format_countdown(timedelta(0)), "0 seconds")
        self.assertEqual(format_countdown(timedelta(seconds=-5)), "0 seconds")


if __name__ == "__main__":
    unittest.main()
