from datetime import datetime, timedelta, timezone

from django.test import SimpleTestCase

from tipping.utils.scoring_engine import PenaltyCalculator, PenaltySchedule

DEADLINE = datetime(2024, 6, 14, 19, 0, tzinfo=timezone.utc)


class PenaltyCalculatorTest(SimpleTestCase):
    def setUp(self):
        self.calculator = PenaltyCalculator()

    def test_on_time_submission(self):
        schedule = self.calculator.compute_schedule(DEADLINE, DEADLINE - timedelta(hours=1))
        self.assertEqual(schedule, PenaltySchedule(late_match_count=0))
        self.assertFalse(schedule.is_late)

    def test_submission_exactly_at_deadline_is_on_time(self):
        self.assertEqual(self.calculator.compute_schedule(DEADLINE, DEADLINE).late_match_count, 0)

    def test_partial_day_rounds_up(self):
        schedule = self.calculator.compute_schedule(DEADLINE, DEADLINE + timedelta(hours=36))
        self.assertEqual(schedule.late_match_count, 2)

    def test_one_second_late_forfeits_one_match(self):
        schedule = self.calculator.compute_schedule(DEADLINE, DEADLINE + timedelta(seconds=1))
        self.assertEqual(schedule.late_match_count, 1)

    def test_whole_days(self):
        schedule = self.calculator.compute_schedule(DEADLINE, DEADLINE + timedelta(days=3))
        self.assertEqual(schedule.late_match_count, 3)

    def test_missing_timestamp_or_deadline(self):
        self.assertFalse(self.calculator.compute_schedule(DEADLINE, None).is_late)
        self.assertFalse(self.calculator.compute_schedule(None, DEADLINE).is_late)

    def test_schedules_only_include_late_participants(self):
        schedules = self.calculator.compute_schedules(
            DEADLINE,
            {
                "alice": DEADLINE - timedelta(days=1),
                "bob": DEADLINE + timedelta(hours=5),
                "carol": None,
            },
        )
        self.assertEqual(schedules, {"bob": PenaltySchedule(late_match_count=1)})


class PenaltyScheduleTest(SimpleTestCase):
    def test_covers_leading_positions(self):
        schedule = PenaltySchedule(late_match_count=2)
        self.assertFalse(schedule.covers(0))
        self.assertTrue(schedule.covers(1))
        self.assertTrue(schedule.covers(2))
        self.assertFalse(schedule.covers(3))

    def test_empty_schedule_covers_nothing(self):
        self.assertFalse(PenaltySchedule().covers(1))
