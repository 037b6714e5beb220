from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError

from tipping.models import ChipActivation, LeaderboardSnapshot

from .base import ContestTestCase


class RefreshLeaderboardCommandTest(ContestTestCase):
    def test_refresh_prints_table_and_stores(self):
        self.standard_picks()
        self.standard_results()
        out = StringIO()

        call_command("refresh_leaderboard", self.contest.slug, stdout=out)

        output = out.getvalue()
        self.assertIn("Rank  Player", output)
        self.assertIn("group Points", output)
        self.assertIn("Stored snapshot", output)
        lines = [line for line in output.splitlines() if line.startswith("1 ")]
        self.assertEqual(len(lines), 1)
        self.assertIn("alice", lines[0])
        self.assertEqual(LeaderboardSnapshot.objects.count(), 1)

    def test_dry_run(self):
        self.standard_picks()
        out = StringIO()
        call_command("refresh_leaderboard", str(self.contest.pk), "--dry-run", stdout=out)
        self.assertIn("DRY RUN", out.getvalue())
        self.assertEqual(LeaderboardSnapshot.objects.count(), 0)

    def test_no_participants(self):
        out = StringIO()
        call_command("refresh_leaderboard", self.contest.slug, "--dry-run", stdout=out)
        self.assertIn("No participants to rank.", out.getvalue())

    def test_unknown_contest(self):
        with self.assertRaises(CommandError):
            call_command("refresh_leaderboard", "missing", stdout=StringIO())

    @patch("django_q.tasks.async_task", return_value="task-1")
    def test_async_queues_task(self, mock_async):
        out = StringIO()
        call_command("refresh_leaderboard", self.contest.slug, "--async", stdout=out)
        mock_async.assert_called_once_with(
            "tipping.tasks.leaderboard.refresh_contest_leaderboard",
            self.contest.id,
            False,
            task_name=f"leaderboard_refresh_{self.contest.id}",
        )
        self.assertIn("task-1", out.getvalue())
        self.assertEqual(LeaderboardSnapshot.objects.count(), 0)


class ActivateChipCommandTest(ContestTestCase):
    def test_activate(self):
        out = StringIO()
        call_command("activate_chip", self.contest.slug, "bob", "Wildcard", "2", stdout=out)
        self.assertIn("bob activated Wildcard on match 2", out.getvalue())
        self.assertTrue(ChipActivation.objects.filter(participant=self.bob).exists())

    def test_refused_activation_is_command_error(self):
        call_command("activate_chip", self.contest.slug, "bob", "Wildcard", "2", stdout=StringIO())
        with self.assertRaises(CommandError):
            call_command("activate_chip", self.contest.slug, "bob", "Wildcard", "3")
        with self.assertRaises(CommandError):
            call_command("activate_chip", self.contest.slug, "bob", "DoubleUp", "4")

    def test_unknown_contest(self):
        with self.assertRaises(CommandError):
            call_command("activate_chip", "missing", "bob", "Wildcard", "2")
