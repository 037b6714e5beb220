"""
Management command to recompute a contest leaderboard.

Usage:
    python manage.py refresh_leaderboard <contest>
    python manage.py refresh_leaderboard <contest> --dry-run
    python manage.py refresh_leaderboard <contest> --async
    python manage.py refresh_leaderboard <contest> --verbose
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from tipping.models import Contest
from tipping.services.leaderboard import refresh_leaderboard
from tipping.utils.scoring_engine import ScoringEngineError

logger = logging.getLogger("tipping")


class Command(BaseCommand):
    help = """
    Recompute the leaderboard for a contest from its stored results, picks,
    chips and bonus answers, and store it as the current snapshot.

    Rank movement is measured against the snapshot that was current before
    this run.
    """

    def add_arguments(self, parser):
        parser.add_argument("contest", help="Contest ID or slug")
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Compute and print the leaderboard without storing it",
        )
        parser.add_argument(
            "--async",
            action="store_true",
            dest="run_async",
            help="Queue the refresh on the Django-Q cluster instead of running it here",
        )
        parser.add_argument(
            "--verbose", action="store_true", help="Increase logging verbosity"
        )

    def handle(self, *args, **options):
        if options["verbose"]:
            logger.setLevel(logging.DEBUG)

        try:
            contest = Contest.lookup(options["contest"])
        except Contest.DoesNotExist:
            raise CommandError(f"Contest '{options['contest']}' does not exist")

        if options["run_async"]:
            from django_q.tasks import async_task

            task_id = async_task(
                "tipping.tasks.leaderboard.refresh_contest_leaderboard",
                contest.id,
                options["dry_run"],
                task_name=f"leaderboard_refresh_{contest.id}",
            )
            self.stdout.write(self.style.SUCCESS(f"Queued refresh task {task_id}"))
            return

        self.stdout.write(f"\nRefreshing leaderboard for: {contest.name} (ID: {contest.id})")
        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("[DRY RUN MODE - No changes will be saved]\n"))

        try:
            result = refresh_leaderboard(contest, dry_run=options["dry_run"])
        except ScoringEngineError as e:
            raise CommandError(f"Scoring failed: {e}")

        stage_ids = [stage.identifier for stage in contest.stages.all()]
        self._print_table(result.snapshot.to_rows(stage_ids))

        if result.stored:
            self.stdout.write(
                self.style.SUCCESS(
                    f"\nStored snapshot {result.stored.pk} with {result.participant_count} entries"
                )
            )

    def _print_table(self, rows):
        if len(rows) <= 1:
            self.stdout.write(self.style.WARNING("No participants to rank."))
            return
        cells = [[str(value) for value in row] for row in rows]
        widths = [max(len(row[i]) for row in cells) for i in range(len(cells[0]))]
        for index, row in enumerate(cells):
            line = "  ".join(value.ljust(width) for value, width in zip(row, widths))
            self.stdout.write(line.rstrip())
            if index == 0:
                self.stdout.write("  ".join("-" * width for width in widths))
