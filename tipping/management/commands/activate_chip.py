"""
Management command to activate a chip on behalf of a participant.

Usage:
    python manage.py activate_chip <contest> <participant> DoubleUp <match_number>
"""

from django.core.management.base import BaseCommand, CommandError

from tipping.constants import CHIP_LABELS
from tipping.models import Contest
from tipping.services.leaderboard import activate_chip
from tipping.utils.scoring_engine import ChipError


class Command(BaseCommand):
    help = "Activate a Double Up or Wildcard chip for a participant."

    def add_arguments(self, parser):
        parser.add_argument("contest", help="Contest ID or slug")
        parser.add_argument("participant", help="Participant name")
        parser.add_argument("kind", choices=list(CHIP_LABELS), help="Chip kind")
        parser.add_argument("match", type=int, help="Target match number")

    def handle(self, *args, **options):
        try:
            contest = Contest.lookup(options["contest"])
        except Contest.DoesNotExist:
            raise CommandError(f"Contest '{options['contest']}' does not exist")

        try:
            activation = activate_chip(
                contest, options["participant"], options["kind"], options["match"]
            )
        except ChipError as e:
            raise CommandError(str(e))

        self.stdout.write(
            self.style.SUCCESS(
                f"{activation.participant} activated {CHIP_LABELS[activation.kind]} "
                f"on match {activation.match_number}"
            )
        )
