import logging

from django.db import IntegrityError, models, transaction

from ..constants import CHIP_KINDS, CHIP_LABELS
from ..utils.chips import ChipActivation as ActivationRecord
from ..utils.scoring_engine import DuplicateChipError, InvalidTargetError
from .base import TimestampMixin
from .core import Contest, Match
from .predictions import Participant

logger = logging.getLogger(__name__)


class ChipActivation(TimestampMixin):
    """A one-time chip a participant played on a match."""

    participant = models.ForeignKey(
        Participant, on_delete=models.CASCADE, related_name="chips"
    )
    kind = models.CharField(max_length=20, choices=CHIP_KINDS)
    match = models.ForeignKey(Match, on_delete=models.CASCADE, related_name="chips")

    class Meta:
        ordering = ["participant", "kind"]
        constraints = [
            models.UniqueConstraint(
                fields=["participant", "kind"], name="unique_chip_per_kind"
            )
        ]

    def __str__(self):
        return f"{self.participant}: {CHIP_LABELS.get(self.kind, self.kind)} on match {self.match.number}"


class DatabaseChipStore:
    """
    ChipRegistry store backed by the ChipActivation table.

    The unique (participant, kind) constraint makes `add` atomic across
    processes: a concurrent duplicate fails at insert time and is reported as
    DuplicateChipError.
    """

    def __init__(self, contest: Contest):
        self.contest = contest

    def _queryset(self):
        return ChipActivation.objects.filter(participant__contest=self.contest)

    def get(self, participant: str, kind: str):
        return (
            self._queryset()
            .filter(participant__name=participant, kind=kind)
            .values_list("match__number", flat=True)
            .first()
        )

    def add(self, participant: str, kind: str, match_number: int):
        try:
            participant_obj = Participant.objects.get(contest=self.contest, name=participant)
        except Participant.DoesNotExist:
            raise InvalidTargetError(f"Unknown participant '{participant}'")
        try:
            match = Match.objects.get(contest=self.contest, number=match_number)
        except Match.DoesNotExist:
            raise InvalidTargetError(f"Match {match_number} does not exist")

        try:
            with transaction.atomic():
                ChipActivation.objects.create(
                    participant=participant_obj, kind=kind, match=match
                )
        except IntegrityError:
            raise DuplicateChipError(
                f"{participant} already activated {CHIP_LABELS.get(kind, kind)}"
            )

    def items(self):
        rows = self._queryset().values_list("participant__name", "kind", "match__number")
        return [ActivationRecord(name, kind, number) for name, kind, number in sorted(rows)]
