from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..utils.scoring_engine import Prediction as PredictionRecord
from .base import TimestampMixin
from .core import Contest, Match


class Participant(TimestampMixin):
    contest = models.ForeignKey(
        Contest, on_delete=models.CASCADE, related_name="participants"
    )
    name = models.CharField(max_length=150)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="contest_entries",
    )
    submitted_at = models.DateTimeField(
        null=True, blank=True, help_text="Time of the group stage submission."
    )

    class Meta:
        ordering = ["contest", "name"]
        constraints = [
            models.UniqueConstraint(
                fields=["contest", "name"], name="unique_participant_name"
            )
        ]

    def __str__(self):
        return self.name


class Prediction(TimestampMixin):
    participant = models.ForeignKey(
        Participant, on_delete=models.CASCADE, related_name="predictions"
    )
    match = models.ForeignKey(Match, on_delete=models.CASCADE, related_name="predictions")
    team = models.CharField(max_length=100)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["participant", "match"], name="unique_prediction_per_match"
            )
        ]

    def __str__(self):
        return f"{self.participant} picks {self.team} ({self.match})"

    def clean(self):
        if self.match.contest_id != self.participant.contest_id:
            raise ValidationError("Prediction and match belong to different contests.")
        if self.team not in (self.match.team1, self.match.team2):
            raise ValidationError(
                {"team": f"Pick must be {self.match.team1} or {self.match.team2}."}
            )

    def to_record(self) -> PredictionRecord:
        return PredictionRecord(
            participant=self.participant.name,
            match_number=self.match.number,
            team=self.team,
        )
