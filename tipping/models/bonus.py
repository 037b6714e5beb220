from django.db import models

from ..utils.scoring_engine import BonusCategory as BonusCategoryRecord
from .base import NamedMixin, TimestampMixin
from .core import Contest
from .predictions import Participant


class BonusCategory(NamedMixin, TimestampMixin):
    """A bonus question such as 'Top run scorer'. Exact answers score."""

    contest = models.ForeignKey(
        Contest, on_delete=models.CASCADE, related_name="bonus_categories"
    )
    correct_answer = models.CharField(
        max_length=200, blank=True, help_text="Leave empty until the answer is known."
    )
    order = models.IntegerField(default=0)

    class Meta:
        ordering = ["contest", "order", "id"]
        verbose_name_plural = "Bonus categories"

    def to_record(self) -> BonusCategoryRecord:
        return BonusCategoryRecord(
            name=self.name,
            correct_answer=self.correct_answer or None,
            answers={
                answer.participant.name: answer.answer
                for answer in self.answers.all()
            },
        )


class BonusAnswer(TimestampMixin):
    category = models.ForeignKey(
        BonusCategory, on_delete=models.CASCADE, related_name="answers"
    )
    participant = models.ForeignKey(
        Participant, on_delete=models.CASCADE, related_name="bonus_answers"
    )
    answer = models.CharField(max_length=200)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["category", "participant"], name="unique_bonus_answer"
            )
        ]

    def __str__(self):
        return f"{self.participant} - {self.category}: {self.answer}"


class BonusAdjustment(TimestampMixin):
    """Manual bonus points for a participant, added on top of answer scoring."""

    contest = models.ForeignKey(
        Contest, on_delete=models.CASCADE, related_name="bonus_adjustments"
    )
    participant = models.ForeignKey(
        Participant, on_delete=models.CASCADE, related_name="bonus_adjustments"
    )
    points = models.IntegerField()
    reason = models.CharField(max_length=200, blank=True)

    def __str__(self):
        return f"{self.participant}: {self.points:+d}"
