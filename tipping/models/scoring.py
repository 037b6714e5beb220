from django.db import models, transaction

from ..utils.scoring_engine import (
    LeaderboardSnapshot as SnapshotRecord,
    ParticipantScoreRecord,
)
from .base import TimestampMixin
from .core import Contest


class LeaderboardSnapshot(TimestampMixin):
    """A stored scoring run. The most recent one per contest is current."""

    contest = models.ForeignKey(
        Contest, on_delete=models.CASCADE, related_name="snapshots"
    )
    computed_at = models.DateTimeField()

    class Meta:
        ordering = ["-computed_at", "-id"]
        get_latest_by = ["computed_at", "id"]

    def __str__(self):
        return f"{self.contest} leaderboard @ {self.computed_at:%Y-%m-%d %H:%M}"

    @classmethod
    def current_for(cls, contest):
        return cls.objects.filter(contest=contest).order_by("-computed_at", "-id").first()

    @classmethod
    def store(cls, contest, snapshot: SnapshotRecord):
        """Persists an engine snapshot with all of its entries, or nothing."""
        with transaction.atomic():
            stored = cls.objects.create(contest=contest, computed_at=snapshot.computed_at)
            LeaderboardEntry.objects.bulk_create(
                [
                    LeaderboardEntry(
                        snapshot=stored,
                        participant_name=record.name,
                        rank=record.rank,
                        previous_rank=record.previous_rank,
                        stage_points=dict(record.stage_points),
                        bonus_points=record.bonus_points,
                        penalty=record.penalty,
                        total_points=record.total,
                        submitted_at=record.submitted_at,
                        chips_used=record.chips_used,
                    )
                    for record in snapshot
                ]
            )
        return stored

    def to_record(self) -> SnapshotRecord:
        return SnapshotRecord(
            records=tuple(entry.to_record() for entry in self.entries.all()),
            computed_at=self.computed_at,
        )


class LeaderboardEntry(models.Model):
    snapshot = models.ForeignKey(
        LeaderboardSnapshot, on_delete=models.CASCADE, related_name="entries"
    )
    participant_name = models.CharField(max_length=150)
    rank = models.PositiveIntegerField()
    previous_rank = models.PositiveIntegerField(null=True, blank=True)
    stage_points = models.JSONField(
        default=dict, blank=True, help_text="Points per stage identifier."
    )
    bonus_points = models.IntegerField(default=0)
    penalty = models.IntegerField(default=0)
    total_points = models.IntegerField(default=0)
    submitted_at = models.DateTimeField(null=True, blank=True)
    chips_used = models.CharField(max_length=100, blank=True)

    class Meta:
        ordering = ["snapshot", "rank"]
        verbose_name_plural = "Leaderboard entries"
        constraints = [
            models.UniqueConstraint(fields=["snapshot", "rank"], name="unique_snapshot_rank")
        ]

    def __str__(self):
        return f"#{self.rank} {self.participant_name} ({self.total_points})"

    def to_record(self) -> ParticipantScoreRecord:
        return ParticipantScoreRecord(
            name=self.participant_name,
            stage_points=dict(self.stage_points),
            bonus_points=self.bonus_points,
            penalty=self.penalty,
            total=self.total_points,
            submitted_at=self.submitted_at,
            rank=self.rank,
            previous_rank=self.previous_rank,
            chips_used=self.chips_used,
        )
