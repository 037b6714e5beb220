import logging

from django.core.exceptions import ValidationError
from django.db import models
from django.utils.text import slugify

from ..constants import DRAW, FIXED_PER_PICK, POOL_SPLIT, SCORING_MODES
from ..utils.scoring_engine import MatchRecord, StageConfig
from .base import ActiveMixin, NamedMixin, TimestampMixin

logger = logging.getLogger(__name__)


class Contest(NamedMixin, ActiveMixin, TimestampMixin):
    """A prediction contest for one tournament edition."""

    slug = models.SlugField(max_length=255, blank=True, unique=True)
    description = models.TextField(blank=True)
    submission_deadline = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Group stage deadline. Later submissions forfeit leading matches.",
    )

    class Meta:
        ordering = ["-created_at"]

    def save(self, *args, **kwargs):
        if not self.slug:
            base_slug = slugify(self.name)
            slug = base_slug
            counter = 1
            while Contest.objects.filter(slug=slug).exists():
                slug = f"{base_slug}-{counter}"
                counter += 1
            self.slug = slug
        super().save(*args, **kwargs)

    @classmethod
    def lookup(cls, identifier):
        """Finds a contest by numeric ID or slug."""
        identifier = str(identifier)
        if identifier.isdigit():
            return cls.objects.get(pk=int(identifier))
        return cls.objects.get(slug=identifier)

    @property
    def chip_stage(self):
        return self.stages.filter(chips_enabled=True).first()

    def stage_configs(self):
        return [stage.to_config() for stage in self.stages.all()]

    def recompute_leaderboard(self, dry_run=False):
        """Recomputes the leaderboard and stores it as the current snapshot."""
        from tipping.services.leaderboard import refresh_leaderboard

        return refresh_leaderboard(self, dry_run=dry_run)


class Stage(NamedMixin, TimestampMixin):
    """A phase of the contest with its own scoring rule."""

    contest = models.ForeignKey(
        Contest, on_delete=models.CASCADE, related_name="stages"
    )
    identifier = models.SlugField(
        max_length=100, help_text="Stable stage id used in score breakdowns."
    )
    order = models.IntegerField(default=0)
    scoring_mode = models.CharField(
        max_length=20, choices=SCORING_MODES, default=FIXED_PER_PICK
    )
    base_points = models.PositiveIntegerField(
        default=0, help_text="Points per correct pick (FixedPerPick)."
    )
    pool_size = models.PositiveIntegerField(
        default=0, help_text="Points split between correct picks (PoolSplit)."
    )
    draw_points = models.PositiveIntegerField(default=0)
    chips_enabled = models.BooleanField(
        default=False, help_text="Double Up and Wildcard chips may target this stage."
    )
    late_penalty = models.BooleanField(
        default=False,
        help_text="Late submissions forfeit this stage's leading matches.",
    )

    class Meta:
        ordering = ["contest", "order", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["contest", "identifier"], name="unique_stage_identifier"
            )
        ]

    def clean(self):
        if self.scoring_mode == POOL_SPLIT:
            if not self.pool_size:
                raise ValidationError({"pool_size": "PoolSplit stages need a point pool."})
            if self.chips_enabled or self.late_penalty:
                raise ValidationError(
                    "Chips and late penalties only apply to FixedPerPick stages."
                )
        if self.chips_enabled and self.contest_id:
            other_chip_stages = Stage.objects.filter(
                contest_id=self.contest_id, chips_enabled=True
            ).exclude(pk=self.pk)
            if other_chip_stages.exists():
                raise ValidationError(
                    {"chips_enabled": "Only one stage per contest may allow chips."}
                )

    def to_config(self) -> StageConfig:
        return StageConfig(
            stage_id=self.identifier,
            mode=self.scoring_mode,
            base_points=self.base_points,
            pool=self.pool_size,
            draw_points=self.draw_points,
            chips_enabled=self.chips_enabled,
            late_penalty=self.late_penalty,
            name=self.name,
        )


class Match(TimestampMixin):
    contest = models.ForeignKey(
        Contest, on_delete=models.CASCADE, related_name="matches", editable=False
    )
    stage = models.ForeignKey(Stage, on_delete=models.CASCADE, related_name="matches")
    number = models.PositiveIntegerField(
        help_text="Stable match number, unique within the contest."
    )
    team1 = models.CharField(max_length=100)
    team2 = models.CharField(max_length=100)
    winner = models.CharField(
        max_length=100,
        blank=True,
        help_text=f"Winning team, '{DRAW}', or empty while not yet played.",
    )
    kickoff = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["contest", "number"]
        verbose_name_plural = "Matches"
        constraints = [
            models.UniqueConstraint(
                fields=["contest", "number"], name="unique_match_number"
            )
        ]

    def __str__(self):
        return f"Match {self.number}: {self.team1} vs {self.team2}"

    @property
    def is_decided(self) -> bool:
        return bool(self.winner)

    def has_started(self, now) -> bool:
        return self.is_decided or (self.kickoff is not None and self.kickoff <= now)

    def clean(self):
        if self.winner and self.winner not in (self.team1, self.team2, DRAW):
            raise ValidationError(
                {"winner": f"Winner must be {self.team1}, {self.team2} or {DRAW}."}
            )

    def save(self, *args, **kwargs):
        if self.stage_id:
            self.contest_id = self.stage.contest_id

        if self.pk is not None:
            old_winner = (
                Match.objects.filter(pk=self.pk).values_list("winner", flat=True).first()
            )
            winner_changed = old_winner != self.winner
        else:
            winner_changed = bool(self.winner)

        super().save(*args, **kwargs)

        if winner_changed:
            logger.info(f"Result recorded for {self}: {self.winner or 'cleared'}")
            try:
                from tipping.tasks.leaderboard import schedule_leaderboard_refresh

                schedule_leaderboard_refresh(self.contest)
            except Exception as e:
                logger.warning(f"Failed to schedule leaderboard refresh: {e}")

    def to_record(self) -> MatchRecord:
        return MatchRecord(
            stage_id=self.stage.identifier,
            number=self.number,
            team1=self.team1,
            team2=self.team2,
            winner=self.winner or None,
        )
