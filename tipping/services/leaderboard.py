"""
Leaderboard service.

Bridges the ORM and the pure scoring engine: reads a consistent set of inputs
for a contest, runs one complete scoring pass, and stores the resulting
snapshot. Chip activation also goes through here so that the API and the
management command share the same checks.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from django.utils import timezone

from .. import conf
from ..models import (
    BonusAdjustment,
    BonusCategory,
    ChipActivation,
    Contest,
    DatabaseChipStore,
    LeaderboardSnapshot,
    Match,
    Participant,
    Prediction,
)
from ..utils.chips import ChipActivation as ActivationRecord, ChipRegistry
from ..utils.scoring_engine import (
    BonusCategory as BonusCategoryRecord,
    BonusScorer,
    ChipError,
    ChipLockedError,
    LeaderboardAggregator,
    LeaderboardSnapshot as SnapshotRecord,
    StageInput,
    StageScorer,
)

logger = logging.getLogger(__name__)


@dataclass
class ContestInputs:
    """Everything one recompute reads, materialized before scoring starts."""

    stages: List[StageInput]
    chip_registry: ChipRegistry
    bonus_categories: List[BonusCategoryRecord] = field(default_factory=list)
    submissions: Dict[str, datetime] = field(default_factory=dict)
    deadline: Optional[datetime] = None
    bonus_adjustments: Dict[str, int] = field(default_factory=dict)
    previous_snapshot: Optional[SnapshotRecord] = None


@dataclass
class RefreshResult:
    snapshot: SnapshotRecord
    stored: Optional[LeaderboardSnapshot] = None

    @property
    def participant_count(self) -> int:
        return len(self.snapshot)


def chip_eligible_matches(contest: Contest) -> List[int]:
    stage = contest.chip_stage
    if stage is None:
        return []
    return list(stage.matches.values_list("number", flat=True))


def build_chip_registry(contest: Contest) -> ChipRegistry:
    """In-memory copy of the contest's chip activations for one scoring run."""
    registry = ChipRegistry(chip_eligible_matches(contest))
    rows = ChipActivation.objects.filter(participant__contest=contest).values_list(
        "participant__name", "kind", "match__number"
    )
    for participant, kind, match_number in rows:
        try:
            registry.activate(participant, kind, match_number)
        except ChipError as e:
            logger.warning(f"Ignoring stored chip for {participant}: {e}")
    return registry


def collect_inputs(contest: Contest) -> ContestInputs:
    matches_by_stage = defaultdict(list)
    for match in Match.objects.filter(contest=contest).select_related("stage"):
        record = match.to_record()
        matches_by_stage[record.stage_id].append(record)

    predictions_by_stage = defaultdict(list)
    predictions = Prediction.objects.filter(participant__contest=contest).select_related(
        "participant", "match__stage"
    )
    for prediction in predictions:
        predictions_by_stage[prediction.match.stage.identifier].append(prediction.to_record())

    submissions = {
        name: submitted_at
        for name, submitted_at in Participant.objects.filter(
            contest=contest, submitted_at__isnull=False
        ).values_list("name", "submitted_at")
    }

    categories = BonusCategory.objects.filter(contest=contest).prefetch_related(
        "answers__participant"
    )

    adjustments = defaultdict(int)
    for name, points in BonusAdjustment.objects.filter(contest=contest).values_list(
        "participant__name", "points"
    ):
        adjustments[name] += points

    previous = LeaderboardSnapshot.current_for(contest)

    return ContestInputs(
        stages=[
            StageInput(
                config=config,
                matches=matches_by_stage[config.stage_id],
                predictions=predictions_by_stage[config.stage_id],
            )
            for config in contest.stage_configs()
        ],
        chip_registry=build_chip_registry(contest),
        bonus_categories=[category.to_record() for category in categories],
        submissions=submissions,
        deadline=contest.submission_deadline,
        bonus_adjustments=dict(adjustments),
        previous_snapshot=previous.to_record() if previous else None,
    )


def compute_leaderboard(contest: Contest, computed_at=None) -> SnapshotRecord:
    """Runs the engine over the contest's current data without storing anything."""
    inputs = collect_inputs(contest)
    aggregator = LeaderboardAggregator(
        chip_registry=inputs.chip_registry,
        stage_scorer=StageScorer(penalty_points=conf.LATE_PENALTY_POINTS),
        bonus_scorer=BonusScorer(points_per_answer=conf.BONUS_POINTS),
    )
    return aggregator.run(
        inputs.stages,
        bonus_categories=inputs.bonus_categories,
        submissions=inputs.submissions,
        deadline=inputs.deadline,
        previous_snapshot=inputs.previous_snapshot,
        bonus_adjustments=inputs.bonus_adjustments,
        computed_at=computed_at or timezone.now(),
    )


def refresh_leaderboard(contest: Contest, dry_run: bool = False) -> RefreshResult:
    """Recomputes the leaderboard and stores it as the contest's current snapshot."""
    logger.info(f"Refreshing leaderboard for contest: {contest.name} (ID: {contest.pk})")
    snapshot = compute_leaderboard(contest)

    if dry_run:
        logger.info(f"Dry run: computed {len(snapshot)} entries, nothing stored")
        return RefreshResult(snapshot=snapshot)

    stored = LeaderboardSnapshot.store(contest, snapshot)
    logger.info(
        f"Stored leaderboard snapshot {stored.pk} for {contest.name} "
        f"with {len(snapshot)} entries"
    )
    return RefreshResult(snapshot=snapshot, stored=stored)


def activate_chip(
    contest: Contest, participant: str, kind: str, match_number: int, now=None
) -> ActivationRecord:
    """
    Activates a chip for a participant.

    Raises:
        InvalidTargetError: match outside the chip stage, or unknown participant
        DuplicateChipError: chip kind already used
        ChipLockedError: target match has kicked off or been decided
    """
    registry = ChipRegistry(
        chip_eligible_matches(contest), store=DatabaseChipStore(contest)
    )
    is_number = isinstance(match_number, int) and not isinstance(match_number, bool)
    if is_number and match_number in registry.eligible_matches:
        match = Match.objects.get(contest=contest, number=match_number)
        if match.has_started(now or timezone.now()):
            raise ChipLockedError(f"Match {match_number} has already started")
    return registry.activate(participant, kind, match_number)
