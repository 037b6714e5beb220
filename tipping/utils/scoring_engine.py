"""
This file contains the scoring and ranking engine for the prediction contest.

The engine is a pure function of its inputs: match results, participant picks,
chip activations, bonus answers and submission timestamps go in, a ranked
LeaderboardSnapshot comes out. Nothing here touches the database; the ORM
layer in `tipping.services.leaderboard` gathers the inputs and persists the
output.

---
Architecture Overview:
1. `LeaderboardAggregator.run`: The main entry point. Scores every configured
   stage, scores bonus answers once, then merges, sorts and ranks.
2. `StageScorer.score`: Scores one stage's decided matches under the stage's
   `StageConfig` (FixedPerPick or PoolSplit), applying chips and the
   late-submission penalty window where the stage allows them.
3. `PenaltyCalculator.compute_schedule`: Turns a submission timestamp into
   the number of leading stage matches a late participant forfeits.
4. `BonusScorer.score`: Exact-match scoring of bonus category answers.
5. `LeaderboardAggregator.aggregate`: Totals, ordering, dense ranks, rank
   deltas against a previous snapshot and the chip-usage summary.

Chip activation itself lives in `tipping.utils.chips.ChipRegistry`; the
scorer only reads from it.
"""

import logging
import math
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from ..constants import (
    CHIP_LABELS,
    DEFAULT_BONUS_POINTS,
    DEFAULT_LATE_PENALTY_POINTS,
    DELTA_DOWN,
    DELTA_SAME,
    DELTA_UP,
    DOUBLE_UP,
    DRAW,
    FIXED_PER_PICK,
    POOL_SPLIT,
    SECONDS_PER_DAY,
    WILDCARD,
)
from .scoring_schema import (
    format_validation_errors,
    validate_stage_config,
    validate_stage_configs,
)

logger = logging.getLogger(__name__)

_MISSING = object()


class ScoringEngineError(Exception):
    """Base exception for the scoring engine."""

    pass


class InputShapeError(ScoringEngineError):
    """Raised when the top-level input is malformed. Fatal to a run."""

    pass


class StageSchemaError(ScoringEngineError):
    """Raised when a stage's result data cannot be scored. The stage is skipped."""

    pass


class ChipError(ScoringEngineError):
    """Base exception for chip activation failures."""

    pass


class DuplicateChipError(ChipError):
    """Raised when a participant already activated a chip of the same kind."""

    pass


class InvalidTargetError(ChipError):
    """Raised when a chip targets a match outside the chip-eligible stage."""

    pass


class ChipLockedError(ChipError):
    """Raised when a chip targets a match that has already started."""

    pass


def read_field(obj, path, default=_MISSING):
    """
    Resolves a dot-separated path on an object, supporting both attribute and dict key access.
    Returns `default` when any segment is missing.
    e.g., read_field(match, "stage.identifier")
    """
    current = obj
    for key in path.split("."):
        if isinstance(current, Mapping):
            if key not in current:
                return default
            current = current[key]
        else:
            current = getattr(current, key, _MISSING)
            if current is _MISSING:
                return default
    return current


@dataclass(frozen=True)
class StageConfig:
    """Declarative scoring rules for one stage. Supplied by the caller."""

    stage_id: str
    mode: str
    base_points: int = 0
    pool: int = 0
    draw_points: int = 0
    chips_enabled: bool = False
    late_penalty: bool = False
    name: str = ""

    def __post_init__(self):
        if self.mode not in (FIXED_PER_PICK, POOL_SPLIT):
            raise InputShapeError(f"Stage '{self.stage_id}' has unknown mode '{self.mode}'")
        if self.mode == POOL_SPLIT:
            if self.pool <= 0:
                raise InputShapeError(f"PoolSplit stage '{self.stage_id}' needs a positive pool")
            if self.chips_enabled or self.late_penalty:
                raise InputShapeError(
                    f"Chips and late penalties cannot be enabled on PoolSplit stage '{self.stage_id}'"
                )

    @property
    def label(self) -> str:
        return self.name or self.stage_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.stage_id,
            "name": self.name,
            "mode": self.mode,
            "base_points": self.base_points,
            "pool": self.pool,
            "draw_points": self.draw_points,
            "chips_enabled": self.chips_enabled,
            "late_penalty": self.late_penalty,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StageConfig":
        is_valid, errors = validate_stage_config(data)
        if not is_valid:
            raise InputShapeError(format_validation_errors(errors))
        return cls(
            stage_id=data["id"],
            mode=data["mode"],
            base_points=data.get("base_points", 0),
            pool=data.get("pool", 0),
            draw_points=data.get("draw_points", 0),
            chips_enabled=data.get("chips_enabled", False),
            late_penalty=data.get("late_penalty", False),
            name=data.get("name", ""),
        )


@dataclass(frozen=True)
class MatchRecord:
    """A fixture and, once played, its winner (a team name or DRAW)."""

    stage_id: str
    number: int
    team1: str
    team2: str
    winner: Optional[str] = None

    @property
    def is_decided(self) -> bool:
        return bool(self.winner)

    @property
    def is_draw(self) -> bool:
        return self.winner == DRAW

    def opponent_of(self, team: str) -> Optional[str]:
        if team == self.team1:
            return self.team2
        if team == self.team2:
            return self.team1
        return None


@dataclass(frozen=True)
class Prediction:
    participant: str
    match_number: int
    team: str


@dataclass(frozen=True)
class BonusCategory:
    """A bonus question, its declared answer and every participant's answer."""

    name: str
    correct_answer: Optional[str] = None
    answers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PenaltySchedule:
    """Number of leading stage matches a late participant forfeits."""

    late_match_count: int = 0

    @property
    def is_late(self) -> bool:
        return self.late_match_count > 0

    def covers(self, position: int) -> bool:
        return 1 <= position <= self.late_match_count


@dataclass
class StageInput:
    """Everything needed to score one stage."""

    config: Any
    matches: Any
    predictions: Any


@dataclass
class ScoreBreakdownItem:
    """Represents a single scoring event."""

    participant: str
    stage_id: str
    match_number: Optional[int]
    rule_id: str
    points: int
    description: str


@dataclass
class StageScore:
    """Structured result of scoring one stage."""

    stage_id: str
    points: Dict[str, int] = field(default_factory=dict)
    penalties: Dict[str, int] = field(default_factory=dict)
    breakdown: List[ScoreBreakdownItem] = field(default_factory=list)
    decided_matches: Set[int] = field(default_factory=set)
    chips_enabled: bool = False
    skipped: bool = False

    @property
    def participants(self) -> Set[str]:
        return set(self.points) | set(self.penalties)

    def award(self, participant, match_number, rule_id, points, description):
        self.points[participant] = self.points.get(participant, 0) + points
        self.breakdown.append(
            ScoreBreakdownItem(
                participant=participant,
                stage_id=self.stage_id,
                match_number=match_number,
                rule_id=rule_id,
                points=points,
                description=description,
            )
        )

    def penalize(self, participant, match_number, points):
        self.points.setdefault(participant, 0)
        self.penalties[participant] = self.penalties.get(participant, 0) + points
        self.breakdown.append(
            ScoreBreakdownItem(
                participant=participant,
                stage_id=self.stage_id,
                match_number=match_number,
                rule_id="late_penalty",
                points=points,
                description="Late submission: match forfeited.",
            )
        )


@dataclass(frozen=True)
class ParticipantScoreRecord:
    name: str
    stage_points: Dict[str, int] = field(default_factory=dict)
    bonus_points: int = 0
    penalty: int = 0
    total: int = 0
    submitted_at: Optional[datetime] = None
    rank: int = 0
    previous_rank: Optional[int] = None
    chips_used: str = ""

    @property
    def delta(self) -> str:
        if self.previous_rank is None:
            return DELTA_SAME
        if self.rank < self.previous_rank:
            return DELTA_UP
        if self.rank > self.previous_rank:
            return DELTA_DOWN
        return DELTA_SAME


@dataclass(frozen=True)
class LeaderboardSnapshot:
    """Ranked output of one scoring run. `computed_at` is not part of equality."""

    records: Tuple[ParticipantScoreRecord, ...] = ()
    computed_at: Optional[datetime] = field(default=None, compare=False)

    def __iter__(self):
        return iter(self.records)

    def __len__(self):
        return len(self.records)

    def get(self, name: str) -> Optional[ParticipantScoreRecord]:
        for record in self.records:
            if record.name == name:
                return record
        return None

    def rank_of(self, name: str) -> Optional[int]:
        record = self.get(name)
        return record.rank if record else None

    def to_rows(self, stage_ids: Optional[List[str]] = None) -> List[List[Any]]:
        """Tabular export: header row followed by one row per participant."""
        if stage_ids is None:
            seen = {}
            for record in self.records:
                for stage_id in record.stage_points:
                    seen.setdefault(stage_id, None)
            stage_ids = list(seen)

        header = ["Rank", "Player"]
        header += [f"{stage_id} Points" for stage_id in stage_ids]
        header += ["Bonus Points", "Penalty", "Total Points", "Timestamp", "Chips Used"]

        rows = [header]
        for record in self.records:
            rows.append(
                [record.rank, record.name]
                + [record.stage_points.get(stage_id, 0) for stage_id in stage_ids]
                + [
                    record.bonus_points,
                    record.penalty,
                    record.total,
                    record.submitted_at.isoformat() if record.submitted_at else "",
                    record.chips_used,
                ]
            )
        return rows


def coerce_stage_config(config) -> StageConfig:
    if isinstance(config, StageConfig):
        return config
    if isinstance(config, Mapping):
        return StageConfig.from_dict(dict(config))
    raise InputShapeError(f"Unsupported stage config type: {type(config).__name__}")


def coerce_stage_input(stage) -> StageInput:
    if isinstance(stage, Mapping):
        stage = StageInput(
            config=stage.get("config"),
            matches=stage.get("matches"),
            predictions=stage.get("predictions"),
        )
    if not isinstance(stage, StageInput):
        raise InputShapeError(f"Unsupported stage input type: {type(stage).__name__}")
    return stage


def coerce_match(item, stage_id: str) -> MatchRecord:
    """Builds a MatchRecord from a MatchRecord, a mapping or any object with match attributes."""
    if isinstance(item, MatchRecord):
        return item

    winner = read_field(item, "winner")
    if winner is _MISSING:
        raise StageSchemaError(
            f"Match {read_field(item, 'number', '?')} in stage '{stage_id}' has no winner field"
        )
    try:
        number = int(read_field(item, "number"))
    except (TypeError, ValueError) as e:
        raise StageSchemaError(f"Match in stage '{stage_id}' has no usable match number") from e

    return MatchRecord(
        stage_id=stage_id,
        number=number,
        team1=read_field(item, "team1", ""),
        team2=read_field(item, "team2", ""),
        winner=winner or None,
    )


def coerce_prediction(item, stage_id: str) -> Prediction:
    if isinstance(item, Prediction):
        return item

    participant = read_field(item, "participant", None)
    team = read_field(item, "team", None)
    try:
        match_number = int(read_field(item, "match_number"))
    except (TypeError, ValueError) as e:
        raise StageSchemaError(f"Prediction in stage '{stage_id}' has no usable match number") from e
    if not participant:
        raise StageSchemaError(f"Prediction in stage '{stage_id}' has no participant")
    return Prediction(participant=participant, match_number=match_number, team=team)


def coerce_bonus_category(item) -> BonusCategory:
    if isinstance(item, BonusCategory):
        return item
    name = read_field(item, "name", "")
    correct_answer = read_field(item, "correct_answer", None)
    answers = read_field(item, "answers", {})
    if not isinstance(answers, Mapping):
        raise InputShapeError(f"Bonus category '{name}' answers must be a mapping")
    return BonusCategory(name=name, correct_answer=correct_answer, answers=dict(answers))


def _require_iterable(value, what: str):
    if value is None or isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise InputShapeError(f"Expected a collection of {what}, got {type(value).__name__}")


class PenaltyCalculator:
    """Derives the late-submission penalty window per participant."""

    def compute_schedule(self, deadline, submitted_at) -> PenaltySchedule:
        if deadline is None or submitted_at is None or submitted_at <= deadline:
            return PenaltySchedule()
        days_late = (submitted_at - deadline).total_seconds() / SECONDS_PER_DAY
        return PenaltySchedule(late_match_count=math.ceil(days_late))

    def compute_schedules(self, deadline, submissions) -> Dict[str, PenaltySchedule]:
        """Schedules for every late participant. On-time participants are omitted."""
        schedules = {}
        for participant, submitted_at in (submissions or {}).items():
            schedule = self.compute_schedule(deadline, submitted_at)
            if schedule.is_late:
                logger.info(
                    f"{participant} submitted after the deadline; "
                    f"forfeiting the first {schedule.late_match_count} matches"
                )
                schedules[participant] = schedule
        return schedules


class StageScorer:
    """Scores one stage's decided matches."""

    def __init__(self, penalty_points: int = DEFAULT_LATE_PENALTY_POINTS):
        self.penalty_points = penalty_points

    def score(
        self,
        config,
        matches,
        predictions,
        chip_lookup=None,
        penalty_schedule=None,
    ) -> StageScore:
        """
        Scores a stage.

        Args:
            config: StageConfig or an equivalent dictionary
            matches: MatchRecords (or mappings/objects with number, team1, team2, winner)
            predictions: Predictions (or mappings/objects with participant, match_number, team)
            chip_lookup: Object with `lookup(participant, kind)`; ignored unless the stage enables chips
            penalty_schedule: Mapping participant -> PenaltySchedule; ignored unless the stage
                has late_penalty enabled

        Returns:
            StageScore whose `points` maps every participant with a pick in this stage to points.
        """
        config = coerce_stage_config(config)
        _require_iterable(matches, f"matches for stage '{config.stage_id}'")
        _require_iterable(predictions, f"predictions for stage '{config.stage_id}'")

        records = sorted(
            (coerce_match(item, config.stage_id) for item in matches),
            key=lambda match: match.number,
        )
        by_number = {match.number: match for match in records}
        positions = {match.number: i for i, match in enumerate(records, start=1)}

        stage_score = StageScore(stage_id=config.stage_id, chips_enabled=config.chips_enabled)
        picks = self._collect_picks(config, predictions, by_number, stage_score)
        participants = sorted(stage_score.points)

        if not config.chips_enabled:
            chip_lookup = None
        if chip_lookup is not None:
            self._apply_wildcards(picks, by_number, participants, chip_lookup)

        schedules = penalty_schedule if config.late_penalty else None

        for match in records:
            if not match.is_decided:
                continue
            stage_score.decided_matches.add(match.number)
            if config.mode == POOL_SPLIT:
                self._score_pool_split(config, match, picks, participants, stage_score)
            else:
                self._score_fixed(
                    config,
                    match,
                    picks,
                    participants,
                    positions[match.number],
                    chip_lookup,
                    schedules,
                    stage_score,
                )

        logger.info(
            f"Scored stage '{config.stage_id}': {len(stage_score.decided_matches)} decided "
            f"matches, {len(participants)} participants"
        )
        return stage_score

    def _collect_picks(self, config, predictions, by_number, stage_score):
        """Returns {match_number: {participant: team}} and registers every participant."""
        picks = defaultdict(dict)
        for item in predictions:
            prediction = coerce_prediction(item, config.stage_id)
            stage_score.points.setdefault(prediction.participant, 0)
            if prediction.match_number not in by_number:
                logger.warning(
                    f"Ignoring {prediction.participant}'s pick for match "
                    f"{prediction.match_number}, not part of stage '{config.stage_id}'"
                )
                continue
            existing = picks[prediction.match_number].get(prediction.participant)
            if existing is not None and existing != prediction.team:
                logger.warning(
                    f"{prediction.participant} has more than one pick for match "
                    f"{prediction.match_number}; using '{prediction.team}'"
                )
            picks[prediction.match_number][prediction.participant] = prediction.team
        return picks

    def _apply_wildcards(self, picks, by_number, participants, chip_lookup):
        for participant in participants:
            target = chip_lookup.lookup(participant, WILDCARD)
            if target is None or target not in by_number:
                continue
            match_picks = picks.get(target, {})
            picked = match_picks.get(participant)
            if picked is None:
                continue
            flipped = by_number[target].opponent_of(picked)
            if flipped is None:
                logger.warning(
                    f"Wildcard for {participant} on match {target} cannot flip "
                    f"'{picked}': not one of the two teams"
                )
                continue
            match_picks[participant] = flipped

    def _score_fixed(
        self, config, match, picks, participants, position, chip_lookup, schedules, stage_score
    ):
        match_picks = picks.get(match.number, {})

        for participant in participants:
            schedule = schedules.get(participant) if schedules else None
            if schedule is not None and schedule.covers(position):
                stage_score.penalize(participant, match.number, self.penalty_points)
                continue

            doubled = (
                chip_lookup is not None
                and chip_lookup.lookup(participant, DOUBLE_UP) == match.number
            )
            multiplier = 2 if doubled else 1

            if match.is_draw:
                if config.draw_points:
                    stage_score.award(
                        participant,
                        match.number,
                        "draw_double_up" if doubled else "draw",
                        config.draw_points * multiplier,
                        "Match drawn." + (" Double Up applied." if doubled else ""),
                    )
            elif match_picks.get(participant) == match.winner:
                stage_score.award(
                    participant,
                    match.number,
                    "correct_pick_double_up" if doubled else "correct_pick",
                    config.base_points * multiplier,
                    f"Correctly picked {match.winner}."
                    + (" Double Up applied." if doubled else ""),
                )

    def _score_pool_split(self, config, match, picks, participants, stage_score):
        if match.is_draw:
            if config.draw_points:
                for participant in participants:
                    stage_score.award(
                        participant, match.number, "draw", config.draw_points, "Match drawn."
                    )
            return

        match_picks = picks.get(match.number, {})
        correct = sorted(p for p, team in match_picks.items() if team == match.winner)
        if not correct:
            logger.debug(f"No correct picks for match {match.number}; pool not awarded")
            return

        share = config.pool // len(correct)
        remainder = config.pool % len(correct)
        if remainder:
            logger.debug(
                f"Match {match.number}: {remainder} of {config.pool} pool points left unassigned"
            )
        for participant in correct:
            stage_score.award(
                participant,
                match.number,
                "pool_share",
                share,
                f"Share of {config.pool}-point pool with {len(correct)} correct picks.",
            )


class BonusScorer:
    """Scores bonus categories by exact, case-sensitive answer matching."""

    def __init__(self, points_per_answer: int = DEFAULT_BONUS_POINTS):
        self.points_per_answer = points_per_answer

    def score(self, categories) -> Dict[str, int]:
        _require_iterable(categories, "bonus categories")
        scores = {}
        for item in categories:
            category = coerce_bonus_category(item)
            for participant in category.answers:
                scores.setdefault(participant, 0)
            if not category.correct_answer:
                continue
            for participant, answer in category.answers.items():
                if answer == category.correct_answer:
                    scores[participant] += self.points_per_answer
        return scores


class LeaderboardAggregator:
    """
    Runs every stage, the bonus scorer and the penalty calculator, then
    produces a ranked LeaderboardSnapshot.
    """

    def __init__(
        self,
        chip_registry=None,
        stage_scorer: Optional[StageScorer] = None,
        penalty_calculator: Optional[PenaltyCalculator] = None,
        bonus_scorer: Optional[BonusScorer] = None,
    ):
        self.chip_registry = chip_registry
        self.stage_scorer = stage_scorer or StageScorer()
        self.penalty_calculator = penalty_calculator or PenaltyCalculator()
        self.bonus_scorer = bonus_scorer or BonusScorer()

    def run(
        self,
        stages,
        bonus_categories=(),
        submissions=None,
        deadline=None,
        previous_snapshot=None,
        bonus_adjustments=None,
        computed_at=None,
    ) -> LeaderboardSnapshot:
        """Scores all stages and bonus answers, then aggregates. One complete pass."""
        _require_iterable(stages, "stages")
        if submissions is not None and not isinstance(submissions, Mapping):
            raise InputShapeError("Submissions must map participant names to timestamps")

        submissions = dict(submissions or {})
        schedules = self.penalty_calculator.compute_schedules(deadline, submissions)

        stages = [coerce_stage_input(stage) for stage in stages]
        self._check_stage_set(stages)

        stage_scores = [self.score_stage(stage, schedules) for stage in stages]
        bonus_scores = self.bonus_scorer.score(bonus_categories)

        return self.aggregate(
            stage_scores,
            bonus_scores,
            previous_snapshot=previous_snapshot,
            submissions=submissions,
            bonus_adjustments=bonus_adjustments,
            computed_at=computed_at,
        )

    def score_stage(self, stage, schedules=None) -> StageScore:
        """Scores one stage; a stage with malformed result data contributes nothing."""
        stage = coerce_stage_input(stage)
        config = coerce_stage_config(stage.config)
        try:
            return self.stage_scorer.score(
                config,
                stage.matches,
                stage.predictions,
                chip_lookup=self.chip_registry,
                penalty_schedule=schedules,
            )
        except StageSchemaError as e:
            logger.warning(f"Skipping stage '{config.stage_id}': {e}")
            skipped = StageScore(stage_id=config.stage_id, skipped=True)
            for item in stage.predictions:
                participant = read_field(item, "participant", None)
                if participant:
                    skipped.points.setdefault(participant, 0)
            return skipped

    def aggregate(
        self,
        stage_scores,
        bonus_scores,
        previous_snapshot=None,
        submissions=None,
        bonus_adjustments=None,
        computed_at=None,
    ) -> LeaderboardSnapshot:
        submissions = submissions or {}
        previous_ranks = self._previous_ranks(previous_snapshot)

        participants = set(bonus_scores) | set(previous_ranks)
        # Chip targets are numbers in the chip stage only
        decided_matches = set()
        for stage_score in stage_scores:
            participants |= stage_score.participants
            if stage_score.chips_enabled:
                decided_matches |= stage_score.decided_matches

        bonus_totals = {name: bonus_scores.get(name, 0) for name in participants}
        for name, points in (bonus_adjustments or {}).items():
            if name not in participants:
                logger.warning(f"Ignoring bonus adjustment for unknown participant '{name}'")
                continue
            bonus_totals[name] += points

        unranked = []
        for name in participants:
            stage_points = {s.stage_id: s.points.get(name, 0) for s in stage_scores}
            penalty = sum(s.penalties.get(name, 0) for s in stage_scores)
            bonus = bonus_totals[name]
            unranked.append(
                ParticipantScoreRecord(
                    name=name,
                    stage_points=stage_points,
                    bonus_points=bonus,
                    penalty=penalty,
                    total=sum(stage_points.values()) + bonus + penalty,
                    submitted_at=submissions.get(name),
                    previous_rank=previous_ranks.get(name),
                    chips_used=self._chips_used(name, decided_matches),
                )
            )

        ordered = sorted(unranked, key=self._sort_key)
        records = tuple(
            replace(record, rank=rank) for rank, record in enumerate(ordered, start=1)
        )

        logger.info(f"Aggregated leaderboard for {len(records)} participants")
        return LeaderboardSnapshot(
            records=records,
            computed_at=computed_at or datetime.now(timezone.utc),
        )

    @staticmethod
    def _check_stage_set(stages: List[StageInput]):
        """Stage ids must be unique and at most one stage may enable chips."""
        configs = [coerce_stage_config(stage.config).to_dict() for stage in stages]
        is_valid, errors = validate_stage_configs(configs)
        if not is_valid:
            raise InputShapeError(format_validation_errors(errors))

    @staticmethod
    def _sort_key(record: ParticipantScoreRecord):
        timestamp_key = (
            (0, record.submitted_at) if record.submitted_at is not None else (1,)
        )
        return (-record.total, timestamp_key, record.name)

    @staticmethod
    def _previous_ranks(previous_snapshot) -> Dict[str, int]:
        if previous_snapshot is None:
            return {}
        if isinstance(previous_snapshot, LeaderboardSnapshot):
            return {record.name: record.rank for record in previous_snapshot}
        if isinstance(previous_snapshot, Mapping):
            return dict(previous_snapshot)
        raise InputShapeError(
            f"Unsupported previous snapshot type: {type(previous_snapshot).__name__}"
        )

    def _chips_used(self, name: str, decided_matches: Set[int]) -> str:
        if self.chip_registry is None:
            return ""
        used = []
        for kind, label in CHIP_LABELS.items():
            target = self.chip_registry.lookup(name, kind)
            if target is not None and target in decided_matches:
                used.append(label)
        return ", ".join(used)
