from .core import (
    Contest,
    Match,
    Stage,
)
from .predictions import (
    Participant,
    Prediction,
)
from .chips import (
    ChipActivation,
    DatabaseChipStore,
)
from .bonus import (
    BonusAdjustment,
    BonusAnswer,
    BonusCategory,
)
from .scoring import (
    LeaderboardEntry,
    LeaderboardSnapshot,
)

__all__ = [
    "Contest",
    "Stage",
    "Match",
    "Participant",
    "Prediction",
    "ChipActivation",
    "DatabaseChipStore",
    "BonusCategory",
    "BonusAnswer",
    "BonusAdjustment",
    "LeaderboardSnapshot",
    "LeaderboardEntry",
]
