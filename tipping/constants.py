from typing import Dict, List, Tuple

# Result literal for a drawn match
DRAW: str = "DRAW"

# Stage scoring modes
FIXED_PER_PICK: str = "FixedPerPick"
POOL_SPLIT: str = "PoolSplit"

SCORING_MODES: List[Tuple[str, str]] = [
    (FIXED_PER_PICK, "Fixed points per correct pick"),
    (POOL_SPLIT, "Point pool split between correct picks"),
]

# Chip kinds
DOUBLE_UP: str = "DoubleUp"
WILDCARD: str = "Wildcard"

CHIP_KINDS: List[Tuple[str, str]] = [
    (DOUBLE_UP, "Double Up"),
    (WILDCARD, "Wildcard"),
]

# Order in which used chips are listed on the leaderboard
CHIP_LABELS: Dict[str, str] = dict(CHIP_KINDS)

# Default scoring points
DEFAULT_LATE_PENALTY_POINTS: int = -10
DEFAULT_BONUS_POINTS: int = 10

# Rank movement against the previous snapshot
DELTA_UP: str = "up"
DELTA_DOWN: str = "down"
DELTA_SAME: str = "same"

SECONDS_PER_DAY: int = 24 * 60 * 60
