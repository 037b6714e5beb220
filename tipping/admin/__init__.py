"""
Admin configuration for the tipping app.
"""
from .core import ContestAdmin, MatchAdmin, MatchInline, StageInline
from .predictions import (
    BonusAdjustmentAdmin,
    BonusCategoryAdmin,
    ParticipantAdmin,
)
from .scoring import LeaderboardSnapshotAdmin

__all__ = [
    "ContestAdmin",
    "StageInline",
    "MatchInline",
    "MatchAdmin",
    "ParticipantAdmin",
    "BonusCategoryAdmin",
    "BonusAdjustmentAdmin",
    "LeaderboardSnapshotAdmin",
]
