"""
Services layer for the tipping application.

This package contains:
- leaderboard.py: gathers contest data, runs the scoring engine, stores snapshots
"""

from .leaderboard import (
    RefreshResult,
    activate_chip,
    build_chip_registry,
    collect_inputs,
    compute_leaderboard,
    refresh_leaderboard,
)

__all__ = [
    "RefreshResult",
    "activate_chip",
    "build_chip_registry",
    "collect_inputs",
    "compute_leaderboard",
    "refresh_leaderboard",
]
