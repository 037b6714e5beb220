from .leaderboard import (
    refresh_contest_leaderboard,
    schedule_leaderboard_refresh,
)

__all__ = [
    "refresh_contest_leaderboard",
    "schedule_leaderboard_refresh",
]
