"""
Runtime settings for the tipping app, read from the environment / .env file.

Stage point values are data on each Stage, not settings.
"""

from decouple import config

from .constants import DEFAULT_BONUS_POINTS, DEFAULT_LATE_PENALTY_POINTS

LATE_PENALTY_POINTS = config(
    "TIPPING_LATE_PENALTY_POINTS", default=DEFAULT_LATE_PENALTY_POINTS, cast=int
)
BONUS_POINTS = config("TIPPING_BONUS_POINTS", default=DEFAULT_BONUS_POINTS, cast=int)
AUTO_REFRESH = config("TIPPING_AUTO_REFRESH", default=True, cast=bool)
