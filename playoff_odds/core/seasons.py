"""
Season phase enum and calendar utilities for the NFL season.
"""

from enum import Enum
from datetime import datetime, timedelta
from typing import Optional


class SeasonPhase(str, Enum):
    """Phases of an NFL season."""
    PRE = "pre"
    REGULAR = "regular"
    POST = "post"


# Games starting before this hour on the Wednesday after the next game
# belong to the current week
WEEK_ROLLOVER_WEEKDAY = 2  # Wednesday
WEEK_ROLLOVER_HOUR = 8


def get_current_season(now: Optional[datetime] = None) -> int:
    """
    Get the current NFL season year.

    NFL season: Sept-Dec = current year, Jan-Feb = previous year.
    Outside of those months the upcoming season shares the calendar year.

    Args:
        now: Reference time (defaults to the current time)

    Returns:
        The current season year
    """
    if now is None:
        now = datetime.now()

    if now.month <= 2:
        return now.year - 1
    return now.year


def current_week_cutoff(next_game_start: datetime) -> datetime:
    """
    Get the end of the week that contains the next unplayed game.

    The week rolls over at 08:00 on the first Wednesday on or after the
    next game's day.

    Args:
        next_game_start: Start time of the earliest unplayed game

    Returns:
        The cutoff; unplayed games starting before it are imminent
    """
    days_ahead = (WEEK_ROLLOVER_WEEKDAY - next_game_start.weekday()) % 7
    cutoff = next_game_start + timedelta(days=days_ahead)
    cutoff = cutoff.replace(hour=WEEK_ROLLOVER_HOUR, minute=0, second=0, microsecond=0)

    # A Wednesday game after the rollover belongs to the following week
    if cutoff <= next_game_start:
        cutoff += timedelta(days=7)

    return cutoff
