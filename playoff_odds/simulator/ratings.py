"""
Elo-style rating model.

Win probabilities and rating updates for a single game between two rated
sides, plus the off-season regression toward the league average.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional

from ..core.seasons import SeasonPhase
from .models import Game, Outcome, RatingSnapshot


AVERAGE_RATING = 1500.0     # arbitrary anchor
HOME_BONUS = 44.3
TIE_CHANCE = 0.002419215
REST_SLOPE = 4.843299       # rating points per day of rest
REST_INTERCEPT = -30.362724
K_FACTOR = 29.0
PRE_SEASON_WEIGHT = 0.7
POST_SEASON_WEIGHT = 2.1
REGRESSION_MULTIPLIER = 2 / 3

DEFAULT_REST_DAYS = 7.0
REST_CLAMP_DAYS = 20.0
BYE_REST_DAYS = 14.0
OFF_SEASON_GAP_DAYS = 90.0

PHASE_WEIGHTS = {
    SeasonPhase.PRE: PRE_SEASON_WEIGHT,
    SeasonPhase.REGULAR: 1.0,
    SeasonPhase.POST: POST_SEASON_WEIGHT,
}

OUTCOME_SCORES = {
    Outcome.WIN: 1.0,
    Outcome.LOSS: 0.0,
    Outcome.TIE: 0.5,
}


def rest_bias(days: float) -> float:
    """Rating adjustment for the number of days since a team's last game."""
    if days >= REST_CLAMP_DAYS:
        days = DEFAULT_REST_DAYS
    return REST_SLOPE * days + REST_INTERCEPT


def rest_days(last_game: Optional[datetime], start: datetime) -> float:
    """Fractional days between a team's last game and the next kickoff."""
    if last_game is None:
        return DEFAULT_REST_DAYS
    return (start - last_game).total_seconds() / 86400


def win_probability(
    rating: float,
    opp_rating: float,
    home_advantage: bool,
    opp_home_advantage: bool,
    phase: SeasonPhase,
    rest: float = DEFAULT_REST_DAYS,
    opp_rest: float = DEFAULT_REST_DAYS
) -> float:
    """
    Probability that a side beats its opponent outright.

    Args:
        rating: The side's rating
        opp_rating: The opponent's rating
        home_advantage: Whether the side is at home
        opp_home_advantage: Whether the opponent is at home
        phase: Season phase of the game
        rest: Days since the side's last game
        opp_rest: Days since the opponent's last game

    Returns:
        Win probability; the remainder up to 1 is split between the
        opponent winning and (outside the post-season) a tie

    Raises:
        ValueError: If both sides claim home advantage
    """
    if home_advantage and opp_home_advantage:
        raise ValueError("Both teams can not have home field advantage in the same game")

    effective = rating + rest_bias(rest) + (HOME_BONUS if home_advantage else 0.0)
    opp_effective = opp_rating + rest_bias(opp_rest) + (HOME_BONUS if opp_home_advantage else 0.0)

    not_tie = 1.0 if phase == SeasonPhase.POST else 1.0 - TIE_CHANCE
    diff = PHASE_WEIGHTS[SeasonPhase(phase)] * (opp_effective - effective)
    return not_tie / (1.0 + 10 ** (diff / 400))


def update_rating(
    rating: float,
    opp_rating: float,
    home_advantage: bool,
    opp_home_advantage: bool,
    phase: SeasonPhase,
    rest: float,
    opp_rest: float,
    outcome: Outcome
) -> float:
    """Rating after a game, given the side's outcome."""
    expected = win_probability(
        rating, opp_rating, home_advantage, opp_home_advantage, phase, rest, opp_rest
    )
    return rating + K_FACTOR * (OUTCOME_SCORES[outcome] - expected)


def equalize_toward_mean(rating: float) -> float:
    """Regress a rating toward the league average between seasons."""
    return (rating - AVERAGE_RATING) * REGRESSION_MULTIPLIER + AVERAGE_RATING


def replay_ratings(games: Iterable[Game], as_of: Optional[datetime] = None) -> RatingSnapshot:
    """
    Rebuild every team's rating from its game history.

    Completed games are replayed in kickoff order. A team that has not played
    for more than 90 days is regressed toward the mean before its next game.
    Teams start at the league average.

    Args:
        games: Games of any season and phase; unplayed games are skipped
        as_of: Only games starting before this time are replayed

    Returns:
        RatingSnapshot with the latest rating of every team that played
    """
    ratings: Dict[int, float] = {}
    last_played: Dict[int, datetime] = {}

    history = sorted(
        (g for g in games if g.is_played and (as_of is None or g.start < as_of)),
        key=lambda g: (g.start, g.id)
    )

    for game in history:
        sides = (game.home_team_id, game.away_team_id)
        rest = {}

        for team_id in sides:
            rating = ratings.get(team_id, AVERAGE_RATING)
            previous = last_played.get(team_id)
            rest[team_id] = rest_days(previous, game.start)
            if previous is not None and rest[team_id] > OFF_SEASON_GAP_DAYS:
                rating = equalize_toward_mean(rating)
            ratings[team_id] = rating

        home_outcome = game.home_outcome
        home_rating = ratings[game.home_team_id]
        away_rating = ratings[game.away_team_id]
        home_field = not game.neutral_site

        ratings[game.home_team_id] = update_rating(
            home_rating, away_rating, home_field, False, game.phase,
            rest[game.home_team_id], rest[game.away_team_id], home_outcome
        )
        ratings[game.away_team_id] = update_rating(
            away_rating, home_rating, False, home_field, game.phase,
            rest[game.away_team_id], rest[game.home_team_id], home_outcome.reverse()
        )
        last_played[game.home_team_id] = game.start
        last_played[game.away_team_id] = game.start

    snapshot_time = as_of
    if snapshot_time is None and history:
        snapshot_time = history[-1].start

    return RatingSnapshot(ratings=ratings, as_of=snapshot_time)
