"""
NFL Playoff Odds Simulator

Monte Carlo simulation of the rest of an NFL season to calculate seeding,
hosting and advancement probabilities.
"""

from .models import (
    Team, Game, Outcome, RatingSnapshot, SeasonSnapshot, TeamSimState,
    Flag, SeedOutlook, TrialOutcome, Accumulator, LeagueStructureError,
)
from .ratings import win_probability, update_rating, equalize_toward_mean, replay_ratings
from .random_source import RandomSource
from .tiebreakers import TieBreakResolver
from .bracket import BracketRound, BracketSimulator, BracketResult
from .magic_numbers import calculate_seed_outlooks
from .engine import SeasonPlan, SimulationRun, simulate_season, simulate_trial, run_batch
from .probability import ProbabilityEstimator, estimate_chances

__all__ = [
    # Models
    "Team",
    "Game",
    "Outcome",
    "RatingSnapshot",
    "SeasonSnapshot",
    "TeamSimState",
    "Flag",
    "SeedOutlook",
    "TrialOutcome",
    "Accumulator",
    "LeagueStructureError",
    # Ratings
    "win_probability",
    "update_rating",
    "equalize_toward_mean",
    "replay_ratings",
    # Randomness
    "RandomSource",
    # Tiebreakers
    "TieBreakResolver",
    # Bracket
    "BracketRound",
    "BracketSimulator",
    "BracketResult",
    # Magic numbers
    "calculate_seed_outlooks",
    # Engine
    "SeasonPlan",
    "SimulationRun",
    "simulate_season",
    "simulate_trial",
    "run_batch",
    # Probability
    "ProbabilityEstimator",
    "estimate_chances",
]
