"""
Turn accumulated trial counts into reported probabilities.

Two corrections are applied to the raw frequencies:

1. Consistency. A frequency of exactly 0 or 1 is only reported when the
   outcome is already decided by the games played so far; otherwise it is
   nudged to 0.5 / trials (or 1 - 0.5 / trials). Every outcome's
   prerequisites are then raised to at least its own value, e.g. making the
   Super Bowl is never less likely than winning it. A post-season outcome
   counts as decided only when a clinched seed or the post-season games
   already scheduled or played settle it.
2. Noise suppression. A probability conditioned on one imminent game's
   result replaces the season-long value only when the difference is larger
   than the margin of error z * sqrt(p (1 - p) / n).
"""

import logging
from collections import defaultdict
from typing import Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Set

import numpy as np

from ..core.config import SimulationConfig
from ..schemas import ChanceReport, TeamChances, TeamChancesByGame
from .bracket import BracketRound
from .engine import ADVANCE_FLAGS, HOST_FLAGS, SimulationRun
from .magic_numbers import calculate_seed_outlooks
from .models import AWAY_SIDE, HOME_SIDE, PLAYOFF_SEEDS, Accumulator, Flag, Game, Outcome, SeedOutlook


logger = logging.getLogger(__name__)


# (dependent, prerequisite), applied in this order so chains carry through
FLAG_PREREQUISITES = (
    (Flag.WIN_SUPER_BOWL, Flag.MAKE_SUPER_BOWL),
    (Flag.MAKE_SUPER_BOWL, Flag.MAKE_CONFERENCE),
    (Flag.HOST_CONFERENCE, Flag.MAKE_CONFERENCE),
    (Flag.MAKE_CONFERENCE, Flag.MAKE_DIVISION),
    (Flag.HOST_DIVISION, Flag.MAKE_DIVISION),
    (Flag.MAKE_DIVISION, Flag.SEED_7),
    (Flag.HOST_WILD_CARD, Flag.SEED_4),
    (Flag.SEED_1, Flag.SEED_2),
    (Flag.SEED_2, Flag.SEED_3),
    (Flag.SEED_3, Flag.SEED_4),
    (Flag.SEED_4, Flag.SEED_5),
    (Flag.SEED_5, Flag.SEED_6),
    (Flag.SEED_6, Flag.SEED_7),
)

# Worst seed that can still produce each post-season outcome
POST_SEASON_SEEDS = {
    Flag.HOST_WILD_CARD: 4,
    Flag.HOST_DIVISION: 5,
    Flag.HOST_CONFERENCE: 6,
    Flag.MAKE_DIVISION: PLAYOFF_SEEDS,
    Flag.MAKE_CONFERENCE: PLAYOFF_SEEDS,
    Flag.MAKE_SUPER_BOWL: PLAYOFF_SEEDS,
    Flag.WIN_SUPER_BOWL: PLAYOFF_SEEDS,
}


def apply_prerequisites(row: np.ndarray) -> None:
    """Raise each prerequisite to at least its dependent's value, in place."""
    for dependent, prerequisite in FLAG_PREREQUISITES:
        if row[prerequisite] < row[dependent]:
            row[prerequisite] = row[dependent]


def settled_post_season_flags(
    outlooks: Mapping[int, SeedOutlook],
    post_season_games: Iterable[Game]
) -> Dict[int, Set[Flag]]:
    """
    Post-season flags that are already certain for each team.

    A clinched first seed settles the bye and hosting the divisional round;
    a clinched home wild card game settles hosting it. Every scheduled
    post-season game settles both teams reaching its round and the home
    side hosting it, and a recorded result settles the winner reaching the
    next round (or winning the Super Bowl).

    Args:
        outlooks: Seed outlooks by team id
        post_season_games: Post-season games in kickoff order

    Returns:
        Dict of team id -> set of settled post-season flags
    """
    settled: Dict[int, Set[Flag]] = defaultdict(set)
    # Rounds each team has finished; a bye counts as one
    games_played: Dict[int, int] = defaultdict(int)

    for team_id, outlook in outlooks.items():
        if outlook.has_clinched(1):
            settled[team_id].update((Flag.MAKE_DIVISION, Flag.HOST_DIVISION))
            games_played[team_id] = 1
        elif outlook.has_clinched(4) and not outlook.can_reach(1):
            settled[team_id].add(Flag.HOST_WILD_CARD)

    host_flags = dict(HOST_FLAGS)
    advance_flags = dict(ADVANCE_FLAGS)

    for game in post_season_games:
        home, away = game.home_team_id, game.away_team_id
        round = BracketRound(min(
            max(games_played[home], games_played[away]) + BracketRound.WILD_CARD,
            BracketRound.CHAMPIONSHIP
        ))

        if round in advance_flags:
            settled[home].add(advance_flags[round])
            settled[away].add(advance_flags[round])
        if round in host_flags and not game.neutral_site:
            settled[home].add(host_flags[round])

        if game.is_played:
            winner = home if game.home_outcome == Outcome.WIN else away
            if round == BracketRound.CHAMPIONSHIP:
                settled[winner].add(Flag.WIN_SUPER_BOWL)
            else:
                settled[winner].add(advance_flags[BracketRound(round + 1)])

        games_played[home] += 1
        games_played[away] += 1

    return dict(settled)


def margin_of_error(p: np.ndarray, n: int, z: float) -> np.ndarray:
    """Two-sided margin of error of a sampled proportion."""
    return z * np.sqrt(p * (1 - p) / n)


class ProbabilityEstimator:
    """
    Reduces an Accumulator to corrected probabilities.

    Rows of every array are teams in the order of team_ids, columns are Flag
    values.
    """

    def __init__(
        self,
        trials: int,
        team_ids: Sequence[int],
        outlooks: Mapping[int, SeedOutlook],
        confidence_interval_z: float,
        knocked_out: Collection[int] = (),
        settled: Optional[Mapping[int, Collection[Flag]]] = None
    ):
        if trials < 1:
            raise ValueError("Cannot estimate probabilities from zero trials")

        self.trials = trials
        self.team_ids = list(team_ids)
        self.outlooks = outlooks
        self.confidence_interval_z = confidence_interval_z
        self.knocked_out = set(knocked_out)
        self.settled = settled or {}
        self.epsilon = 0.5 / trials

    def correct(self, values: np.ndarray) -> np.ndarray:
        """Return a copy of the values with the consistency correction applied."""
        corrected = np.array(values, dtype=float)

        for index, team_id in enumerate(self.team_ids):
            row = corrected[index]
            outlook = self.outlooks.get(team_id)

            if outlook is not None:
                for seed in range(1, PLAYOFF_SEEDS + 1):
                    flag = Flag.seed(seed)
                    if row[flag] == 0 and outlook.can_reach(seed):
                        row[flag] = self.epsilon
                    elif row[flag] == 1 and not outlook.has_clinched(seed):
                        row[flag] = 1 - self.epsilon

            settled = self.settled.get(team_id, ())
            for flag, seed in POST_SEASON_SEEDS.items():
                if row[flag] == 0:
                    if outlook is not None and outlook.can_reach(seed) and team_id not in self.knocked_out:
                        row[flag] = self.epsilon
                elif row[flag] == 1 and flag not in settled:
                    row[flag] = 1 - self.epsilon

            apply_prerequisites(row)

        return corrected

    def unconditional(self, accumulator: Accumulator) -> np.ndarray:
        raw = accumulator.counts / self.trials
        corrected = self.correct(raw)
        logger.debug("Corrected %d of %d probabilities", int(np.sum(corrected != raw)), raw.size)
        return corrected

    def conditional(self, accumulator: Accumulator, game_index: int, side: int) -> np.ndarray:
        """
        Probabilities given that one side won an imminent game.

        Values within the margin of error of the raw unconditional frequency,
        and every value of an empty branch, fall back to the corrected
        unconditional probability.
        """
        raw = accumulator.counts / self.trials
        fallback = self.correct(raw)

        n = int(accumulator.branch_trials[game_index, side])
        if n == 0:
            return fallback

        observed = accumulator.conditional[game_index, side] / n
        moe = margin_of_error(raw, n, self.confidence_interval_z)
        significant = np.abs(observed - raw) > moe

        return self.correct(np.where(significant, observed, fallback))


def estimate_chances(
    run: SimulationRun,
    config: SimulationConfig,
    outlooks: Optional[Dict[int, SeedOutlook]] = None
) -> ChanceReport:
    """
    Build the output records for a finished run.

    Args:
        run: Result of simulate_season
        config: Configuration the run was made with
        outlooks: Seed outlooks (calculated from the plan if omitted)

    Returns:
        ChanceReport with one TeamChances per team and one TeamChancesByGame
        per (imminent game, team)
    """
    plan = run.plan
    accumulator = run.accumulator

    if outlooks is None:
        outlooks = calculate_seed_outlooks(
            plan.played_states().values(),
            plan.games_per_team,
            season_complete=plan.regular_season_complete
        )

    team_ids = [t.id for t in plan.teams]
    estimator = ProbabilityEstimator(
        trials=accumulator.trials,
        team_ids=team_ids,
        outlooks=outlooks,
        confidence_interval_z=config.confidence_interval_z,
        knocked_out=plan.knocked_out,
        settled=settled_post_season_flags(outlooks, plan.post_season_games)
    )

    unconditional = estimator.unconditional(accumulator)
    teams = [
        TeamChances.from_values(team_id, plan.season, plan.week, unconditional[index])
        for index, team_id in enumerate(team_ids)
    ]

    games: List[TeamChancesByGame] = []
    for game_index, game in enumerate(plan.imminent_games):
        home = estimator.conditional(accumulator, game_index, HOME_SIDE)
        away = estimator.conditional(accumulator, game_index, AWAY_SIDE)
        games.extend(
            TeamChancesByGame.from_values(game.id, team_id, home[index], away[index])
            for index, team_id in enumerate(team_ids)
        )

    return ChanceReport(
        season=plan.season,
        week=plan.week,
        trials=accumulator.trials,
        seed=run.seed,
        teams=teams,
        games=games
    )
