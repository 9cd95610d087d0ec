"""
Monte Carlo simulation engine for playoff probability calculations.

Each trial starts from the same baseline, plays every remaining game in
kickoff order (pre-season, then regular season), seeds both conferences,
plays the bracket and raises the outcome flags for every team. Trials run in
independent batches, each with its own random source, and the per-batch
counts are summed at the end.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
from joblib import Parallel, delayed

from ..core.config import SimulationConfig
from ..core.seasons import SeasonPhase, current_week_cutoff
from .bracket import BracketResult, BracketRound, BracketSimulator, pair_key
from .models import (
    AWAY_SIDE, HOME_SIDE, NO_SIDE, PLAYOFF_SEEDS,
    Accumulator, Flag, Game, LeagueStructureError, Outcome,
    SeasonSnapshot, Team, TeamSimState, TrialOutcome,
)
from .random_source import RandomSource
from .ratings import rest_days, update_rating, win_probability
from .tiebreakers import TieBreakResolver


logger = logging.getLogger(__name__)

N_CONFERENCES = 2

HOST_FLAGS = (
    (BracketRound.WILD_CARD, Flag.HOST_WILD_CARD),
    (BracketRound.DIVISIONAL, Flag.HOST_DIVISION),
    (BracketRound.CONFERENCE_CHAMPIONSHIP, Flag.HOST_CONFERENCE),
)

ADVANCE_FLAGS = (
    (BracketRound.DIVISIONAL, Flag.MAKE_DIVISION),
    (BracketRound.CONFERENCE_CHAMPIONSHIP, Flag.MAKE_CONFERENCE),
    (BracketRound.CHAMPIONSHIP, Flag.MAKE_SUPER_BOWL),
)

SIDE_FOR_OUTCOME = {
    Outcome.WIN: HOME_SIDE,
    Outcome.LOSS: AWAY_SIDE,
    Outcome.TIE: NO_SIDE,
}


@dataclass
class SeasonPlan:
    """The validated, pre-sorted input shared read-only by every trial."""

    season: int
    week: int
    teams: Tuple[Team, ...]
    ratings: Dict[int, float]
    pre_season_games: List[Game]
    regular_season_games: List[Game]
    post_season_games: List[Game]
    imminent_games: List[Game]
    super_bowl_host_team_id: Optional[int] = None
    team_index: Dict[int, int] = field(default_factory=dict)
    conferences: Dict[int, List[int]] = field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: SeasonSnapshot, config: SimulationConfig) -> "SeasonPlan":
        """
        Validate a snapshot and prepare it for simulation.

        Raises:
            LeagueStructureError: If the league cannot produce a bracket or a
                game references an unknown team
        """
        teams = tuple(sorted(snapshot.teams, key=lambda t: t.id))
        validate_league(teams)
        team_ids = {t.id for t in teams}

        games = snapshot.season_games()
        for game in games:
            for team_id in (game.home_team_id, game.away_team_id):
                if team_id not in team_ids:
                    raise LeagueStructureError(f"Game {game.id} references unknown team {team_id}")

        if snapshot.season != config.current_season:
            logger.warning(
                "Simulating season %d, configured current season is %d",
                snapshot.season, config.current_season
            )

        host = config.super_bowl_host_team_id
        if host is None:
            host = next((t.id for t in teams if t.is_super_bowl_host), None)

        conferences: Dict[int, List[int]] = defaultdict(list)
        for team in teams:
            conferences[team.conference_id].append(team.id)

        return cls(
            season=snapshot.season,
            week=reported_week(games),
            teams=teams,
            ratings={t.id: snapshot.ratings.rating_for(t.id) for t in teams},
            pre_season_games=[g for g in games if g.phase == SeasonPhase.PRE],
            regular_season_games=[g for g in games if g.phase == SeasonPhase.REGULAR],
            post_season_games=[g for g in games if g.phase == SeasonPhase.POST],
            imminent_games=find_imminent_games(games),
            super_bowl_host_team_id=host,
            team_index={t.id: i for i, t in enumerate(teams)},
            conferences=dict(sorted(conferences.items()))
        )

    @property
    def n_teams(self) -> int:
        return len(self.teams)

    @property
    def regular_season_complete(self) -> bool:
        return all(g.is_played for g in self.regular_season_games)

    @property
    def games_per_team(self) -> Dict[int, int]:
        """Scheduled regular-season games per team."""
        counts = {t.id: 0 for t in self.teams}
        for game in self.regular_season_games:
            counts[game.home_team_id] += 1
            counts[game.away_team_id] += 1
        return counts

    @property
    def knocked_out(self) -> Set[int]:
        """Teams that already lost a recorded post-season game."""
        losers = set()
        for game in self.post_season_games:
            if not game.is_played:
                continue
            if game.home_outcome == Outcome.WIN:
                losers.add(game.away_team_id)
            else:
                losers.add(game.home_team_id)
        return losers

    def fresh_states(self) -> Dict[int, TeamSimState]:
        """Baseline team states for a new trial."""
        return {
            t.id: TeamSimState.from_team(t, rating=self.ratings[t.id])
            for t in self.teams
        }

    def played_states(self) -> Dict[int, TeamSimState]:
        """Team states holding only the recorded regular-season results."""
        states = self.fresh_states()
        for game in self.regular_season_games:
            if game.is_played:
                replay_game(states, game, record=True)
        return states


def validate_league(teams: Sequence[Team]) -> None:
    """
    Check that the league can be seeded.

    Raises:
        LeagueStructureError: Unless there are exactly two conferences, each
            with at least seven teams and at most seven divisions
    """
    conferences: Dict[int, List[Team]] = defaultdict(list)
    for team in teams:
        conferences[team.conference_id].append(team)

    if len(conferences) != N_CONFERENCES:
        raise LeagueStructureError(
            f"League must have exactly {N_CONFERENCES} conferences, found {len(conferences)}"
        )

    for conf_id, conf_teams in conferences.items():
        if len(conf_teams) < PLAYOFF_SEEDS:
            raise LeagueStructureError(
                f"Conference {conf_id} has {len(conf_teams)} teams, need at least {PLAYOFF_SEEDS}"
            )
        n_divisions = len({t.division_id for t in conf_teams})
        if n_divisions > PLAYOFF_SEEDS:
            raise LeagueStructureError(
                f"Conference {conf_id} has {n_divisions} divisions, at most {PLAYOFF_SEEDS} allowed"
            )

    division_conferences: Dict[int, Set[int]] = defaultdict(set)
    for team in teams:
        division_conferences[team.division_id].add(team.conference_id)
    for div_id, conf_ids in division_conferences.items():
        if len(conf_ids) > 1:
            raise LeagueStructureError(f"Division {div_id} spans conferences {sorted(conf_ids)}")


def find_imminent_games(games: Sequence[Game]) -> List[Game]:
    """
    Unplayed games in the current week.

    The week runs until 08:00 on the Wednesday after the earliest unplayed
    game.
    """
    unplayed = sorted((g for g in games if not g.is_played), key=lambda g: (g.start, g.id))
    if not unplayed:
        return []

    cutoff = current_week_cutoff(unplayed[0].start)
    return [g for g in unplayed if g.start < cutoff]


def reported_week(games: Sequence[Game]) -> int:
    """Week of the most recently played game, 0 if nothing has been played."""
    played = [g for g in games if g.is_played]
    if not played:
        return 0
    return max(played, key=lambda g: (g.start, g.id)).week


# ============== Single trial ==============

def replay_game(states: Dict[int, TeamSimState], game: Game, record: bool) -> None:
    """Apply a recorded result without touching ratings."""
    home = states[game.home_team_id]
    away = states[game.away_team_id]

    if record:
        outcome = game.home_outcome
        home.record(away.team_id, outcome)
        away.record(home.team_id, outcome.reverse())

    home.last_game = game.start
    away.last_game = game.start


def play_game(
    states: Dict[int, TeamSimState],
    game: Game,
    random_source: RandomSource,
    record: bool
) -> Outcome:
    """
    Draw the result of an unplayed game and update both teams.

    Returns:
        Outcome for the home side
    """
    home = states[game.home_team_id]
    away = states[game.away_team_id]
    home_rest = rest_days(home.last_game, game.start)
    away_rest = rest_days(away.last_game, game.start)
    home_field = not game.neutral_site

    home_chance = win_probability(
        home.rating, away.rating, home_field, False, game.phase, home_rest, away_rest
    )
    away_chance = win_probability(
        away.rating, home.rating, False, home_field, game.phase, away_rest, home_rest
    )

    r = random_source.random()
    if r < home_chance:
        home_outcome = Outcome.WIN
    elif r < home_chance + away_chance:
        home_outcome = Outcome.LOSS
    else:
        home_outcome = Outcome.TIE

    home_rating, away_rating = home.rating, away.rating
    home.rating = update_rating(
        home_rating, away_rating, home_field, False, game.phase,
        home_rest, away_rest, home_outcome
    )
    away.rating = update_rating(
        away_rating, home_rating, False, home_field, game.phase,
        away_rest, home_rest, home_outcome.reverse()
    )

    if record:
        home.record(away.team_id, home_outcome)
        away.record(home.team_id, home_outcome.reverse())

    home.last_game = game.start
    away.last_game = game.start
    return home_outcome


def play_regular_season(
    plan: SeasonPlan,
    states: Dict[int, TeamSimState],
    random_source: RandomSource,
    outcome: Optional[TrialOutcome] = None
) -> None:
    """
    Play the pre-season and regular season in kickoff order.

    Pre-season games only move ratings; regular-season games also go into the
    standings. Results of imminent games are noted on the trial outcome.
    """
    imminent = {g.id: i for i, g in enumerate(plan.imminent_games)}

    for games, record in ((plan.pre_season_games, False), (plan.regular_season_games, True)):
        for game in games:
            if game.is_played:
                replay_game(states, game, record=record)
                continue

            home_outcome = play_game(states, game, random_source, record=record)
            if outcome is not None and game.id in imminent:
                outcome.set_imminent_side(imminent[game.id], SIDE_FOR_OUTCOME[home_outcome])


def seed_conferences(
    plan: SeasonPlan,
    states: Dict[int, TeamSimState],
    resolver: TieBreakResolver
) -> List[List[TeamSimState]]:
    """Seed both conferences; returns each conference's seeded teams in seed order."""
    scope = list(states.values())
    return [
        resolver.seed_conference([states[tid] for tid in team_ids], scope)
        for team_ids in plan.conferences.values()
    ]


def record_flags(
    plan: SeasonPlan,
    seeded: Sequence[Sequence[TeamSimState]],
    bracket: BracketResult,
    outcome: TrialOutcome
) -> None:
    """Raise the seeding, hosting and advancement flags for one trial."""
    for conference in seeded:
        for team in conference:
            index = plan.team_index[team.team_id]
            outcome.mark_seed(index, team.seed)

            for round, flag in HOST_FLAGS:
                if bracket.hosted(team.team_id, round):
                    outcome.mark(index, flag)
            for round, flag in ADVANCE_FLAGS:
                if bracket.reached(team.team_id, round):
                    outcome.mark(index, flag)

    outcome.mark(plan.team_index[bracket.champion_id], Flag.WIN_SUPER_BOWL)

    # Imminent post-season games are matched to the bracket by pairing
    if plan.post_season_games:
        imminent = {
            pair_key(g.home_team_id, g.away_team_id): (i, g)
            for i, g in enumerate(plan.imminent_games) if g.phase == SeasonPhase.POST
        }
        for game in bracket.games:
            match = imminent.get(pair_key(game.home_team_id, game.away_team_id))
            if match is None or game.replayed:
                continue
            index, scheduled = match
            side = HOME_SIDE if game.winner_id == scheduled.home_team_id else AWAY_SIDE
            outcome.set_imminent_side(index, side)


def simulate_trial(
    plan: SeasonPlan,
    random_source: RandomSource,
    resolver: Optional[TieBreakResolver] = None,
    bracket: Optional[BracketSimulator] = None
) -> TrialOutcome:
    """
    Simulate the rest of one season.

    Args:
        plan: The prepared season
        random_source: Source of every random draw in the trial
        resolver: Tie-break resolver (built on random_source if omitted)
        bracket: Bracket simulator (built on random_source if omitted)

    Returns:
        TrialOutcome with the flags raised in this trial
    """
    resolver = resolver or TieBreakResolver(random_source)
    bracket = bracket or BracketSimulator(
        random_source, plan.post_season_games, plan.super_bowl_host_team_id
    )

    states = plan.fresh_states()
    outcome = TrialOutcome(plan.n_teams, len(plan.imminent_games))

    play_regular_season(plan, states, random_source, outcome)
    seeded = seed_conferences(plan, states, resolver)
    result = bracket.simulate(seeded)
    record_flags(plan, seeded, result, outcome)

    return outcome


def run_batch(plan: SeasonPlan, n_trials: int, batch_index: int, seed: int) -> Accumulator:
    """
    Run a batch of trials into a local accumulator.

    The batch's random source is seeded from (seed, batch_index), so a run's
    results do not depend on how batches are spread over workers.
    """
    random_source = RandomSource([seed, batch_index])
    resolver = TieBreakResolver(random_source)
    bracket = BracketSimulator(random_source, plan.post_season_games, plan.super_bowl_host_team_id)

    accumulator = Accumulator(plan.n_teams, len(plan.imminent_games))
    for _ in range(n_trials):
        accumulator.record(simulate_trial(plan, random_source, resolver, bracket))
    return accumulator


def batch_sizes(total_trials: int, batch_size: int) -> List[int]:
    full, remainder = divmod(total_trials, batch_size)
    sizes = [batch_size] * full
    if remainder:
        sizes.append(remainder)
    return sizes


# ============== Full run ==============

@dataclass
class SimulationRun:
    """Result of simulate_season, ready for the probability estimator."""

    plan: SeasonPlan
    accumulator: Accumulator
    seed: int


def simulate_season(
    snapshot: SeasonSnapshot,
    config: SimulationConfig,
    progress_callback: Optional[Callable[[float], None]] = None
) -> SimulationRun:
    """
    Run Monte Carlo simulation of the remaining season.

    Args:
        snapshot: Teams, games and ratings for the season
        config: Run size, worker count, seed and Super Bowl host
        progress_callback: Optional callback for progress updates (receives percent complete)

    Returns:
        SimulationRun with the merged accumulator

    Raises:
        LeagueStructureError: If the league cannot be simulated
    """
    plan = SeasonPlan.from_snapshot(snapshot, config)

    seed = config.seed
    if seed is None:
        seed = int(np.random.default_rng().integers(2 ** 32))

    sizes = batch_sizes(config.total_trials, config.batch_size)
    logger.info(
        "Simulating %d seasons of %d in %d batches (seed=%d, workers=%d, imminent games=%d)",
        config.total_trials, plan.season, len(sizes), seed, config.workers, len(plan.imminent_games)
    )

    accumulator = Accumulator(plan.n_teams, len(plan.imminent_games))
    tasks = (delayed(run_batch)(plan, size, index, seed) for index, size in enumerate(sizes))

    for batch in Parallel(n_jobs=config.workers, return_as="generator")(tasks):
        accumulator.merge(batch)
        if progress_callback:
            progress_callback(accumulator.trials / config.total_trials * 100)

    logger.info("Finished %d trials", accumulator.trials)
    return SimulationRun(plan=plan, accumulator=accumulator, seed=seed)
