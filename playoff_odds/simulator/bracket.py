"""
Single-elimination playoff bracket.

Wild card: 2 v 7, 3 v 6, 4 v 5 (seed 1 has a bye).
Divisional: seed 1 hosts the lowest remaining seed, the other two winners
meet at the better seed.
Conference championship: the two survivors, at the better seed.
Super Bowl: neutral site unless one side is the designated host team.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set

from ..core.seasons import SeasonPhase
from .models import PLAYOFF_SEEDS, Game, Outcome, TeamSimState
from .random_source import RandomSource
from .ratings import BYE_REST_DAYS, DEFAULT_REST_DAYS, update_rating, win_probability


class BracketRound(IntEnum):
    """Stages of the post-season, in order."""
    REGULAR_SEASON_COMPLETE = 0
    WILD_CARD = 1
    DIVISIONAL = 2
    CONFERENCE_CHAMPIONSHIP = 3
    CHAMPIONSHIP = 4


WILD_CARD_PAIRINGS = ((2, 7), (3, 6), (4, 5))


@dataclass
class BracketGame:
    """One post-season game as played in a trial."""

    round: BracketRound
    home_team_id: int
    away_team_id: int
    winner_id: int
    neutral_site: bool = False
    replayed: bool = False  # taken from a recorded result


@dataclass
class BracketResult:
    """Everything a trial needs to know about the post-season."""

    champion_id: int
    games: List[BracketGame] = field(default_factory=list)
    hosts: Dict[BracketRound, Set[int]] = field(default_factory=dict)
    furthest_round: Dict[int, BracketRound] = field(default_factory=dict)

    def reached(self, team_id: int, round: BracketRound) -> bool:
        return self.furthest_round.get(team_id, BracketRound.REGULAR_SEASON_COMPLETE) >= round

    def hosted(self, team_id: int, round: BracketRound) -> bool:
        return team_id in self.hosts.get(round, set())


def pair_key(team_a: int, team_b: int) -> FrozenSet[int]:
    return frozenset((team_a, team_b))


class BracketSimulator:
    """
    Plays the post-season for one trial.

    Recorded results for a pairing are replayed as-is; every other game is
    drawn from the rating model and updates both teams' ratings.
    """

    def __init__(
        self,
        random_source: RandomSource,
        recorded_games: Iterable[Game] = (),
        super_bowl_host_team_id: Optional[int] = None
    ):
        self.random_source = random_source
        self.super_bowl_host_team_id = super_bowl_host_team_id
        self.recorded: Dict[FrozenSet[int], Game] = {
            pair_key(g.home_team_id, g.away_team_id): g
            for g in recorded_games if g.is_played
        }

    def simulate(self, conferences: Sequence[Sequence[TeamSimState]]) -> BracketResult:
        """
        Play the bracket.

        Args:
            conferences: Two lists of seeded teams, each in seed order (1..7)

        Returns:
            BracketResult with the champion, games, hosts and furthest rounds
        """
        if len(conferences) != 2:
            raise ValueError(f"Bracket needs exactly two conferences, got {len(conferences)}")

        result = BracketResult(champion_id=0)
        for round in BracketRound:
            if round != BracketRound.REGULAR_SEASON_COMPLETE:
                result.hosts[round] = set()

        champions = [self._play_conference(seeded, result) for seeded in conferences]

        home, away = champions
        if self.super_bowl_host_team_id == away.team_id:
            home, away = away, home
        neutral = self.super_bowl_host_team_id != home.team_id
        if not neutral:
            result.hosts[BracketRound.CHAMPIONSHIP].add(home.team_id)

        final = self._play(BracketRound.CHAMPIONSHIP, home, away, result, neutral_site=neutral)
        result.champion_id = final.winner_id
        return result

    def _play_conference(self, seeded: Sequence[TeamSimState], result: BracketResult) -> TeamSimState:
        if len(seeded) != PLAYOFF_SEEDS:
            raise ValueError(f"Conference bracket needs {PLAYOFF_SEEDS} seeds, got {len(seeded)}")

        by_seed = {position + 1: team for position, team in enumerate(seeded)}
        seed_of = {team.team_id: seed for seed, team in by_seed.items()}

        for team in seeded:
            result.furthest_round[team.team_id] = BracketRound.WILD_CARD
        result.furthest_round[by_seed[1].team_id] = BracketRound.DIVISIONAL

        # Wild card
        survivors = [by_seed[1]]
        for high, low in WILD_CARD_PAIRINGS:
            result.hosts[BracketRound.WILD_CARD].add(by_seed[high].team_id)
            game = self._play(BracketRound.WILD_CARD, by_seed[high], by_seed[low], result)
            survivors.append(by_seed[high] if game.winner_id == by_seed[high].team_id else by_seed[low])

        # Divisional, reseeded
        survivors.sort(key=lambda t: seed_of[t.team_id])
        pairings = [(survivors[0], survivors[3]), (survivors[1], survivors[2])]
        finalists = []
        for home, away in pairings:
            result.hosts[BracketRound.DIVISIONAL].add(home.team_id)
            rest = BYE_REST_DAYS if seed_of[home.team_id] == 1 else DEFAULT_REST_DAYS
            game = self._play(BracketRound.DIVISIONAL, home, away, result, home_rest=rest)
            finalists.append(home if game.winner_id == home.team_id else away)

        # Conference championship
        finalists.sort(key=lambda t: seed_of[t.team_id])
        home, away = finalists
        result.hosts[BracketRound.CONFERENCE_CHAMPIONSHIP].add(home.team_id)
        game = self._play(BracketRound.CONFERENCE_CHAMPIONSHIP, home, away, result)
        return home if game.winner_id == home.team_id else away

    def _play(
        self,
        round: BracketRound,
        home: TeamSimState,
        away: TeamSimState,
        result: BracketResult,
        neutral_site: bool = False,
        home_rest: float = DEFAULT_REST_DAYS
    ) -> BracketGame:
        recorded = self.recorded.get(pair_key(home.team_id, away.team_id))

        if recorded is not None:
            if recorded.home_outcome == Outcome.WIN:
                winner_id = recorded.home_team_id
            else:
                winner_id = recorded.away_team_id
            game = BracketGame(
                round=round,
                home_team_id=recorded.home_team_id,
                away_team_id=recorded.away_team_id,
                winner_id=winner_id,
                neutral_site=recorded.neutral_site,
                replayed=True
            )
        else:
            home_field = not neutral_site
            chance = win_probability(
                home.rating, away.rating, home_field, False, SeasonPhase.POST,
                home_rest, DEFAULT_REST_DAYS
            )
            home_outcome = Outcome.WIN if self.random_source.random() < chance else Outcome.LOSS

            home_rating, away_rating = home.rating, away.rating
            home.rating = update_rating(
                home_rating, away_rating, home_field, False, SeasonPhase.POST,
                home_rest, DEFAULT_REST_DAYS, home_outcome
            )
            away.rating = update_rating(
                away_rating, home_rating, False, home_field, SeasonPhase.POST,
                DEFAULT_REST_DAYS, home_rest, home_outcome.reverse()
            )

            winner_id = home.team_id if home_outcome == Outcome.WIN else away.team_id
            game = BracketGame(
                round=round,
                home_team_id=home.team_id,
                away_team_id=away.team_id,
                winner_id=winner_id,
                neutral_site=neutral_site
            )

        next_round = BracketRound(round + 1) if round < BracketRound.CHAMPIONSHIP else round
        result.furthest_round[winner_id] = next_round
        result.games.append(game)
        return game
