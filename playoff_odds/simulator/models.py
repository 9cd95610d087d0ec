"""
Data models for the season simulator.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Collection, Dict, List, Mapping, Optional, Tuple

import numpy as np

from ..core.seasons import SeasonPhase


PLAYOFF_SEEDS = 7
DEFAULT_RATING = 1500.0


class Outcome(str, Enum):
    """Result of a game from one side's point of view."""
    WIN = "win"
    LOSS = "loss"
    TIE = "tie"

    def reverse(self) -> "Outcome":
        """The same result from the opponent's point of view."""
        if self is Outcome.WIN:
            return Outcome.LOSS
        if self is Outcome.LOSS:
            return Outcome.WIN
        return Outcome.TIE


@dataclass(frozen=True)
class Team:
    """A franchise and its place in the league structure."""

    id: int
    division_id: int
    conference_id: int
    is_super_bowl_host: bool = False


@dataclass(frozen=True)
class Game:
    """A scheduled game; scores are None until it has been played."""

    id: int
    season: int
    week: int
    start: datetime
    home_team_id: int
    away_team_id: int
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    phase: SeasonPhase = SeasonPhase.REGULAR
    neutral_site: bool = False

    @property
    def is_played(self) -> bool:
        return self.home_score is not None and self.away_score is not None

    @property
    def home_outcome(self) -> Optional[Outcome]:
        """Outcome for the home side, or None if the game is unplayed."""
        if not self.is_played:
            return None
        if self.home_score > self.away_score:
            return Outcome.WIN
        if self.home_score < self.away_score:
            return Outcome.LOSS
        return Outcome.TIE


@dataclass(frozen=True)
class RatingSnapshot:
    """Each team's latest rating as of a cutoff time."""

    ratings: Dict[int, float] = field(default_factory=dict)
    as_of: Optional[datetime] = None

    def rating_for(self, team_id: int) -> float:
        """Rating of a team, or the league average if it has no history."""
        return self.ratings.get(team_id, DEFAULT_RATING)


@dataclass(frozen=True)
class SeasonSnapshot:
    """Read-only input for one simulation run."""

    season: int
    teams: Tuple[Team, ...]
    games: Tuple[Game, ...]
    ratings: RatingSnapshot = field(default_factory=RatingSnapshot)

    def season_games(self) -> List[Game]:
        """Games of the snapshot's season, in kickoff order."""
        return sorted(
            (g for g in self.games if g.season == self.season),
            key=lambda g: (g.start, g.id)
        )


@dataclass
class TeamSimState:
    """
    A team's state within a single simulated season.

    The opponent lists are only mutated through record_win, record_loss and
    record_tie; everything else is a read-only query.
    """

    team_id: int
    division_id: int
    conference_id: int
    rating: float = DEFAULT_RATING
    last_game: Optional[datetime] = None
    seed: int = 0
    division_rank: int = 0
    _beaten: List[int] = field(default_factory=list, repr=False)
    _lost_to: List[int] = field(default_factory=list, repr=False)
    _tied_with: List[int] = field(default_factory=list, repr=False)

    @classmethod
    def from_team(cls, team: Team, rating: float = DEFAULT_RATING) -> "TeamSimState":
        return cls(
            team_id=team.id,
            division_id=team.division_id,
            conference_id=team.conference_id,
            rating=rating
        )

    def copy(self) -> "TeamSimState":
        """Create a copy of this state for a new trial."""
        clone = copy.copy(self)
        clone._beaten = list(self._beaten)
        clone._lost_to = list(self._lost_to)
        clone._tied_with = list(self._tied_with)
        return clone

    # --- mutation ---

    def record_win(self, opponent_id: int) -> None:
        self._beaten.append(opponent_id)

    def record_loss(self, opponent_id: int) -> None:
        self._lost_to.append(opponent_id)

    def record_tie(self, opponent_id: int) -> None:
        self._tied_with.append(opponent_id)

    def record(self, opponent_id: int, outcome: Outcome) -> None:
        """Record a result given as an Outcome."""
        if outcome is Outcome.WIN:
            self.record_win(opponent_id)
        elif outcome is Outcome.LOSS:
            self.record_loss(opponent_id)
        else:
            self.record_tie(opponent_id)

    # --- queries ---

    @property
    def beaten(self) -> Tuple[int, ...]:
        return tuple(self._beaten)

    @property
    def lost_to(self) -> Tuple[int, ...]:
        return tuple(self._lost_to)

    @property
    def tied_with(self) -> Tuple[int, ...]:
        return tuple(self._tied_with)

    @property
    def opponents(self) -> Tuple[int, ...]:
        """Every opponent played, one entry per game."""
        return tuple(self._beaten + self._lost_to + self._tied_with)

    @property
    def wins(self) -> int:
        return len(self._beaten)

    @property
    def losses(self) -> int:
        return len(self._lost_to)

    @property
    def ties(self) -> int:
        return len(self._tied_with)

    @property
    def games_played(self) -> int:
        return self.wins + self.losses + self.ties

    @property
    def wins_with_ties(self) -> float:
        return self.wins + 0.5 * self.ties

    @property
    def losses_with_ties(self) -> float:
        return self.losses + 0.5 * self.ties

    @property
    def record_str(self) -> str:
        return f"{self.wins}-{self.losses}-{self.ties}"

    @property
    def win_pct(self) -> float:
        total = self.games_played
        if total == 0:
            return 0.0
        return self.wins_with_ties / total

    def win_pct_against(self, opponent_ids: Collection[int]) -> float:
        """Win percentage counting only games against the given opponents."""
        ids = set(opponent_ids)
        wins = sum(1 for t in self._beaten if t in ids)
        losses = sum(1 for t in self._lost_to if t in ids)
        ties = sum(1 for t in self._tied_with if t in ids)

        total = wins + losses + ties
        if total == 0:
            return 0.0
        return (wins + 0.5 * ties) / total

    def strength_of_victory(self, teams: Mapping[int, "TeamSimState"]) -> float:
        """Average win percentage of beaten opponents; tied opponents count half."""
        if self.wins_with_ties == 0:
            return 0.0

        total = sum(_pct(teams, t) for t in self._beaten)
        total += sum(0.5 * _pct(teams, t) for t in self._tied_with)
        return total / self.wins_with_ties

    def strength_of_schedule(self, teams: Mapping[int, "TeamSimState"]) -> float:
        """Average win percentage of every opponent played."""
        if self.games_played == 0:
            return 0.0
        return sum(_pct(teams, t) for t in self.opponents) / self.games_played

    def magic_number(self, rival: "TeamSimState", games_per_season: int) -> float:
        """
        Elimination number of this team against a rival.

        Any combination of this team's losses and the rival's wins adding up
        to the magic number means this team can no longer finish ahead of the
        rival. A value <= 0 means that has already happened. The extra game
        covers a tie-breaker this team might still win.
        """
        return games_per_season + 1 - rival.wins_with_ties - self.losses_with_ties


def _pct(teams: Mapping[int, TeamSimState], team_id: int) -> float:
    team = teams.get(team_id)
    return team.win_pct if team is not None else 0.0


class Flag(IntEnum):
    """Per-trial outcomes tracked for every team, in output order."""
    SEED_1 = 0
    SEED_2 = 1
    SEED_3 = 2
    SEED_4 = 3
    SEED_5 = 4
    SEED_6 = 5
    SEED_7 = 6
    HOST_WILD_CARD = 7
    HOST_DIVISION = 8
    HOST_CONFERENCE = 9
    MAKE_DIVISION = 10
    MAKE_CONFERENCE = 11
    MAKE_SUPER_BOWL = 12
    WIN_SUPER_BOWL = 13

    @classmethod
    def seed(cls, seed: int) -> "Flag":
        """Flag for finishing with this seed or better."""
        return cls(seed - 1)


N_FLAGS = len(Flag)

# Which side of an imminent game won in a trial
HOME_SIDE = 0
AWAY_SIDE = 1
NO_SIDE = -1


@dataclass(frozen=True)
class SeedOutlook:
    """What a team can still reach given the games already played."""

    team_id: int
    eliminated: Tuple[bool, ...]  # index k - 1: can no longer finish seed <= k
    clinched: Tuple[bool, ...]    # index k - 1: guaranteed to finish seed <= k

    def can_reach(self, seed: int) -> bool:
        return not self.eliminated[seed - 1]

    def has_clinched(self, seed: int) -> bool:
        return self.clinched[seed - 1]


class TrialOutcome:
    """Flags raised in one simulated season."""

    def __init__(self, n_teams: int, n_imminent: int):
        self.flags = np.zeros((n_teams, N_FLAGS), dtype=bool)
        self.imminent_sides = np.full(n_imminent, NO_SIDE, dtype=np.int8)

    def mark(self, team_index: int, flag: Flag) -> None:
        self.flags[team_index, flag] = True

    def mark_seed(self, team_index: int, seed: int) -> None:
        """Raise every seed threshold a team's final seed satisfies."""
        self.flags[team_index, Flag.seed(seed):Flag.SEED_7 + 1] = True

    def set_imminent_side(self, imminent_index: int, side: int) -> None:
        self.imminent_sides[imminent_index] = side


class Accumulator:
    """
    Outcome counts over many trials.

    counts[team, flag] counts trials in which the flag was raised.
    conditional[game, side, team, flag] counts the same restricted to trials
    where the given side won the given imminent game; branch_trials[game, side]
    is the number of such trials.
    """

    def __init__(self, n_teams: int, n_imminent: int):
        self.trials = 0
        self.counts = np.zeros((n_teams, N_FLAGS), dtype=np.int64)
        self.conditional = np.zeros((n_imminent, 2, n_teams, N_FLAGS), dtype=np.int64)
        self.branch_trials = np.zeros((n_imminent, 2), dtype=np.int64)

    def record(self, outcome: TrialOutcome) -> None:
        """Add one trial's flags."""
        self.trials += 1
        self.counts += outcome.flags

        for game_index, side in enumerate(outcome.imminent_sides):
            if side == NO_SIDE:
                continue
            self.conditional[game_index, side] += outcome.flags
            self.branch_trials[game_index, side] += 1

    def merge(self, other: "Accumulator") -> "Accumulator":
        """Add another accumulator's counts into this one."""
        if self.counts.shape != other.counts.shape or self.conditional.shape != other.conditional.shape:
            raise ValueError("Cannot merge accumulators of different shapes")

        self.trials += other.trials
        self.counts += other.counts
        self.conditional += other.conditional
        self.branch_trials += other.branch_trials
        return self

    def to_bytes(self) -> bytes:
        """Raw contents, for comparing runs."""
        return b"".join([
            np.int64(self.trials).tobytes(),
            self.counts.tobytes(),
            self.conditional.tobytes(),
            self.branch_trials.tobytes(),
        ])


class LeagueStructureError(Exception):
    """Raised when the league cannot be seeded (bad conference/division setup)."""
    pass
