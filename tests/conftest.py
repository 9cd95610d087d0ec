"""
Shared fixtures for the simulator tests.

The toy league has two conferences of two four-team divisions. Every team
plays each conference rival once over seven weeks, and within a conference
the lower team id always wins.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest

from playoff_odds.core.seasons import SeasonPhase
from playoff_odds.simulator.models import Game, RatingSnapshot, SeasonSnapshot, Team, TeamSimState


SEASON = 2023
FIRST_KICKOFF = datetime(2023, 9, 10, 13, 0)  # a Sunday

# conference id -> division id -> team ids
LEAGUE = {
    1: {10: [0, 1, 2, 3], 11: [4, 5, 6, 7]},
    2: {20: [8, 9, 10, 11], 21: [12, 13, 14, 15]},
}


class StubRandom:
    """Deterministic stand-in for RandomSource."""

    def __init__(self, value: float = 0.0, reverse: bool = False):
        self.value = value
        self.reverse = reverse
        self.shuffles = 0

    def random(self) -> float:
        return self.value

    def shuffle(self, items: List) -> None:
        self.shuffles += 1
        if self.reverse:
            items.reverse()


def make_state(team_id: int, division_id: int = 1, conference_id: int = 1,
               rating: float = 1500.0) -> TeamSimState:
    return TeamSimState(team_id=team_id, division_id=division_id,
                        conference_id=conference_id, rating=rating)


def play(winner: TeamSimState, loser: TeamSimState) -> None:
    """Record a decided game on both teams."""
    winner.record_win(loser.team_id)
    loser.record_loss(winner.team_id)


def tie(team_a: TeamSimState, team_b: TeamSimState) -> None:
    team_a.record_tie(team_b.team_id)
    team_b.record_tie(team_a.team_id)


def round_robin(team_ids: List[int]) -> List[List[tuple]]:
    """Circle-method schedule: one list of pairings per week."""
    teams = list(team_ids)
    n = len(teams)
    weeks = []
    for _ in range(n - 1):
        weeks.append([(teams[i], teams[n - 1 - i]) for i in range(n // 2)])
        teams = [teams[0], teams[-1]] + teams[1:-1]
    return weeks


def build_teams(host_id: Optional[int] = None) -> List[Team]:
    teams = []
    for conf_id, divisions in LEAGUE.items():
        for div_id, team_ids in divisions.items():
            for team_id in team_ids:
                teams.append(Team(id=team_id, division_id=div_id, conference_id=conf_id,
                                  is_super_bowl_host=team_id == host_id))
    return sorted(teams, key=lambda t: t.id)


def build_games(played_weeks: int = 7) -> List[Game]:
    games = []
    game_id = 1
    for divisions in LEAGUE.values():
        conf_ids = sorted(t for ids in divisions.values() for t in ids)
        for week, pairings in enumerate(round_robin(conf_ids), start=1):
            start = FIRST_KICKOFF + timedelta(weeks=week - 1)
            for home_id, away_id in pairings:
                played = week <= played_weeks
                home_wins = home_id < away_id
                games.append(Game(
                    id=game_id,
                    season=SEASON,
                    week=week,
                    start=start,
                    home_team_id=home_id,
                    away_team_id=away_id,
                    home_score=(24 if home_wins else 17) if played else None,
                    away_score=(17 if home_wins else 24) if played else None,
                    phase=SeasonPhase.REGULAR
                ))
                game_id += 1
    return games


def build_snapshot(played_weeks: int = 7, host_id: Optional[int] = None,
                   ratings: Optional[Dict[int, float]] = None) -> SeasonSnapshot:
    return SeasonSnapshot(
        season=SEASON,
        teams=tuple(build_teams(host_id)),
        games=tuple(build_games(played_weeks)),
        ratings=RatingSnapshot(ratings=ratings or {})
    )


def snapshot_document(snapshot: SeasonSnapshot, include_ratings: bool = True) -> dict:
    """JSON document for a snapshot, as read by JsonSnapshotSource."""
    document = {
        "season": snapshot.season,
        "teams": [
            {"id": t.id, "division_id": t.division_id, "conference_id": t.conference_id,
             "is_super_bowl_host": t.is_super_bowl_host}
            for t in snapshot.teams
        ],
        "games": [
            {"id": g.id, "season": g.season, "week": g.week, "start": g.start.isoformat(),
             "home_team_id": g.home_team_id, "away_team_id": g.away_team_id,
             "home_score": g.home_score, "away_score": g.away_score,
             "phase": g.phase.value, "neutral_site": g.neutral_site}
            for g in snapshot.games
        ],
    }
    if include_ratings:
        document["ratings"] = {str(k): v for k, v in snapshot.ratings.ratings.items()}
    return document


@pytest.fixture
def stub_random():
    """Random source that always draws 0.0 and never reorders a coin toss."""
    return StubRandom()


@pytest.fixture
def completed_snapshot():
    """Toy league with every regular-season game played."""
    return build_snapshot(played_weeks=7)


@pytest.fixture
def partial_snapshot():
    """Toy league with the last two weeks still to play."""
    return build_snapshot(played_weeks=5)
