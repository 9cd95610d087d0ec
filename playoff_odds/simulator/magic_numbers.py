"""
Clinching and elimination from magic numbers.

For every team and seed threshold k this works out whether the team has
already been eliminated from finishing with seed k or better, or has already
clinched it, using only the games played so far. The estimator uses this to
tell a sampled 0% or 100% apart from a real one.

A team "cannot catch" a rival when its magic number against the rival is <= 0.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional

from .models import PLAYOFF_SEEDS, SeedOutlook, TeamSimState
from .random_source import RandomSource
from .tiebreakers import TieBreakResolver


def calculate_seed_outlooks(
    teams: Iterable[TeamSimState],
    games_per_team: Mapping[int, int],
    season_complete: bool = False,
    resolver: Optional[TieBreakResolver] = None
) -> Dict[int, SeedOutlook]:
    """
    Calculate each team's seed outlook.

    While games remain, a team's best possible seed is bounded by the teams it
    can no longer catch and its worst possible seed by the teams that can
    still catch it:

    - If it can still win its division, its best seed is 1 plus the number of
      other divisions holding a team it cannot catch. Otherwise its best seed
      is D + 1, or one more than the number of teams it cannot catch if that
      is larger (D = divisions in the conference).
    - If no division rival can catch it, its worst seed is 1 plus the number
      of other divisions holding a team that can catch it. Otherwise its
      worst seed is 1 plus the number of teams that can catch it plus the
      number of other divisions where nobody can.

    Once the regular season is complete the outlook is read straight from the
    final seeding.

    Args:
        teams: Team states holding only the played regular-season results
        games_per_team: Scheduled regular-season games per team id
        season_complete: Whether every regular-season game has been played
        resolver: Resolver used to seed a complete season (defaults to one
            with a fixed random source)

    Returns:
        Dict mapping team_id -> SeedOutlook
    """
    states = [t.copy() for t in teams]

    conferences: Dict[int, List[TeamSimState]] = defaultdict(list)
    for team in states:
        conferences[team.conference_id].append(team)

    if season_complete:
        resolver = resolver or TieBreakResolver(RandomSource(0))
        return _outlooks_from_final_seeding(conferences, states, resolver)

    outlooks = {}
    for conf_teams in conferences.values():
        n_divisions = len({t.division_id for t in conf_teams})

        for team in conf_teams:
            rivals = [r for r in conf_teams if r.team_id != team.team_id]
            own_games = games_per_team.get(team.team_id, team.games_played)

            ahead = [r for r in rivals if team.magic_number(r, own_games) <= 0]
            catchers = [
                r for r in rivals
                if r.magic_number(team, games_per_team.get(r.team_id, r.games_played)) > 0
            ]

            can_win_division = not any(r.division_id == team.division_id for r in ahead)
            division_clinched = not any(r.division_id == team.division_id for r in catchers)

            other_divisions = {r.division_id for r in rivals} - {team.division_id}
            divisions_ahead = {r.division_id for r in ahead} - {team.division_id}
            divisions_catching = {r.division_id for r in catchers} - {team.division_id}

            if can_win_division:
                best_seed = 1 + len(divisions_ahead)
            else:
                best_seed = max(n_divisions + 1, len(ahead) + 1)

            if division_clinched:
                worst_seed = 1 + len(divisions_catching)
            else:
                worst_seed = 1 + len(catchers) + len(other_divisions - divisions_catching)

            outlooks[team.team_id] = SeedOutlook(
                team_id=team.team_id,
                eliminated=tuple(best_seed > k for k in range(1, PLAYOFF_SEEDS + 1)),
                clinched=tuple(worst_seed <= k for k in range(1, PLAYOFF_SEEDS + 1))
            )

    return outlooks


def _outlooks_from_final_seeding(
    conferences: Mapping[int, List[TeamSimState]],
    scope: List[TeamSimState],
    resolver: TieBreakResolver
) -> Dict[int, SeedOutlook]:
    outlooks = {}
    for conf_id in sorted(conferences):
        resolver.seed_conference(conferences[conf_id], scope)

        for team in conferences[conf_id]:
            seed = team.seed or PLAYOFF_SEEDS + 1
            outlooks[team.team_id] = SeedOutlook(
                team_id=team.team_id,
                eliminated=tuple(seed > k for k in range(1, PLAYOFF_SEEDS + 1)),
                clinched=tuple(seed <= k for k in range(1, PLAYOFF_SEEDS + 1))
            )

    return outlooks
