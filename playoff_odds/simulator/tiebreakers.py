"""
Tiebreaker resolution for NFL standings.

Division tiebreaker order:
1. Win percentage
2. Head-to-head record among the tied teams
3. Division record
4. Record against common opponents (minimum of four)
5. Conference record
6. Strength of victory
7. Strength of schedule
8. Coin toss

Conference tiebreaker order:
1. Win percentage
1b. Teams from the same division: only the best-ranked team of each
    division is compared, the winner is seated and the rest start over
2. Head-to-head (two teams), or sweep (three or more: a team that beat
   every other tied team is seated first, one that lost to all of them last)
3. Conference record
4. Record against common opponents (minimum of four)
5. Strength of victory
6. Strength of schedule
7. Coin toss

The league's point-based tiebreakers are replaced by the coin toss.
"""

from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .models import PLAYOFF_SEEDS, LeagueStructureError, TeamSimState
from .random_source import RandomSource


MIN_COMMON_OPPONENTS = 4
KEY_PRECISION = 9  # decimals kept when comparing percentages

Scope = Mapping[int, TeamSimState]
Tiers = List[List[TeamSimState]]
Criterion = Callable[[List[TeamSimState], Scope], Optional[Tiers]]


def split_by_key(group: Sequence[TeamSimState], keys: Mapping[int, float]) -> Optional[Tiers]:
    """
    Split a group into tiers of equal key, best (highest) first.

    Returns None if every team has the same key.
    """
    values = {t.team_id: round(keys[t.team_id], KEY_PRECISION) for t in group}
    distinct = sorted(set(values.values()), reverse=True)
    if len(distinct) <= 1:
        return None
    return [[t for t in group if values[t.team_id] == v] for v in distinct]


def conference_ids(team: TeamSimState, scope: Scope) -> List[int]:
    return [t.team_id for t in scope.values()
            if t.conference_id == team.conference_id and t.team_id != team.team_id]


def division_ids(team: TeamSimState, scope: Scope) -> List[int]:
    return [t.team_id for t in scope.values()
            if t.division_id == team.division_id and t.team_id != team.team_id]


def common_opponents(group: Sequence[TeamSimState]) -> set:
    """Opponents every team in the group has played, excluding the group itself."""
    common = None
    for team in group:
        opponents = set(team.opponents)
        common = opponents if common is None else common & opponents
    return (common or set()) - {t.team_id for t in group}


# ============== Criteria ==============

def by_win_pct(group: List[TeamSimState], scope: Scope) -> Optional[Tiers]:
    return split_by_key(group, {t.team_id: t.win_pct for t in group})


def by_head_to_head(group: List[TeamSimState], scope: Scope) -> Optional[Tiers]:
    """Win percentage in games among the tied teams."""
    ids = [t.team_id for t in group]
    return split_by_key(group, {t.team_id: t.win_pct_against(ids) for t in group})


def by_division_record(group: List[TeamSimState], scope: Scope) -> Optional[Tiers]:
    return split_by_key(group, {t.team_id: t.win_pct_against(division_ids(t, scope)) for t in group})


def by_conference_record(group: List[TeamSimState], scope: Scope) -> Optional[Tiers]:
    return split_by_key(group, {t.team_id: t.win_pct_against(conference_ids(t, scope)) for t in group})


def by_common_opponents(group: List[TeamSimState], scope: Scope) -> Optional[Tiers]:
    common = common_opponents(group)
    if len(common) < MIN_COMMON_OPPONENTS:
        return None
    return split_by_key(group, {t.team_id: t.win_pct_against(common) for t in group})


def by_strength_of_victory(group: List[TeamSimState], scope: Scope) -> Optional[Tiers]:
    return split_by_key(group, {t.team_id: t.strength_of_victory(scope) for t in group})


def by_strength_of_schedule(group: List[TeamSimState], scope: Scope) -> Optional[Tiers]:
    return split_by_key(group, {t.team_id: t.strength_of_schedule(scope) for t in group})


def by_head_to_head_or_sweep(group: List[TeamSimState], scope: Scope) -> Optional[Tiers]:
    """
    Head-to-head for two teams; for more, look for a sweep.

    A team that beat every other tied team is seated first. Otherwise a team
    that lost to every other tied team is seated last.
    """
    if len(group) == 2:
        return by_head_to_head(group, scope)

    for team in group:
        others = {t.team_id for t in group if t.team_id != team.team_id}
        if others <= set(team.beaten):
            return [[team], [t for t in group if t is not team]]

    for team in group:
        others = {t.team_id for t in group if t.team_id != team.team_id}
        if others <= set(team.lost_to):
            return [[t for t in group if t is not team], [team]]

    return None


DIVISION_CRITERIA: List[Criterion] = [
    by_win_pct,
    by_head_to_head,
    by_division_record,
    by_common_opponents,
    by_conference_record,
    by_strength_of_victory,
    by_strength_of_schedule,
]


class TieBreakResolver:
    """
    Orders teams by the league's tiebreaking procedures.

    Each group of tied teams is tested against an ordered list of criteria.
    The first criterion that separates the group splits it into tiers and each
    tier starts over from the top of the list. Groups that no criterion
    separates go to a coin toss drawn from the injected random source.
    """

    def __init__(self, random_source: RandomSource):
        self.random_source = random_source
        self.conference_criteria: List[Criterion] = [
            by_win_pct,
            self._by_division_representative,
            by_head_to_head_or_sweep,
            by_conference_record,
            by_common_opponents,
            by_strength_of_victory,
            by_strength_of_schedule,
        ]

    def order(
        self,
        teams: Iterable[TeamSimState],
        criteria: Sequence[Criterion],
        scope: Scope
    ) -> List[TeamSimState]:
        """
        Order teams with the given criteria.

        Args:
            teams: Teams to order
            criteria: Criteria to apply, most important first
            scope: Every team whose results count toward the criteria

        Returns:
            The teams, best first
        """
        ordered: List[TeamSimState] = []
        pending: List[List[TeamSimState]] = [list(teams)]

        while pending:
            group = pending.pop()
            if len(group) == 1:
                ordered.append(group[0])
                continue

            tiers = None
            for criterion in criteria:
                tiers = criterion(group, scope)
                if tiers:
                    break

            if not tiers:
                # Coin toss
                self.random_source.shuffle(group)
                ordered.extend(group)
                continue

            # Best tier is popped first
            pending.extend(reversed(tiers))

        return ordered

    def order_division(self, teams: Iterable[TeamSimState], scope: Scope) -> List[TeamSimState]:
        """Rank the teams of one division and stamp their division_rank."""
        ordered = self.order(teams, DIVISION_CRITERIA, scope)
        for rank, team in enumerate(ordered):
            team.division_rank = rank
        return ordered

    def resolve(self, teams: Sequence[TeamSimState], scope: Iterable[TeamSimState]) -> List[TeamSimState]:
        """
        Order teams by the standings rules.

        Teams from a single division are ordered by the division rules. Teams
        spanning divisions get their division ranks computed first; division
        leaders then precede everyone else, each set ordered by the
        conference rules.

        Args:
            teams: Teams to order (not empty)
            scope: Every team whose results count toward the criteria

        Returns:
            A permutation of the teams, best first

        Raises:
            ValueError: If no teams are given
        """
        if not teams:
            raise ValueError("Cannot resolve an empty set of teams")

        scope_map = {t.team_id: t for t in scope}
        for team in teams:
            scope_map.setdefault(team.team_id, team)

        divisions: Dict[int, List[TeamSimState]] = defaultdict(list)
        for team in teams:
            divisions[team.division_id].append(team)

        if len(divisions) == 1:
            return self.order_division(teams, scope_map)

        for div_id in sorted(divisions):
            self.order_division(divisions[div_id], scope_map)

        leaders = [t for t in teams if t.division_rank == 0]
        others = [t for t in teams if t.division_rank != 0]

        ordered = self.order(leaders, self.conference_criteria, scope_map)
        if others:
            ordered.extend(self.order(others, self.conference_criteria, scope_map))
        return ordered

    def seed_conference(
        self,
        teams: Sequence[TeamSimState],
        scope: Iterable[TeamSimState]
    ) -> List[TeamSimState]:
        """
        Seed one conference.

        Division leaders take seeds 1 through D (one per division), the best
        remaining teams fill the seeds up to 7 and everyone else is unseeded
        (seed 0).

        Returns:
            The seeded teams in seed order

        Raises:
            ValueError: If no teams are given
            LeagueStructureError: If the conference cannot fill the bracket
        """
        if not teams:
            raise ValueError("Cannot seed an empty conference")

        n_divisions = len({t.division_id for t in teams})
        if len(teams) < PLAYOFF_SEEDS:
            raise LeagueStructureError(
                f"Conference {teams[0].conference_id} has {len(teams)} teams, "
                f"need at least {PLAYOFF_SEEDS}"
            )
        if n_divisions > PLAYOFF_SEEDS:
            raise LeagueStructureError(
                f"Conference {teams[0].conference_id} has {n_divisions} divisions, "
                f"at most {PLAYOFF_SEEDS} allowed"
            )

        ordered = self.resolve(teams, scope)
        for position, team in enumerate(ordered):
            team.seed = position + 1 if position < PLAYOFF_SEEDS else 0

        return ordered[:PLAYOFF_SEEDS]

    # ============== Conference-only criteria ==============

    def _by_division_representative(self, group: List[TeamSimState], scope: Scope) -> Optional[Tiers]:
        """
        Compare only the best-ranked team of each division.

        The winner of that comparison is seated; everyone else is tied again.
        """
        best: Dict[int, TeamSimState] = {}
        for team in group:
            current = best.get(team.division_id)
            if current is None or team.division_rank < current.division_rank:
                best[team.division_id] = team

        if len(best) == len(group):
            return None

        representatives = [t for t in group if best[t.division_id] is t]
        if len(representatives) == 1:
            winner = representatives[0]
        else:
            winner = self.order(representatives, self.conference_criteria, scope)[0]

        return [[winner], [t for t in group if t is not winner]]
