"""
Tests for the season simulation engine.
"""

from dataclasses import replace
from datetime import timedelta

import numpy as np
import pytest

from playoff_odds.core.config import SimulationConfig
from playoff_odds.core.seasons import SeasonPhase
from playoff_odds.simulator.engine import (
    SeasonPlan,
    batch_sizes,
    find_imminent_games,
    play_regular_season,
    reported_week,
    simulate_season,
    simulate_trial,
    validate_league,
)
from playoff_odds.simulator.models import (
    AWAY_SIDE, HOME_SIDE, Flag, Game, LeagueStructureError, Team, TrialOutcome,
)
from playoff_odds.simulator.probability import estimate_chances
from playoff_odds.simulator.random_source import RandomSource
from conftest import FIRST_KICKOFF, SEASON, StubRandom, build_snapshot, build_teams


WILD_CARD_KICKOFF = FIRST_KICKOFF + timedelta(weeks=8)


def config(**overrides):
    values = dict(current_season=SEASON, total_trials=64, batch_size=16, seed=1234)
    values.update(overrides)
    return SimulationConfig(**values)


def post_season_game(game_id, home_id, away_id, home_score=None, away_score=None):
    return Game(
        id=game_id, season=SEASON, week=19, start=WILD_CARD_KICKOFF,
        home_team_id=home_id, away_team_id=away_id,
        home_score=home_score, away_score=away_score, phase=SeasonPhase.POST
    )


def with_games(snapshot, *games):
    return replace(snapshot, games=snapshot.games + games)


class TestValidateLeague:
    """Tests for league structure validation."""

    def test_valid_league(self):
        """Test the toy league passes."""
        validate_league(build_teams())

    def test_one_conference(self):
        """Test a league with a single conference is rejected."""
        teams = [replace(t, conference_id=1) for t in build_teams()]
        with pytest.raises(LeagueStructureError, match="exactly 2 conferences"):
            validate_league(teams)

    def test_small_conference(self):
        """Test a conference with fewer than seven teams is rejected."""
        teams = [t for t in build_teams() if t.id not in (6, 7)]
        with pytest.raises(LeagueStructureError, match="at least 7"):
            validate_league(teams)

    def test_too_many_divisions(self):
        """Test more divisions than playoff seeds is rejected."""
        teams = [replace(t, division_id=100 + t.id) if t.conference_id == 1 else t
                 for t in build_teams()]
        with pytest.raises(LeagueStructureError, match="divisions"):
            validate_league(teams)

    def test_division_across_conferences(self):
        """Test a division with teams in both conferences is rejected."""
        teams = build_teams() + [Team(id=99, division_id=10, conference_id=2)]
        with pytest.raises(LeagueStructureError, match="spans conferences"):
            validate_league(teams)

    def test_unknown_team_in_game(self, completed_snapshot):
        """Test a game against a team missing from the snapshot is rejected."""
        snapshot = with_games(completed_snapshot, post_season_game(900, 0, 42))
        with pytest.raises(LeagueStructureError, match="unknown team 42"):
            SeasonPlan.from_snapshot(snapshot, config())


class TestSeasonPlan:
    """Tests for SeasonPlan preparation."""

    def test_imminent_games(self, partial_snapshot):
        """Test only next week's unplayed games are imminent."""
        plan = SeasonPlan.from_snapshot(partial_snapshot, config())

        assert len(plan.imminent_games) == 8
        assert {g.week for g in plan.imminent_games} == {6}
        assert plan.week == 5
        assert not plan.regular_season_complete

    def test_imminent_window_ends_wednesday_morning(self, partial_snapshot):
        """Test a Tuesday game is imminent and a Wednesday-noon game is not."""
        base = FIRST_KICKOFF + timedelta(weeks=5)
        tuesday = Game(id=901, season=SEASON, week=6, start=base + timedelta(days=2),
                       home_team_id=0, away_team_id=8)
        wednesday = Game(id=902, season=SEASON, week=6, start=base + timedelta(days=3, hours=-1),
                         home_team_id=1, away_team_id=9)

        imminent = find_imminent_games(list(partial_snapshot.games) + [tuesday, wednesday])

        assert tuesday in imminent
        assert wednesday not in imminent

    def test_nothing_left_to_play(self, completed_snapshot):
        """Test a finished season has no imminent games."""
        plan = SeasonPlan.from_snapshot(completed_snapshot, config())

        assert plan.imminent_games == []
        assert plan.week == 7
        assert plan.regular_season_complete
        assert all(n == 7 for n in plan.games_per_team.values())

    def test_reported_week_before_kickoff(self, partial_snapshot):
        """Test the week is 0 before any game is played."""
        unplayed = [replace(g, home_score=None, away_score=None) for g in partial_snapshot.games]
        assert reported_week(unplayed) == 0

    def test_host_from_team_flag(self, completed_snapshot):
        """Test the Super Bowl host comes from the team flag unless configured."""
        snapshot = replace(completed_snapshot, teams=tuple(build_teams(host_id=9)))

        assert SeasonPlan.from_snapshot(snapshot, config()).super_bowl_host_team_id == 9
        assert SeasonPlan.from_snapshot(
            snapshot, config(super_bowl_host_team_id=3)
        ).super_bowl_host_team_id == 3

    def test_other_seasons_ignored(self, completed_snapshot):
        """Test games from other seasons are not simulated."""
        old = Game(id=903, season=SEASON - 1, week=3, start=FIRST_KICKOFF - timedelta(days=300),
                   home_team_id=0, away_team_id=1)
        plan = SeasonPlan.from_snapshot(with_games(completed_snapshot, old), config())
        assert plan.imminent_games == []

    def test_knocked_out(self, completed_snapshot):
        """Test the loser of a recorded post-season game is knocked out."""
        snapshot = with_games(completed_snapshot, post_season_game(900, 4, 6, 10, 13))
        plan = SeasonPlan.from_snapshot(snapshot, config())

        assert plan.knocked_out == {4}
        assert plan.week == 19


class TestPlayRegularSeason:
    """Tests for playing out the regular season."""

    def test_every_game_counted(self, partial_snapshot):
        """Test every team ends with its full schedule in the standings."""
        plan = SeasonPlan.from_snapshot(partial_snapshot, config())
        states = plan.fresh_states()
        outcome = TrialOutcome(plan.n_teams, len(plan.imminent_games))

        play_regular_season(plan, states, StubRandom(0.0), outcome)

        assert all(s.games_played == 7 for s in states.values())
        assert list(outcome.imminent_sides) == [HOME_SIDE] * 8

    def test_played_results_kept(self, partial_snapshot):
        """Test recorded results are replayed and leave ratings alone."""
        plan = SeasonPlan.from_snapshot(partial_snapshot, config())
        states = plan.played_states()

        assert states[0].record_str == "5-0-0"
        assert all(s.rating == 1500 for s in states.values())

    def test_pre_season_moves_ratings_only(self, completed_snapshot):
        """Test a simulated pre-season game changes ratings but not records."""
        pre = Game(id=904, season=SEASON, week=0, start=FIRST_KICKOFF - timedelta(days=10),
                   home_team_id=0, away_team_id=8, phase=SeasonPhase.PRE)
        plan = SeasonPlan.from_snapshot(with_games(completed_snapshot, pre), config())
        states = plan.fresh_states()

        play_regular_season(plan, states, StubRandom(0.0))

        assert states[0].games_played == 7
        assert 8 not in states[0].opponents
        assert states[0].rating > 1500
        assert states[8].rating < 1500


class TestSimulateTrial:
    """Tests for a single trial."""

    def test_flags_are_consistent(self, partial_snapshot):
        """Test one trial seeds seven teams per conference and crowns one champion."""
        plan = SeasonPlan.from_snapshot(partial_snapshot, config())

        outcome = simulate_trial(plan, RandomSource(7))

        flags = outcome.flags
        assert flags[:, Flag.SEED_7].sum() == 14
        assert flags[:, Flag.SEED_1].sum() == 2
        assert flags[:, Flag.HOST_WILD_CARD].sum() == 6
        assert flags[:, Flag.MAKE_DIVISION].sum() == 8
        assert flags[:, Flag.MAKE_CONFERENCE].sum() == 4
        assert flags[:, Flag.MAKE_SUPER_BOWL].sum() == 2
        assert flags[:, Flag.WIN_SUPER_BOWL].sum() == 1

    def test_exact_seeds_when_season_is_over(self, completed_snapshot):
        """Test a finished season is seeded the same way in every trial."""
        plan = SeasonPlan.from_snapshot(completed_snapshot, config())

        outcome = simulate_trial(plan, RandomSource(3))

        seed_1 = {plan.teams[i].id for i in np.flatnonzero(outcome.flags[:, Flag.SEED_1])}
        unseeded = {plan.teams[i].id for i in np.flatnonzero(~outcome.flags[:, Flag.SEED_7])}
        assert seed_1 == {0, 8}
        assert unseeded == {7, 15}


class TestSimulateSeason:
    """Tests for the full Monte Carlo run."""

    def test_batch_sizes(self):
        """Test trials split into full batches plus a remainder."""
        assert batch_sizes(100, 32) == [32, 32, 32, 4]
        assert batch_sizes(64, 16) == [16] * 4

    def test_reproducible(self, partial_snapshot):
        """Test the same seed gives the same counts regardless of worker count."""
        first = simulate_season(partial_snapshot, config(workers=1))
        second = simulate_season(partial_snapshot, config(workers=2))

        assert first.accumulator.trials == 64
        assert first.accumulator.to_bytes() == second.accumulator.to_bytes()

    def test_seed_generated_when_missing(self, completed_snapshot):
        """Test a run without a seed reports the one it used."""
        run = simulate_season(completed_snapshot, config(seed=None, total_trials=4, batch_size=4))
        assert run.seed is not None

    def test_progress_callback(self, completed_snapshot):
        """Test progress is reported after every batch and ends at 100%."""
        progress = []
        simulate_season(completed_snapshot, config(), progress_callback=progress.append)

        assert progress == [25.0, 50.0, 75.0, 100.0]

    def test_imminent_branches_cover_trials(self, partial_snapshot):
        """Test every trial lands in a branch of an imminent game unless it was tied."""
        run = simulate_season(partial_snapshot, config())

        branches = run.accumulator.branch_trials
        assert branches.shape == (8, 2)
        assert np.all(branches.sum(axis=1) <= 64)
        assert branches.sum() > 0


class TestEndToEnd:
    """Tests from snapshot to reported chances."""

    def test_completed_season(self, completed_snapshot):
        """Test a finished regular season reports exact seeds."""
        cfg = config()
        report = estimate_chances(simulate_season(completed_snapshot, cfg), cfg)

        assert report.trials == 64
        assert report.seed == 1234
        assert report.games == []

        for conference in ([0, 1, 2, 3, 4, 5, 6, 7], [8, 9, 10, 11, 12, 13, 14, 15]):
            chances = [report.for_team(tid) for tid in conference]
            assert sum(1 for c in chances if c.seed1 == 1.0) == 1
            assert sum(1 for c in chances if c.seed7 == 1.0) == 7

        assert report.for_team(0).seed1 == 1.0
        assert report.for_team(4).seed2 == 1.0
        assert report.for_team(4).seed1 == 0.0
        assert report.for_team(4).host_wild_card == 1.0
        assert report.for_team(0).make_division == 1.0
        assert report.for_team(0).host_division == 1.0

        out = report.for_team(7)
        assert out.seed7 == 0.0
        assert out.win_super_bowl == 0.0

    def test_chances_are_ordered(self, partial_snapshot):
        """Test every record satisfies the prerequisite chain."""
        cfg = config()
        report = estimate_chances(simulate_season(partial_snapshot, cfg), cfg)

        assert len(report.games) == 8 * 16
        for team in report.teams:
            seeds = [team.seed1, team.seed2, team.seed3, team.seed4, team.seed5, team.seed6, team.seed7]
            assert seeds == sorted(seeds)
            assert team.win_super_bowl <= team.make_super_bowl <= team.make_conference
            assert team.make_conference <= team.make_division <= team.seed7
            assert team.host_wild_card <= team.seed4

    def test_recorded_post_season(self, completed_snapshot):
        """Test a recorded wild-card upset is honoured and its loser gets no epsilon."""
        upset = post_season_game(900, 4, 6, 10, 13)
        scheduled = post_season_game(901, 1, 5)
        cfg = config()

        run = simulate_season(with_games(completed_snapshot, upset, scheduled), cfg)
        report = estimate_chances(run, cfg)

        assert [g.id for g in run.plan.imminent_games] == [901]
        assert report.for_team(4).make_division == 0.0
        assert report.for_team(6).make_division == 1.0

        branches = run.accumulator.branch_trials[0]
        assert branches.sum() == 64
        home_index = run.plan.team_index[1]
        assert run.accumulator.conditional[0, HOME_SIDE, home_index, Flag.MAKE_DIVISION] == branches[HOME_SIDE]
        assert run.accumulator.conditional[0, AWAY_SIDE, home_index, Flag.MAKE_DIVISION] == 0

        by_game = report.for_game(901, 1)
        assert by_game is not None
        assert by_game.away_make_division <= by_game.home_make_division

    def test_dominant_team_is_not_certain(self):
        """Test a team that wins every trial is not reported certain before anything is settled."""
        cfg = config(total_trials=256, batch_size=64, seed=1)
        snapshot = build_snapshot(played_weeks=5, ratings={0: 3500.0})

        report = estimate_chances(simulate_season(snapshot, cfg), cfg)

        team = report.for_team(0)
        for chance in (team.seed1, team.make_division, team.make_conference,
                       team.make_super_bowl, team.win_super_bowl):
            assert 0.99 < chance < 1.0
