"""
Tests for the playoff bracket.
"""

from datetime import datetime
from unittest.mock import patch

import pytest

from playoff_odds.core.seasons import SeasonPhase
from playoff_odds.simulator.bracket import BracketRound, BracketSimulator
from playoff_odds.simulator.models import Game
from playoff_odds.simulator.ratings import BYE_REST_DAYS, DEFAULT_REST_DAYS, win_probability
from conftest import StubRandom, make_state


def seeded_conference(first_id: int, conference_id: int):
    """Seven teams seeded in id order."""
    teams = [make_state(first_id + i, division_id=conference_id * 10, conference_id=conference_id)
             for i in range(7)]
    for seed, team in enumerate(teams, start=1):
        team.seed = seed
    return teams


@pytest.fixture
def conferences():
    """Two seeded conferences: ids 1-7 and 11-17, seed = id within the conference."""
    return [seeded_conference(1, 1), seeded_conference(11, 2)]


class TestBracketFavorites:
    """Tests with every simulated game won by the home side."""

    def test_top_seeds_advance(self, conferences):
        """Test the home side winning everything sends both top seeds to the Super Bowl."""
        result = BracketSimulator(StubRandom(0.0)).simulate(conferences)

        assert result.champion_id == 1
        assert len(result.games) == 13
        assert result.hosts[BracketRound.WILD_CARD] == {2, 3, 4, 12, 13, 14}
        assert result.hosts[BracketRound.DIVISIONAL] == {1, 2, 11, 12}
        assert result.hosts[BracketRound.CONFERENCE_CHAMPIONSHIP] == {1, 11}
        assert result.hosts[BracketRound.CHAMPIONSHIP] == set()

    def test_furthest_round(self, conferences):
        """Test each team's furthest round."""
        result = BracketSimulator(StubRandom(0.0)).simulate(conferences)

        assert result.furthest_round[1] == BracketRound.CHAMPIONSHIP
        assert result.furthest_round[11] == BracketRound.CHAMPIONSHIP
        assert result.furthest_round[2] == BracketRound.CONFERENCE_CHAMPIONSHIP
        assert result.furthest_round[3] == BracketRound.DIVISIONAL
        assert result.furthest_round[7] == BracketRound.WILD_CARD
        assert result.reached(1, BracketRound.DIVISIONAL)
        assert not result.reached(99, BracketRound.WILD_CARD)

    def test_divisional_pairings(self, conferences):
        """Test seed 1 hosts the lowest remaining seed."""
        result = BracketSimulator(StubRandom(0.0)).simulate(conferences)

        divisional = [(g.home_team_id, g.away_team_id) for g in result.games
                      if g.round == BracketRound.DIVISIONAL]
        assert (1, 4) in divisional
        assert (2, 3) in divisional

    def test_top_seed_is_rested_after_bye(self, conferences):
        """Test only the top seed's divisional game is played with bye rest."""
        with patch("playoff_odds.simulator.bracket.win_probability", wraps=win_probability) as chance:
            BracketSimulator(StubRandom(0.0)).simulate(conferences)

        # conference one plays three wild card games, then seed 1 v 4 and seed 2 v 3
        calls = chance.call_args_list
        assert len(calls) == 13
        home_rest = [c.args[5] for c in calls]
        assert home_rest[:3] == [DEFAULT_REST_DAYS] * 3
        assert home_rest[3] == BYE_REST_DAYS == 14
        assert home_rest[4] == DEFAULT_REST_DAYS
        assert all(c.args[6] == DEFAULT_REST_DAYS for c in calls)
        assert home_rest.count(BYE_REST_DAYS) == 2

    def test_ratings_move(self, conferences):
        """Test simulated games update both teams' ratings."""
        BracketSimulator(StubRandom(0.0)).simulate(conferences)

        assert conferences[0][0].rating > 1500
        assert conferences[0][6].rating < 1500


class TestBracketUnderdogs:
    """Tests with every simulated game won by the away side."""

    def test_reseeding(self, conferences):
        """Test winners are re-sorted by seed before each round."""
        result = BracketSimulator(StubRandom(0.999999)).simulate(conferences)

        divisional = {(g.home_team_id, g.away_team_id) for g in result.games
                      if g.round == BracketRound.DIVISIONAL and g.home_team_id < 10}
        assert divisional == {(1, 7), (5, 6)}

        conference = [(g.home_team_id, g.away_team_id) for g in result.games
                      if g.round == BracketRound.CONFERENCE_CHAMPIONSHIP and g.home_team_id < 10]
        assert conference == [(6, 7)]

        assert result.hosts[BracketRound.DIVISIONAL] == {1, 5, 11, 15}
        assert result.hosts[BracketRound.CONFERENCE_CHAMPIONSHIP] == {6, 16}
        assert result.champion_id == 17


class TestSuperBowl:
    """Tests for the championship game."""

    def test_neutral_site(self, conferences):
        """Test the Super Bowl is neutral without a host team in it."""
        result = BracketSimulator(StubRandom(0.0), super_bowl_host_team_id=5).simulate(conferences)

        final = result.games[-1]
        assert final.round == BracketRound.CHAMPIONSHIP
        assert final.neutral_site
        assert result.hosts[BracketRound.CHAMPIONSHIP] == set()

    def test_host_gets_home_field(self, conferences):
        """Test the host team is at home when it reaches the Super Bowl."""
        result = BracketSimulator(StubRandom(0.0), super_bowl_host_team_id=11).simulate(conferences)

        final = result.games[-1]
        assert (final.home_team_id, final.away_team_id) == (11, 1)
        assert not final.neutral_site
        assert result.hosts[BracketRound.CHAMPIONSHIP] == {11}
        assert result.champion_id == 11


class TestRecordedResults:
    """Tests for replaying recorded post-season results."""

    def test_recorded_upset_is_replayed(self, conferences):
        """Test a recorded result overrides the draw and leaves ratings alone."""
        upset = Game(id=500, season=2023, week=19, start=datetime(2024, 1, 13, 16, 30),
                     home_team_id=2, away_team_id=7, home_score=10, away_score=20,
                     phase=SeasonPhase.POST)

        result = BracketSimulator(StubRandom(0.0), recorded_games=[upset]).simulate(conferences)

        wild_card = next(g for g in result.games if g.home_team_id == 2)
        assert wild_card.winner_id == 7
        assert wild_card.replayed
        assert result.furthest_round[2] == BracketRound.WILD_CARD
        assert result.reached(7, BracketRound.DIVISIONAL)
        assert conferences[0][1].rating == 1500

        # Seed 7 is now the lowest remaining seed and visits seed 1
        divisional = [(g.home_team_id, g.away_team_id) for g in result.games
                      if g.round == BracketRound.DIVISIONAL and g.home_team_id < 10]
        assert (1, 7) in divisional
        assert (3, 4) in divisional

    def test_unplayed_recorded_game_is_simulated(self, conferences):
        """Test a scheduled but unplayed game is drawn as usual."""
        scheduled = Game(id=500, season=2023, week=19, start=datetime(2024, 1, 13, 16, 30),
                         home_team_id=2, away_team_id=7, phase=SeasonPhase.POST)

        result = BracketSimulator(StubRandom(0.0), recorded_games=[scheduled]).simulate(conferences)

        wild_card = next(g for g in result.games if g.home_team_id == 2)
        assert wild_card.winner_id == 2
        assert not wild_card.replayed


class TestBracketErrors:
    """Tests for invalid brackets."""

    def test_needs_two_conferences(self, conferences):
        """Test that one conference raises ValueError."""
        with pytest.raises(ValueError):
            BracketSimulator(StubRandom()).simulate(conferences[:1])

    def test_needs_seven_seeds(self, conferences):
        """Test that a short conference raises ValueError."""
        with pytest.raises(ValueError):
            BracketSimulator(StubRandom()).simulate([conferences[0][:6], conferences[1]])
