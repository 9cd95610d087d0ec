"""
Pydantic schemas for the simulator's output records.

Records serialise with camelCase field names (``model_dump(by_alias=True)``).
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .simulator.models import Flag


# Record field for each outcome flag
FLAG_FIELDS: Dict[Flag, str] = {
    Flag.SEED_1: "seed1",
    Flag.SEED_2: "seed2",
    Flag.SEED_3: "seed3",
    Flag.SEED_4: "seed4",
    Flag.SEED_5: "seed5",
    Flag.SEED_6: "seed6",
    Flag.SEED_7: "seed7",
    Flag.HOST_WILD_CARD: "host_wild_card",
    Flag.HOST_DIVISION: "host_division",
    Flag.HOST_CONFERENCE: "host_conference",
    Flag.MAKE_DIVISION: "make_division",
    Flag.MAKE_CONFERENCE: "make_conference",
    Flag.MAKE_SUPER_BOWL: "make_super_bowl",
    Flag.WIN_SUPER_BOWL: "win_super_bowl",
}


class ChanceRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============== Team Chances ==============

class TeamChances(ChanceRecord):
    """A team's season outcome probabilities as of one week."""
    team_id: int
    season: int
    week: int
    seed1: float = Field(..., ge=0, le=1)
    seed2: float = Field(..., ge=0, le=1)
    seed3: float = Field(..., ge=0, le=1)
    seed4: float = Field(..., ge=0, le=1)
    seed5: float = Field(..., ge=0, le=1)
    seed6: float = Field(..., ge=0, le=1)
    seed7: float = Field(..., ge=0, le=1)
    host_wild_card: float = Field(..., ge=0, le=1)
    host_division: float = Field(..., ge=0, le=1)
    host_conference: float = Field(..., ge=0, le=1)
    make_division: float = Field(..., ge=0, le=1)
    make_conference: float = Field(..., ge=0, le=1)
    make_super_bowl: float = Field(..., ge=0, le=1)
    win_super_bowl: float = Field(..., ge=0, le=1)

    @classmethod
    def from_values(cls, team_id: int, season: int, week: int, values) -> "TeamChances":
        """Build from a sequence of probabilities indexed by Flag."""
        fields = {name: float(values[flag]) for flag, name in FLAG_FIELDS.items()}
        return cls(team_id=team_id, season=season, week=week, **fields)


# ============== Team Chances By Game ==============

class TeamChancesByGame(ChanceRecord):
    """A team's probabilities if either side wins one imminent game."""
    game_id: int
    team_id: int

    home_seed1: float = Field(..., ge=0, le=1)
    home_seed2: float = Field(..., ge=0, le=1)
    home_seed3: float = Field(..., ge=0, le=1)
    home_seed4: float = Field(..., ge=0, le=1)
    home_seed5: float = Field(..., ge=0, le=1)
    home_seed6: float = Field(..., ge=0, le=1)
    home_seed7: float = Field(..., ge=0, le=1)
    home_host_wild_card: float = Field(..., ge=0, le=1)
    home_host_division: float = Field(..., ge=0, le=1)
    home_host_conference: float = Field(..., ge=0, le=1)
    home_make_division: float = Field(..., ge=0, le=1)
    home_make_conference: float = Field(..., ge=0, le=1)
    home_make_super_bowl: float = Field(..., ge=0, le=1)
    home_win_super_bowl: float = Field(..., ge=0, le=1)

    away_seed1: float = Field(..., ge=0, le=1)
    away_seed2: float = Field(..., ge=0, le=1)
    away_seed3: float = Field(..., ge=0, le=1)
    away_seed4: float = Field(..., ge=0, le=1)
    away_seed5: float = Field(..., ge=0, le=1)
    away_seed6: float = Field(..., ge=0, le=1)
    away_seed7: float = Field(..., ge=0, le=1)
    away_host_wild_card: float = Field(..., ge=0, le=1)
    away_host_division: float = Field(..., ge=0, le=1)
    away_host_conference: float = Field(..., ge=0, le=1)
    away_make_division: float = Field(..., ge=0, le=1)
    away_make_conference: float = Field(..., ge=0, le=1)
    away_make_super_bowl: float = Field(..., ge=0, le=1)
    away_win_super_bowl: float = Field(..., ge=0, le=1)

    @classmethod
    def from_values(cls, game_id: int, team_id: int, home_values, away_values) -> "TeamChancesByGame":
        """Build from the home-win and away-win probabilities, each indexed by Flag."""
        fields = {}
        for flag, name in FLAG_FIELDS.items():
            fields[f"home_{name}"] = float(home_values[flag])
            fields[f"away_{name}"] = float(away_values[flag])
        return cls(game_id=game_id, team_id=team_id, **fields)


# ============== Report ==============

class ChanceReport(ChanceRecord):
    """Everything produced by one simulation run."""
    season: int
    week: int
    trials: int = Field(..., ge=1)
    seed: Optional[int] = None
    teams: List[TeamChances] = Field(default_factory=list)
    games: List[TeamChancesByGame] = Field(default_factory=list)

    def for_team(self, team_id: int) -> Optional[TeamChances]:
        return next((t for t in self.teams if t.team_id == team_id), None)

    def for_game(self, game_id: int, team_id: int) -> Optional[TeamChancesByGame]:
        return next((g for g in self.games if g.game_id == game_id and g.team_id == team_id), None)
