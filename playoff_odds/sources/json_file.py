"""
Snapshot source backed by a JSON document.

Expected layout (snake_case or camelCase keys)::

    {
        "season": 2023,
        "teams": [{"id": 1, "division_id": 10, "conference_id": 100, "is_super_bowl_host": false}],
        "games": [{"id": 1, "season": 2023, "week": 1, "start": "2023-09-07T20:20:00",
                   "home_team_id": 1, "away_team_id": 2, "home_score": 21, "away_score": 20,
                   "phase": "regular", "neutral_site": false}],
        "ratings": {"1": 1523.4},
        "ratings_as_of": "2023-09-08T00:00:00"
    }

"ratings" is optional; without it ratings are replayed from the completed
games in the document.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..core.seasons import SeasonPhase
from ..simulator.models import Game, RatingSnapshot, SeasonSnapshot, Team
from ..simulator.ratings import replay_ratings
from .base import SnapshotError, SnapshotSource


logger = logging.getLogger(__name__)


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TeamRecord(_Record):
    """A team entry in the snapshot document."""
    id: int
    division_id: int
    conference_id: int
    is_super_bowl_host: bool = False


class GameRecord(_Record):
    """A game entry in the snapshot document."""
    id: int
    season: int
    week: int = Field(..., ge=0)
    start: datetime
    home_team_id: int
    away_team_id: int
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    phase: SeasonPhase = SeasonPhase.REGULAR
    neutral_site: bool = False


class SnapshotDocument(_Record):
    """The whole snapshot document."""
    season: int
    teams: List[TeamRecord]
    games: List[GameRecord] = Field(default_factory=list)
    ratings: Optional[Dict[int, float]] = None
    ratings_as_of: Optional[datetime] = None


class JsonSnapshotSource(SnapshotSource):
    """Reads a season snapshot from a JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def source_name(self) -> str:
        return f"json:{self.path}"

    def read_document(self) -> SnapshotDocument:
        """
        Read and validate the JSON document.

        Raises:
            SnapshotError: If the file is missing, not JSON or malformed
        """
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise SnapshotError(f"Cannot read snapshot {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise SnapshotError(f"Snapshot {self.path} is not valid JSON: {e}") from e

        try:
            return SnapshotDocument.model_validate(data)
        except ValidationError as e:
            raise SnapshotError(f"Snapshot {self.path} is malformed: {e}") from e

    def load_snapshot(self, season: Optional[int] = None) -> SeasonSnapshot:
        document = self.read_document()
        season = season if season is not None else document.season

        teams = tuple(
            Team(
                id=t.id,
                division_id=t.division_id,
                conference_id=t.conference_id,
                is_super_bowl_host=t.is_super_bowl_host
            )
            for t in document.teams
        )
        games = tuple(
            Game(
                id=g.id,
                season=g.season,
                week=g.week,
                start=g.start,
                home_team_id=g.home_team_id,
                away_team_id=g.away_team_id,
                home_score=g.home_score,
                away_score=g.away_score,
                phase=g.phase,
                neutral_site=g.neutral_site
            )
            for g in document.games
        )

        if document.ratings is not None:
            ratings = RatingSnapshot(ratings=dict(document.ratings), as_of=document.ratings_as_of)
        else:
            ratings = replay_ratings(games, as_of=document.ratings_as_of)
            logger.info("Replayed ratings for %d teams from game history", len(ratings.ratings))

        logger.info(
            "Loaded %s: season %d, %d teams, %d games",
            self.source_name, season, len(teams), len(games)
        )
        return SeasonSnapshot(season=season, teams=teams, games=games, ratings=ratings)
