"""
Abstract base class for season snapshot sources.

A source reads teams, games and ratings from wherever they are kept and
hands the simulator one read-only SeasonSnapshot.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..simulator.models import SeasonSnapshot


class SnapshotSource(ABC):
    """Abstract base class for season snapshot sources."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return a short description of where the snapshot comes from."""
        pass

    @abstractmethod
    def load_snapshot(self, season: Optional[int] = None) -> SeasonSnapshot:
        """
        Load everything needed to simulate a season.

        Args:
            season: The season year (defaults to the source's own season)

        Returns:
            SeasonSnapshot with teams, games and ratings

        Raises:
            SnapshotError: If the snapshot cannot be read or is malformed
        """
        pass


class SnapshotError(Exception):
    """Raised when a season snapshot cannot be loaded."""
    pass
