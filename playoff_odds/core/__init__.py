"""Core configuration and season utilities."""

from .config import SimulationConfig
from .seasons import SeasonPhase, get_current_season

__all__ = ["SimulationConfig", "SeasonPhase", "get_current_season"]
