"""
NFL playoff odds.

Monte Carlo simulation of the rest of an NFL season from a ratings snapshot,
reporting seeding, hosting, advancement and championship probabilities.
"""

from .core.config import SimulationConfig
from .simulator.engine import simulate_season
from .simulator.probability import estimate_chances

__version__ = "0.1.0"

__all__ = ["SimulationConfig", "simulate_season", "estimate_chances", "__version__"]
