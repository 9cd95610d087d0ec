"""
Simulation configuration.

The configuration is built once by the caller (CLI, job runner, tests) and
passed down explicitly; no module reads the environment at import time.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .seasons import get_current_season


DEFAULT_TOTAL_TRIALS = 32768
DEFAULT_CONFIDENCE_Z = 2.576  # ~99% two-sided


class SimulationConfig(BaseModel):
    """Options recognised by the season simulator."""
    total_trials: int = Field(default=DEFAULT_TOTAL_TRIALS, ge=1)
    current_season: int = Field(default_factory=get_current_season, ge=1920)
    confidence_interval_z: float = Field(default=DEFAULT_CONFIDENCE_Z, gt=0)
    super_bowl_host_team_id: Optional[int] = None

    # Execution
    workers: int = Field(default=1, description="joblib n_jobs; -1 uses every core")
    batch_size: int = Field(default=1024, ge=1)
    seed: Optional[int] = Field(default=None, ge=0)

    model_config = {"frozen": True}

    @field_validator("workers")
    @classmethod
    def workers_non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("workers must be non-zero; use -1 for every core")
        return value

    @property
    def epsilon(self) -> float:
        """Smallest non-zero probability a run of this size can report."""
        return 0.5 / self.total_trials

    @classmethod
    def from_env(cls, **overrides) -> "SimulationConfig":
        """
        Build a configuration from environment variables.

        Recognised variables: TOTAL_SIMS, CURRENT_SEASON, CONFIDENCE_INTERVAL,
        SUPER_BOWL_HOST, SIM_WORKERS, SIM_BATCH_SIZE, SIM_SEED. Keyword
        overrides win over the environment.

        Raises:
            pydantic.ValidationError: If a value is malformed or out of range
        """
        env_map = {
            "total_trials": "TOTAL_SIMS",
            "current_season": "CURRENT_SEASON",
            "confidence_interval_z": "CONFIDENCE_INTERVAL",
            "super_bowl_host_team_id": "SUPER_BOWL_HOST",
            "workers": "SIM_WORKERS",
            "batch_size": "SIM_BATCH_SIZE",
            "seed": "SIM_SEED",
        }

        values = {}
        for field_name, env_name in env_map.items():
            raw = os.getenv(env_name)
            if raw is not None and raw.strip() != "":
                values[field_name] = raw.strip()

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
