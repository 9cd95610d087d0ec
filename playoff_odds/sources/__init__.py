"""
Season snapshot sources.

Provides a unified interface for loading the simulator's input from
different storage formats.
"""

from pathlib import Path
from typing import Union

from .base import SnapshotSource, SnapshotError
from .json_file import JsonSnapshotSource


def get_source(location: Union[str, Path]) -> SnapshotSource:
    """
    Get the appropriate source for a snapshot location.

    Args:
        location: Path of the snapshot file

    Returns:
        Snapshot source instance

    Raises:
        ValueError: If the format is not supported
    """
    path = Path(location)

    if path.suffix.lower() == ".json":
        return JsonSnapshotSource(path)

    raise ValueError(f"Unsupported snapshot format: {path.suffix or path.name}. Supported: .json")


__all__ = [
    "SnapshotSource",
    "SnapshotError",
    "JsonSnapshotSource",
    "get_source",
]
