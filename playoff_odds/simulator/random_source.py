"""
Seedable random source shared by the game draws and the tie-break coin toss.
"""

from typing import List, Optional, Sequence, Union

import numpy as np


SeedLike = Optional[Union[int, Sequence[int]]]

BUFFER_SIZE = 4096


class RandomSource:
    """
    Thin wrapper around a numpy Generator.

    Uniform draws are pulled from a pre-generated buffer; a given seed always
    yields the same stream of draws and shuffles.
    """

    def __init__(self, seed: SeedLike = None):
        self._rng = np.random.default_rng(seed)
        self._buffer = np.empty(0)
        self._position = 0

    def random(self) -> float:
        """Uniform draw in [0, 1)."""
        if self._position >= len(self._buffer):
            self._buffer = self._rng.random(BUFFER_SIZE)
            self._position = 0

        value = self._buffer[self._position]
        self._position += 1
        return float(value)

    def shuffle(self, items: List) -> None:
        """Shuffle a list in place (the coin toss)."""
        if len(items) < 2:
            return
        order = self._rng.permutation(len(items))
        items[:] = [items[i] for i in order]
