# stringart/line_cache.py
from typing import Callable, Dict, Tuple

import numpy as np

from stringart.geometry import Peg, line_pixels


class LineCache:
    """
    Rasterized lines per unordered peg pair. One instance per run;
    it never holds more than total_pegs**2 / 2 entries.
    """

    def __init__(self, compute: Callable[[float, float, float, float], np.ndarray] = line_pixels):
        self._compute = compute
        self._lines: Dict[Tuple[int, int], np.ndarray] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(a: int, b: int) -> Tuple[int, int]:
        return (a, b) if a < b else (b, a)

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, pair) -> bool:
        return self.key(*pair) in self._lines

    def get_or_compute(self, peg_a: Peg, peg_b: Peg) -> np.ndarray:
        k = self.key(peg_a.index, peg_b.index)
        pixels = self._lines.get(k)
        if pixels is not None:
            self.hits += 1
            return pixels

        self.misses += 1
        pixels = self._compute(peg_a.x, peg_a.y, peg_b.x, peg_b.y)
        self._lines[k] = pixels
        return pixels
