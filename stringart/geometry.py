# stringart/geometry.py
import math
from dataclasses import dataclass
from typing import List

import numpy as np


@dataclass(frozen=True)
class Peg:
    index: int
    x: float
    y: float


def calculate_peg_positions(pegs_per_side: int, size: float) -> List[Peg]:
    """
    Pegs around a square frame, walked clockwise from the top-left corner:
      - top    (left to right)
      - right  (top to bottom)
      - bottom (right to left)
      - left   (bottom to top)
    Consecutive indices are physical neighbours, and the last peg wraps
    around to peg 0.
    """
    spacing = size / pegs_per_side
    sides = [
        lambda i: (i * spacing, 0.0),
        lambda i: (size, i * spacing),
        lambda i: (size - i * spacing, size),
        lambda i: (0.0, size - i * spacing),
    ]

    pegs = []
    for side in sides:
        for i in range(pegs_per_side):
            x, y = side(i)
            pegs.append(Peg(index=len(pegs), x=float(x), y=float(y)))
    return pegs


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def line_pixels(x0: float, y0: float, x1: float, y1: float) -> np.ndarray:
    """
    Bresenham line between two points, both endpoints included.
    Returns an (n, 2) int array of (x, y) pixel coordinates.
    """
    x0, y0 = _round_half_up(x0), _round_half_up(y0)
    x1, y1 = _round_half_up(x1), _round_half_up(y1)

    # always step from the same end so (a, b) and (b, a) hit the same pixels
    if (x1, y1) < (x0, y0):
        x0, y0, x1, y1 = x1, y1, x0, y0

    dx = abs(x1 - x0)
    dy = abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx - dy

    x, y = x0, y0
    pixels = []
    while True:
        pixels.append((x, y))
        if x == x1 and y == y1:
            break
        e2 = 2 * err
        if e2 > -dy:
            err -= dy
            x += sx
        if e2 < dx:
            err += dx
            y += sy

    return np.array(pixels, dtype=np.int64)


def min_peg_distance(total_pegs: int) -> int:
    # small frames need the short connections, large ones skip ~10% of the perimeter
    if total_pegs <= 20:
        return max(1, int(total_pegs * 0.05))
    if total_pegs <= 40:
        return max(2, int(total_pegs * 0.08))
    return max(int(total_pegs * 0.1), 5)


def peg_distance(a: int, b: int, total_pegs: int) -> int:
    d = abs(a - b)
    return min(d, total_pegs - d)


def segment_length(p: Peg, q: Peg) -> float:
    return math.hypot(q.x - p.x, q.y - p.y)
