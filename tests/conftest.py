"""Shared test fixtures."""

from __future__ import annotations

import os
import tempfile

import numpy as np
import pytest

# app.py creates its jobs directory at import time
os.environ.setdefault("JOBS_ROOT", tempfile.mkdtemp(prefix="string-art-jobs-"))
os.environ.setdefault("TIMELAPSE_FORMAT", "")


def uniform_bitmap(size: int, level: int) -> np.ndarray:
    return np.full((size, size), level, dtype=np.uint8)


def gradient_bitmap(size: int) -> np.ndarray:
    """Dark on the left, white on the right."""
    row = np.linspace(0, 255, size)
    return np.tile(row, (size, 1)).astype(np.uint8)


def disc_bitmap(size: int) -> np.ndarray:
    """White background with a black disc in the middle."""
    yy, xx = np.mgrid[0:size, 0:size]
    r = size / 4
    img = np.full((size, size), 255, dtype=np.uint8)
    img[(xx - size / 2) ** 2 + (yy - size / 2) ** 2 <= r * r] = 0
    return img


@pytest.fixture
def gray_bitmap() -> np.ndarray:
    return uniform_bitmap(100, 128)


@pytest.fixture
def white_bitmap() -> np.ndarray:
    return uniform_bitmap(100, 255)


@pytest.fixture
def black_bitmap() -> np.ndarray:
    return uniform_bitmap(100, 0)


@pytest.fixture
def gradient() -> np.ndarray:
    return gradient_bitmap(100)


@pytest.fixture
def disc() -> np.ndarray:
    return disc_bitmap(100)


# Pegs for pegs_per_side=4 on a 100px frame; no two consecutive pegs share a
# side, so every chord crosses the interior.
TEN_LINE_PATH = [0, 6, 13, 2, 10, 1, 7, 14, 5, 11, 3]


def path_bitmap(path, pegs_per_side=4, size=100) -> np.ndarray:
    """White image that is black only along the chords of path."""
    from stringart.geometry import calculate_peg_positions, line_pixels

    pegs = calculate_peg_positions(pegs_per_side, size)
    img = np.full((size, size), 255, dtype=np.uint8)
    for a, b in zip(path, path[1:]):
        for x, y in line_pixels(pegs[a].x, pegs[a].y, pegs[b].x, pegs[b].y):
            if 0 <= x < size and 0 <= y < size:
                img[y, x] = 0
    return img


@pytest.fixture
def ten_line_bitmap() -> np.ndarray:
    return path_bitmap(TEN_LINE_PATH)
