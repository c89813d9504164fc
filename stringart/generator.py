# stringart/generator.py
import time
from dataclasses import asdict, dataclass
from typing import Callable, List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from stringart.darkness import DarknessField, darkening_amount
from stringart.geometry import (
    Peg,
    calculate_peg_positions,
    min_peg_distance,
    peg_distance,
    segment_length,
)
from stringart.line_cache import LineCache

START_PEG = 0
PROGRESS_EVERY = 10
YIELD_EVERY = 100


class GenerationCancelled(Exception):
    pass


class StringArtConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    pegs_per_side: int = Field(..., ge=2)
    iterations: int = Field(..., ge=1)
    line_opacity: float = Field(..., gt=0.0, le=1.0)
    frame_size: float = Field(..., gt=0.0)


# (pegs_per_side, iterations, line_opacity) picked for a 800px frame
QUALITY_PRESETS = {
    "minimal": (4, 200, 0.3),
    "low": (10, 500, 0.28),
    "medium": (25, 1500, 0.25),
    "high": (50, 3000, 0.23),
}


def preset_config(name: str, frame_size: float = 800) -> StringArtConfig:
    if name not in QUALITY_PRESETS:
        raise ValueError(f"Unknown preset {name!r}, expected one of {sorted(QUALITY_PRESETS)}")
    pegs_per_side, iterations, line_opacity = QUALITY_PRESETS[name]
    return StringArtConfig(pegs_per_side=pegs_per_side, iterations=iterations,
                           line_opacity=line_opacity, frame_size=frame_size)


@dataclass(frozen=True)
class ProgressEvent:
    completed_iterations: int
    total_iterations: int
    current_peg: int
    done: bool = False


@dataclass
class StringArtResult:
    connections: List[int]
    pegs: List[Peg]
    frame_size: float

    @property
    def line_count(self) -> int:
        return max(len(self.connections) - 1, 0)

    def segments(self):
        for a, b in zip(self.connections, self.connections[1:]):
            yield self.pegs[a], self.pegs[b]

    def thread_length(self, scale: float = 1.0) -> float:
        """Total thread length; scale converts frame pixels to physical units."""
        return scale * sum(segment_length(p, q) for p, q in self.segments())

    def to_dict(self) -> dict:
        return {
            "connections": list(self.connections),
            "pegs": [asdict(p) for p in self.pegs],
            "frameSize": self.frame_size,
        }


ProgressCallback = Callable[[ProgressEvent], None]


def generate_string_art(bitmap: np.ndarray,
                        config: StringArtConfig,
                        invert: bool = False,
                        progress_callback: Optional[ProgressCallback] = None,
                        should_cancel: Optional[Callable[[], bool]] = None,
                        yield_control: Callable[[], None] = lambda: time.sleep(0)) -> StringArtResult:
    """
    Greedy thread routing. Starting at peg 0, each step scores every peg far
    enough from the current one by the darkness left along the connecting
    line, draws the best line (subtracting from the field) and moves there.
    Stops after config.iterations lines, or earlier once no line has any
    darkness left to cover.

    progress_callback gets an event every PROGRESS_EVERY lines (sent once the
    next line has been picked) and exactly one final event with done=True.
    Every YIELD_EVERY lines yield_control() is called and should_cancel()
    consulted; a true answer raises GenerationCancelled.
    """
    pegs = calculate_peg_positions(config.pegs_per_side, config.frame_size)
    total_pegs = len(pegs)
    min_distance = min_peg_distance(total_pegs)
    amount = darkening_amount(config.line_opacity)

    darkness = DarknessField.from_bitmap(bitmap, invert=invert)
    cache = LineCache()

    current = START_PEG
    connections = [current]
    # a stride event is only sent once another line follows it, so an early
    # stop never reports the same count twice
    pending = None

    for _ in range(config.iterations):
        best_score = -1
        best_peg = -1
        best_pixels = None

        for candidate in range(total_pegs):
            if candidate == current:
                continue
            if peg_distance(candidate, current, total_pegs) < min_distance:
                continue

            pixels = cache.get_or_compute(pegs[current], pegs[candidate])
            score = darkness.sum_along(pixels)
            # strict: the lowest index wins ties
            if score > best_score:
                best_score = score
                best_peg = candidate
                best_pixels = pixels

        if best_peg == -1 or best_score <= 0:
            break

        if pending is not None:
            progress_callback(pending)
            pending = None

        darkness.subtract_along(best_pixels, amount)
        current = best_peg
        connections.append(current)

        completed = len(connections) - 1
        if progress_callback and completed % PROGRESS_EVERY == 0 and completed < config.iterations:
            pending = ProgressEvent(completed, config.iterations, current)

        if completed % YIELD_EVERY == 0:
            yield_control()
            if should_cancel is not None and should_cancel():
                raise GenerationCancelled(f"Cancelled after {completed} lines")

    if progress_callback:
        progress_callback(ProgressEvent(len(connections) - 1, config.iterations, current, done=True))

    return StringArtResult(connections=connections, pegs=pegs, frame_size=config.frame_size)
