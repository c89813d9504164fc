# stringart/estimates.py
import math
from dataclasses import dataclass


@dataclass(frozen=True)
class TimeEstimates:
    digital_min_s: int
    digital_max_s: int
    beginner_min: int
    average_min: int
    experienced_min: int
    thread_min_m: int
    thread_max_m: int


# seconds per connection when threading by hand
BEGINNER_SECS_PER_LINE = 9
AVERAGE_SECS_PER_LINE = 6
EXPERIENCED_SECS_PER_LINE = 4

# typical physical frame, and the average thread span as a share of it
PHYSICAL_FRAME_M = 0.5
AVG_LINE_SHARE = 0.6


def _seconds_per_iteration(total_pegs: int) -> float:
    if total_pegs <= 20:
        return 0.002
    if total_pegs <= 40:
        return 0.004
    if total_pegs <= 100:
        return 0.01
    return 0.02


def calculate_time_estimates(pegs_per_side: int, iterations: int) -> TimeEstimates:
    """
    Rough figures for how long the generation and the physical build take,
    and how much thread is needed. Empirical, not measured per image.
    """
    per_iter = _seconds_per_iteration(pegs_per_side * 4)
    digital_min = max(1, math.floor(per_iter * iterations * 0.8))
    digital_max = math.ceil(per_iter * iterations * 1.2)

    # setup, breaks, tying off
    overhead_min = 10 + (iterations // 500) * 5

    def build_minutes(secs_per_line):
        return math.ceil(iterations * secs_per_line / 60 + overhead_min)

    avg_line_m = PHYSICAL_FRAME_M * AVG_LINE_SHARE
    return TimeEstimates(
        digital_min_s=digital_min,
        digital_max_s=digital_max,
        beginner_min=build_minutes(BEGINNER_SECS_PER_LINE),
        average_min=build_minutes(AVERAGE_SECS_PER_LINE),
        experienced_min=build_minutes(EXPERIENCED_SECS_PER_LINE),
        thread_min_m=math.floor(iterations * avg_line_m * 0.8),
        thread_max_m=math.ceil(iterations * avg_line_m * 1.2),
    )


def format_digital_time(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        mins, secs = divmod(seconds, 60)
        return f"{mins}m {secs}s" if secs else f"{mins}m"
    hours = seconds // 3600
    mins = (seconds % 3600) // 60
    return f"{hours}h {mins}m" if mins else f"{hours}h"


def format_physical_time(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} min"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m" if mins else f"{hours}h"


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def format_thread_length(meters: float) -> str:
    if meters < 1:
        return f"{_round_half_up(meters * 100)} cm"
    if meters < 1000:
        return f"{_round_half_up(meters)} m"
    return f"{meters / 1000:.1f} km"
