"""Level computation and point awards."""

from __future__ import annotations

POINTS_PER_LEVEL = 100
LESSON_POINTS = 10
PERFECT_SCORE = 100


def compute_level(total_points: int, points_per_level: int = POINTS_PER_LEVEL) -> int:
    """Level is a pure function of total points: floor(points / per_level) + 1."""
    return max(total_points, 0) // points_per_level + 1


def quiz_points(percentage: int) -> int:
    """Points for one quiz result: the percentage rounded to the nearest ten, divided by ten.

    Halves round up (45% earns 5), unlike Python's banker's rounding.
    """
    return int(percentage / 10 + 0.5)
