"""Daily activity streaks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

STREAK_BONUS_PER_DAY = 2
STREAK_BONUS_CAP = 20


@dataclass(frozen=True)
class StreakUpdate:
    """Result of :func:`advance_streak`. ``changed`` is False when activity was already logged today."""

    current_streak: int
    longest_streak: int
    last_activity_date: date | None
    bonus_points: int = 0
    changed: bool = False


def advance_streak(
    current_streak: int,
    longest_streak: int,
    last_activity_date: date | None,
    today: date,
) -> StreakUpdate:
    """Apply one day of activity to a streak.

    - same day: no change
    - previous day: streak + 1 and a bonus of 2 points per streak day, capped at 20
    - gap of two or more days: streak restarts at 1
    - no prior activity: streak starts at 1
    """
    if last_activity_date == today:
        return StreakUpdate(current_streak, longest_streak, last_activity_date)

    streak = current_streak
    bonus = 0
    if last_activity_date is None:
        streak = 1
    else:
        gap = (today - last_activity_date).days
        if gap == 1:
            streak += 1
            bonus = min(streak * STREAK_BONUS_PER_DAY, STREAK_BONUS_CAP)
        elif gap > 1:
            streak = 1
        # A last-activity date in the future (clock skew) keeps the streak as is

    return StreakUpdate(
        current_streak=streak,
        longest_streak=max(streak, longest_streak),
        last_activity_date=today,
        bonus_points=bonus,
        changed=True,
    )
