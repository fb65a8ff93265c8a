"""Badge rules.

Rules are evaluated against aggregate facts after every progress event.
Badges are monotonic: evaluation only ever appends.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

PERFECT_SCORE_BADGE = "perfect-score"
BEGINNER_BADGE = "beginner"
BOOKWORM_BADGE = "bookworm"
WEEK_WARRIOR_BADGE = "week-warrior"
QUIZ_MASTER_BADGE = "quiz-master"
PERFECTIONIST_BADGE = "perfectionist"
ALL_TOPICS_BADGE = "all-topics"

BEGINNER_LESSONS = 3
BOOKWORM_LESSONS = 20
WEEK_WARRIOR_DAYS = 7
QUIZ_MASTER_PERFECT_QUIZZES = 10
PERFECTIONIST_STREAK = 5


@dataclass(frozen=True)
class BadgeFacts:
    """Aggregates the badge rules look at."""

    lesson_count: int = 0
    perfect_quiz_count: int = 0
    current_streak: int = 0
    perfect_quiz_streak: int = 0
    completed_categories: int = 0
    total_categories: int = 0


BADGE_RULES: list[tuple[str, Callable[[BadgeFacts], bool]]] = [
    (PERFECT_SCORE_BADGE, lambda f: f.perfect_quiz_count >= 1),
    (BEGINNER_BADGE, lambda f: f.lesson_count >= BEGINNER_LESSONS),
    (BOOKWORM_BADGE, lambda f: f.lesson_count >= BOOKWORM_LESSONS),
    (WEEK_WARRIOR_BADGE, lambda f: f.current_streak >= WEEK_WARRIOR_DAYS),
    (QUIZ_MASTER_BADGE, lambda f: f.perfect_quiz_count >= QUIZ_MASTER_PERFECT_QUIZZES),
    (PERFECTIONIST_BADGE, lambda f: f.perfect_quiz_streak >= PERFECTIONIST_STREAK),
    (
        ALL_TOPICS_BADGE,
        lambda f: f.total_categories > 0 and f.completed_categories >= f.total_categories,
    ),
]


def evaluate_badges(earned: list[str], facts: BadgeFacts) -> list[str]:
    """Return ``earned`` plus every badge that newly qualifies, in rule order."""
    badges = list(earned)
    for slug, qualifies in BADGE_RULES:
        if slug not in badges and qualifies(facts):
            badges.append(slug)
    return badges
