"""
Progress and gamification engine.

Each mutating operation runs as one transaction that locks the user's stats
row, then applies its steps in a fixed order:

    insert event -> credit points -> streak -> level -> badges

Level and badge evaluation therefore always see the post-credit totals, and
concurrent events for the same user serialize on the row lock.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, distinct, func, select

from learnhub.database import transaction
from learnhub.db.models import LessonCompletion, QuizResult, Topic, UserStats
from learnhub.progress.badges import BadgeFacts, evaluate_badges
from learnhub.progress.levels import LESSON_POINTS, PERFECT_SCORE, compute_level, quiz_points
from learnhub.progress.schemas import CompletedLesson, QuizResultEntry, QuizScore, UserProgress
from learnhub.progress.streaks import advance_streak

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Stats row helpers
# ---------------------------------------------------------------------------


async def lock_user_stats(db: AsyncSession, user_id: int) -> UserStats:
    """Load the user's stats row under a row lock, creating it if missing."""
    result = await db.execute(
        select(UserStats)
        .where(UserStats.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    stats = result.scalar_one_or_none()
    if stats is None:
        stats = UserStats(
            user_id=user_id,
            total_points=0,
            level=1,
            badges=[],
            current_streak=0,
            longest_streak=0,
            perfect_quiz_streak=0,
        )
        db.add(stats)
        await db.flush()
    return stats


def apply_streak(stats: UserStats, today: date) -> int:
    """Advance the streak for today's activity. Returns bonus points credited."""
    update = advance_streak(
        stats.current_streak,
        stats.longest_streak,
        stats.last_activity_date,
        today,
    )
    if not update.changed:
        return 0
    stats.current_streak = update.current_streak
    stats.longest_streak = update.longest_streak
    stats.last_activity_date = update.last_activity_date
    stats.total_points += update.bonus_points
    return update.bonus_points


def apply_level(stats: UserStats) -> None:
    """Overwrite the level from total points (never incremented)."""
    stats.level = compute_level(stats.total_points)


async def collect_badge_facts(db: AsyncSession, stats: UserStats) -> BadgeFacts:
    """Count the aggregates the badge rules need. Pending rows are flushed first."""
    await db.flush()
    user_id = stats.user_id

    lesson_count = await db.scalar(
        select(func.count(LessonCompletion.id)).where(LessonCompletion.user_id == user_id)
    )
    perfect_quiz_count = await db.scalar(
        select(func.count(QuizResult.id)).where(
            QuizResult.user_id == user_id,
            QuizResult.percentage == PERFECT_SCORE,
        )
    )
    completed_categories = await db.scalar(
        select(func.count(distinct(Topic.category)))
        .select_from(LessonCompletion)
        .join(Topic, LessonCompletion.topic_id == Topic.id)
        .where(LessonCompletion.user_id == user_id)
    )
    total_categories = await db.scalar(select(func.count(distinct(Topic.category))))

    return BadgeFacts(
        lesson_count=lesson_count or 0,
        perfect_quiz_count=perfect_quiz_count or 0,
        current_streak=stats.current_streak,
        perfect_quiz_streak=stats.perfect_quiz_streak,
        completed_categories=completed_categories or 0,
        total_categories=total_categories or 0,
    )


async def apply_badges(db: AsyncSession, stats: UserStats) -> list[str]:
    """Grant newly qualifying badges. Returns the slugs granted by this call."""
    earned = list(stats.badges or [])
    facts = await collect_badge_facts(db, stats)
    badges = evaluate_badges(earned, facts)
    new_badges = badges[len(earned):]
    if new_badges:
        stats.badges = badges
        logger.info("badges_earned", user_id=stats.user_id, badges=new_badges)
    return new_badges


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def empty_progress() -> UserProgress:
    """Zeroed progress, served to anonymous callers without touching storage."""
    return UserProgress()


async def get_progress(db: AsyncSession, user_id: int | None) -> UserProgress:
    """Full progress snapshot for a user, or the empty default when there is no user."""
    if user_id is None:
        return empty_progress()

    lessons = await db.execute(
        select(LessonCompletion)
        .where(LessonCompletion.user_id == user_id)
        .order_by(LessonCompletion.completed_at, LessonCompletion.id)
    )
    quizzes = await db.execute(
        select(QuizResult)
        .where(QuizResult.user_id == user_id)
        .order_by(QuizResult.completed_at, QuizResult.id)
    )
    stats = (
        await db.execute(
            select(UserStats)
            .where(UserStats.user_id == user_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()

    progress = UserProgress(
        completed_lessons=[
            CompletedLesson(topic_id=row.topic_id, lesson_id=row.lesson_id, completed_at=row.completed_at)
            for row in lessons.scalars()
        ],
        quiz_results=[
            QuizResultEntry(
                topic_id=row.topic_id,
                score=QuizScore(correct=row.correct_answers, total=row.total_questions),
                percentage=row.percentage,
                completed_at=row.completed_at,
            )
            for row in quizzes.scalars()
        ],
    )
    if stats is not None:
        progress.total_points = stats.total_points
        progress.level = stats.level
        progress.badges = list(stats.badges or [])
        progress.current_streak = stats.current_streak
        progress.longest_streak = stats.longest_streak
        progress.last_activity_date = stats.last_activity_date
        progress.perfect_quiz_streak = stats.perfect_quiz_streak
    return progress


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


async def record_lesson_completion(
    db: AsyncSession,
    user_id: int,
    topic_id: int,
    lesson_id: int,
    *,
    now: datetime | None = None,
) -> UserProgress:
    """Record a lesson completion. Repeating a completed lesson changes nothing."""
    if now is None:
        now = _utcnow()

    async with transaction(db):
        stats = await lock_user_stats(db, user_id)
        existing = await db.scalar(
            select(LessonCompletion.id).where(
                LessonCompletion.user_id == user_id,
                LessonCompletion.topic_id == topic_id,
                LessonCompletion.lesson_id == lesson_id,
            )
        )
        if existing is None:
            db.add(
                LessonCompletion(
                    user_id=user_id,
                    topic_id=topic_id,
                    lesson_id=lesson_id,
                    completed_at=now,
                )
            )
            stats.total_points += LESSON_POINTS
            apply_streak(stats, now.date())
            apply_level(stats)
            await apply_badges(db, stats)

    if existing is None:
        logger.info("lesson_completed", user_id=user_id, topic_id=topic_id, lesson_id=lesson_id)
    else:
        logger.debug("lesson_already_completed", user_id=user_id, topic_id=topic_id, lesson_id=lesson_id)
    return await get_progress(db, user_id)


async def record_quiz_result(
    db: AsyncSession,
    user_id: int,
    topic_id: int,
    score: QuizScore,
    percentage: int,
    *,
    now: datetime | None = None,
) -> tuple[UserProgress, int]:
    """Append a quiz result and score it. Returns (progress, points earned by this result)."""
    if now is None:
        now = _utcnow()
    points = quiz_points(percentage)

    async with transaction(db):
        stats = await lock_user_stats(db, user_id)
        db.add(
            QuizResult(
                user_id=user_id,
                topic_id=topic_id,
                correct_answers=score.correct,
                total_questions=score.total,
                percentage=percentage,
                completed_at=now,
            )
        )
        stats.total_points += points
        if percentage == PERFECT_SCORE:
            stats.perfect_quiz_streak += 1
        else:
            stats.perfect_quiz_streak = 0
        apply_streak(stats, now.date())
        apply_level(stats)
        await apply_badges(db, stats)

    logger.info("quiz_result_saved", user_id=user_id, topic_id=topic_id, percentage=percentage, points=points)
    return await get_progress(db, user_id), points


async def reset_progress(db: AsyncSession, user_id: int) -> UserProgress:
    """Delete all completion and quiz rows of the user and zero the stats."""
    async with transaction(db):
        stats = await lock_user_stats(db, user_id)
        await db.execute(delete(LessonCompletion).where(LessonCompletion.user_id == user_id))
        await db.execute(delete(QuizResult).where(QuizResult.user_id == user_id))
        stats.total_points = 0
        stats.level = 1
        stats.badges = []
        stats.current_streak = 0
        stats.longest_streak = 0
        stats.last_activity_date = None
        stats.perfect_quiz_streak = 0

    logger.info("progress_reset", user_id=user_id)
    return await get_progress(db, user_id)
