"""Request/response schemas for learning progress endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field, model_validator

from learnhub.auth.schemas import CamelModel


class CompleteLessonRequest(CamelModel):
    topic_id: int = Field(..., ge=1)
    lesson_id: int = Field(..., ge=1)


class QuizScore(CamelModel):
    correct: int = Field(..., ge=0)
    total: int = Field(..., ge=1)

    @model_validator(mode="after")
    def check_correct_within_total(self) -> QuizScore:
        if self.correct > self.total:
            msg = "Correct answers cannot exceed total questions"
            raise ValueError(msg)
        return self


class SaveQuizResultRequest(CamelModel):
    topic_id: int = Field(..., ge=1)
    score: QuizScore
    percentage: int = Field(..., ge=0, le=100)


class CompletedLesson(CamelModel):
    topic_id: int
    lesson_id: int
    completed_at: datetime


class QuizResultEntry(CamelModel):
    topic_id: int
    score: QuizScore
    percentage: int
    completed_at: datetime


class UserProgress(CamelModel):
    """Aggregate progress snapshot for one user."""

    completed_lessons: list[CompletedLesson] = []
    quiz_results: list[QuizResultEntry] = []
    total_points: int = 0
    level: int = 1
    badges: list[str] = []
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None
    perfect_quiz_streak: int = 0


class ProgressResponse(CamelModel):
    success: bool = True
    data: UserProgress


class QuizResultResponse(ProgressResponse):
    points_earned: int
