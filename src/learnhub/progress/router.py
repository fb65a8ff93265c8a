"""Learning progress endpoints: /api/user-progress/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.auth.dependencies import get_current_claims, get_optional_claims
from learnhub.auth.jwt import AccessTokenClaims
from learnhub.database import get_session
from learnhub.progress.schemas import (
    CompleteLessonRequest,
    ProgressResponse,
    QuizResultResponse,
    SaveQuizResultRequest,
)
from learnhub.progress.service import (
    get_progress,
    record_lesson_completion,
    record_quiz_result,
    reset_progress,
)

router = APIRouter(prefix="/api/user-progress", tags=["User Progress"])


@router.get("", response_model=ProgressResponse)
async def read_progress(
    claims: AccessTokenClaims | None = Depends(get_optional_claims),
    db: AsyncSession = Depends(get_session),
) -> ProgressResponse:
    """Progress of the caller; anonymous callers get the zeroed default."""
    user_id = claims.user_id if claims is not None else None
    return ProgressResponse(data=await get_progress(db, user_id))


@router.post("/complete-lesson", response_model=ProgressResponse)
async def complete_lesson(
    body: CompleteLessonRequest,
    claims: AccessTokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_session),
) -> ProgressResponse:
    """Mark a lesson complete and award points. Idempotent per lesson."""
    progress = await record_lesson_completion(db, claims.user_id, body.topic_id, body.lesson_id)
    return ProgressResponse(data=progress)


@router.post("/save-quiz-result", response_model=QuizResultResponse)
async def save_quiz_result(
    body: SaveQuizResultRequest,
    claims: AccessTokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_session),
) -> QuizResultResponse:
    """Store a quiz result, award points and evaluate badges."""
    progress, points = await record_quiz_result(
        db, claims.user_id, body.topic_id, body.score, body.percentage
    )
    return QuizResultResponse(data=progress, points_earned=points)


@router.post("/reset", response_model=ProgressResponse)
async def reset(
    claims: AccessTokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_session),
) -> ProgressResponse:
    """Wipe the caller's progress."""
    return ProgressResponse(data=await reset_progress(db, claims.user_id))
