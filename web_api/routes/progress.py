"""Course progress API routes.

Endpoints:
- GET /api/courses/{course_id}/progress - Lesson and quiz progress for the caller
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from academy.database import get_connection
from academy.errors import AcademyError
from academy.progress import get_course_progress
from web_api.auth import get_current_user_id
from web_api.http_errors import to_http_exception

router = APIRouter(prefix="/api/courses", tags=["progress"])


class QuizHistoryItem(BaseModel):
    quiz_id: int
    quiz_title: str
    is_final: bool
    passing_score_percent: int
    attempts_count: int
    best_score_percent: float
    last_attempt_at: datetime | None
    passed: bool


class CourseProgressResponse(BaseModel):
    course_id: int
    total_lessons: int
    completed_lessons: int
    lessons_progress_percent: float
    overall_percent: float
    final_quiz_id: int | None
    final_quiz_passed: bool
    quiz_history: list[QuizHistoryItem]


@router.get("/{course_id}/progress", response_model=CourseProgressResponse)
async def get_progress(
    course_id: int,
    user_id: int = Depends(get_current_user_id),
):
    try:
        async with get_connection() as conn:
            progress = await get_course_progress(
                conn, user_id=user_id, course_id=course_id
            )
    except AcademyError as e:
        raise to_http_exception(e)

    return CourseProgressResponse(
        course_id=progress["course_id"],
        total_lessons=progress["total_lessons"],
        completed_lessons=progress["completed_lessons"],
        lessons_progress_percent=round(progress["lessons_progress_percent"], 2),
        overall_percent=round(progress["overall_percent"], 2),
        final_quiz_id=progress["final_quiz_id"],
        final_quiz_passed=progress["final_quiz_passed"],
        quiz_history=[
            QuizHistoryItem(
                **{**item, "best_score_percent": round(item["best_score_percent"], 2)}
            )
            for item in progress["quiz_history"]
        ],
    )
