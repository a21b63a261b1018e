"""
Course progress aggregation.

Combines lesson completion with the learner's quiz results. Overall progress
follows lessons, except that a learner with every lesson done only reaches
100% once the course's final quiz is passed; until then they sit at 99%.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncConnection

from .errors import NotEnrolledError, NotFoundError
from .queries import attempts as attempt_queries
from .queries import catalog, enrollments, lessons

# Lessons all done but the final quiz not yet passed
NEAR_COMPLETE_PERCENT = 99.0


def calculate_lessons_percent(completed_lessons: int, total_lessons: int) -> float:
    if total_lessons == 0:
        return 0.0
    return 100 * completed_lessons / total_lessons


def calculate_overall_percent(
    *,
    completed_lessons: int,
    total_lessons: int,
    has_final_quiz: bool,
    final_quiz_passed: bool,
) -> float:
    """Apply the overall-progress policy described in the module docstring."""
    lessons_percent = calculate_lessons_percent(completed_lessons, total_lessons)
    lessons_done = total_lessons > 0 and completed_lessons >= total_lessons
    if lessons_done and has_final_quiz:
        return 100.0 if final_quiz_passed else NEAR_COMPLETE_PERCENT
    return lessons_percent


def is_quiz_passed(quiz: dict[str, Any], summary: dict[str, Any] | None) -> bool:
    """True if any submitted attempt reached the quiz's passing score."""
    if not summary or summary.get("best_score_percent") is None:
        return False
    return summary["best_score_percent"] >= quiz["passing_score_percent"]


async def get_course_progress(
    conn: AsyncConnection, *, user_id: int, course_id: int
) -> dict[str, Any]:
    """
    Get a learner's progress in a course.

    Returns:
        Dict with total_lessons, completed_lessons, lessons_progress_percent,
        overall_percent, final_quiz_id, final_quiz_passed and quiz_history
        (one entry per quiz in the course)

    Raises:
        NotFoundError: Course doesn't exist
        NotEnrolledError: No enrollment record (any status) for the course
    """
    if await catalog.get_course(conn, course_id) is None:
        raise NotFoundError(f"Course not found: {course_id}")
    if await enrollments.get_enrollment(conn, user_id, course_id) is None:
        raise NotEnrolledError("User is not enrolled in this course")

    total = await lessons.count_total_lessons(conn, course_id)
    completed = await lessons.count_completed_lessons(conn, user_id, course_id)

    quizzes = await catalog.get_course_quizzes(conn, course_id)
    summaries = await attempt_queries.summarize_submitted_attempts(
        conn, user_id, [q["quiz_id"] for q in quizzes]
    )

    quiz_history = []
    for quiz in quizzes:
        summary = summaries.get(quiz["quiz_id"])
        quiz_history.append(
            {
                "quiz_id": quiz["quiz_id"],
                "quiz_title": quiz["title"],
                "is_final": quiz["is_final"],
                "passing_score_percent": quiz["passing_score_percent"],
                "attempts_count": summary["attempts_count"] if summary else 0,
                "best_score_percent": summary["best_score_percent"] if summary else 0.0,
                "last_attempt_at": summary["last_attempt_at"] if summary else None,
                "passed": is_quiz_passed(quiz, summary),
            }
        )

    # Authoring allows one final quiz per course; if several are flagged the oldest wins
    final_quiz = next((q for q in quizzes if q["is_final"]), None)
    final_passed = final_quiz is not None and is_quiz_passed(
        final_quiz, summaries.get(final_quiz["quiz_id"])
    )

    return {
        "course_id": course_id,
        "user_id": user_id,
        "total_lessons": total,
        "completed_lessons": completed,
        "lessons_progress_percent": calculate_lessons_percent(completed, total),
        "final_quiz_id": final_quiz["quiz_id"] if final_quiz else None,
        "final_quiz_passed": final_passed,
        "overall_percent": calculate_overall_percent(
            completed_lessons=completed,
            total_lessons=total,
            has_final_quiz=final_quiz is not None,
            final_quiz_passed=final_passed,
        ),
        "quiz_history": quiz_history,
    }
