"""Read-only queries against the course/quiz/question catalog."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..grading import AnswerOption, BlueprintEntry, build_question
from ..tables import (
    answer_options,
    courses,
    questions,
    quiz_questions,
    quizzes,
    users,
)

_QUIZ_COLUMNS = (
    quizzes.c.quiz_id,
    quizzes.c.course_id,
    quizzes.c.lesson_id,
    quizzes.c.title,
    quizzes.c.passing_score_percent,
    quizzes.c.time_limit_seconds,
    quizzes.c.is_final,
)


async def get_quiz(conn: AsyncConnection, quiz_id: int) -> dict[str, Any] | None:
    """Get a quiz's settings, or None if it doesn't exist."""
    result = await conn.execute(select(*_QUIZ_COLUMNS).where(quizzes.c.quiz_id == quiz_id))
    row = result.mappings().first()
    return dict(row) if row else None


async def get_course_quizzes(
    conn: AsyncConnection, course_id: int
) -> list[dict[str, Any]]:
    """All quizzes of a course (course-level and lesson-level), oldest first."""
    result = await conn.execute(
        select(*_QUIZ_COLUMNS)
        .where(quizzes.c.course_id == course_id)
        .order_by(quizzes.c.quiz_id)
    )
    return [dict(row) for row in result.mappings()]


async def get_quiz_blueprint(
    conn: AsyncConnection, quiz_id: int
) -> list[BlueprintEntry]:
    """
    Snapshot a quiz's questions for grading.

    Returns entries ordered by order_index (ties broken by question_id), each
    with its points and answer options. Read in a single statement so the
    snapshot is consistent within the caller's transaction.
    """
    query = (
        select(
            quiz_questions.c.question_id,
            quiz_questions.c.points,
            quiz_questions.c.order_index,
            questions.c.question_type,
            answer_options.c.answer_option_id,
            answer_options.c.is_correct,
        )
        .select_from(
            quiz_questions.join(
                questions, quiz_questions.c.question_id == questions.c.question_id
            ).outerjoin(
                answer_options,
                answer_options.c.question_id == questions.c.question_id,
            )
        )
        .where(quiz_questions.c.quiz_id == quiz_id)
        .order_by(
            quiz_questions.c.order_index,
            quiz_questions.c.question_id,
            answer_options.c.answer_option_id,
        )
    )
    result = await conn.execute(query)

    # Rows arrive grouped by question; dicts keep insertion order
    grouped: dict[int, dict[str, Any]] = {}
    for row in result.mappings():
        entry = grouped.setdefault(
            row["question_id"],
            {
                "points": row["points"],
                "order_index": row["order_index"],
                "question_type": row["question_type"],
                "options": [],
            },
        )
        if row["answer_option_id"] is not None:
            entry["options"].append(
                AnswerOption(
                    option_id=row["answer_option_id"],
                    is_correct=bool(row["is_correct"]),
                )
            )

    return [
        BlueprintEntry(
            question=build_question(
                question_id, data["question_type"], data["options"]
            ),
            points=data["points"],
            order_index=data["order_index"],
        )
        for question_id, data in grouped.items()
    ]


async def get_course(conn: AsyncConnection, course_id: int) -> dict[str, Any] | None:
    result = await conn.execute(
        select(courses.c.course_id, courses.c.title).where(
            courses.c.course_id == course_id
        )
    )
    row = result.mappings().first()
    return dict(row) if row else None


async def get_user(conn: AsyncConnection, user_id: int) -> dict[str, Any] | None:
    result = await conn.execute(
        select(users.c.user_id, users.c.full_name, users.c.email).where(
            users.c.user_id == user_id
        )
    )
    row = result.mappings().first()
    return dict(row) if row else None
