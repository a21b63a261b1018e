"""Storage for quiz attempts and their answer rows."""

from datetime import datetime
from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncConnection

from ..grading import GradedAnswer
from ..tables import attempt_answer_selections, attempt_answers, quiz_attempts


async def get_next_attempt_number(
    conn: AsyncConnection, quiz_id: int, user_id: int
) -> int:
    """1 + the highest attempt number this user has on the quiz, or 1."""
    result = await conn.execute(
        select(func.coalesce(func.max(quiz_attempts.c.attempt_number), 0)).where(
            (quiz_attempts.c.quiz_id == quiz_id) & (quiz_attempts.c.user_id == user_id)
        )
    )
    return (result.scalar() or 0) + 1


async def insert_attempt(
    conn: AsyncConnection,
    *,
    quiz_id: int,
    user_id: int,
    attempt_number: int,
    started_at: datetime,
) -> dict[str, Any]:
    """
    Create an in-progress attempt.

    Raises IntegrityError if a concurrent start already took attempt_number.
    """
    result = await conn.execute(
        insert(quiz_attempts)
        .values(
            quiz_id=quiz_id,
            user_id=user_id,
            attempt_number=attempt_number,
            started_at=started_at,
            submitted_at=None,
            score_percent=0,
        )
        .returning(quiz_attempts)
    )
    return dict(result.mappings().one())


async def get_attempt(
    conn: AsyncConnection, attempt_id: int, *, for_update: bool = False
) -> dict[str, Any] | None:
    """
    Get an attempt by ID.

    With for_update=True the row stays locked until the caller's transaction
    ends, so two submits of the same attempt run one after the other.
    """
    query = select(quiz_attempts).where(quiz_attempts.c.attempt_id == attempt_id)
    if for_update:
        query = query.with_for_update()
    result = await conn.execute(query)
    row = result.mappings().first()
    return dict(row) if row else None


async def list_attempts(
    conn: AsyncConnection, quiz_id: int, user_id: int
) -> list[dict[str, Any]]:
    """All of a user's attempts on a quiz, newest first."""
    result = await conn.execute(
        select(quiz_attempts)
        .where(
            (quiz_attempts.c.quiz_id == quiz_id) & (quiz_attempts.c.user_id == user_id)
        )
        .order_by(quiz_attempts.c.attempt_number.desc())
    )
    return [dict(row) for row in result.mappings()]


async def insert_attempt_answers(
    conn: AsyncConnection, attempt_id: int, graded: list[GradedAnswer]
) -> dict[int, int]:
    """
    Insert one answer row per graded question in a single batch.

    Returns:
        Dict mapping question_id -> attempt_answer_id
    """
    if not graded:
        return {}

    rows = [
        {
            "attempt_id": attempt_id,
            "question_id": answer.question_id,
            "selected_answer_option_id": answer.selected_option_id,
            "short_answer_text": answer.short_answer_text,
            "is_correct": answer.is_correct,
            "points_earned": answer.points_earned,
        }
        for answer in graded
    ]
    result = await conn.execute(
        insert(attempt_answers).returning(
            attempt_answers.c.attempt_answer_id, attempt_answers.c.question_id
        ),
        rows,
    )
    return {row.question_id: row.attempt_answer_id for row in result}


async def insert_answer_selections(
    conn: AsyncConnection, selections: list[dict[str, int]]
) -> None:
    """Insert multi-select bridge rows ({attempt_answer_id, answer_option_id})."""
    if not selections:
        return
    await conn.execute(insert(attempt_answer_selections), selections)


async def finalize_attempt(
    conn: AsyncConnection,
    attempt_id: int,
    *,
    score_percent: float,
    submitted_at: datetime,
) -> dict[str, Any] | None:
    """
    Mark an attempt submitted, but only if it is still in progress.

    Returns the updated row, or None when another submit got there first.
    """
    result = await conn.execute(
        update(quiz_attempts)
        .where(
            (quiz_attempts.c.attempt_id == attempt_id)
            & quiz_attempts.c.submitted_at.is_(None)
        )
        .values(submitted_at=submitted_at, score_percent=score_percent)
        .returning(quiz_attempts)
    )
    row = result.mappings().first()
    return dict(row) if row else None


async def get_attempt_answers(
    conn: AsyncConnection, attempt_id: int
) -> list[dict[str, Any]]:
    """
    Stored answers of an attempt, each with its multi-select option ids.

    Returns list of dicts ordered by attempt_answer_id (= grading order).
    """
    answers_result = await conn.execute(
        select(attempt_answers)
        .where(attempt_answers.c.attempt_id == attempt_id)
        .order_by(attempt_answers.c.attempt_answer_id)
    )
    answers = [dict(row) for row in answers_result.mappings()]
    if not answers:
        return []

    selections_result = await conn.execute(
        select(
            attempt_answer_selections.c.attempt_answer_id,
            attempt_answer_selections.c.answer_option_id,
        )
        .where(
            attempt_answer_selections.c.attempt_answer_id.in_(
                [a["attempt_answer_id"] for a in answers]
            )
        )
        .order_by(attempt_answer_selections.c.answer_option_id)
    )
    selected: dict[int, list[int]] = {}
    for row in selections_result.mappings():
        selected.setdefault(row["attempt_answer_id"], []).append(
            row["answer_option_id"]
        )

    for answer in answers:
        answer["selected_option_ids"] = selected.get(answer["attempt_answer_id"], [])
    return answers


async def summarize_submitted_attempts(
    conn: AsyncConnection, user_id: int, quiz_ids: list[int]
) -> dict[int, dict[str, Any]]:
    """
    Aggregate a user's submitted attempts per quiz.

    Quizzes without a submitted attempt are absent from the result.

    Returns:
        Dict mapping quiz_id -> {attempts_count, best_score_percent, last_attempt_at}
    """
    if not quiz_ids:
        return {}

    result = await conn.execute(
        select(
            quiz_attempts.c.quiz_id,
            func.count(quiz_attempts.c.attempt_id).label("attempts_count"),
            func.max(quiz_attempts.c.score_percent).label("best_score_percent"),
            func.max(quiz_attempts.c.submitted_at).label("last_attempt_at"),
        )
        .where(
            (quiz_attempts.c.user_id == user_id)
            & quiz_attempts.c.quiz_id.in_(quiz_ids)
            & quiz_attempts.c.submitted_at.isnot(None)
        )
        .group_by(quiz_attempts.c.quiz_id)
    )
    return {
        row["quiz_id"]: {
            "attempts_count": row["attempts_count"],
            "best_score_percent": row["best_score_percent"],
            "last_attempt_at": row["last_attempt_at"],
        }
        for row in result.mappings()
    }
