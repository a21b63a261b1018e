"""
Quiz attempt lifecycle.

An attempt is NotStarted -> InProgress (start_attempt) -> Submitted
(submit_attempt). Submitted is terminal: the row and its answers are never
changed again.

Core functions take an AsyncConnection and expect the caller to own the
transaction; a raised exception rolls the whole operation back.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

import sentry_sdk
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection

from .config import get_start_attempt_max_retries, is_strict_answer_validation
from .database import get_transaction
from .enums import AttemptState
from .errors import (
    AlreadySubmittedError,
    ConflictError,
    ForbiddenError,
    LessonsIncompleteError,
    NotEnrolledError,
    NotFoundError,
)
from .grading import SubmittedAnswer, grade_submission, index_answers
from .queries import attempts as attempt_queries
from .queries import catalog, enrollments, lessons

logger = logging.getLogger(__name__)


def attempt_state(attempt: dict[str, Any]) -> AttemptState:
    if attempt.get("submitted_at") is None:
        return AttemptState.in_progress
    return AttemptState.submitted


async def start_attempt(
    conn: AsyncConnection, *, quiz_id: int, user_id: int
) -> dict[str, Any]:
    """
    Start a new attempt on a quiz.

    Requires an active enrollment in the quiz's course. A final quiz also
    requires every lesson of the course to be completed (a course without
    lessons passes trivially).

    Returns:
        The new attempt row (attempt_id, quiz_id, user_id, attempt_number,
        started_at, submitted_at=None, score_percent=0)

    Raises:
        NotFoundError: Quiz doesn't exist
        NotEnrolledError: No active enrollment in the course
        LessonsIncompleteError: Final quiz started with lessons outstanding
        ConflictError: A concurrent start took the same attempt number
    """
    quiz = await catalog.get_quiz(conn, quiz_id)
    if quiz is None:
        raise NotFoundError(f"Quiz not found: {quiz_id}")

    course_id = quiz["course_id"]
    if not await enrollments.has_active_enrollment(conn, user_id, course_id):
        raise NotEnrolledError("User is not actively enrolled in the course of this quiz")

    if quiz["is_final"]:
        total = await lessons.count_total_lessons(conn, course_id)
        completed = await lessons.count_completed_lessons(conn, user_id, course_id)
        if completed < total:
            raise LessonsIncompleteError(completed, total)

    attempt_number = await attempt_queries.get_next_attempt_number(
        conn, quiz_id, user_id
    )

    try:
        attempt = await attempt_queries.insert_attempt(
            conn,
            quiz_id=quiz_id,
            user_id=user_id,
            attempt_number=attempt_number,
            started_at=datetime.now(timezone.utc),
        )
    except IntegrityError as e:
        logger.warning(
            "Attempt number %d on quiz %d already taken for user %d",
            attempt_number,
            quiz_id,
            user_id,
        )
        raise ConflictError(
            "Another attempt was started at the same time, please retry"
        ) from e

    logger.info(
        "User %d started attempt #%d (%d) on quiz %d",
        user_id,
        attempt_number,
        attempt["attempt_id"],
        quiz_id,
    )
    return attempt


async def start_attempt_with_retry(*, quiz_id: int, user_id: int) -> dict[str, Any]:
    """
    Start an attempt in its own transaction, retrying lost numbering races.

    Each try runs in a fresh transaction so it sees the winner's row.
    After START_ATTEMPT_MAX_RETRIES losses the ConflictError propagates.
    """
    max_tries = get_start_attempt_max_retries()
    for try_number in range(1, max_tries + 1):
        try:
            async with get_transaction() as conn:
                return await start_attempt(conn, quiz_id=quiz_id, user_id=user_id)
        except ConflictError as e:
            if try_number == max_tries:
                logger.error(
                    "Gave up starting quiz %d for user %d after %d tries",
                    quiz_id,
                    user_id,
                    max_tries,
                )
                sentry_sdk.capture_exception(e)
                raise
            logger.info(
                "Retrying start on quiz %d for user %d (try %d/%d)",
                quiz_id,
                user_id,
                try_number + 1,
                max_tries,
            )
    raise ConflictError("Could not start attempt")


async def submit_attempt(
    conn: AsyncConnection,
    *,
    attempt_id: int,
    user_id: int,
    answers: Iterable[SubmittedAnswer],
    strict: bool | None = None,
) -> dict[str, Any]:
    """
    Grade and finalize an in-progress attempt.

    The attempt row is locked first, every precondition is checked, and only
    then are all answer rows inserted and the attempt finalized. Everything
    happens on the caller's transaction, so a reader never sees answers
    without a finalized attempt or the other way round.

    Args:
        attempt_id: Attempt to submit
        user_id: The caller; must own the attempt
        answers: Submitted answers; questions without one grade as incorrect
        strict: Reject malformed answers instead of ignoring them
            (defaults to STRICT_ANSWER_VALIDATION)

    Returns:
        Dict with attempt fields, totals, per_question results and time info

    Raises:
        NotFoundError: Attempt doesn't exist
        ForbiddenError: Attempt belongs to someone else
        AlreadySubmittedError: Attempt is not in progress (incl. lost races)
        NotEnrolledError: Caller is no longer actively enrolled
        InvalidAnswerShapeError: Malformed answers (duplicates, or strict mode)
    """
    attempt = await attempt_queries.get_attempt(conn, attempt_id, for_update=True)
    if attempt is None:
        raise NotFoundError(f"Attempt not found: {attempt_id}")
    if attempt["user_id"] != user_id:
        raise ForbiddenError("This attempt belongs to another user")
    if attempt_state(attempt) is not AttemptState.in_progress:
        raise AlreadySubmittedError(attempt_id)

    quiz = await catalog.get_quiz(conn, attempt["quiz_id"])
    if quiz is None:
        raise NotFoundError(f"Quiz not found: {attempt['quiz_id']}")
    if not await enrollments.has_active_enrollment(conn, user_id, quiz["course_id"]):
        raise NotEnrolledError("User is not actively enrolled in the course of this quiz")

    blueprint = await catalog.get_quiz_blueprint(conn, quiz["quiz_id"])
    if strict is None:
        strict = is_strict_answer_validation()
    answer_map = index_answers(blueprint, answers, strict=strict)
    graded = grade_submission(blueprint, answer_map)

    submitted_at = datetime.now(timezone.utc)
    try:
        answer_ids = await attempt_queries.insert_attempt_answers(
            conn, attempt_id, graded.answers
        )
        await attempt_queries.insert_answer_selections(
            conn,
            [
                {
                    "attempt_answer_id": answer_ids[answer.question_id],
                    "answer_option_id": option_id,
                }
                for answer in graded.answers
                for option_id in answer.selected_option_ids
            ],
        )
    except IntegrityError as e:
        # Unique (attempt_id, question_id): another submit already wrote answers
        raise AlreadySubmittedError(attempt_id) from e

    finalized = await attempt_queries.finalize_attempt(
        conn,
        attempt_id,
        score_percent=graded.score_percent,
        submitted_at=submitted_at,
    )
    if finalized is None:
        raise AlreadySubmittedError(attempt_id)

    elapsed_seconds = (submitted_at - attempt["started_at"]).total_seconds()
    time_limit = quiz["time_limit_seconds"] or 0

    logger.info(
        "User %d submitted attempt %d on quiz %d: %d/%d points (%.2f%%)",
        user_id,
        attempt_id,
        quiz["quiz_id"],
        graded.earned_points,
        graded.total_points,
        graded.score_percent,
    )

    return {
        "attempt_id": attempt_id,
        "quiz_id": quiz["quiz_id"],
        "user_id": user_id,
        "attempt_number": attempt["attempt_number"],
        "started_at": attempt["started_at"],
        "submitted_at": finalized["submitted_at"],
        "score_percent": graded.score_percent,
        "total_points": graded.total_points,
        "earned_points": graded.earned_points,
        "per_question": [
            {
                "question_id": answer.question_id,
                "is_correct": answer.is_correct,
                "points_earned": answer.points_earned,
            }
            for answer in graded.answers
        ],
        # Reported only; the limit is not enforced
        "elapsed_seconds": elapsed_seconds,
        "time_limit_seconds": time_limit,
        "over_time_limit": time_limit > 0 and elapsed_seconds > time_limit,
    }


async def list_attempts(
    conn: AsyncConnection, *, quiz_id: int, user_id: int
) -> list[dict[str, Any]]:
    """The caller's attempts on a quiz, newest first, each with its state."""
    if await catalog.get_quiz(conn, quiz_id) is None:
        raise NotFoundError(f"Quiz not found: {quiz_id}")

    rows = await attempt_queries.list_attempts(conn, quiz_id, user_id)
    return [{**row, "state": attempt_state(row)} for row in rows]


async def get_attempt_result(
    conn: AsyncConnection, *, attempt_id: int, user_id: int
) -> dict[str, Any]:
    """
    Review an attempt with its stored answers.

    In-progress attempts come back with an empty answer list.

    Raises:
        NotFoundError: Attempt doesn't exist
        ForbiddenError: Attempt belongs to someone else
    """
    attempt = await attempt_queries.get_attempt(conn, attempt_id)
    if attempt is None:
        raise NotFoundError(f"Attempt not found: {attempt_id}")
    if attempt["user_id"] != user_id:
        raise ForbiddenError("This attempt belongs to another user")

    state = attempt_state(attempt)
    answers = []
    if state is AttemptState.submitted:
        answers = await attempt_queries.get_attempt_answers(conn, attempt_id)

    return {
        **attempt,
        "state": state,
        "earned_points": sum(a["points_earned"] for a in answers),
        "answers": answers,
    }
