"""Tests for the quiz attempt lifecycle.

Query functions are mocked at the academy.queries boundary, so these tests
cover the precondition order, numbering and double-submit handling without
a database.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from academy.attempts import (
    get_attempt_result,
    list_attempts,
    start_attempt,
    start_attempt_with_retry,
    submit_attempt,
)
from academy.enums import AttemptState
from academy.errors import (
    AlreadySubmittedError,
    ConflictError,
    ForbiddenError,
    InvalidAnswerShapeError,
    LessonsIncompleteError,
    NotEnrolledError,
    NotFoundError,
)
from academy.grading import (
    AnswerOption,
    BlueprintEntry,
    MultiSelectQuestion,
    MultipleChoiceQuestion,
    ShortAnswerQuestion,
    SubmittedAnswer,
)

USER_ID = 7
OTHER_USER_ID = 8
STARTED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

QUIZ = {
    "quiz_id": 100,
    "course_id": 1,
    "lesson_id": None,
    "title": "Week 1 check",
    "passing_score_percent": 60,
    "time_limit_seconds": 0,
    "is_final": False,
}
FINAL_QUIZ = {**QUIZ, "quiz_id": 101, "title": "Final exam", "is_final": True}

BLUEPRINT = [
    BlueprintEntry(
        question=MultipleChoiceQuestion(
            1, (AnswerOption(10, True), AnswerOption(11, False))
        ),
        points=10,
        order_index=0,
    ),
    BlueprintEntry(
        question=MultiSelectQuestion(
            2, (AnswerOption(20, True), AnswerOption(21, True), AnswerOption(22, False))
        ),
        points=20,
        order_index=1,
    ),
    BlueprintEntry(question=ShortAnswerQuestion(3), points=5, order_index=2),
]


def in_progress_attempt(**overrides):
    return {
        "attempt_id": 500,
        "quiz_id": QUIZ["quiz_id"],
        "user_id": USER_ID,
        "attempt_number": 1,
        "started_at": STARTED_AT,
        "submitted_at": None,
        "score_percent": 0.0,
        **overrides,
    }


def integrity_error():
    return IntegrityError("INSERT ...", {}, Exception("duplicate key value"))


def mock_transaction():
    """Create a mock async context manager for get_transaction."""

    @asynccontextmanager
    async def _mock_transaction():
        yield MagicMock()

    return _mock_transaction


# ===== start_attempt =====


class TestStartAttempt:
    """Preconditions and numbering for starting an attempt."""

    @pytest.mark.asyncio
    async def test_unknown_quiz_raises_not_found(self):
        conn = AsyncMock()
        with patch("academy.queries.catalog.get_quiz", AsyncMock(return_value=None)):
            with pytest.raises(NotFoundError):
                await start_attempt(conn, quiz_id=999, user_id=USER_ID)

    @pytest.mark.asyncio
    async def test_requires_active_enrollment(self):
        conn = AsyncMock()
        insert = AsyncMock()
        with (
            patch("academy.queries.catalog.get_quiz", AsyncMock(return_value=QUIZ)),
            patch(
                "academy.queries.enrollments.has_active_enrollment",
                AsyncMock(return_value=False),
            ),
            patch("academy.queries.attempts.insert_attempt", insert),
        ):
            with pytest.raises(NotEnrolledError):
                await start_attempt(conn, quiz_id=100, user_id=USER_ID)

        insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_final_quiz_blocked_until_all_lessons_done(self):
        conn = AsyncMock()
        insert = AsyncMock()
        with (
            patch("academy.queries.catalog.get_quiz", AsyncMock(return_value=FINAL_QUIZ)),
            patch(
                "academy.queries.enrollments.has_active_enrollment",
                AsyncMock(return_value=True),
            ),
            patch("academy.queries.lessons.count_total_lessons", AsyncMock(return_value=4)),
            patch(
                "academy.queries.lessons.count_completed_lessons",
                AsyncMock(return_value=3),
            ),
            patch("academy.queries.attempts.insert_attempt", insert),
        ):
            with pytest.raises(LessonsIncompleteError) as exc_info:
                await start_attempt(conn, quiz_id=101, user_id=USER_ID)

        assert exc_info.value.completed_lessons == 3
        assert exc_info.value.total_lessons == 4
        insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_final_quiz_allowed_in_course_without_lessons(self):
        conn = AsyncMock()
        created = in_progress_attempt(quiz_id=101)
        with (
            patch("academy.queries.catalog.get_quiz", AsyncMock(return_value=FINAL_QUIZ)),
            patch(
                "academy.queries.enrollments.has_active_enrollment",
                AsyncMock(return_value=True),
            ),
            patch("academy.queries.lessons.count_total_lessons", AsyncMock(return_value=0)),
            patch(
                "academy.queries.lessons.count_completed_lessons",
                AsyncMock(return_value=0),
            ),
            patch(
                "academy.queries.attempts.get_next_attempt_number",
                AsyncMock(return_value=1),
            ),
            patch(
                "academy.queries.attempts.insert_attempt",
                AsyncMock(return_value=created),
            ),
        ):
            attempt = await start_attempt(conn, quiz_id=101, user_id=USER_ID)

        assert attempt == created

    @pytest.mark.asyncio
    async def test_uses_next_sequential_attempt_number(self):
        """Two earlier attempts (any state) means this one is number 3."""
        conn = AsyncMock()
        insert = AsyncMock(return_value=in_progress_attempt(attempt_number=3))
        with (
            patch("academy.queries.catalog.get_quiz", AsyncMock(return_value=QUIZ)),
            patch(
                "academy.queries.enrollments.has_active_enrollment",
                AsyncMock(return_value=True),
            ),
            patch(
                "academy.queries.attempts.get_next_attempt_number",
                AsyncMock(return_value=3),
            ),
            patch("academy.queries.attempts.insert_attempt", insert),
        ):
            attempt = await start_attempt(conn, quiz_id=100, user_id=USER_ID)

        assert attempt["attempt_number"] == 3
        kwargs = insert.call_args.kwargs
        assert kwargs["attempt_number"] == 3
        assert kwargs["quiz_id"] == 100
        assert kwargs["user_id"] == USER_ID
        assert kwargs["started_at"].tzinfo is not None

    @pytest.mark.asyncio
    async def test_lost_numbering_race_raises_conflict(self):
        conn = AsyncMock()
        with (
            patch("academy.queries.catalog.get_quiz", AsyncMock(return_value=QUIZ)),
            patch(
                "academy.queries.enrollments.has_active_enrollment",
                AsyncMock(return_value=True),
            ),
            patch(
                "academy.queries.attempts.get_next_attempt_number",
                AsyncMock(return_value=2),
            ),
            patch(
                "academy.queries.attempts.insert_attempt",
                AsyncMock(side_effect=integrity_error()),
            ),
        ):
            with pytest.raises(ConflictError):
                await start_attempt(conn, quiz_id=100, user_id=USER_ID)


class TestStartAttemptWithRetry:
    """Each retry runs in a fresh transaction."""

    @pytest.mark.asyncio
    async def test_retries_after_conflict(self, monkeypatch):
        monkeypatch.setenv("START_ATTEMPT_MAX_RETRIES", "3")
        created = in_progress_attempt(attempt_number=2)
        start = AsyncMock(side_effect=[ConflictError("lost"), created])

        with (
            patch("academy.attempts.get_transaction", mock_transaction()),
            patch("academy.attempts.start_attempt", start),
        ):
            attempt = await start_attempt_with_retry(quiz_id=100, user_id=USER_ID)

        assert attempt == created
        assert start.call_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, monkeypatch):
        monkeypatch.setenv("START_ATTEMPT_MAX_RETRIES", "2")
        start = AsyncMock(side_effect=ConflictError("lost"))

        with (
            patch("academy.attempts.get_transaction", mock_transaction()),
            patch("academy.attempts.start_attempt", start),
            patch("academy.attempts.sentry_sdk") as mock_sentry,
        ):
            with pytest.raises(ConflictError):
                await start_attempt_with_retry(quiz_id=100, user_id=USER_ID)

        assert start.call_count == 2
        mock_sentry.capture_exception.assert_called_once()

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        start = AsyncMock(side_effect=NotEnrolledError("no"))

        with (
            patch("academy.attempts.get_transaction", mock_transaction()),
            patch("academy.attempts.start_attempt", start),
        ):
            with pytest.raises(NotEnrolledError):
                await start_attempt_with_retry(quiz_id=100, user_id=USER_ID)

        assert start.call_count == 1


# ===== submit_attempt =====


class SubmitMocks:
    """Patches every query submit_attempt touches; writes are recorded."""

    def __init__(self, attempt=None, enrolled=True, quiz=QUIZ, blueprint=BLUEPRINT):
        self.attempt = in_progress_attempt() if attempt is None else attempt
        self.get_attempt = AsyncMock(return_value=self.attempt)
        self.get_quiz = AsyncMock(return_value=quiz)
        self.has_active_enrollment = AsyncMock(return_value=enrolled)
        self.get_quiz_blueprint = AsyncMock(return_value=blueprint)
        self.insert_attempt_answers = AsyncMock(
            side_effect=lambda conn, attempt_id, graded: {
                a.question_id: 9000 + i for i, a in enumerate(graded)
            }
        )
        self.insert_answer_selections = AsyncMock()
        self.finalize_attempt = AsyncMock(
            side_effect=lambda conn, attempt_id, *, score_percent, submitted_at: {
                **self.attempt,
                "submitted_at": submitted_at,
                "score_percent": score_percent,
            }
        )

    def patches(self):
        return [
            patch("academy.queries.attempts.get_attempt", self.get_attempt),
            patch("academy.queries.catalog.get_quiz", self.get_quiz),
            patch(
                "academy.queries.enrollments.has_active_enrollment",
                self.has_active_enrollment,
            ),
            patch("academy.queries.catalog.get_quiz_blueprint", self.get_quiz_blueprint),
            patch(
                "academy.queries.attempts.insert_attempt_answers",
                self.insert_attempt_answers,
            ),
            patch(
                "academy.queries.attempts.insert_answer_selections",
                self.insert_answer_selections,
            ),
            patch("academy.queries.attempts.finalize_attempt", self.finalize_attempt),
        ]

    def assert_nothing_written(self):
        self.insert_attempt_answers.assert_not_called()
        self.insert_answer_selections.assert_not_called()
        self.finalize_attempt.assert_not_called()


async def run_submit(mocks, answers, user_id=USER_ID, strict=None):
    patches = mocks.patches()
    for p in patches:
        p.start()
    try:
        return await submit_attempt(
            AsyncMock(), attempt_id=500, user_id=user_id, answers=answers, strict=strict
        )
    finally:
        for p in patches:
            p.stop()


class TestSubmitAttempt:
    """Grading, persistence and the in-progress -> submitted transition."""

    @pytest.mark.asyncio
    async def test_grades_and_finalizes(self):
        mocks = SubmitMocks()
        answers = [
            SubmittedAnswer(1, selected_option_id=10),
            SubmittedAnswer(2, selected_option_ids=(20,)),
            SubmittedAnswer(3, free_text="my essay"),
        ]

        result = await run_submit(mocks, answers)

        assert result["total_points"] == 35
        assert result["earned_points"] == 10
        assert result["score_percent"] == pytest.approx(100 * 10 / 35)
        assert result["per_question"] == [
            {"question_id": 1, "is_correct": True, "points_earned": 10},
            {"question_id": 2, "is_correct": False, "points_earned": 0},
            {"question_id": 3, "is_correct": False, "points_earned": 0},
        ]
        assert result["submitted_at"] is not None
        assert result["attempt_number"] == 1

    @pytest.mark.asyncio
    async def test_locks_attempt_row(self):
        mocks = SubmitMocks()
        await run_submit(mocks, [])
        assert mocks.get_attempt.call_args.kwargs == {"for_update": True}

    @pytest.mark.asyncio
    async def test_writes_one_answer_row_per_blueprint_question(self):
        """Unanswered questions still get a row, graded incorrect."""
        mocks = SubmitMocks()

        await run_submit(mocks, [SubmittedAnswer(1, selected_option_id=11)])

        graded = mocks.insert_attempt_answers.call_args.args[2]
        assert [a.question_id for a in graded] == [1, 2, 3]
        assert all(not a.is_correct for a in graded)

    @pytest.mark.asyncio
    async def test_writes_multi_select_bridge_rows(self):
        mocks = SubmitMocks()

        await run_submit(mocks, [SubmittedAnswer(2, selected_option_ids=(21, 20))])

        selections = mocks.insert_answer_selections.call_args.args[1]
        # Question 2 is the second graded answer -> attempt_answer_id 9001
        assert selections == [
            {"attempt_answer_id": 9001, "answer_option_id": 20},
            {"attempt_answer_id": 9001, "answer_option_id": 21},
        ]

    @pytest.mark.asyncio
    async def test_score_is_finalized_with_exact_value(self):
        mocks = SubmitMocks()

        await run_submit(mocks, [SubmittedAnswer(1, selected_option_id=10)])

        kwargs = mocks.finalize_attempt.call_args.kwargs
        assert kwargs["score_percent"] == pytest.approx(100 * 10 / 35)

    @pytest.mark.asyncio
    async def test_unknown_attempt_raises_not_found(self):
        mocks = SubmitMocks()
        mocks.get_attempt.return_value = None

        with pytest.raises(NotFoundError):
            await run_submit(mocks, [])
        mocks.assert_nothing_written()

    @pytest.mark.asyncio
    async def test_someone_elses_attempt_is_forbidden(self):
        mocks = SubmitMocks()

        with pytest.raises(ForbiddenError):
            await run_submit(mocks, [], user_id=OTHER_USER_ID)
        mocks.assert_nothing_written()

    @pytest.mark.asyncio
    async def test_submitted_attempt_rejected(self):
        mocks = SubmitMocks(
            attempt=in_progress_attempt(
                submitted_at=STARTED_AT + timedelta(minutes=5), score_percent=80.0
            )
        )

        with pytest.raises(AlreadySubmittedError):
            await run_submit(mocks, [])
        mocks.assert_nothing_written()

    @pytest.mark.asyncio
    async def test_dropped_enrollment_blocks_submit(self):
        mocks = SubmitMocks(enrolled=False)

        with pytest.raises(NotEnrolledError):
            await run_submit(mocks, [])
        mocks.assert_nothing_written()

    @pytest.mark.asyncio
    async def test_duplicate_answers_rejected_before_writes(self):
        mocks = SubmitMocks()
        answers = [
            SubmittedAnswer(1, selected_option_id=10),
            SubmittedAnswer(1, selected_option_id=11),
        ]

        with pytest.raises(InvalidAnswerShapeError):
            await run_submit(mocks, answers)
        mocks.assert_nothing_written()

    @pytest.mark.asyncio
    async def test_strict_mode_from_environment(self, monkeypatch):
        monkeypatch.setenv("STRICT_ANSWER_VALIDATION", "true")
        mocks = SubmitMocks()

        with pytest.raises(InvalidAnswerShapeError):
            await run_submit(mocks, [SubmittedAnswer(42, selected_option_id=1)])
        mocks.assert_nothing_written()

    @pytest.mark.asyncio
    async def test_lenient_mode_ignores_unknown_question(self):
        mocks = SubmitMocks()

        result = await run_submit(mocks, [SubmittedAnswer(42, selected_option_id=1)])

        assert len(result["per_question"]) == 3
        assert result["earned_points"] == 0

    @pytest.mark.asyncio
    async def test_concurrent_submit_losing_finalize_raises(self):
        """Zero rows updated means another submit finalized first."""
        mocks = SubmitMocks()
        mocks.finalize_attempt.side_effect = None
        mocks.finalize_attempt.return_value = None

        with pytest.raises(AlreadySubmittedError):
            await run_submit(mocks, [])

    @pytest.mark.asyncio
    async def test_concurrent_submit_duplicate_answer_rows_raises(self):
        mocks = SubmitMocks()
        mocks.insert_attempt_answers.side_effect = integrity_error()

        with pytest.raises(AlreadySubmittedError):
            await run_submit(mocks, [])
        mocks.finalize_attempt.assert_not_called()

    @pytest.mark.asyncio
    async def test_reports_time_over_limit_without_enforcing(self):
        mocks = SubmitMocks(
            quiz={**QUIZ, "time_limit_seconds": 60},
            attempt=in_progress_attempt(
                started_at=datetime.now(timezone.utc) - timedelta(minutes=5)
            ),
        )

        result = await run_submit(mocks, [SubmittedAnswer(1, selected_option_id=10)])

        assert result["over_time_limit"] is True
        assert result["elapsed_seconds"] >= 300
        assert result["time_limit_seconds"] == 60
        assert result["earned_points"] == 10

    @pytest.mark.asyncio
    async def test_no_time_limit_is_never_over(self):
        mocks = SubmitMocks()
        result = await run_submit(mocks, [])
        assert result["over_time_limit"] is False


# ===== Reading attempts =====


class TestListAttempts:
    @pytest.mark.asyncio
    async def test_adds_state(self):
        rows = [
            in_progress_attempt(attempt_id=2, attempt_number=2),
            in_progress_attempt(
                attempt_id=1, submitted_at=STARTED_AT, score_percent=50.0
            ),
        ]
        with (
            patch("academy.queries.catalog.get_quiz", AsyncMock(return_value=QUIZ)),
            patch("academy.queries.attempts.list_attempts", AsyncMock(return_value=rows)),
        ):
            result = await list_attempts(AsyncMock(), quiz_id=100, user_id=USER_ID)

        assert [r["state"] for r in result] == [
            AttemptState.in_progress,
            AttemptState.submitted,
        ]

    @pytest.mark.asyncio
    async def test_unknown_quiz(self):
        with patch("academy.queries.catalog.get_quiz", AsyncMock(return_value=None)):
            with pytest.raises(NotFoundError):
                await list_attempts(AsyncMock(), quiz_id=1, user_id=USER_ID)


class TestGetAttemptResult:
    @pytest.mark.asyncio
    async def test_submitted_attempt_with_answers(self):
        attempt = in_progress_attempt(submitted_at=STARTED_AT, score_percent=100.0)
        stored = [
            {"question_id": 1, "points_earned": 10, "selected_option_ids": []},
            {"question_id": 2, "points_earned": 20, "selected_option_ids": [20, 21]},
        ]
        with (
            patch("academy.queries.attempts.get_attempt", AsyncMock(return_value=attempt)),
            patch(
                "academy.queries.attempts.get_attempt_answers",
                AsyncMock(return_value=stored),
            ),
        ):
            result = await get_attempt_result(AsyncMock(), attempt_id=500, user_id=USER_ID)

        assert result["state"] is AttemptState.submitted
        assert result["earned_points"] == 30
        assert result["answers"] == stored

    @pytest.mark.asyncio
    async def test_in_progress_attempt_has_no_answers(self):
        answers = AsyncMock()
        with (
            patch(
                "academy.queries.attempts.get_attempt",
                AsyncMock(return_value=in_progress_attempt()),
            ),
            patch("academy.queries.attempts.get_attempt_answers", answers),
        ):
            result = await get_attempt_result(AsyncMock(), attempt_id=500, user_id=USER_ID)

        assert result["state"] is AttemptState.in_progress
        assert result["answers"] == []
        answers.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_users_attempt_is_forbidden(self):
        with patch(
            "academy.queries.attempts.get_attempt",
            AsyncMock(return_value=in_progress_attempt()),
        ):
            with pytest.raises(ForbiddenError):
                await get_attempt_result(
                    AsyncMock(), attempt_id=500, user_id=OTHER_USER_ID
                )
