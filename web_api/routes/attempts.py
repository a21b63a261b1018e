"""Quiz attempt API routes.

Endpoints:
- POST /api/quizzes/{quiz_id}/attempts - Start a new attempt
- GET /api/quizzes/{quiz_id}/attempts - List the caller's attempts on a quiz
- POST /api/attempts/{attempt_id}/submit - Submit answers and grade
- GET /api/attempts/{attempt_id} - Review an attempt with its answers
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from academy.attempts import (
    get_attempt_result,
    list_attempts,
    start_attempt_with_retry,
    submit_attempt,
)
from academy.database import get_connection, get_transaction
from academy.errors import AcademyError
from academy.grading import SubmittedAnswer
from web_api.auth import get_current_user_id
from web_api.http_errors import to_http_exception

router = APIRouter(tags=["attempts"])


# --- Request/Response Models ---


class StartAttemptResponse(BaseModel):
    attempt_id: int
    quiz_id: int
    user_id: int
    attempt_number: int
    started_at: datetime


class AnswerIn(BaseModel):
    question_id: int
    selected_option_id: int | None = None
    selected_option_ids: list[int] | None = None
    free_text: str | None = None


class SubmitAttemptRequest(BaseModel):
    answers: list[AnswerIn] = []


class QuestionResult(BaseModel):
    question_id: int
    is_correct: bool
    points_earned: int


class SubmitAttemptResponse(BaseModel):
    attempt_id: int
    quiz_id: int
    attempt_number: int
    started_at: datetime
    submitted_at: datetime
    score_percent: float
    total_points: int
    earned_points: int
    per_question: list[QuestionResult]
    elapsed_seconds: float
    time_limit_seconds: int
    over_time_limit: bool


class AttemptItem(BaseModel):
    attempt_id: int
    attempt_number: int
    state: str
    started_at: datetime
    submitted_at: datetime | None
    score_percent: float | None


class AttemptListResponse(BaseModel):
    attempts: list[AttemptItem]


class StoredAnswer(BaseModel):
    question_id: int
    selected_answer_option_id: int | None
    selected_option_ids: list[int]
    short_answer_text: str | None
    is_correct: bool
    points_earned: int


class AttemptResultResponse(BaseModel):
    attempt_id: int
    quiz_id: int
    attempt_number: int
    state: str
    started_at: datetime
    submitted_at: datetime | None
    score_percent: float | None
    earned_points: int
    answers: list[StoredAnswer]


def _present_score(attempt: dict) -> float | None:
    """Round for display; None while the attempt is still in progress."""
    if attempt.get("submitted_at") is None:
        return None
    return round(attempt["score_percent"], 2)


# --- Endpoints ---


@router.post(
    "/api/quizzes/{quiz_id}/attempts",
    response_model=StartAttemptResponse,
    status_code=201,
)
async def start_quiz_attempt(
    quiz_id: int,
    user_id: int = Depends(get_current_user_id),
):
    """Start a new attempt. Numbering races are retried before giving up."""
    try:
        attempt = await start_attempt_with_retry(quiz_id=quiz_id, user_id=user_id)
    except AcademyError as e:
        raise to_http_exception(e)

    return StartAttemptResponse(
        attempt_id=attempt["attempt_id"],
        quiz_id=attempt["quiz_id"],
        user_id=attempt["user_id"],
        attempt_number=attempt["attempt_number"],
        started_at=attempt["started_at"],
    )


@router.get("/api/quizzes/{quiz_id}/attempts", response_model=AttemptListResponse)
async def list_quiz_attempts(
    quiz_id: int,
    user_id: int = Depends(get_current_user_id),
):
    """The caller's attempts on a quiz, newest first."""
    try:
        async with get_connection() as conn:
            rows = await list_attempts(conn, quiz_id=quiz_id, user_id=user_id)
    except AcademyError as e:
        raise to_http_exception(e)

    return AttemptListResponse(
        attempts=[
            AttemptItem(
                attempt_id=row["attempt_id"],
                attempt_number=row["attempt_number"],
                state=row["state"].value,
                started_at=row["started_at"],
                submitted_at=row["submitted_at"],
                score_percent=_present_score(row),
            )
            for row in rows
        ]
    )


@router.post(
    "/api/attempts/{attempt_id}/submit", response_model=SubmitAttemptResponse
)
async def submit_quiz_attempt(
    attempt_id: int,
    body: SubmitAttemptRequest,
    user_id: int = Depends(get_current_user_id),
):
    """Grade and finalize an attempt. Answers and the final score commit together."""
    answers = [
        SubmittedAnswer(
            question_id=a.question_id,
            selected_option_id=a.selected_option_id,
            selected_option_ids=(
                tuple(a.selected_option_ids)
                if a.selected_option_ids is not None
                else None
            ),
            free_text=a.free_text,
        )
        for a in body.answers
    ]

    try:
        async with get_transaction() as conn:
            result = await submit_attempt(
                conn, attempt_id=attempt_id, user_id=user_id, answers=answers
            )
    except AcademyError as e:
        raise to_http_exception(e)

    return SubmitAttemptResponse(
        attempt_id=result["attempt_id"],
        quiz_id=result["quiz_id"],
        attempt_number=result["attempt_number"],
        started_at=result["started_at"],
        submitted_at=result["submitted_at"],
        score_percent=round(result["score_percent"], 2),
        total_points=result["total_points"],
        earned_points=result["earned_points"],
        per_question=[QuestionResult(**q) for q in result["per_question"]],
        elapsed_seconds=round(result["elapsed_seconds"], 1),
        time_limit_seconds=result["time_limit_seconds"],
        over_time_limit=result["over_time_limit"],
    )


@router.get("/api/attempts/{attempt_id}", response_model=AttemptResultResponse)
async def get_quiz_attempt(
    attempt_id: int,
    user_id: int = Depends(get_current_user_id),
):
    """Review one of the caller's attempts."""
    try:
        async with get_connection() as conn:
            result = await get_attempt_result(
                conn, attempt_id=attempt_id, user_id=user_id
            )
    except AcademyError as e:
        raise to_http_exception(e)

    return AttemptResultResponse(
        attempt_id=result["attempt_id"],
        quiz_id=result["quiz_id"],
        attempt_number=result["attempt_number"],
        state=result["state"].value,
        started_at=result["started_at"],
        submitted_at=result["submitted_at"],
        score_percent=_present_score(result),
        earned_points=result["earned_points"],
        answers=[
            StoredAnswer(
                question_id=a["question_id"],
                selected_answer_option_id=a["selected_answer_option_id"],
                selected_option_ids=a["selected_option_ids"],
                short_answer_text=a["short_answer_text"],
                is_correct=a["is_correct"],
                points_earned=a["points_earned"],
            )
            for a in result["answers"]
        ],
    )
