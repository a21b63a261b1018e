"""
Certificate eligibility and issuance.

A learner earns one certificate per course once every lesson is completed and
every quiz of the course has a passing submitted attempt. Issuing is
idempotent: asking again returns the stored certificate unchanged.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy.ext.asyncio import AsyncConnection

from .enums import EligibilityRule
from .errors import ForbiddenError, IneligibleForCertificateError, NotFoundError
from .progress import is_quiz_passed
from .queries import attempts as attempt_queries
from .queries import catalog, enrollments, lessons
from .queries import certificates as certificate_queries

logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes can be read back over the phone
CERTIFICATE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CERTIFICATE_CODE_LENGTH = 12


def generate_certificate_code() -> str:
    """Generate a random verification code for a certificate."""
    return "".join(
        secrets.choice(CERTIFICATE_CODE_ALPHABET)
        for _ in range(CERTIFICATE_CODE_LENGTH)
    )


def evaluate_eligibility(
    *,
    total_lessons: int,
    completed_lessons: int,
    quizzes: Iterable[dict[str, Any]],
    summaries: dict[int, dict[str, Any]],
) -> None:
    """
    Check the certificate rules, raising on the first one that fails.

    Lessons are checked before quizzes. Quizzes are checked in the given
    order and the first one without a passing attempt is named.

    Raises:
        IneligibleForCertificateError: A rule is unmet
    """
    if total_lessons > 0 and completed_lessons < total_lessons:
        raise IneligibleForCertificateError(
            EligibilityRule.lessons,
            f"Complete all lessons first ({completed_lessons}/{total_lessons} done)",
        )

    for quiz in quizzes:
        if not is_quiz_passed(quiz, summaries.get(quiz["quiz_id"])):
            raise IneligibleForCertificateError(
                EligibilityRule.quizzes,
                f"Quiz '{quiz['title']}' has not been passed yet",
                quiz_id=quiz["quiz_id"],
            )


async def generate_certificate(
    conn: AsyncConnection, *, user_id: int, course_id: int
) -> dict[str, Any]:
    """
    Issue the user's certificate for a course, or return the existing one.

    Returns:
        The certificate row (certificate_id, course_id, user_id,
        certificate_code, generated_at)

    Raises:
        IneligibleForCertificateError: Not enrolled, or a rule is unmet
    """
    if await enrollments.get_enrollment(conn, user_id, course_id) is None:
        raise IneligibleForCertificateError(
            EligibilityRule.enrollment, "User is not enrolled in this course"
        )

    existing = await certificate_queries.get_certificate(conn, user_id, course_id)
    if existing:
        return existing

    total = await lessons.count_total_lessons(conn, course_id)
    completed = await lessons.count_completed_lessons(conn, user_id, course_id)
    quizzes = await catalog.get_course_quizzes(conn, course_id)
    summaries = await attempt_queries.summarize_submitted_attempts(
        conn, user_id, [q["quiz_id"] for q in quizzes]
    )
    evaluate_eligibility(
        total_lessons=total,
        completed_lessons=completed,
        quizzes=quizzes,
        summaries=summaries,
    )

    certificate = await certificate_queries.insert_certificate_if_absent(
        conn,
        course_id=course_id,
        user_id=user_id,
        certificate_code=generate_certificate_code(),
        generated_at=datetime.now(timezone.utc),
    )
    if certificate is None:
        # A concurrent request issued it first
        logger.info(
            "Certificate for user %d on course %d was issued concurrently",
            user_id,
            course_id,
        )
        return await certificate_queries.get_certificate(conn, user_id, course_id)

    logger.info(
        "Issued certificate %s to user %d for course %d",
        certificate["certificate_code"],
        user_id,
        course_id,
    )
    return certificate


async def list_user_certificates(
    conn: AsyncConnection, *, user_id: int
) -> list[dict[str, Any]]:
    return await certificate_queries.list_user_certificates(conn, user_id)


async def get_certificate_render_data(
    conn: AsyncConnection, *, certificate_id: int, user_id: int
) -> dict[str, Any]:
    """
    Payload for the certificate renderer.

    Missing course or user records fall back to placeholder names so a
    certificate can always be rendered.

    Raises:
        NotFoundError: Certificate doesn't exist
        ForbiddenError: Certificate belongs to someone else
    """
    certificate = await certificate_queries.get_certificate_by_id(
        conn, certificate_id
    )
    if certificate is None:
        raise NotFoundError(f"Certificate not found: {certificate_id}")
    if certificate["user_id"] != user_id:
        raise ForbiddenError("This certificate belongs to another user")

    course = await catalog.get_course(conn, certificate["course_id"])
    user = await catalog.get_user(conn, certificate["user_id"])

    return {
        "course_title": course["title"] if course else f"Course #{certificate['course_id']}",
        "student_name": (
            user["full_name"] if user and user["full_name"] else f"User #{certificate['user_id']}"
        ),
        "certificate_code": certificate["certificate_code"],
        "generated_at": certificate["generated_at"],
    }


async def verify_certificate(
    conn: AsyncConnection, *, certificate_code: str
) -> dict[str, Any]:
    """
    Look up a certificate by its verification code.

    Raises:
        NotFoundError: No certificate carries this code
    """
    certificate = await certificate_queries.get_certificate_by_code(
        conn, certificate_code.strip().upper()
    )
    if certificate is None:
        raise NotFoundError("No certificate with this code")
    return certificate
