"""Enrollment registry lookups."""

from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import EnrollmentStatus
from ..tables import course_enrollments


async def get_enrollment(
    conn: AsyncConnection, user_id: int, course_id: int
) -> dict[str, Any] | None:
    """
    Get the user's enrollment record for a course, in any status.

    A learner who dropped and re-enrolled has several rows; the newest wins.
    """
    result = await conn.execute(
        select(course_enrollments)
        .where(
            (course_enrollments.c.user_id == user_id)
            & (course_enrollments.c.course_id == course_id)
        )
        .order_by(
            course_enrollments.c.enrolled_at.desc(),
            course_enrollments.c.enrollment_id.desc(),
        )
        .limit(1)
    )
    row = result.mappings().first()
    return dict(row) if row else None


async def has_active_enrollment(
    conn: AsyncConnection, user_id: int, course_id: int
) -> bool:
    """Check whether the user is actively enrolled in the course."""
    query = select(
        exists().where(
            (course_enrollments.c.user_id == user_id)
            & (course_enrollments.c.course_id == course_id)
            & (course_enrollments.c.status == EnrollmentStatus.active)
        )
    )
    result = await conn.execute(query)
    return bool(result.scalar())
