"""Lesson completion counts."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..tables import lesson_completions, lessons


async def count_total_lessons(conn: AsyncConnection, course_id: int) -> int:
    result = await conn.execute(
        select(func.count(lessons.c.lesson_id)).where(lessons.c.course_id == course_id)
    )
    return result.scalar() or 0


async def count_completed_lessons(
    conn: AsyncConnection, user_id: int, course_id: int
) -> int:
    """Count the course's lessons the user has completed."""
    result = await conn.execute(
        select(func.count(lesson_completions.c.lesson_completion_id))
        .join(lessons, lesson_completions.c.lesson_id == lessons.c.lesson_id)
        .where(
            (lesson_completions.c.user_id == user_id)
            & (lessons.c.course_id == course_id)
        )
    )
    return result.scalar() or 0
