"""Certificate storage."""

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection

from ..tables import certificates, courses


async def get_certificate(
    conn: AsyncConnection, user_id: int, course_id: int
) -> dict[str, Any] | None:
    result = await conn.execute(
        select(certificates).where(
            (certificates.c.user_id == user_id)
            & (certificates.c.course_id == course_id)
        )
    )
    row = result.mappings().first()
    return dict(row) if row else None


async def get_certificate_by_id(
    conn: AsyncConnection, certificate_id: int
) -> dict[str, Any] | None:
    result = await conn.execute(
        select(certificates).where(certificates.c.certificate_id == certificate_id)
    )
    row = result.mappings().first()
    return dict(row) if row else None


async def get_certificate_by_code(
    conn: AsyncConnection, certificate_code: str
) -> dict[str, Any] | None:
    result = await conn.execute(
        select(certificates).where(certificates.c.certificate_code == certificate_code)
    )
    row = result.mappings().first()
    return dict(row) if row else None


async def insert_certificate_if_absent(
    conn: AsyncConnection,
    *,
    course_id: int,
    user_id: int,
    certificate_code: str,
    generated_at: datetime,
) -> dict[str, Any] | None:
    """
    Insert a certificate unless the user already has one for the course.

    Uses INSERT ... ON CONFLICT DO NOTHING on (course_id, user_id), so two
    concurrent evaluations can't both create a row.

    Returns:
        The new row, or None if a certificate already existed
    """
    stmt = (
        pg_insert(certificates)
        .values(
            course_id=course_id,
            user_id=user_id,
            certificate_code=certificate_code,
            generated_at=generated_at,
        )
        .on_conflict_do_nothing(index_elements=["course_id", "user_id"])
        .returning(certificates)
    )
    result = await conn.execute(stmt)
    row = result.mappings().first()
    return dict(row) if row else None


async def list_user_certificates(
    conn: AsyncConnection, user_id: int
) -> list[dict[str, Any]]:
    """A user's certificates with course titles, newest first."""
    result = await conn.execute(
        select(certificates, courses.c.title.label("course_title"))
        .join(courses, certificates.c.course_id == courses.c.course_id)
        .where(certificates.c.user_id == user_id)
        .order_by(certificates.c.generated_at.desc())
    )
    return [dict(row) for row in result.mappings()]
