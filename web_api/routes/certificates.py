"""Certificate API routes.

Endpoints:
- POST /api/certificates/generate - Issue (or return) the caller's certificate
- GET /api/certificates/me - The caller's certificates
- GET /api/certificates/{certificate_id}/render-data - Payload for the renderer
- GET /api/certificates/verify/{code} - Public lookup by verification code
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from academy.certificates import (
    generate_certificate,
    get_certificate_render_data,
    list_user_certificates,
    verify_certificate,
)
from academy.database import get_connection, get_transaction
from academy.errors import AcademyError
from web_api.auth import get_current_user_id
from web_api.http_errors import to_http_exception

router = APIRouter(prefix="/api/certificates", tags=["certificates"])


class GenerateCertificateRequest(BaseModel):
    course_id: int


class CertificateResponse(BaseModel):
    certificate_id: int
    course_id: int
    certificate_code: str
    generated_at: datetime


class CertificateItem(CertificateResponse):
    course_title: str


class CertificateListResponse(BaseModel):
    certificates: list[CertificateItem]


class RenderDataResponse(BaseModel):
    course_title: str
    student_name: str
    certificate_code: str
    generated_at: datetime


class VerifyResponse(BaseModel):
    valid: bool
    course_id: int
    certificate_code: str
    generated_at: datetime


@router.post("/generate", response_model=CertificateResponse)
async def generate(
    body: GenerateCertificateRequest,
    user_id: int = Depends(get_current_user_id),
):
    """
    Issue the caller's certificate for a course.

    Safe to call repeatedly: an existing certificate is returned as is.
    Returns 400 with {"ineligible": {rule, message, quiz_id}} otherwise.
    """
    try:
        async with get_transaction() as conn:
            certificate = await generate_certificate(
                conn, user_id=user_id, course_id=body.course_id
            )
    except AcademyError as e:
        raise to_http_exception(e)

    return CertificateResponse(
        certificate_id=certificate["certificate_id"],
        course_id=certificate["course_id"],
        certificate_code=certificate["certificate_code"],
        generated_at=certificate["generated_at"],
    )


@router.get("/me", response_model=CertificateListResponse)
async def my_certificates(user_id: int = Depends(get_current_user_id)):
    async with get_connection() as conn:
        rows = await list_user_certificates(conn, user_id=user_id)

    return CertificateListResponse(
        certificates=[
            CertificateItem(
                certificate_id=row["certificate_id"],
                course_id=row["course_id"],
                course_title=row["course_title"],
                certificate_code=row["certificate_code"],
                generated_at=row["generated_at"],
            )
            for row in rows
        ]
    )


@router.get("/verify/{code}", response_model=VerifyResponse)
async def verify(code: str):
    """Public: confirm a certificate code is genuine. No auth required."""
    try:
        async with get_connection() as conn:
            certificate = await verify_certificate(conn, certificate_code=code)
    except AcademyError as e:
        raise to_http_exception(e)

    return VerifyResponse(
        valid=True,
        course_id=certificate["course_id"],
        certificate_code=certificate["certificate_code"],
        generated_at=certificate["generated_at"],
    )


@router.get("/{certificate_id}/render-data", response_model=RenderDataResponse)
async def render_data(
    certificate_id: int,
    user_id: int = Depends(get_current_user_id),
):
    try:
        async with get_connection() as conn:
            data = await get_certificate_render_data(
                conn, certificate_id=certificate_id, user_id=user_id
            )
    except AcademyError as e:
        raise to_http_exception(e)

    return RenderDataResponse(**data)
