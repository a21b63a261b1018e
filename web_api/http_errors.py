"""Map core exceptions onto HTTP errors."""

from fastapi import HTTPException

from academy.errors import (
    AcademyError,
    AlreadySubmittedError,
    ConflictError,
    ForbiddenError,
    IneligibleForCertificateError,
    InvalidAnswerShapeError,
    LessonsIncompleteError,
    NotEnrolledError,
    NotFoundError,
)

_STATUS_CODES: dict[type[AcademyError], int] = {
    NotFoundError: 404,
    ForbiddenError: 403,
    NotEnrolledError: 403,
    LessonsIncompleteError: 403,
    AlreadySubmittedError: 409,
    ConflictError: 409,
    InvalidAnswerShapeError: 422,
    IneligibleForCertificateError: 400,
}


def to_http_exception(error: AcademyError) -> HTTPException:
    """Build the HTTPException a route should raise for a core error."""
    if isinstance(error, IneligibleForCertificateError):
        return HTTPException(status_code=400, detail={"ineligible": error.to_dict()})

    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))
