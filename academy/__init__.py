"""
Quiz assessment core - platform-agnostic.
Attempts, grading, course progress and certificates; used by the web API.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, get_engine, close_engine, is_configured

# Errors
from .errors import (
    AcademyError, NotFoundError, ForbiddenError, NotEnrolledError,
    LessonsIncompleteError, AlreadySubmittedError, InvalidAnswerShapeError,
    ConflictError, IneligibleForCertificateError,
)

# Grading engine (pure)
from .grading import (
    SubmittedAnswer, GradedAnswer, GradeResult, BlueprintEntry,
    grade_question, grade_submission, calculate_score_percent, index_answers,
)

# Attempt lifecycle (async functions - must be awaited)
from .attempts import (
    start_attempt, start_attempt_with_retry, submit_attempt,
    list_attempts, get_attempt_result,
)

# Course progress
from .progress import get_course_progress

# Certificates
from .certificates import (
    generate_certificate, list_user_certificates,
    get_certificate_render_data, verify_certificate,
)

__all__ = [
    # Database
    'get_connection', 'get_transaction', 'get_engine', 'close_engine', 'is_configured',
    # Errors
    'AcademyError', 'NotFoundError', 'ForbiddenError', 'NotEnrolledError',
    'LessonsIncompleteError', 'AlreadySubmittedError', 'InvalidAnswerShapeError',
    'ConflictError', 'IneligibleForCertificateError',
    # Grading
    'SubmittedAnswer', 'GradedAnswer', 'GradeResult', 'BlueprintEntry',
    'grade_question', 'grade_submission', 'calculate_score_percent', 'index_answers',
    # Attempts
    'start_attempt', 'start_attempt_with_retry', 'submit_attempt',
    'list_attempts', 'get_attempt_result',
    # Progress
    'get_course_progress',
    # Certificates
    'generate_certificate', 'list_user_certificates',
    'get_certificate_render_data', 'verify_certificate',
]
