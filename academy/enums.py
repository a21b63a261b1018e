"""SQLAlchemy enum definitions for the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class EnrollmentStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    dropped = "dropped"


class QuestionType(str, enum.Enum):
    mcq = "mcq"
    msq = "msq"
    true_false = "true_false"
    short_answer = "short_answer"


class AttemptState(str, enum.Enum):
    """Derived from submitted_at; never stored."""

    in_progress = "in_progress"
    submitted = "submitted"


class EligibilityRule(str, enum.Enum):
    enrollment = "enrollment"
    lessons = "lessons"
    quizzes = "quizzes"


# =====================================================
# SQLAlchemy Enum Types
# Created together with their tables (metadata.create_all / migration 001)
# =====================================================

enrollment_status_enum = SQLEnum(
    EnrollmentStatus, name="enrollment_status", native_enum=True
)
question_type_enum = SQLEnum(QuestionType, name="question_type", native_enum=True)
