"""Query layer for database operations using SQLAlchemy Core."""

from .catalog import (
    get_course,
    get_course_quizzes,
    get_quiz,
    get_quiz_blueprint,
    get_user,
)
from .enrollments import get_enrollment, has_active_enrollment
from .lessons import count_completed_lessons, count_total_lessons

__all__ = [
    # Question catalog
    "get_quiz",
    "get_quiz_blueprint",
    "get_course",
    "get_course_quizzes",
    "get_user",
    # Enrollment registry
    "get_enrollment",
    "has_active_enrollment",
    # Lesson completion tracker
    "count_total_lessons",
    "count_completed_lessons",
]
