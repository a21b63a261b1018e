"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP

from .enums import enrollment_status_enum, question_type_enum

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. USERS
# =====================================================
# Owned by the auth service; read here for certificate names only
users = Table(
    "users",
    metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("email", Text),
    Column("full_name", Text),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_users_email", "email", unique=True),
)


# =====================================================
# 2. COURSES
# =====================================================
courses = Table(
    "courses",
    metadata,
    Column("course_id", Integer, primary_key=True, autoincrement=True),
    Column("title", Text, nullable=False),
    Column("is_published", Boolean, server_default="false", nullable=False),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
)


# =====================================================
# 3. LESSONS
# =====================================================
lessons = Table(
    "lessons",
    metadata,
    Column("lesson_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "course_id",
        Integer,
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("title", Text, nullable=False),
    Column("order_index", Integer, server_default="0", nullable=False),
    Index("idx_lessons_course_id", "course_id"),
)


# =====================================================
# 4. LESSON_COMPLETIONS
# =====================================================
lesson_completions = Table(
    "lesson_completions",
    metadata,
    Column("lesson_completion_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "lesson_id",
        Integer,
        ForeignKey("lessons.lesson_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("completed_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_lesson_completions_user_id", "user_id"),
    UniqueConstraint(
        "lesson_id", "user_id", name="uq_lesson_completions_lesson_id_user_id"
    ),
)


# =====================================================
# 5. COURSE_ENROLLMENTS
# =====================================================
course_enrollments = Table(
    "course_enrollments",
    metadata,
    Column("enrollment_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "course_id",
        Integer,
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("status", enrollment_status_enum, server_default="active", nullable=False),
    Column("enrolled_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_course_enrollments_user_course", "user_id", "course_id"),
)


# =====================================================
# 6. QUIZZES
# =====================================================
quizzes = Table(
    "quizzes",
    metadata,
    Column("quiz_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "course_id",
        Integer,
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "lesson_id",
        Integer,
        ForeignKey("lessons.lesson_id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("title", Text, nullable=False),
    Column("passing_score_percent", Integer, server_default="0", nullable=False),
    Column("time_limit_seconds", Integer, server_default="0", nullable=False),
    Column("is_final", Boolean, server_default="false", nullable=False),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_quizzes_course_id", "course_id"),
    CheckConstraint(
        "passing_score_percent BETWEEN 0 AND 100", name="valid_passing_score"
    ),
)


# =====================================================
# 7. QUESTIONS + ANSWER_OPTIONS
# =====================================================
questions = Table(
    "questions",
    metadata,
    Column("question_id", Integer, primary_key=True, autoincrement=True),
    Column("question_text", Text, nullable=False),
    Column("question_type", question_type_enum, nullable=False),
    Column("explanation", Text),
)

answer_options = Table(
    "answer_options",
    metadata,
    Column("answer_option_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "question_id",
        Integer,
        ForeignKey("questions.question_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("option_text", Text, nullable=False),
    Column("is_correct", Boolean, server_default="false", nullable=False),
    Index("idx_answer_options_question_id", "question_id"),
)


# =====================================================
# 8. QUIZ_QUESTIONS (blueprint)
# =====================================================
quiz_questions = Table(
    "quiz_questions",
    metadata,
    Column("quiz_question_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "quiz_id",
        Integer,
        ForeignKey("quizzes.quiz_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "question_id",
        Integer,
        ForeignKey("questions.question_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("points", Integer, server_default="1", nullable=False),
    Column("order_index", Integer, server_default="0", nullable=False),
    UniqueConstraint(
        "quiz_id", "question_id", name="uq_quiz_questions_quiz_id_question_id"
    ),
    CheckConstraint("points > 0", name="positive_points"),
)


# =====================================================
# 9. QUIZ_ATTEMPTS
# =====================================================
quiz_attempts = Table(
    "quiz_attempts",
    metadata,
    Column("attempt_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "quiz_id",
        Integer,
        ForeignKey("quizzes.quiz_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("attempt_number", Integer, nullable=False),
    Column("started_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("submitted_at", TIMESTAMP(timezone=True), nullable=True),
    Column("score_percent", Float, server_default="0", nullable=False),
    Index("idx_quiz_attempts_user_id", "user_id"),
    # Closes the attempt-number race: the loser of two concurrent starts fails here
    UniqueConstraint(
        "quiz_id",
        "user_id",
        "attempt_number",
        name="uq_quiz_attempts_quiz_user_number",
    ),
)


# =====================================================
# 10. ATTEMPT_ANSWERS + ATTEMPT_ANSWER_SELECTIONS
# =====================================================
attempt_answers = Table(
    "attempt_answers",
    metadata,
    Column("attempt_answer_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "attempt_id",
        Integer,
        ForeignKey("quiz_attempts.attempt_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "question_id",
        Integer,
        ForeignKey("questions.question_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "selected_answer_option_id",
        Integer,
        ForeignKey("answer_options.answer_option_id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("short_answer_text", Text, nullable=True),
    Column("is_correct", Boolean, nullable=False),
    Column("points_earned", Integer, nullable=False),
    # One answer row per question per attempt; a second submit cannot add another set
    UniqueConstraint(
        "attempt_id", "question_id", name="uq_attempt_answers_attempt_id_question_id"
    ),
)

attempt_answer_selections = Table(
    "attempt_answer_selections",
    metadata,
    Column(
        "attempt_answer_selection_id", Integer, primary_key=True, autoincrement=True
    ),
    Column(
        "attempt_answer_id",
        Integer,
        ForeignKey("attempt_answers.attempt_answer_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "answer_option_id",
        Integer,
        ForeignKey("answer_options.answer_option_id", ondelete="CASCADE"),
        nullable=False,
    ),
    UniqueConstraint(
        "attempt_answer_id",
        "answer_option_id",
        name="uq_attempt_answer_selections_answer_option",
    ),
)


# =====================================================
# 11. CERTIFICATES
# =====================================================
certificates = Table(
    "certificates",
    metadata,
    Column("certificate_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "course_id",
        Integer,
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("certificate_code", Text, nullable=False),
    Column("generated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_certificates_user_id", "user_id"),
    UniqueConstraint("course_id", "user_id", name="uq_certificates_course_id_user_id"),
    UniqueConstraint("certificate_code", name="uq_certificates_certificate_code"),
)
