"""Assessment schema.

Revision ID: 001
Revises:
Create Date: 2026-10-17

Creates the catalog tables read by the service (users, courses, lessons,
lesson_completions, course_enrollments, quizzes, questions, answer_options,
quiz_questions) and the tables it owns (quiz_attempts, attempt_answers,
attempt_answer_selections, certificates).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

enrollment_status = ENUM(
    "active", "completed", "dropped", name="enrollment_status", create_type=False
)
question_type = ENUM(
    "mcq", "msq", "true_false", "short_answer", name="question_type", create_type=False
)


def _id(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), autoincrement=True, nullable=False)


def _fk(name: str, target: str, ondelete: str = "CASCADE", nullable: bool = False):
    return sa.Column(
        name,
        sa.Integer(),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _timestamp(name: str, default_now: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.func.now() if default_now else None,
        nullable=True,
    )


def upgrade() -> None:
    bind = op.get_bind()
    enrollment_status.create(bind, checkfirst=True)
    question_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        _id("user_id"),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("user_id", name="pk_users"),
    )
    op.create_index("idx_users_email", "users", ["email"], unique=True)

    op.create_table(
        "courses",
        _id("course_id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column(
            "is_published", sa.Boolean(), server_default="false", nullable=False
        ),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("course_id", name="pk_courses"),
    )

    op.create_table(
        "lessons",
        _id("lesson_id"),
        _fk("course_id", "courses.course_id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("lesson_id", name="pk_lessons"),
    )
    op.create_index("idx_lessons_course_id", "lessons", ["course_id"])

    op.create_table(
        "lesson_completions",
        _id("lesson_completion_id"),
        _fk("lesson_id", "lessons.lesson_id"),
        _fk("user_id", "users.user_id"),
        _timestamp("completed_at"),
        sa.PrimaryKeyConstraint("lesson_completion_id", name="pk_lesson_completions"),
        sa.UniqueConstraint(
            "lesson_id", "user_id", name="uq_lesson_completions_lesson_id_user_id"
        ),
    )
    op.create_index(
        "idx_lesson_completions_user_id", "lesson_completions", ["user_id"]
    )

    op.create_table(
        "course_enrollments",
        _id("enrollment_id"),
        _fk("course_id", "courses.course_id"),
        _fk("user_id", "users.user_id"),
        sa.Column(
            "status", enrollment_status, server_default="active", nullable=False
        ),
        _timestamp("enrolled_at"),
        sa.PrimaryKeyConstraint("enrollment_id", name="pk_course_enrollments"),
    )
    op.create_index(
        "idx_course_enrollments_user_course",
        "course_enrollments",
        ["user_id", "course_id"],
    )

    op.create_table(
        "quizzes",
        _id("quiz_id"),
        _fk("course_id", "courses.course_id"),
        _fk("lesson_id", "lessons.lesson_id", ondelete="SET NULL", nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column(
            "passing_score_percent", sa.Integer(), server_default="0", nullable=False
        ),
        sa.Column(
            "time_limit_seconds", sa.Integer(), server_default="0", nullable=False
        ),
        sa.Column("is_final", sa.Boolean(), server_default="false", nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("quiz_id", name="pk_quizzes"),
        sa.CheckConstraint(
            "passing_score_percent BETWEEN 0 AND 100",
            name="ck_quizzes_valid_passing_score",
        ),
    )
    op.create_index("idx_quizzes_course_id", "quizzes", ["course_id"])

    op.create_table(
        "questions",
        _id("question_id"),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("question_type", question_type, nullable=False),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("question_id", name="pk_questions"),
    )

    op.create_table(
        "answer_options",
        _id("answer_option_id"),
        _fk("question_id", "questions.question_id"),
        sa.Column("option_text", sa.Text(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), server_default="false", nullable=False),
        sa.PrimaryKeyConstraint("answer_option_id", name="pk_answer_options"),
    )
    op.create_index(
        "idx_answer_options_question_id", "answer_options", ["question_id"]
    )

    op.create_table(
        "quiz_questions",
        _id("quiz_question_id"),
        _fk("quiz_id", "quizzes.quiz_id"),
        _fk("question_id", "questions.question_id"),
        sa.Column("points", sa.Integer(), server_default="1", nullable=False),
        sa.Column("order_index", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("quiz_question_id", name="pk_quiz_questions"),
        sa.UniqueConstraint(
            "quiz_id", "question_id", name="uq_quiz_questions_quiz_id_question_id"
        ),
        sa.CheckConstraint("points > 0", name="ck_quiz_questions_positive_points"),
    )

    op.create_table(
        "quiz_attempts",
        _id("attempt_id"),
        _fk("quiz_id", "quizzes.quiz_id"),
        _fk("user_id", "users.user_id"),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        _timestamp("started_at"),
        _timestamp("submitted_at", default_now=False),
        sa.Column("score_percent", sa.Float(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("attempt_id", name="pk_quiz_attempts"),
        sa.UniqueConstraint(
            "quiz_id",
            "user_id",
            "attempt_number",
            name="uq_quiz_attempts_quiz_user_number",
        ),
    )
    op.create_index("idx_quiz_attempts_user_id", "quiz_attempts", ["user_id"])

    op.create_table(
        "attempt_answers",
        _id("attempt_answer_id"),
        _fk("attempt_id", "quiz_attempts.attempt_id"),
        _fk("question_id", "questions.question_id"),
        _fk(
            "selected_answer_option_id",
            "answer_options.answer_option_id",
            ondelete="SET NULL",
            nullable=True,
        ),
        sa.Column("short_answer_text", sa.Text(), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("attempt_answer_id", name="pk_attempt_answers"),
        sa.UniqueConstraint(
            "attempt_id",
            "question_id",
            name="uq_attempt_answers_attempt_id_question_id",
        ),
    )

    op.create_table(
        "attempt_answer_selections",
        _id("attempt_answer_selection_id"),
        _fk("attempt_answer_id", "attempt_answers.attempt_answer_id"),
        _fk("answer_option_id", "answer_options.answer_option_id"),
        sa.PrimaryKeyConstraint(
            "attempt_answer_selection_id", name="pk_attempt_answer_selections"
        ),
        sa.UniqueConstraint(
            "attempt_answer_id",
            "answer_option_id",
            name="uq_attempt_answer_selections_answer_option",
        ),
    )

    op.create_table(
        "certificates",
        _id("certificate_id"),
        _fk("course_id", "courses.course_id"),
        _fk("user_id", "users.user_id"),
        sa.Column("certificate_code", sa.Text(), nullable=False),
        _timestamp("generated_at"),
        sa.PrimaryKeyConstraint("certificate_id", name="pk_certificates"),
        sa.UniqueConstraint(
            "course_id", "user_id", name="uq_certificates_course_id_user_id"
        ),
        sa.UniqueConstraint(
            "certificate_code", name="uq_certificates_certificate_code"
        ),
    )
    op.create_index("idx_certificates_user_id", "certificates", ["user_id"])


def downgrade() -> None:
    for table in (
        "certificates",
        "attempt_answer_selections",
        "attempt_answers",
        "quiz_attempts",
        "quiz_questions",
        "answer_options",
        "questions",
        "quizzes",
        "course_enrollments",
        "lesson_completions",
        "lessons",
        "courses",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    question_type.drop(bind, checkfirst=True)
    enrollment_status.drop(bind, checkfirst=True)
