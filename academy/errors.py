"""Exceptions raised by attempt, progress and certificate operations.

The web layer maps each one to an HTTP status; core code never builds
HTTP responses itself.
"""

from .enums import EligibilityRule


class AcademyError(Exception):
    """Base class for all expected failures of a core operation."""

    pass


class NotFoundError(AcademyError):
    """Raised when a quiz, attempt, course or certificate does not exist."""

    pass


class ForbiddenError(AcademyError):
    """Raised when the caller does not own the attempt or certificate."""

    pass


class NotEnrolledError(AcademyError):
    """Raised when the caller lacks the enrollment an operation needs."""

    pass


class LessonsIncompleteError(AcademyError):
    """Raised when a final quiz is started before every lesson is completed."""

    def __init__(self, completed_lessons: int, total_lessons: int):
        self.completed_lessons = completed_lessons
        self.total_lessons = total_lessons
        super().__init__(
            f"Complete all lessons before the final quiz "
            f"({completed_lessons}/{total_lessons} done)"
        )


class AlreadySubmittedError(AcademyError):
    """Raised when submitting an attempt that is no longer in progress."""

    def __init__(self, attempt_id: int):
        self.attempt_id = attempt_id
        super().__init__(f"Attempt {attempt_id} is already submitted")


class InvalidAnswerShapeError(AcademyError):
    """Raised in strict mode for answers that don't fit the quiz."""

    def __init__(self, question_id: int, message: str):
        self.question_id = question_id
        super().__init__(f"Question {question_id}: {message}")


class ConflictError(AcademyError):
    """A concurrent write won the race. Safe to retry the operation."""

    pass


class IneligibleForCertificateError(AcademyError):
    """Raised when a certificate rule is unmet."""

    def __init__(
        self,
        rule: EligibilityRule,
        message: str,
        quiz_id: int | None = None,
    ):
        self.rule = rule
        self.quiz_id = quiz_id
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"rule": self.rule.value, "message": str(self), "quiz_id": self.quiz_id}
