"""
Quiz grading engine.

Pure functions: given a quiz blueprint (ordered questions with points and
answer options) and a learner's answers keyed by question_id, decide per
question whether it is correct and total the points. Nothing here touches
the database, so grading cannot fail once its inputs are loaded.

Question types are separate dataclasses with one grading function each:
- MultipleChoiceQuestion / TrueFalseQuestion: single choice
- MultiSelectQuestion: exact set match, never correct when empty
- ShortAnswerQuestion: always incorrect (no automatic text grading)
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Union

from .enums import QuestionType
from .errors import InvalidAnswerShapeError


@dataclass(frozen=True)
class AnswerOption:
    option_id: int
    is_correct: bool


@dataclass(frozen=True)
class MultipleChoiceQuestion:
    question_id: int
    options: tuple[AnswerOption, ...] = ()


@dataclass(frozen=True)
class TrueFalseQuestion:
    question_id: int
    options: tuple[AnswerOption, ...] = ()


@dataclass(frozen=True)
class MultiSelectQuestion:
    question_id: int
    options: tuple[AnswerOption, ...] = ()


@dataclass(frozen=True)
class ShortAnswerQuestion:
    question_id: int
    options: tuple[AnswerOption, ...] = ()


Question = Union[
    MultipleChoiceQuestion, TrueFalseQuestion, MultiSelectQuestion, ShortAnswerQuestion
]

_QUESTION_CLASSES: dict[QuestionType, type] = {
    QuestionType.mcq: MultipleChoiceQuestion,
    QuestionType.true_false: TrueFalseQuestion,
    QuestionType.msq: MultiSelectQuestion,
    QuestionType.short_answer: ShortAnswerQuestion,
}


def build_question(
    question_id: int,
    question_type: QuestionType | str,
    options: Iterable[AnswerOption] = (),
) -> Question:
    """Create the question variant for a catalog question_type."""
    cls = _QUESTION_CLASSES[QuestionType(question_type)]
    return cls(question_id=question_id, options=tuple(options))


@dataclass(frozen=True)
class BlueprintEntry:
    """One question of a quiz as it counts toward the score."""

    question: Question
    points: int
    order_index: int = 0

    @property
    def question_id(self) -> int:
        return self.question.question_id


@dataclass(frozen=True)
class SubmittedAnswer:
    question_id: int
    selected_option_id: int | None = None
    selected_option_ids: tuple[int, ...] | None = None
    free_text: str | None = None


@dataclass(frozen=True)
class GradedAnswer:
    """Grading outcome for one question, plus what should be stored for it."""

    question_id: int
    is_correct: bool
    points_earned: int
    selected_option_id: int | None = None
    selected_option_ids: tuple[int, ...] = ()
    short_answer_text: str | None = None


@dataclass
class GradeResult:
    answers: list[GradedAnswer] = field(default_factory=list)
    total_points: int = 0
    earned_points: int = 0
    score_percent: float = 0.0


def _option_ids(question: Question) -> set[int]:
    return {o.option_id for o in question.options}


def _correct_option_ids(question: Question) -> set[int]:
    return {o.option_id for o in question.options if o.is_correct}


def _grade_single_choice(
    question: MultipleChoiceQuestion | TrueFalseQuestion,
    answer: SubmittedAnswer | None,
) -> tuple[bool, dict]:
    chosen = answer.selected_option_id if answer else None
    # A multi-select shaped answer counts as unanswered
    if chosen is None or answer.selected_option_ids:
        return False, {}
    is_correct = chosen in _correct_option_ids(question)
    # Only options that belong to this question are recorded
    stored = chosen if chosen in _option_ids(question) else None
    return is_correct, {"selected_option_id": stored}


def _grade_multi_select(
    question: MultiSelectQuestion, answer: SubmittedAnswer | None
) -> tuple[bool, dict]:
    selected = set(answer.selected_option_ids or ()) if answer else set()
    is_correct = bool(selected) and selected == _correct_option_ids(question)
    stored = tuple(sorted(selected & _option_ids(question)))
    return is_correct, {"selected_option_ids": stored}


def _grade_short_answer(
    question: ShortAnswerQuestion, answer: SubmittedAnswer | None
) -> tuple[bool, dict]:
    return False, {"short_answer_text": answer.free_text if answer else None}


_GRADERS: dict[type, Callable[..., tuple[bool, dict]]] = {
    MultipleChoiceQuestion: _grade_single_choice,
    TrueFalseQuestion: _grade_single_choice,
    MultiSelectQuestion: _grade_multi_select,
    ShortAnswerQuestion: _grade_short_answer,
}


def grade_question(entry: BlueprintEntry, answer: SubmittedAnswer | None) -> GradedAnswer:
    """Grade one blueprint question. A missing answer is incorrect."""
    grader = _GRADERS[type(entry.question)]
    is_correct, stored = grader(entry.question, answer)
    return GradedAnswer(
        question_id=entry.question_id,
        is_correct=is_correct,
        points_earned=entry.points if is_correct else 0,
        **stored,
    )


def calculate_score_percent(earned_points: int, total_points: int) -> float:
    """Exact percentage; callers round for display."""
    if total_points == 0:
        return 0.0
    return 100 * earned_points / total_points


def grade_submission(
    blueprint: list[BlueprintEntry],
    answers: Mapping[int, SubmittedAnswer],
) -> GradeResult:
    """
    Grade a whole submission against a quiz blueprint.

    Args:
        blueprint: Quiz questions in presentation order
        answers: Submitted answers keyed by question_id; absent means unanswered

    Returns:
        GradeResult with one GradedAnswer per blueprint entry, in blueprint order
    """
    result = GradeResult()
    for entry in blueprint:
        graded = grade_question(entry, answers.get(entry.question_id))
        result.answers.append(graded)
        result.total_points += entry.points
        result.earned_points += graded.points_earned

    result.score_percent = calculate_score_percent(
        result.earned_points, result.total_points
    )
    return result


def _shape_problem(question: Question, answer: SubmittedAnswer) -> str | None:
    """Describe why an answer doesn't fit its question, or None if it does."""
    known = _option_ids(question)

    if isinstance(question, ShortAnswerQuestion):
        if answer.selected_option_id is not None or answer.selected_option_ids:
            return "short answer questions take free_text, not options"
        return None

    if answer.free_text is not None:
        return "free_text is only accepted for short answer questions"

    if isinstance(question, MultiSelectQuestion):
        if answer.selected_option_id is not None:
            return "multi-select questions take selected_option_ids"
        unknown = set(answer.selected_option_ids or ()) - known
    else:
        if answer.selected_option_ids:
            return "single-choice questions take selected_option_id"
        chosen = answer.selected_option_id
        unknown = {chosen} - known if chosen is not None else set()

    if unknown:
        return f"options {sorted(unknown)} do not belong to this question"
    return None


def index_answers(
    blueprint: list[BlueprintEntry],
    answers: Iterable[SubmittedAnswer],
    *,
    strict: bool = False,
) -> dict[int, SubmittedAnswer]:
    """
    Key submitted answers by question_id, checking them against the blueprint.

    Two answers for the same question are always rejected. In strict mode,
    answers for questions outside the quiz and answers whose shape doesn't
    fit the question type are rejected too; otherwise they are dropped or
    left to grade as incorrect.

    Raises:
        InvalidAnswerShapeError: On a duplicate, or on any mismatch in strict mode
    """
    questions = {entry.question_id: entry.question for entry in blueprint}
    indexed: dict[int, SubmittedAnswer] = {}

    for answer in answers:
        if answer.question_id in indexed:
            raise InvalidAnswerShapeError(
                answer.question_id, "answered more than once"
            )

        question = questions.get(answer.question_id)
        if question is None:
            if strict:
                raise InvalidAnswerShapeError(
                    answer.question_id, "question is not part of this quiz"
                )
            continue

        if strict:
            problem = _shape_problem(question, answer)
            if problem:
                raise InvalidAnswerShapeError(answer.question_id, problem)

        indexed[answer.question_id] = answer

    return indexed
