"""Grading of a single answer against its question.

Pure functions: no I/O, no clock, no randomness.
"""

from typing import NamedTuple

from .models import Question, QuestionType, ShortAnswerPolicy
from .schemas import AnswerInput


class GradeResult(NamedTuple):
    """Outcome of grading one answer."""

    is_correct: bool
    earned_points: int
    deferred: bool = False  # Short answer waiting for an instructor


def normalize_text_answer(text: str | None) -> str:
    """Normalize free text for exact matching (trimmed, case-insensitive)."""
    return (text or "").strip().casefold()


def grade_answer(
    question: Question,
    answer: AnswerInput | None,
    *,
    short_answer_policy: ShortAnswerPolicy = ShortAnswerPolicy.EXACT_MATCH,
    override: bool | None = None,
) -> GradeResult:
    """Grade one answer. No partial credit.

    Choice questions are correct only when the selected option is the option
    flagged correct; a missing or foreign option id grades incorrect rather
    than raising. Short answers follow ``short_answer_policy`` unless an
    instructor ``override`` is given.

    Args:
        question: Question being answered
        answer: Learner's answer, or None when the question was skipped
        short_answer_policy: Automatic short-answer grading rule
        override: Instructor verdict (short answers only)

    Returns:
        GradeResult with correctness and earned points
    """
    if question.type is QuestionType.SHORT_ANSWER:
        is_correct, deferred = _grade_short_answer(
            question, answer, short_answer_policy, override
        )
    elif question.is_choice:
        deferred = False
        correct_option_id = question.correct_option_id
        is_correct = (
            answer is not None
            and answer.selected_option_id is not None
            and correct_option_id is not None
            and answer.selected_option_id == correct_option_id
        )
    else:
        msg = f"Unsupported question type: {question.type}"
        raise ValueError(msg)

    return GradeResult(
        is_correct=is_correct,
        earned_points=question.points if is_correct else 0,
        deferred=deferred,
    )


def _grade_short_answer(
    question: Question,
    answer: AnswerInput | None,
    policy: ShortAnswerPolicy,
    override: bool | None,
) -> tuple[bool, bool]:
    """Return (is_correct, deferred) for a short answer."""
    if override is not None:
        return override, False

    if (
        policy is ShortAnswerPolicy.EXACT_MATCH
        and question.reference_answer is not None
    ):
        given = normalize_text_answer(answer.text_answer if answer else None)
        if not given:
            return False, False
        return given == normalize_text_answer(question.reference_answer), False

    # No automatic verdict: 0 points until an instructor decides
    return False, True
