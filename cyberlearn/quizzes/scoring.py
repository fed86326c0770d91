"""Scoring of a whole submission.

Grades every question of the quiz (unanswered questions score 0), then
derives score, max score, percentage and the pass flag. Pure and
deterministic, so a timed-out or failed grading step can simply run again.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import NamedTuple
from uuid import UUID

from cyberlearn.core.rounding import percentage_of

from .grading import GradeResult, grade_answer
from .models import Question, QuestionAnswer, Quiz, QuizSubmission, ShortAnswerPolicy
from .schemas import AnswerInput


class GradedQuestion(NamedTuple):
    """A question, the learner's answer to it, and the grade."""

    question: Question
    answer: AnswerInput | None
    grade: GradeResult
    overridden: bool


class ScoreResult(NamedTuple):
    """Grading result of a submission, before it is persisted."""

    score: int
    max_score: int
    percentage: Decimal
    passed: bool
    graded: list[GradedQuestion]

    def to_answers(self, submission_id: UUID) -> list[QuestionAnswer]:
        """Build the QuestionAnswer rows for a submission."""
        return [
            QuestionAnswer(
                submission_id=submission_id,
                question_id=item.question.id,
                selected_option_id=item.answer.selected_option_id
                if item.answer
                else None,
                text_answer=item.answer.text_answer if item.answer else None,
                is_correct=item.grade.is_correct,
                earned_points=item.grade.earned_points,
                overridden=item.overridden,
            )
            for item in self.graded
        ]

    @property
    def pending_review(self) -> int:
        """Number of short answers waiting for an instructor."""
        return sum(1 for item in self.graded if item.grade.deferred)


def score_submission(
    quiz: Quiz,
    questions: list[Question],
    answers: Iterable[AnswerInput],
    *,
    short_answer_policy: ShortAnswerPolicy = ShortAnswerPolicy.EXACT_MATCH,
    overrides: Mapping[UUID, bool] | None = None,
) -> ScoreResult:
    """Grade all answers of a submission against the quiz's questions.

    Args:
        quiz: Quiz being attempted
        questions: Every question of the quiz
        answers: Answers given (any subset of the questions)
        short_answer_policy: Automatic short-answer grading rule
        overrides: Instructor verdicts by question id (short answers)

    Returns:
        ScoreResult with totals and one graded entry per question
    """
    overrides = overrides or {}
    answers_by_question = {answer.question_id: answer for answer in answers}

    graded: list[GradedQuestion] = []
    for question in questions:
        override = overrides.get(question.id)
        grade = grade_answer(
            question,
            answers_by_question.get(question.id),
            short_answer_policy=short_answer_policy,
            override=override,
        )
        graded.append(
            GradedQuestion(
                question=question,
                answer=answers_by_question.get(question.id),
                grade=grade,
                overridden=override is not None,
            )
        )

    max_score = sum(question.points for question in questions)
    score = sum(item.grade.earned_points for item in graded)
    percentage = percentage_of(score, max_score)

    return ScoreResult(
        score=score,
        max_score=max_score,
        percentage=percentage,
        passed=percentage >= quiz.passing_score,
        graded=graded,
    )


def best_submission(submissions: Iterable[QuizSubmission]) -> QuizSubmission | None:
    """Highest-percentage attempt; the earliest one wins ties."""
    return min(
        submissions,
        key=lambda s: (-s.percentage, s.submitted_at),
        default=None,
    )
