"""Quizzes: grading of answers and scoring of submissions.

Provides:
- Quiz, question and submission entities
- Answer grading (choice and short-answer questions)
- Submission scoring with deterministic rounding
"""

from .grading import GradeResult, grade_answer
from .models import (
    QUIZ_TABLES_CQL,
    Question,
    QuestionAnswer,
    QuestionOption,
    QuestionType,
    Quiz,
    QuizScope,
    QuizScopeKind,
    QuizSubmission,
    ShortAnswerPolicy,
)
from .scoring import ScoreResult, best_submission, score_submission


__all__ = [
    "QUIZ_TABLES_CQL",
    "GradeResult",
    "Question",
    "QuestionAnswer",
    "QuestionOption",
    "QuestionType",
    "Quiz",
    "QuizScope",
    "QuizScopeKind",
    "QuizSubmission",
    "ScoreResult",
    "ShortAnswerPolicy",
    "best_submission",
    "grade_answer",
    "score_submission",
]
