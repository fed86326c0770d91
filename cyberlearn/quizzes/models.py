"""Database models for quizzes, questions and graded submissions.

Cassandra table definitions for:
- Quizzes and their questions (options serialized inline so one query
  returns everything needed to grade a submission)
- Submissions: one row per attempt, never updated after grading
- Question answers: one row per (submission, question)
- Attempt claims: serialization point for non-retakeable quizzes
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import orjson

from cyberlearn.core.clock import ensure_utc_aware, utc_now


class QuestionType(str, Enum):
    """Question scoring rule."""

    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class QuizScopeKind(str, Enum):
    """What a quiz is attached to."""

    PATH = "path"
    MODULE = "module"
    LESSON = "lesson"


class ShortAnswerPolicy(str, Enum):
    """How short answers are graded automatically."""

    EXACT_MATCH = "exact_match"  # Case-insensitive match with reference answer
    MANUAL = "manual"  # Always deferred to an instructor


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

QUIZZES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quizzes (
    id UUID PRIMARY KEY,
    title TEXT,
    scope_kind TEXT,
    scope_target_id UUID,
    passing_score DECIMAL,
    retakeable BOOLEAN
)
"""

# Questions of a quiz in one partition; options stored as a JSON array
QUESTIONS_BY_QUIZ_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.questions_by_quiz (
    quiz_id UUID,
    position INT,
    question_id UUID,
    type TEXT,
    prompt TEXT,
    points INT,
    options TEXT,
    reference_answer TEXT,
    PRIMARY KEY (quiz_id, position, question_id)
) WITH CLUSTERING ORDER BY (position ASC, question_id ASC)
"""

SUBMISSIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_submissions (
    id UUID PRIMARY KEY,
    user_id UUID,
    quiz_id UUID,
    score INT,
    max_score INT,
    percentage DECIMAL,
    passed BOOLEAN,
    time_spent INT,
    submitted_at TIMESTAMP,
    regraded_from UUID
)
"""

# Lookup: attempts of a learner on one quiz (retake policy, best attempt)
SUBMISSIONS_BY_USER_QUIZ_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_submissions_by_user (
    user_id UUID,
    quiz_id UUID,
    submitted_at TIMESTAMP,
    id UUID,
    score INT,
    max_score INT,
    percentage DECIMAL,
    passed BOOLEAN,
    time_spent INT,
    regraded_from UUID,
    PRIMARY KEY ((user_id), quiz_id, submitted_at, id)
) WITH CLUSTERING ORDER BY (quiz_id ASC, submitted_at DESC, id ASC)
"""

QUESTION_ANSWERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.question_answers (
    submission_id UUID,
    question_id UUID,
    selected_option_id UUID,
    text_answer TEXT,
    is_correct BOOLEAN,
    earned_points INT,
    overridden BOOLEAN,
    PRIMARY KEY (submission_id, question_id)
)
"""

# First writer wins: INSERT ... IF NOT EXISTS
QUIZ_ATTEMPT_CLAIMS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempt_claims (
    user_id UUID,
    quiz_id UUID,
    submission_id UUID,
    claimed_at TIMESTAMP,
    PRIMARY KEY ((user_id, quiz_id))
)
"""

QUIZ_TABLES_CQL = [
    QUIZZES_TABLE_CQL,
    QUESTIONS_BY_QUIZ_TABLE_CQL,
    SUBMISSIONS_TABLE_CQL,
    SUBMISSIONS_BY_USER_QUIZ_TABLE_CQL,
    QUESTION_ANSWERS_TABLE_CQL,
    QUIZ_ATTEMPT_CLAIMS_TABLE_CQL,
]


# ==============================================================================
# Content Entities
# ==============================================================================


class QuizScope:
    """Tagged union of what a quiz belongs to: a path, a module or a lesson."""

    def __init__(self, kind: QuizScopeKind, target_id: UUID):
        self.kind = QuizScopeKind(kind)
        self.target_id = target_id

    @classmethod
    def path(cls, path_id: UUID) -> "QuizScope":
        return cls(QuizScopeKind.PATH, path_id)

    @classmethod
    def module(cls, module_id: UUID) -> "QuizScope":
        return cls(QuizScopeKind.MODULE, module_id)

    @classmethod
    def lesson(cls, lesson_id: UUID) -> "QuizScope":
        return cls(QuizScopeKind.LESSON, lesson_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QuizScope):
            return NotImplemented
        return self.kind == other.kind and self.target_id == other.target_id

    def __hash__(self) -> int:
        return hash((self.kind, self.target_id))

    def __repr__(self) -> str:
        return f"<QuizScope {self.kind.value}:{self.target_id}>"


class Quiz:
    """Quiz definition.

    Attributes:
        id: Quiz UUID
        title: Quiz title
        scope: What the quiz is attached to
        passing_score: Minimum percentage (0-100) to pass
        retakeable: Whether more than one submission per learner is allowed
    """

    def __init__(
        self,
        id: UUID,
        scope: QuizScope,
        passing_score: Decimal = Decimal(70),
        retakeable: bool = True,
        title: str = "",
    ):
        self.id = id
        self.scope = scope
        self.passing_score = Decimal(passing_score)
        self.retakeable = retakeable
        self.title = title

    @classmethod
    def from_row(cls, row: Any) -> "Quiz":
        """Create Quiz instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            scope=QuizScope(QuizScopeKind(row.scope_kind), row.scope_target_id),
            passing_score=row.passing_score
            if row.passing_score is not None
            else Decimal(70),
            retakeable=bool(row.retakeable),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "scope_kind": self.scope.kind.value,
            "scope_target_id": self.scope.target_id,
            "passing_score": self.passing_score,
            "retakeable": self.retakeable,
        }

    def __repr__(self) -> str:
        return f"<Quiz {self.id} {self.scope!r} pass>={self.passing_score}>"


class QuestionOption:
    """One selectable option of a multiple-choice or true/false question."""

    def __init__(self, id: UUID, label: str = "", is_correct: bool = False):
        self.id = id
        self.label = label
        self.is_correct = is_correct

    def to_dict(self) -> dict[str, Any]:
        return {"id": str(self.id), "label": self.label, "is_correct": self.is_correct}

    def __repr__(self) -> str:
        return f"<QuestionOption {self.id}{' *' if self.is_correct else ''}>"


def serialize_options(options: list[QuestionOption]) -> str:
    """Serialize options for the ``questions_by_quiz.options`` column."""
    return orjson.dumps([option.to_dict() for option in options]).decode()


def parse_options(raw: str | bytes | None) -> list[QuestionOption]:
    """Parse the ``questions_by_quiz.options`` column."""
    if not raw:
        return []
    return [
        QuestionOption(
            id=UUID(item["id"]),
            label=item.get("label", ""),
            is_correct=bool(item.get("is_correct", False)),
        )
        for item in orjson.loads(raw)
    ]


class Question:
    """A quiz question.

    Choice questions carry options with exactly one flagged correct.
    Short-answer questions carry no options and an optional reference answer.
    """

    def __init__(
        self,
        id: UUID,
        quiz_id: UUID,
        type: QuestionType,
        points: int = 1,
        options: list[QuestionOption] | None = None,
        reference_answer: str | None = None,
        prompt: str = "",
        position: int = 0,
    ):
        self.id = id
        self.quiz_id = quiz_id
        self.type = QuestionType(type)
        self.points = points
        self.options = options or []
        self.reference_answer = reference_answer
        self.prompt = prompt
        self.position = position

    @property
    def is_choice(self) -> bool:
        """Question is graded by option selection."""
        return self.type in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)

    @property
    def correct_option_id(self) -> UUID | None:
        """Id of the option flagged correct (None for short answers)."""
        for option in self.options:
            if option.is_correct:
                return option.id
        return None

    def has_option(self, option_id: UUID) -> bool:
        return any(option.id == option_id for option in self.options)

    @classmethod
    def from_row(cls, row: Any) -> "Question":
        """Create Question instance from a ``questions_by_quiz`` row."""
        return cls(
            id=row.question_id,
            quiz_id=row.quiz_id,
            type=QuestionType(row.type),
            points=row.points or 0,
            options=parse_options(row.options),
            reference_answer=row.reference_answer,
            prompt=row.prompt or "",
            position=row.position or 0,
        )

    def __repr__(self) -> str:
        return f"<Question {self.id} {self.type.value} {self.points}pts>"


# ==============================================================================
# Submission Entities
# ==============================================================================


class QuestionAnswer:
    """Graded answer of one question in one submission (immutable).

    ``selected_option_id`` is None for unanswered and free-text answers.
    """

    def __init__(
        self,
        submission_id: UUID,
        question_id: UUID,
        selected_option_id: UUID | None = None,
        text_answer: str | None = None,
        is_correct: bool = False,
        earned_points: int = 0,
        overridden: bool = False,
    ):
        self.submission_id = submission_id
        self.question_id = question_id
        self.selected_option_id = selected_option_id
        self.text_answer = text_answer
        self.is_correct = is_correct
        self.earned_points = earned_points
        self.overridden = overridden

    @classmethod
    def from_row(cls, row: Any) -> "QuestionAnswer":
        """Create QuestionAnswer instance from Cassandra row."""
        return cls(
            submission_id=row.submission_id,
            question_id=row.question_id,
            selected_option_id=row.selected_option_id,
            text_answer=row.text_answer,
            is_correct=bool(row.is_correct),
            earned_points=row.earned_points or 0,
            overridden=bool(row.overridden),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "submission_id": self.submission_id,
            "question_id": self.question_id,
            "selected_option_id": self.selected_option_id,
            "text_answer": self.text_answer,
            "is_correct": self.is_correct,
            "earned_points": self.earned_points,
            "overridden": self.overridden,
        }

    def __repr__(self) -> str:
        return (
            f"<QuestionAnswer question={self.question_id} "
            f"{'correct' if self.is_correct else 'incorrect'}>"
        )


class QuizSubmission:
    """One graded quiz attempt (never updated after grading).

    Attributes:
        id: Submission UUID
        user_id: Learner UUID
        quiz_id: Quiz UUID
        score: Points earned
        max_score: Sum of the quiz's question points
        percentage: 0-100, two decimals, rounded half up
        passed: percentage >= quiz.passing_score
        time_spent: Seconds spent, as reported by the client
        submitted_at: Submission timestamp
        regraded_from: Root submission when produced by an instructor override
    """

    def __init__(
        self,
        id: UUID,
        user_id: UUID,
        quiz_id: UUID,
        score: int,
        max_score: int,
        percentage: Decimal,
        passed: bool,
        time_spent: int | None = None,
        submitted_at: datetime | None = None,
        regraded_from: UUID | None = None,
    ):
        self.id = id
        self.user_id = user_id
        self.quiz_id = quiz_id
        self.score = score
        self.max_score = max_score
        self.percentage = percentage
        self.passed = passed
        self.time_spent = time_spent
        self.submitted_at = ensure_utc_aware(submitted_at) or utc_now()
        self.regraded_from = regraded_from

    @property
    def root_id(self) -> UUID:
        """Id of the learner's original attempt this row grades."""
        return self.regraded_from or self.id

    @classmethod
    def from_row(cls, row: Any) -> "QuizSubmission":
        """Create QuizSubmission instance from Cassandra row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            quiz_id=row.quiz_id,
            score=row.score or 0,
            max_score=row.max_score or 0,
            percentage=row.percentage or Decimal(0),
            passed=bool(row.passed),
            time_spent=row.time_spent,
            submitted_at=row.submitted_at,
            regraded_from=row.regraded_from,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "quiz_id": self.quiz_id,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "passed": self.passed,
            "time_spent": self.time_spent,
            "submitted_at": self.submitted_at,
            "regraded_from": self.regraded_from,
        }

    def __repr__(self) -> str:
        return (
            f"<QuizSubmission {self.id} {self.score}/{self.max_score} "
            f"{self.percentage}% {'passed' if self.passed else 'failed'}>"
        )
