"""Pydantic schemas for quiz submissions.

Request and response models for:
- Submitting answers to a quiz
- Instructor overrides of short answers
- Returning graded submissions as JSON
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import QuestionAnswer, QuizSubmission


# ==============================================================================
# Request Schemas
# ==============================================================================


class AnswerInput(BaseModel):
    """One answer as sent by the learner."""

    model_config = ConfigDict(extra="forbid")

    question_id: UUID = Field(..., description="Question UUID")
    selected_option_id: UUID | None = Field(
        default=None, description="Chosen option (choice questions)"
    )
    text_answer: str | None = Field(
        default=None, max_length=2000, description="Free text (short answer)"
    )


class SubmitQuizRequest(BaseModel):
    """Request to submit a quiz attempt."""

    quiz_id: UUID = Field(..., description="Quiz UUID")
    answers: list[AnswerInput] = Field(default_factory=list)
    time_spent: int | None = Field(
        default=None, ge=0, description="Seconds spent on the attempt"
    )


class OverrideAnswerRequest(BaseModel):
    """Instructor verdict on a short answer."""

    submission_id: UUID
    question_id: UUID
    is_correct: bool


# ==============================================================================
# Response Schemas
# ==============================================================================


class QuestionAnswerResponse(BaseModel):
    """Graded answer response."""

    model_config = ConfigDict(from_attributes=True)

    question_id: UUID
    selected_option_id: UUID | None = None
    is_correct: bool
    earned_points: int
    overridden: bool = False

    @classmethod
    def from_entity(cls, entity: QuestionAnswer) -> "QuestionAnswerResponse":
        """Create response from entity."""
        return cls(
            question_id=entity.question_id,
            selected_option_id=entity.selected_option_id,
            is_correct=entity.is_correct,
            earned_points=entity.earned_points,
            overridden=entity.overridden,
        )


class QuizSubmissionResponse(BaseModel):
    """Graded submission response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    quiz_id: UUID
    user_id: UUID
    score: int
    max_score: int
    percentage: Decimal = Field(description="0-100 percentage")
    passed: bool
    time_spent: int | None = None
    submitted_at: datetime
    regraded_from: UUID | None = None
    answers: list[QuestionAnswerResponse] = Field(default_factory=list)

    @classmethod
    def from_entity(
        cls,
        entity: QuizSubmission,
        answers: list[QuestionAnswer] | None = None,
    ) -> "QuizSubmissionResponse":
        """Create response from entity."""
        return cls(
            id=entity.id,
            quiz_id=entity.quiz_id,
            user_id=entity.user_id,
            score=entity.score,
            max_score=entity.max_score,
            percentage=entity.percentage,
            passed=entity.passed,
            time_spent=entity.time_spent,
            submitted_at=entity.submitted_at,
            regraded_from=entity.regraded_from,
            answers=[QuestionAnswerResponse.from_entity(a) for a in answers or []],
        )
