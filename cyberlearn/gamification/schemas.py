"""Pydantic schemas for learner profiles."""

from datetime import date
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import UserProfile


class UserProfileResponse(BaseModel):
    """Learner profile response."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    points: int
    current_streak: int
    last_activity_date: date | None = None
    total_lessons_completed: int
    total_quizzes_passed: int
    badges: list[str] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, entity: UserProfile) -> "UserProfileResponse":
        """Create response from entity."""
        return cls(
            user_id=entity.user_id,
            points=entity.points,
            current_streak=entity.current_streak,
            last_activity_date=entity.last_activity_date,
            total_lessons_completed=entity.total_lessons_completed,
            total_quizzes_passed=entity.total_quizzes_passed,
            badges=list(entity.badges),
        )
