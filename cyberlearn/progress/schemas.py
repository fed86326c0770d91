"""Pydantic schemas for lesson progress and path enrollments."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Enrollment, EnrollmentStatus, LessonProgressStatus, Progress


# ==============================================================================
# Lesson Progress Schemas
# ==============================================================================


class ProgressResponse(BaseModel):
    """Lesson progress response."""

    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    module_id: UUID
    path_id: UUID
    status: LessonProgressStatus
    views: int
    completed: bool
    first_viewed_at: datetime | None = None
    last_viewed_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Progress) -> "ProgressResponse":
        """Create response from entity."""
        return cls(
            lesson_id=entity.lesson_id,
            module_id=entity.module_id,
            path_id=entity.path_id,
            status=entity.status,
            views=entity.views,
            completed=entity.completed,
            first_viewed_at=entity.first_viewed_at,
            last_viewed_at=entity.last_viewed_at,
            completed_at=entity.completed_at,
        )


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    path_id: UUID
    user_id: UUID
    status: EnrollmentStatus
    percentage: Decimal = Field(description="0-100 percentage")
    completed: bool
    completed_at: datetime | None = None
    lessons_completed: int
    lessons_total: int
    enrolled_at: datetime

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(
            path_id=entity.path_id,
            user_id=entity.user_id,
            status=entity.status,
            percentage=entity.percentage,
            completed=entity.completed,
            completed_at=entity.completed_at,
            lessons_completed=entity.lessons_completed,
            lessons_total=entity.lessons_total,
            enrolled_at=entity.enrolled_at,
        )


# ==============================================================================
# Path Progress Schemas
# ==============================================================================


class LessonProgressSummary(BaseModel):
    """Lesson summary for the path progress view."""

    lesson_id: UUID
    status: LessonProgressStatus
    completed: bool
    views: int
    quiz_gated: bool = False


class ModuleProgressSummary(BaseModel):
    """Module summary with its lessons."""

    module_id: UUID
    lessons_completed: int
    lessons_total: int
    percentage: Decimal
    completed: bool = Field(description="False while the module has no lessons")
    lessons: list[LessonProgressSummary] = Field(default_factory=list)


class PathProgressResponse(BaseModel):
    """Complete path progress for one learner."""

    path_id: UUID
    enrollment: EnrollmentResponse | None = None
    modules: list[ModuleProgressSummary] = Field(default_factory=list)
