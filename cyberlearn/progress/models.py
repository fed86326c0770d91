"""Database models for learner progress.

Cassandra table definitions for:
- Lesson progress: views and completion per (user, lesson)
- Enrollments: path completion percentage per (user, path)

Lesson progress rows are partitioned by (user_id, path_id) so a path's
completion state for one learner is a single-partition read. Both tables are
only ever written through lightweight transactions: ``IF NOT EXISTS`` for
creation, and conditions on ``views`` / ``completed`` / ``version`` for
updates.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from cyberlearn.core.clock import ensure_utc_aware, utc_now


class EnrollmentStatus(str, Enum):
    """Learning path enrollment status (derived from progress)."""

    ENROLLED = "enrolled"  # No lesson completed yet
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # Reached 100%


class LessonProgressStatus(str, Enum):
    """Lesson progress status (derived from views and completion)."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"  # Viewed, not completed
    COMPLETED = "completed"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

LESSON_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress (
    user_id UUID,
    path_id UUID,
    lesson_id UUID,
    module_id UUID,
    views INT,
    completed BOOLEAN,
    first_viewed_at TIMESTAMP,
    last_viewed_at TIMESTAMP,
    completed_at TIMESTAMP,
    PRIMARY KEY ((user_id, path_id), lesson_id)
)
"""

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    user_id UUID,
    path_id UUID,
    percentage DECIMAL,
    completed BOOLEAN,
    completed_at TIMESTAMP,
    lessons_completed INT,
    lessons_total INT,
    enrolled_at TIMESTAMP,
    updated_at TIMESTAMP,
    version INT,
    PRIMARY KEY (user_id, path_id)
)
"""

PROGRESS_TABLES_CQL = [
    LESSON_PROGRESS_TABLE_CQL,
    ENROLLMENTS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Progress:
    """Lesson progress entity for a specific user.

    Attributes:
        user_id: User UUID
        path_id: Path UUID (partition key)
        lesson_id: Lesson UUID
        module_id: Module UUID
        views: Number of view events
        completed: Monotonic: never reverts to False
        first_viewed_at: First view timestamp
        last_viewed_at: Most recent view timestamp
        completed_at: Completion timestamp, fixed once set
    """

    def __init__(
        self,
        user_id: UUID,
        path_id: UUID,
        lesson_id: UUID,
        module_id: UUID,
        views: int = 0,
        completed: bool = False,
        first_viewed_at: datetime | None = None,
        last_viewed_at: datetime | None = None,
        completed_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.path_id = path_id
        self.lesson_id = lesson_id
        self.module_id = module_id
        self.views = views
        self.completed = completed
        self.first_viewed_at = ensure_utc_aware(first_viewed_at)
        self.last_viewed_at = ensure_utc_aware(last_viewed_at)
        self.completed_at = ensure_utc_aware(completed_at)

    @property
    def status(self) -> LessonProgressStatus:
        if self.completed:
            return LessonProgressStatus.COMPLETED
        if self.views > 0:
            return LessonProgressStatus.IN_PROGRESS
        return LessonProgressStatus.NOT_STARTED

    @classmethod
    def from_row(cls, row: Any) -> "Progress":
        """Create Progress instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            path_id=row.path_id,
            lesson_id=row.lesson_id,
            module_id=row.module_id,
            views=row.views or 0,
            completed=bool(row.completed),
            first_viewed_at=row.first_viewed_at,
            last_viewed_at=row.last_viewed_at,
            completed_at=row.completed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "path_id": self.path_id,
            "lesson_id": self.lesson_id,
            "module_id": self.module_id,
            "views": self.views,
            "completed": self.completed,
            "first_viewed_at": self.first_viewed_at,
            "last_viewed_at": self.last_viewed_at,
            "completed_at": self.completed_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Progress user={self.user_id} lesson={self.lesson_id} "
            f"views={self.views} {self.status.value}>"
        )


class Enrollment:
    """Learning path enrollment entity.

    Attributes:
        user_id: User UUID
        path_id: Path UUID
        percentage: Completed lessons / published lessons (0-100)
        completed: Set once percentage reaches 100
        completed_at: Set together with ``completed``, never changed after
        lessons_completed: Completed published lessons at last recompute
        lessons_total: Published lessons at last recompute
        enrolled_at: Enrollment timestamp
        updated_at: Last recompute that changed the row
        version: Optimistic concurrency token, +1 on every write
    """

    def __init__(
        self,
        user_id: UUID,
        path_id: UUID,
        percentage: Decimal = Decimal("0.00"),
        completed: bool = False,
        completed_at: datetime | None = None,
        lessons_completed: int = 0,
        lessons_total: int = 0,
        enrolled_at: datetime | None = None,
        updated_at: datetime | None = None,
        version: int = 0,
    ):
        self.user_id = user_id
        self.path_id = path_id
        self.percentage = percentage
        self.completed = completed
        self.completed_at = ensure_utc_aware(completed_at)
        self.lessons_completed = lessons_completed
        self.lessons_total = lessons_total
        self.enrolled_at = ensure_utc_aware(enrolled_at) or utc_now()
        self.updated_at = ensure_utc_aware(updated_at)
        self.version = version

    @property
    def status(self) -> EnrollmentStatus:
        if self.completed:
            return EnrollmentStatus.COMPLETED
        if self.lessons_completed > 0:
            return EnrollmentStatus.IN_PROGRESS
        return EnrollmentStatus.ENROLLED

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            path_id=row.path_id,
            percentage=row.percentage or Decimal("0.00"),
            completed=bool(row.completed),
            completed_at=row.completed_at,
            lessons_completed=row.lessons_completed or 0,
            lessons_total=row.lessons_total or 0,
            enrolled_at=row.enrolled_at,
            updated_at=row.updated_at,
            version=row.version or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "path_id": self.path_id,
            "status": self.status.value,
            "percentage": self.percentage,
            "completed": self.completed,
            "completed_at": self.completed_at,
            "lessons_completed": self.lessons_completed,
            "lessons_total": self.lessons_total,
            "enrolled_at": self.enrolled_at,
            "updated_at": self.updated_at,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} path={self.path_id} "
            f"{self.status.value} {self.percentage}%>"
        )
