"""Lesson progress tracking and learning path aggregation."""

from .aggregator import EnrollmentAggregator
from .models import (
    PROGRESS_TABLES_CQL,
    Enrollment,
    EnrollmentStatus,
    LessonProgressStatus,
    Progress,
)
from .tracker import CompletionResult, ProgressTracker


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CompletionResult",
    "Enrollment",
    "EnrollmentAggregator",
    "EnrollmentStatus",
    "LessonProgressStatus",
    "Progress",
    "ProgressTracker",
]
