"""Learning content (paths, modules, lessons) as read by the engine."""

from .models import CONTENT_TABLES_CQL, LearningPath, Lesson, Module


__all__ = [
    "CONTENT_TABLES_CQL",
    "LearningPath",
    "Lesson",
    "Module",
]
