"""Storage contract consumed by the engine.

Conditional writes return ``True`` when applied and ``False`` when the
condition did not hold (row already exists, version moved, ...). Every
storage failure surfaces as ``StorageError``.
"""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from cyberlearn.content.models import Lesson, Module
from cyberlearn.gamification.models import ProfileEvent, UserProfile
from cyberlearn.progress.models import Enrollment, Progress
from cyberlearn.quizzes.models import Question, QuestionAnswer, Quiz, QuizSubmission


class LearningStore(Protocol):
    """Reads and conditional writes of the engine's entities."""

    # Content (read-only)

    async def user_exists(self, user_id: UUID) -> bool: ...

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...

    async def get_module(self, module_id: UUID) -> Module | None: ...

    async def list_path_modules(self, path_id: UUID) -> list[Module]: ...

    async def list_path_lessons(self, path_id: UUID) -> list[Lesson]:
        """All lessons of a path in one round trip."""
        ...

    async def get_quiz_bundle(
        self, quiz_id: UUID
    ) -> tuple[Quiz, list[Question]] | None:
        """Quiz plus all its questions and options in one round trip."""
        ...

    # Submissions

    async def claim_attempt(
        self,
        user_id: UUID,
        quiz_id: UUID,
        submission_id: UUID,
        claimed_at: datetime,
    ) -> bool: ...

    async def release_attempt(
        self, user_id: UUID, quiz_id: UUID, submission_id: UUID
    ) -> None: ...

    async def save_submission(
        self, submission: QuizSubmission, answers: list[QuestionAnswer]
    ) -> None:
        """Write a submission and its answers atomically."""
        ...

    async def get_submission(self, submission_id: UUID) -> QuizSubmission | None: ...

    async def list_answers(self, submission_id: UUID) -> list[QuestionAnswer]: ...

    async def list_submissions(
        self, user_id: UUID, quiz_id: UUID
    ) -> list[QuizSubmission]: ...

    async def list_user_submissions(self, user_id: UUID) -> list[QuizSubmission]: ...

    # Lesson progress

    async def get_progress(
        self, user_id: UUID, path_id: UUID, lesson_id: UUID
    ) -> Progress | None: ...

    async def list_path_progress(
        self, user_id: UUID, path_id: UUID
    ) -> list[Progress]: ...

    async def insert_progress(self, progress: Progress) -> bool:
        """Create the row if absent (IF NOT EXISTS)."""
        ...

    async def update_progress_views(
        self, progress: Progress, expected_views: int
    ) -> bool:
        """Write view fields if ``views`` still equals ``expected_views``."""
        ...

    async def mark_progress_completed(
        self,
        user_id: UUID,
        path_id: UUID,
        lesson_id: UUID,
        completed_at: datetime,
    ) -> bool:
        """Flip ``completed`` to true if it is still false."""
        ...

    # Enrollments

    async def get_enrollment(
        self, user_id: UUID, path_id: UUID
    ) -> Enrollment | None: ...

    async def list_enrollments(self, user_id: UUID) -> list[Enrollment]: ...

    async def insert_enrollment(self, enrollment: Enrollment) -> bool: ...

    async def update_enrollment(
        self, enrollment: Enrollment, expected_version: int
    ) -> bool: ...

    # Gamification

    async def append_profile_event(self, event: ProfileEvent) -> bool:
        """Record the event unless its key was already recorded."""
        ...

    async def list_profile_events(self, user_id: UUID) -> list[ProfileEvent]: ...

    async def get_profile(self, user_id: UUID) -> UserProfile | None: ...

    async def insert_profile(self, profile: UserProfile) -> bool: ...

    async def update_profile(
        self, profile: UserProfile, expected_version: int
    ) -> bool: ...
