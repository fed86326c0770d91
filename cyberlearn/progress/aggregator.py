"""Learning path completion aggregation.

The enrollment percentage is never incremented in place. It is recomputed
from the learner's lesson progress and written with a version check; when
another writer got there first the recompute starts over from fresh reads.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, assert_never
from uuid import UUID

import structlog

from cyberlearn.config import Settings, get_settings
from cyberlearn.content.models import Lesson
from cyberlearn.core.clock import Clock, utc_now
from cyberlearn.core.errors import ConcurrencyConflictError, ValidationError
from cyberlearn.core.rounding import percentage_of
from cyberlearn.quizzes.models import Quiz, QuizScope, QuizScopeKind

from .models import Enrollment, LessonProgressStatus, Progress
from .schemas import (
    EnrollmentResponse,
    LessonProgressSummary,
    ModuleProgressSummary,
    PathProgressResponse,
)


if TYPE_CHECKING:
    from cyberlearn.storage.base import LearningStore

logger = structlog.get_logger(__name__)

COMPLETE = Decimal(100)


class EnrollmentAggregator:
    """Recomputes path enrollments from lesson completion state."""

    def __init__(
        self,
        store: "LearningStore",
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock

    # ==========================================================================
    # Enrollment
    # ==========================================================================

    async def ensure_enrollment(self, user_id: UUID, path_id: UUID) -> Enrollment:
        """Enroll the learner if needed, then bring the percentage up to date."""
        await self._create_if_absent(user_id, path_id)
        return await self.recompute(user_id, path_id)

    async def _create_if_absent(self, user_id: UUID, path_id: UUID) -> Enrollment:
        existing = await self.store.get_enrollment(user_id, path_id)
        if existing is not None:
            return existing

        now = self.clock()
        enrollment = Enrollment(
            user_id=user_id,
            path_id=path_id,
            enrolled_at=now,
            updated_at=now,
            version=1,
        )
        if await self.store.insert_enrollment(enrollment):
            logger.info("user_enrolled", user_id=str(user_id), path_id=str(path_id))
            return enrollment

        # Enrolled concurrently
        existing = await self.store.get_enrollment(user_id, path_id)
        if existing is None:
            raise ConcurrencyConflictError
        return existing

    async def recompute(self, user_id: UUID, path_id: UUID) -> Enrollment:
        """Derive the enrollment of a learner in a path from lesson progress.

        Units are the published lessons of the path. Once the percentage
        reaches 100 the enrollment is marked completed, and stays completed.
        Nothing is written when the derived values did not change.

        Raises:
            ConcurrencyConflictError: If the version check kept failing.
        """
        lessons = await self.store.list_path_lessons(path_id)
        unit_ids = {lesson.id for lesson in lessons if lesson.published}

        for attempt in range(self.settings.concurrency_max_retries + 1):
            current = await self._create_if_absent(user_id, path_id)
            progress_rows = await self.store.list_path_progress(user_id, path_id)

            done = sum(
                1 for row in progress_rows if row.completed and row.lesson_id in unit_ids
            )
            total = len(unit_ids)
            percentage = percentage_of(done, total)

            completed = current.completed or percentage >= COMPLETE
            if (
                percentage == current.percentage
                and done == current.lessons_completed
                and total == current.lessons_total
                and completed == current.completed
            ):
                return current

            now = self.clock()
            updated = Enrollment(
                user_id=user_id,
                path_id=path_id,
                percentage=percentage,
                completed=completed,
                completed_at=current.completed_at or (now if completed else None),
                lessons_completed=done,
                lessons_total=total,
                enrolled_at=current.enrolled_at,
                updated_at=now,
                version=current.version + 1,
            )
            if await self.store.update_enrollment(updated, current.version):
                logger.info(
                    "enrollment_recomputed",
                    user_id=str(user_id),
                    path_id=str(path_id),
                    percentage=str(percentage),
                    lessons_completed=done,
                    lessons_total=total,
                )
                if updated.completed and not current.completed:
                    logger.info(
                        "path_completed", user_id=str(user_id), path_id=str(path_id)
                    )
                return updated

            logger.debug(
                "enrollment_version_conflict", path_id=str(path_id), attempt=attempt
            )

        logger.warning(
            "enrollment_retries_exhausted",
            user_id=str(user_id),
            path_id=str(path_id),
        )
        raise ConcurrencyConflictError

    # ==========================================================================
    # Quiz scope traversal
    # ==========================================================================

    async def resolve_path_id(self, scope: QuizScope) -> UUID:
        """Find the learning path a quiz contributes to.

        Raises:
            ValidationError: If the module or lesson the quiz points at is gone.
        """
        if scope.kind is QuizScopeKind.PATH:
            return scope.target_id
        if scope.kind is QuizScopeKind.MODULE:
            module = await self.store.get_module(scope.target_id)
            if module is None:
                msg = "Quiz module not found"
                raise ValidationError(msg)
            return module.path_id
        if scope.kind is QuizScopeKind.LESSON:
            lesson = await self.store.get_lesson(scope.target_id)
            if lesson is None:
                msg = "Quiz lesson not found"
                raise ValidationError(msg)
            return lesson.path_id
        assert_never(scope.kind)

    async def gated_lessons(self, quiz: Quiz, path_id: UUID) -> list[Lesson]:
        """Published lessons of the path whose completion is this quiz.

        Gating is read from ``Lesson.quiz_id`` whatever the quiz's scope.
        """
        lessons = await self.store.list_path_lessons(path_id)
        return [
            lesson
            for lesson in lessons
            if lesson.published and lesson.quiz_id == quiz.id
        ]

    # ==========================================================================
    # Path progress view
    # ==========================================================================

    async def get_path_progress(
        self, user_id: UUID, path_id: UUID
    ) -> PathProgressResponse:
        """Per-module breakdown of a learner's progress in a path."""
        modules = await self.store.list_path_modules(path_id)
        lessons = await self.store.list_path_lessons(path_id)
        progress_rows = await self.store.list_path_progress(user_id, path_id)
        enrollment = await self.store.get_enrollment(user_id, path_id)

        progress_by_lesson: dict[UUID, Progress] = {
            row.lesson_id: row for row in progress_rows
        }
        lessons_by_module: dict[UUID, list[Lesson]] = {}
        for lesson in lessons:
            if lesson.published:
                lessons_by_module.setdefault(lesson.module_id, []).append(lesson)

        summaries = []
        for module in sorted(modules, key=lambda m: m.position):
            module_lessons = sorted(
                lessons_by_module.get(module.id, []), key=lambda lesson: lesson.position
            )
            lesson_summaries = [
                self._lesson_summary(lesson, progress_by_lesson.get(lesson.id))
                for lesson in module_lessons
            ]
            done = sum(1 for summary in lesson_summaries if summary.completed)
            total = len(lesson_summaries)
            summaries.append(
                ModuleProgressSummary(
                    module_id=module.id,
                    lessons_completed=done,
                    lessons_total=total,
                    percentage=percentage_of(done, total),
                    # A module without lessons is never complete
                    completed=total > 0 and done == total,
                    lessons=lesson_summaries,
                )
            )

        return PathProgressResponse(
            path_id=path_id,
            enrollment=EnrollmentResponse.from_entity(enrollment)
            if enrollment
            else None,
            modules=summaries,
        )

    @staticmethod
    def _lesson_summary(
        lesson: Lesson, progress: Progress | None
    ) -> LessonProgressSummary:
        if progress is None:
            return LessonProgressSummary(
                lesson_id=lesson.id,
                status=LessonProgressStatus.NOT_STARTED,
                completed=False,
                views=0,
                quiz_gated=lesson.is_quiz_gated,
            )
        return LessonProgressSummary(
            lesson_id=lesson.id,
            status=progress.status,
            completed=progress.completed,
            views=progress.views,
            quiz_gated=lesson.is_quiz_gated,
        )
