"""Lesson view and completion tracking.

One Progress row per (learner, lesson). Views are counted with a
compare-and-set on ``views`` so concurrent views from two devices are both
counted. Completion flips ``completed`` false -> true through a conditional
write, so concurrent completions collapse into a single transition and
``completed_at`` is written exactly once.
"""

from typing import TYPE_CHECKING, NamedTuple
from uuid import UUID

import structlog

from cyberlearn.config import Settings, get_settings
from cyberlearn.content.models import Lesson
from cyberlearn.core.clock import Clock, utc_now
from cyberlearn.core.errors import ConcurrencyConflictError, StorageError

from .models import Progress


if TYPE_CHECKING:
    from cyberlearn.storage.base import LearningStore

logger = structlog.get_logger(__name__)


class CompletionResult(NamedTuple):
    """Progress after a completion request."""

    progress: Progress
    transitioned: bool  # True only for the call that flipped completed


class ProgressTracker:
    """Records lesson views and completions."""

    def __init__(
        self,
        store: "LearningStore",
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock

    async def record_view(self, user_id: UUID, lesson: Lesson) -> Progress:
        """Count one view of a lesson.

        The first view creates the row and sets ``first_viewed_at``; every
        call increments ``views`` by exactly one.

        Raises:
            ConcurrencyConflictError: If the row kept changing under us.
        """
        for attempt in range(self.settings.concurrency_max_retries + 1):
            existing = await self.store.get_progress(
                user_id, lesson.path_id, lesson.id
            )
            now = self.clock()

            if existing is None:
                progress = Progress(
                    user_id=user_id,
                    path_id=lesson.path_id,
                    lesson_id=lesson.id,
                    module_id=lesson.module_id,
                    views=1,
                    first_viewed_at=now,
                    last_viewed_at=now,
                )
                if await self.store.insert_progress(progress):
                    logger.info(
                        "lesson_first_view",
                        user_id=str(user_id),
                        lesson_id=str(lesson.id),
                    )
                    return progress
            else:
                progress = Progress(
                    user_id=user_id,
                    path_id=existing.path_id,
                    lesson_id=existing.lesson_id,
                    module_id=existing.module_id,
                    views=existing.views + 1,
                    completed=existing.completed,
                    first_viewed_at=existing.first_viewed_at or now,
                    last_viewed_at=now,
                    completed_at=existing.completed_at,
                )
                if await self.store.update_progress_views(progress, existing.views):
                    logger.debug(
                        "lesson_view_recorded",
                        lesson_id=str(lesson.id),
                        views=progress.views,
                    )
                    return progress

            logger.debug(
                "lesson_view_conflict", lesson_id=str(lesson.id), attempt=attempt
            )

        logger.warning(
            "lesson_view_retries_exhausted",
            user_id=str(user_id),
            lesson_id=str(lesson.id),
        )
        raise ConcurrencyConflictError

    async def record_completion(self, user_id: UUID, lesson: Lesson) -> CompletionResult:
        """Mark a lesson completed (idempotent).

        Returns the stored state unchanged when the lesson is already
        completed; ``completed_at`` never changes after the first completion.
        """
        existing = await self.store.get_progress(user_id, lesson.path_id, lesson.id)
        if existing is not None and existing.completed:
            return CompletionResult(existing, transitioned=False)

        now = self.clock()
        if existing is None:
            progress = Progress(
                user_id=user_id,
                path_id=lesson.path_id,
                lesson_id=lesson.id,
                module_id=lesson.module_id,
                completed=True,
                completed_at=now,
            )
            if await self.store.insert_progress(progress):
                logger.info(
                    "lesson_completed",
                    user_id=str(user_id),
                    lesson_id=str(lesson.id),
                )
                return CompletionResult(progress, transitioned=True)

        # Row exists (possibly created concurrently): flip it if still open
        transitioned = await self.store.mark_progress_completed(
            user_id, lesson.path_id, lesson.id, now
        )
        current = await self.store.get_progress(user_id, lesson.path_id, lesson.id)
        if current is None:
            msg = "Progress row missing after completion"
            raise StorageError(msg)

        if transitioned:
            logger.info(
                "lesson_completed",
                user_id=str(user_id),
                lesson_id=str(lesson.id),
            )
        else:
            logger.debug("lesson_already_completed", lesson_id=str(lesson.id))

        return CompletionResult(current, transitioned=transitioned)

    async def get_progress(
        self, user_id: UUID, path_id: UUID, lesson_id: UUID
    ) -> Progress | None:
        """Get progress for a specific lesson."""
        return await self.store.get_progress(user_id, path_id, lesson_id)

    async def list_path_progress(self, user_id: UUID, path_id: UUID) -> list[Progress]:
        """Get every progress row of a learner in a path."""
        return await self.store.list_path_progress(user_id, path_id)
