"""Learner profile statistics: points, streak, counters and badges.

Completions are appended to the learner's event log under deterministic
keys (``lesson:<lesson_id>``, ``quiz:<submission_id>``), so the same
completion can never be recorded twice. The profile row is then recomputed
from the whole log while holding the learner's lock, and written with a
version check.
"""

from collections.abc import Iterable
from datetime import date, timedelta
from typing import TYPE_CHECKING
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog

from cyberlearn.config import Settings, get_settings
from cyberlearn.core.clock import Clock, utc_now
from cyberlearn.core.errors import ConcurrencyConflictError
from cyberlearn.core.locks import UserLockManager
from cyberlearn.core.rounding import round_to_int
from cyberlearn.progress.models import Progress
from cyberlearn.quizzes.models import QuizSubmission

from .models import BADGE_RULES, ProfileEvent, ProfileEventKind, UserProfile


if TYPE_CHECKING:
    from cyberlearn.storage.base import LearningStore

logger = structlog.get_logger(__name__)

ONE_DAY = timedelta(days=1)


def lesson_event_key(lesson_id: UUID) -> str:
    return f"lesson:{lesson_id}"


def quiz_event_key(submission: QuizSubmission, *, count_every_pass: bool) -> str:
    """Key of the event a passing submission produces.

    Regraded rows share their root attempt's key, so an instructor override
    never counts an attempt twice.
    """
    if count_every_pass:
        return f"quiz:{submission.root_id}"
    return f"quiz:{submission.quiz_id}"


def next_streak(current: int, last_day: date | None, day: date) -> int:
    """Streak after a qualifying event on ``day``."""
    if last_day is None:
        return 1
    if day == last_day:
        return current
    if day - last_day == ONE_DAY:
        return current + 1
    return 1


def fold_profile(
    user_id: UUID,
    events: Iterable[ProfileEvent],
    *,
    timezone: ZoneInfo,
    badges: Iterable[str] = (),
) -> UserProfile:
    """Replay a learner's events, oldest first, into profile values.

    Badges are evaluated after every event so a badge earned along the way
    (e.g. a streak that later reset) is kept. Previously stored ``badges``
    are kept in their order and new ones are appended in rule order.
    """
    profile = UserProfile(user_id=user_id, badges=list(badges))
    earned = set(profile.badges)

    for event in sorted(events, key=lambda e: (e.occurred_at, e.event_key)):
        profile.points += event.points
        if event.kind is ProfileEventKind.LESSON_COMPLETED:
            profile.total_lessons_completed += 1
        else:
            profile.total_quizzes_passed += 1

        day = event.occurred_at.astimezone(timezone).date()
        profile.current_streak = next_streak(
            profile.current_streak, profile.last_activity_date, day
        )
        if profile.last_activity_date is None or day > profile.last_activity_date:
            profile.last_activity_date = day

        for rule in BADGE_RULES:
            if rule.badge_id not in earned and rule.earned(profile):
                earned.add(rule.badge_id)
                profile.badges.append(rule.badge_id)

    return profile


class ProfileStatsEngine:
    """Maintains the derived UserProfile of each learner."""

    def __init__(
        self,
        store: "LearningStore",
        locks: UserLockManager | None = None,
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.locks = locks or UserLockManager(
            timeout_seconds=self.settings.profile_lock_timeout_seconds
        )
        self.clock = clock
        self.timezone = ZoneInfo(self.settings.streak_timezone)

    async def on_lesson_completed(
        self, user_id: UUID, progress: Progress
    ) -> UserProfile | None:
        """Count a completed lesson. No-op for a lesson not completed."""
        if not progress.completed:
            return None

        event = ProfileEvent(
            user_id=user_id,
            event_key=lesson_event_key(progress.lesson_id),
            kind=ProfileEventKind.LESSON_COMPLETED,
            source_id=progress.lesson_id,
            points=self.settings.points_per_lesson,
            occurred_at=progress.completed_at or self.clock(),
        )
        return await self._record(event)

    async def on_quiz_passed(
        self, user_id: UUID, submission: QuizSubmission
    ) -> UserProfile | None:
        """Count a passing submission. No-op for a failed one."""
        if not submission.passed:
            return None

        event = ProfileEvent(
            user_id=user_id,
            event_key=quiz_event_key(
                submission, count_every_pass=self.settings.count_every_quiz_pass
            ),
            kind=ProfileEventKind.QUIZ_PASSED,
            source_id=submission.root_id,
            points=round_to_int(
                submission.percentage * self.settings.quiz_points_multiplier
            ),
            occurred_at=submission.submitted_at,
        )
        return await self._record(event)

    async def _record(self, event: ProfileEvent) -> UserProfile:
        if await self.store.append_profile_event(event):
            logger.info(
                "profile_event_recorded",
                user_id=str(event.user_id),
                event_key=event.event_key,
                points=event.points,
            )
        else:
            logger.debug("profile_event_already_recorded", event_key=event.event_key)

        # Recompute even for a known event: a previous call may have
        # stopped between the append and the profile write.
        return await self.recompute(event.user_id)

    async def get_profile(self, user_id: UUID) -> UserProfile:
        """Stored profile, or an empty one for a learner with no activity."""
        profile = await self.store.get_profile(user_id)
        return profile or UserProfile(user_id=user_id)

    async def recompute(self, user_id: UUID) -> UserProfile:
        """Rebuild the profile from the event log and store it.

        Raises:
            ConcurrencyConflictError: If the lock or the version check failed.
        """
        async with self.locks.hold(user_id):
            for attempt in range(self.settings.concurrency_max_retries + 1):
                events = await self.store.list_profile_events(user_id)
                current = await self.store.get_profile(user_id)

                derived = fold_profile(
                    user_id,
                    events,
                    timezone=self.timezone,
                    badges=current.badges if current else (),
                )
                if current is None and not events:
                    return derived
                if current is not None and current.same_stats(derived):
                    return current

                derived.updated_at = self.clock()
                if current is None:
                    derived.version = 1
                    applied = await self.store.insert_profile(derived)
                else:
                    derived.version = current.version + 1
                    applied = await self.store.update_profile(derived, current.version)

                if applied:
                    new_badges = derived.badges[len(current.badges) if current else 0 :]
                    logger.info(
                        "profile_recomputed",
                        user_id=str(user_id),
                        points=derived.points,
                        streak=derived.current_streak,
                        lessons=derived.total_lessons_completed,
                        quizzes=derived.total_quizzes_passed,
                    )
                    if new_badges:
                        logger.info(
                            "badges_awarded", user_id=str(user_id), badges=new_badges
                        )
                    return derived

                logger.debug(
                    "profile_version_conflict", user_id=str(user_id), attempt=attempt
                )

        logger.warning("profile_retries_exhausted", user_id=str(user_id))
        raise ConcurrencyConflictError
