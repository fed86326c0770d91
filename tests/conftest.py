"""Shared fixtures: settings, a controllable clock and an in-memory store.

``InMemoryLearningStore`` follows the storage contract, including the
conditional-write semantics of the Cassandra store (IF NOT EXISTS,
IF views = ?, IF completed = false, IF version = ?). Every call yields to
the event loop once so concurrent tasks interleave, and failures can be
injected per method.
"""

import asyncio
from collections import Counter
from copy import deepcopy
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import NamedTuple
from uuid import UUID, uuid4

import pytest

from cyberlearn.bootstrap import Engine, build_engine
from cyberlearn.config import Settings
from cyberlearn.content.models import Lesson, Module
from cyberlearn.core.errors import StorageError
from cyberlearn.gamification.models import ProfileEvent, UserProfile
from cyberlearn.progress.models import Enrollment, Progress
from cyberlearn.quizzes.models import (
    Question,
    QuestionAnswer,
    QuestionOption,
    QuestionType,
    Quiz,
    QuizScope,
    QuizSubmission,
)


# ==============================================================================
# In-memory store
# ==============================================================================


class InMemoryLearningStore:
    """Storage contract implemented over dictionaries."""

    def __init__(self) -> None:
        self.users: set[UUID] = set()
        self.modules: dict[UUID, Module] = {}
        self.lessons: dict[UUID, Lesson] = {}
        self.quizzes: dict[UUID, tuple[Quiz, list[Question]]] = {}
        self.claims: dict[tuple[UUID, UUID], UUID] = {}
        self.submissions: dict[UUID, QuizSubmission] = {}
        self.answers: dict[UUID, list[QuestionAnswer]] = {}
        self.progress: dict[tuple[UUID, UUID], Progress] = {}
        self.enrollments: dict[tuple[UUID, UUID], Enrollment] = {}
        self.events: dict[tuple[UUID, str], ProfileEvent] = {}
        self.profiles: dict[UUID, UserProfile] = {}

        self.calls: Counter[str] = Counter()
        self._fail_before: Counter[str] = Counter()
        self._fail_after: Counter[str] = Counter()

    # Fault injection

    def fail(self, method: str, times: int = 1) -> None:
        """Raise StorageError on the next ``times`` calls, before any write."""
        self._fail_before[method] = times

    def fail_after_commit(self, method: str, times: int = 1) -> None:
        """Apply the next ``times`` writes, then raise StorageError anyway."""
        self._fail_after[method] = times

    async def _io(self, method: str) -> None:
        self.calls[method] += 1
        await asyncio.sleep(0)
        if self._fail_before[method] > 0:
            self._fail_before[method] -= 1
            msg = f"Injected failure in {method}"
            raise StorageError(msg)

    def _after_write(self, method: str) -> None:
        if self._fail_after[method] > 0:
            self._fail_after[method] -= 1
            msg = f"Injected failure after {method}"
            raise StorageError(msg)

    # Content

    async def user_exists(self, user_id: UUID) -> bool:
        await self._io("user_exists")
        return user_id in self.users

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        await self._io("get_lesson")
        return deepcopy(self.lessons.get(lesson_id))

    async def get_module(self, module_id: UUID) -> Module | None:
        await self._io("get_module")
        return deepcopy(self.modules.get(module_id))

    async def list_path_modules(self, path_id: UUID) -> list[Module]:
        await self._io("list_path_modules")
        return [deepcopy(m) for m in self.modules.values() if m.path_id == path_id]

    async def list_path_lessons(self, path_id: UUID) -> list[Lesson]:
        await self._io("list_path_lessons")
        return [deepcopy(l) for l in self.lessons.values() if l.path_id == path_id]

    async def get_quiz_bundle(self, quiz_id: UUID) -> tuple[Quiz, list[Question]] | None:
        await self._io("get_quiz_bundle")
        return deepcopy(self.quizzes.get(quiz_id))

    # Submissions

    async def claim_attempt(
        self, user_id: UUID, quiz_id: UUID, submission_id: UUID, claimed_at: datetime
    ) -> bool:
        await self._io("claim_attempt")
        if (user_id, quiz_id) in self.claims:
            return False
        self.claims[(user_id, quiz_id)] = submission_id
        return True

    async def release_attempt(
        self, user_id: UUID, quiz_id: UUID, submission_id: UUID
    ) -> None:
        await self._io("release_attempt")
        if self.claims.get((user_id, quiz_id)) == submission_id:
            del self.claims[(user_id, quiz_id)]

    async def save_submission(
        self, submission: QuizSubmission, answers: list[QuestionAnswer]
    ) -> None:
        await self._io("save_submission")
        self.submissions[submission.id] = deepcopy(submission)
        self.answers[submission.id] = deepcopy(answers)
        self._after_write("save_submission")

    async def get_submission(self, submission_id: UUID) -> QuizSubmission | None:
        await self._io("get_submission")
        return deepcopy(self.submissions.get(submission_id))

    async def list_answers(self, submission_id: UUID) -> list[QuestionAnswer]:
        await self._io("list_answers")
        return deepcopy(self.answers.get(submission_id, []))

    async def list_submissions(self, user_id: UUID, quiz_id: UUID) -> list[QuizSubmission]:
        await self._io("list_submissions")
        return [
            deepcopy(s)
            for s in self.submissions.values()
            if s.user_id == user_id and s.quiz_id == quiz_id
        ]

    async def list_user_submissions(self, user_id: UUID) -> list[QuizSubmission]:
        await self._io("list_user_submissions")
        return [deepcopy(s) for s in self.submissions.values() if s.user_id == user_id]

    # Lesson progress

    async def get_progress(
        self, user_id: UUID, path_id: UUID, lesson_id: UUID
    ) -> Progress | None:
        await self._io("get_progress")
        return deepcopy(self.progress.get((user_id, lesson_id)))

    async def list_path_progress(self, user_id: UUID, path_id: UUID) -> list[Progress]:
        await self._io("list_path_progress")
        return [
            deepcopy(p)
            for (uid, _), p in self.progress.items()
            if uid == user_id and p.path_id == path_id
        ]

    async def insert_progress(self, progress: Progress) -> bool:
        await self._io("insert_progress")
        key = (progress.user_id, progress.lesson_id)
        if key in self.progress:
            return False
        self.progress[key] = deepcopy(progress)
        return True

    async def update_progress_views(self, progress: Progress, expected_views: int) -> bool:
        await self._io("update_progress_views")
        stored = self.progress.get((progress.user_id, progress.lesson_id))
        if stored is None or stored.views != expected_views:
            return False
        stored.views = progress.views
        stored.first_viewed_at = progress.first_viewed_at
        stored.last_viewed_at = progress.last_viewed_at
        return True

    async def mark_progress_completed(
        self, user_id: UUID, path_id: UUID, lesson_id: UUID, completed_at: datetime
    ) -> bool:
        await self._io("mark_progress_completed")
        stored = self.progress.get((user_id, lesson_id))
        if stored is None or stored.completed:
            return False
        stored.completed = True
        stored.completed_at = completed_at
        return True

    # Enrollments

    async def get_enrollment(self, user_id: UUID, path_id: UUID) -> Enrollment | None:
        await self._io("get_enrollment")
        return deepcopy(self.enrollments.get((user_id, path_id)))

    async def list_enrollments(self, user_id: UUID) -> list[Enrollment]:
        await self._io("list_enrollments")
        return [deepcopy(e) for (uid, _), e in self.enrollments.items() if uid == user_id]

    async def insert_enrollment(self, enrollment: Enrollment) -> bool:
        await self._io("insert_enrollment")
        key = (enrollment.user_id, enrollment.path_id)
        if key in self.enrollments:
            return False
        self.enrollments[key] = deepcopy(enrollment)
        return True

    async def update_enrollment(self, enrollment: Enrollment, expected_version: int) -> bool:
        await self._io("update_enrollment")
        key = (enrollment.user_id, enrollment.path_id)
        stored = self.enrollments.get(key)
        if stored is None or stored.version != expected_version:
            return False
        self.enrollments[key] = deepcopy(enrollment)
        return True

    # Gamification

    async def append_profile_event(self, event: ProfileEvent) -> bool:
        await self._io("append_profile_event")
        key = (event.user_id, event.event_key)
        if key in self.events:
            return False
        self.events[key] = deepcopy(event)
        return True

    async def list_profile_events(self, user_id: UUID) -> list[ProfileEvent]:
        await self._io("list_profile_events")
        return [deepcopy(e) for (uid, _), e in self.events.items() if uid == user_id]

    async def get_profile(self, user_id: UUID) -> UserProfile | None:
        await self._io("get_profile")
        return deepcopy(self.profiles.get(user_id))

    async def insert_profile(self, profile: UserProfile) -> bool:
        await self._io("insert_profile")
        if profile.user_id in self.profiles:
            return False
        self.profiles[profile.user_id] = deepcopy(profile)
        return True

    async def update_profile(self, profile: UserProfile, expected_version: int) -> bool:
        await self._io("update_profile")
        stored = self.profiles.get(profile.user_id)
        if stored is None or stored.version != expected_version:
            return False
        self.profiles[profile.user_id] = deepcopy(profile)
        return True


# ==============================================================================
# Content builders
# ==============================================================================


class SampleQuiz(NamedTuple):
    """Two-question quiz: 5 pts multiple choice (A) + 5 pts true/false (true)."""

    quiz: Quiz
    questions: list[Question]
    mc_id: UUID
    option_a: UUID
    option_b: UUID
    tf_id: UUID
    option_true: UUID
    option_false: UUID


class ContentBuilder:
    """Creates users, paths, modules, lessons and quizzes in the store."""

    def __init__(self, store: InMemoryLearningStore):
        self.store = store

    def user(self) -> UUID:
        user_id = uuid4()
        self.store.users.add(user_id)
        return user_id

    def module(self, path_id: UUID | None = None, position: int = 0) -> Module:
        module = Module(id=uuid4(), path_id=path_id or uuid4(), position=position)
        self.store.modules[module.id] = module
        return module

    def lesson(
        self,
        module: Module,
        position: int = 0,
        published: bool = True,
        quiz_id: UUID | None = None,
    ) -> Lesson:
        lesson = Lesson(
            id=uuid4(),
            module_id=module.id,
            path_id=module.path_id,
            title=f"Lesson {position}",
            position=position,
            published=published,
            quiz_id=quiz_id,
        )
        self.store.lessons[lesson.id] = lesson
        return lesson

    def quiz(
        self,
        scope: QuizScope,
        questions: list[Question] | None = None,
        passing_score: Decimal = Decimal(70),
        retakeable: bool = True,
    ) -> Quiz:
        quiz = Quiz(
            id=uuid4(),
            scope=scope,
            passing_score=passing_score,
            retakeable=retakeable,
        )
        for question in questions or []:
            question.quiz_id = quiz.id
        self.store.quizzes[quiz.id] = (quiz, questions or [])
        return quiz

    def sample_quiz(
        self,
        scope: QuizScope,
        passing_score: Decimal = Decimal(70),
        retakeable: bool = True,
    ) -> SampleQuiz:
        option_a, option_b = uuid4(), uuid4()
        option_true, option_false = uuid4(), uuid4()
        mc = make_choice_question(points=5, correct=option_a, wrong=option_b)
        tf = make_choice_question(
            points=5,
            correct=option_true,
            wrong=option_false,
            type=QuestionType.TRUE_FALSE,
            position=1,
        )
        quiz = self.quiz(scope, [mc, tf], passing_score, retakeable)
        return SampleQuiz(
            quiz=quiz,
            questions=[mc, tf],
            mc_id=mc.id,
            option_a=option_a,
            option_b=option_b,
            tf_id=tf.id,
            option_true=option_true,
            option_false=option_false,
        )


def make_choice_question(
    points: int,
    correct: UUID,
    wrong: UUID,
    type: QuestionType = QuestionType.MULTIPLE_CHOICE,
    position: int = 0,
) -> Question:
    """Choice question with one correct and one wrong option."""
    return Question(
        id=uuid4(),
        quiz_id=uuid4(),
        type=type,
        points=points,
        options=[
            QuestionOption(id=correct, label="right", is_correct=True),
            QuestionOption(id=wrong, label="wrong", is_correct=False),
        ],
        position=position,
    )


def make_short_answer(
    points: int = 2, reference_answer: str | None = "Firewall"
) -> Question:
    return Question(
        id=uuid4(),
        quiz_id=uuid4(),
        type=QuestionType.SHORT_ANSWER,
        points=points,
        reference_answer=reference_answer,
    )


# ==============================================================================
# Clock
# ==============================================================================


class FakeClock:
    """Controllable clock."""

    def __init__(self, start: datetime = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: no Redis, no log files, no retry backoff."""
    return Settings(
        _env_file=None,
        environment="testing",
        redis_enabled=False,
        log_to_file=False,
        storage_retry_backoff_seconds=0.0,
        profile_lock_timeout_seconds=2.0,
    )


@pytest.fixture
def store() -> InMemoryLearningStore:
    return InMemoryLearningStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def content(store: InMemoryLearningStore) -> ContentBuilder:
    return ContentBuilder(store)


@pytest.fixture
def engine(store: InMemoryLearningStore, settings: Settings, clock: FakeClock) -> Engine:
    """Engine wired to the in-memory store with process-local locks."""
    return build_engine(store, settings=settings, clock=clock)
