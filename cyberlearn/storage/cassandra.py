"""Cassandra implementation of the storage contract.

Uses prepared statements executed through ``session.aexecute``
(cassandra-asyncio-driver). Uniqueness and optimistic concurrency rely on
lightweight transactions; a submission and its answers are written in one
logged batch so they commit together.
"""

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from cassandra import DriverException, RequestExecutionException
from cassandra.cluster import NoHostAvailable
from cassandra.query import BatchStatement, BatchType

from cyberlearn.content.models import Lesson, Module
from cyberlearn.core.errors import StorageError
from cyberlearn.gamification.models import ProfileEvent, UserProfile
from cyberlearn.progress.models import Enrollment, Progress
from cyberlearn.quizzes.models import (
    Question,
    QuestionAnswer,
    Quiz,
    QuizSubmission,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

_DRIVER_ERRORS = (DriverException, RequestExecutionException, NoHostAvailable)


class CassandraLearningStore:
    """Engine storage backed by Cassandra."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        ks = self.keyspace

        # Content
        self._get_user = self.session.prepare(
            f"SELECT id FROM {ks}.users WHERE id = ?"
        )
        self._get_lesson = self.session.prepare(
            f"SELECT * FROM {ks}.lessons WHERE id = ?"
        )
        self._get_module = self.session.prepare(
            f"SELECT * FROM {ks}.modules WHERE id = ?"
        )
        self._get_path_modules = self.session.prepare(
            f"SELECT * FROM {ks}.modules_by_path WHERE path_id = ?"
        )
        self._get_path_lessons = self.session.prepare(
            f"SELECT * FROM {ks}.lessons_by_path WHERE path_id = ?"
        )
        self._get_quiz = self.session.prepare(
            f"SELECT * FROM {ks}.quizzes WHERE id = ?"
        )
        self._get_quiz_questions = self.session.prepare(
            f"SELECT * FROM {ks}.questions_by_quiz WHERE quiz_id = ?"
        )

        # Submissions
        self._claim_attempt = self.session.prepare(f"""
            INSERT INTO {ks}.quiz_attempt_claims
            (user_id, quiz_id, submission_id, claimed_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._release_attempt = self.session.prepare(f"""
            DELETE FROM {ks}.quiz_attempt_claims
            WHERE user_id = ? AND quiz_id = ?
            IF submission_id = ?
        """)
        self._insert_submission = self.session.prepare(f"""
            INSERT INTO {ks}.quiz_submissions
            (id, user_id, quiz_id, score, max_score, percentage, passed,
             time_spent, submitted_at, regraded_from)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._insert_submission_by_user = self.session.prepare(f"""
            INSERT INTO {ks}.quiz_submissions_by_user
            (user_id, quiz_id, submitted_at, id, score, max_score, percentage,
             passed, time_spent, regraded_from)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._insert_answer = self.session.prepare(f"""
            INSERT INTO {ks}.question_answers
            (submission_id, question_id, selected_option_id, text_answer,
             is_correct, earned_points, overridden)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._get_submission = self.session.prepare(
            f"SELECT * FROM {ks}.quiz_submissions WHERE id = ?"
        )
        self._get_answers = self.session.prepare(
            f"SELECT * FROM {ks}.question_answers WHERE submission_id = ?"
        )
        self._get_user_quiz_submissions = self.session.prepare(f"""
            SELECT * FROM {ks}.quiz_submissions_by_user
            WHERE user_id = ? AND quiz_id = ?
        """)
        self._get_user_submissions = self.session.prepare(
            f"SELECT * FROM {ks}.quiz_submissions_by_user WHERE user_id = ?"
        )

        # Lesson progress
        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {ks}.lesson_progress
            WHERE user_id = ? AND path_id = ? AND lesson_id = ?
        """)
        self._get_path_progress = self.session.prepare(f"""
            SELECT * FROM {ks}.lesson_progress
            WHERE user_id = ? AND path_id = ?
        """)
        self._insert_progress = self.session.prepare(f"""
            INSERT INTO {ks}.lesson_progress
            (user_id, path_id, lesson_id, module_id, views, completed,
             first_viewed_at, last_viewed_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._update_progress_views = self.session.prepare(f"""
            UPDATE {ks}.lesson_progress
            SET views = ?, first_viewed_at = ?, last_viewed_at = ?
            WHERE user_id = ? AND path_id = ? AND lesson_id = ?
            IF views = ?
        """)
        self._complete_progress = self.session.prepare(f"""
            UPDATE {ks}.lesson_progress
            SET completed = true, completed_at = ?
            WHERE user_id = ? AND path_id = ? AND lesson_id = ?
            IF completed = false
        """)

        # Enrollments
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {ks}.enrollments
            WHERE user_id = ? AND path_id = ?
        """)
        self._get_user_enrollments = self.session.prepare(
            f"SELECT * FROM {ks}.enrollments WHERE user_id = ?"
        )
        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {ks}.enrollments
            (user_id, path_id, percentage, completed, completed_at,
             lessons_completed, lessons_total, enrolled_at, updated_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._update_enrollment = self.session.prepare(f"""
            UPDATE {ks}.enrollments
            SET percentage = ?, completed = ?, completed_at = ?,
                lessons_completed = ?, lessons_total = ?, updated_at = ?,
                version = ?
            WHERE user_id = ? AND path_id = ?
            IF version = ?
        """)

        # Gamification
        self._insert_event = self.session.prepare(f"""
            INSERT INTO {ks}.profile_events
            (user_id, event_key, kind, source_id, points, occurred_at)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._get_events = self.session.prepare(
            f"SELECT * FROM {ks}.profile_events WHERE user_id = ?"
        )
        self._get_profile = self.session.prepare(
            f"SELECT * FROM {ks}.user_profiles WHERE user_id = ?"
        )
        self._insert_profile = self.session.prepare(f"""
            INSERT INTO {ks}.user_profiles
            (user_id, points, current_streak, last_activity_date,
             total_lessons_completed, total_quizzes_passed, badges,
             updated_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._update_profile = self.session.prepare(f"""
            UPDATE {ks}.user_profiles
            SET points = ?, current_streak = ?, last_activity_date = ?,
                total_lessons_completed = ?, total_quizzes_passed = ?,
                badges = ?, updated_at = ?, version = ?
            WHERE user_id = ?
            IF version = ?
        """)

    async def _execute(self, statement: Any, params: list | None = None) -> Any:
        """Execute a statement, converting driver failures to StorageError."""
        try:
            return await self.session.aexecute(statement, params)
        except _DRIVER_ERRORS as e:
            logger.error(
                "cassandra_query_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            msg = f"Storage failure: {type(e).__name__}"
            raise StorageError(msg) from e

    async def _execute_conditional(self, statement: Any, params: list) -> bool:
        """Execute a lightweight transaction and report whether it applied."""
        result = await self._execute(statement, params)
        return bool(result.was_applied)

    # ==========================================================================
    # Content
    # ==========================================================================

    async def user_exists(self, user_id: UUID) -> bool:
        result = await self._execute(self._get_user, [user_id])
        return result.one() is not None

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        result = await self._execute(self._get_lesson, [lesson_id])
        row = result.one()
        return Lesson.from_row(row) if row else None

    async def get_module(self, module_id: UUID) -> Module | None:
        result = await self._execute(self._get_module, [module_id])
        row = result.one()
        return Module.from_row(row) if row else None

    async def list_path_modules(self, path_id: UUID) -> list[Module]:
        rows = await self._execute(self._get_path_modules, [path_id])
        return [
            Module(
                id=row.module_id,
                path_id=row.path_id,
                title=row.title or "",
                position=row.position or 0,
            )
            for row in rows
        ]

    async def list_path_lessons(self, path_id: UUID) -> list[Lesson]:
        rows = await self._execute(self._get_path_lessons, [path_id])
        return [Lesson.from_path_row(row) for row in rows]

    async def get_quiz_bundle(
        self, quiz_id: UUID
    ) -> tuple[Quiz, list[Question]] | None:
        quiz_result, question_rows = await asyncio.gather(
            self._execute(self._get_quiz, [quiz_id]),
            self._execute(self._get_quiz_questions, [quiz_id]),
        )
        row = quiz_result.one()
        if not row:
            return None
        return Quiz.from_row(row), [Question.from_row(q) for q in question_rows]

    # ==========================================================================
    # Submissions
    # ==========================================================================

    async def claim_attempt(
        self,
        user_id: UUID,
        quiz_id: UUID,
        submission_id: UUID,
        claimed_at: datetime,
    ) -> bool:
        return await self._execute_conditional(
            self._claim_attempt, [user_id, quiz_id, submission_id, claimed_at]
        )

    async def release_attempt(
        self, user_id: UUID, quiz_id: UUID, submission_id: UUID
    ) -> None:
        await self._execute(self._release_attempt, [user_id, quiz_id, submission_id])

    async def save_submission(
        self, submission: QuizSubmission, answers: list[QuestionAnswer]
    ) -> None:
        batch = BatchStatement(batch_type=BatchType.LOGGED)
        batch.add(
            self._insert_submission,
            [
                submission.id,
                submission.user_id,
                submission.quiz_id,
                submission.score,
                submission.max_score,
                submission.percentage,
                submission.passed,
                submission.time_spent,
                submission.submitted_at,
                submission.regraded_from,
            ],
        )
        batch.add(
            self._insert_submission_by_user,
            [
                submission.user_id,
                submission.quiz_id,
                submission.submitted_at,
                submission.id,
                submission.score,
                submission.max_score,
                submission.percentage,
                submission.passed,
                submission.time_spent,
                submission.regraded_from,
            ],
        )
        for answer in answers:
            batch.add(
                self._insert_answer,
                [
                    answer.submission_id,
                    answer.question_id,
                    answer.selected_option_id,
                    answer.text_answer,
                    answer.is_correct,
                    answer.earned_points,
                    answer.overridden,
                ],
            )
        await self._execute(batch)

    async def get_submission(self, submission_id: UUID) -> QuizSubmission | None:
        result = await self._execute(self._get_submission, [submission_id])
        row = result.one()
        return QuizSubmission.from_row(row) if row else None

    async def list_answers(self, submission_id: UUID) -> list[QuestionAnswer]:
        rows = await self._execute(self._get_answers, [submission_id])
        return [QuestionAnswer.from_row(row) for row in rows]

    async def list_submissions(
        self, user_id: UUID, quiz_id: UUID
    ) -> list[QuizSubmission]:
        rows = await self._execute(self._get_user_quiz_submissions, [user_id, quiz_id])
        return [QuizSubmission.from_row(row) for row in rows]

    async def list_user_submissions(self, user_id: UUID) -> list[QuizSubmission]:
        rows = await self._execute(self._get_user_submissions, [user_id])
        return [QuizSubmission.from_row(row) for row in rows]

    # ==========================================================================
    # Lesson Progress
    # ==========================================================================

    async def get_progress(
        self, user_id: UUID, path_id: UUID, lesson_id: UUID
    ) -> Progress | None:
        result = await self._execute(self._get_progress, [user_id, path_id, lesson_id])
        row = result.one()
        return Progress.from_row(row) if row else None

    async def list_path_progress(
        self, user_id: UUID, path_id: UUID
    ) -> list[Progress]:
        rows = await self._execute(self._get_path_progress, [user_id, path_id])
        return [Progress.from_row(row) for row in rows]

    async def insert_progress(self, progress: Progress) -> bool:
        return await self._execute_conditional(
            self._insert_progress,
            [
                progress.user_id,
                progress.path_id,
                progress.lesson_id,
                progress.module_id,
                progress.views,
                progress.completed,
                progress.first_viewed_at,
                progress.last_viewed_at,
                progress.completed_at,
            ],
        )

    async def update_progress_views(
        self, progress: Progress, expected_views: int
    ) -> bool:
        return await self._execute_conditional(
            self._update_progress_views,
            [
                progress.views,
                progress.first_viewed_at,
                progress.last_viewed_at,
                progress.user_id,
                progress.path_id,
                progress.lesson_id,
                expected_views,
            ],
        )

    async def mark_progress_completed(
        self,
        user_id: UUID,
        path_id: UUID,
        lesson_id: UUID,
        completed_at: datetime,
    ) -> bool:
        return await self._execute_conditional(
            self._complete_progress, [completed_at, user_id, path_id, lesson_id]
        )

    # ==========================================================================
    # Enrollments
    # ==========================================================================

    async def get_enrollment(
        self, user_id: UUID, path_id: UUID
    ) -> Enrollment | None:
        result = await self._execute(self._get_enrollment, [user_id, path_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def list_enrollments(self, user_id: UUID) -> list[Enrollment]:
        rows = await self._execute(self._get_user_enrollments, [user_id])
        return [Enrollment.from_row(row) for row in rows]

    async def insert_enrollment(self, enrollment: Enrollment) -> bool:
        return await self._execute_conditional(
            self._insert_enrollment,
            [
                enrollment.user_id,
                enrollment.path_id,
                enrollment.percentage,
                enrollment.completed,
                enrollment.completed_at,
                enrollment.lessons_completed,
                enrollment.lessons_total,
                enrollment.enrolled_at,
                enrollment.updated_at,
                enrollment.version,
            ],
        )

    async def update_enrollment(
        self, enrollment: Enrollment, expected_version: int
    ) -> bool:
        return await self._execute_conditional(
            self._update_enrollment,
            [
                enrollment.percentage,
                enrollment.completed,
                enrollment.completed_at,
                enrollment.lessons_completed,
                enrollment.lessons_total,
                enrollment.updated_at,
                enrollment.version,
                enrollment.user_id,
                enrollment.path_id,
                expected_version,
            ],
        )

    # ==========================================================================
    # Gamification
    # ==========================================================================

    async def append_profile_event(self, event: ProfileEvent) -> bool:
        return await self._execute_conditional(
            self._insert_event,
            [
                event.user_id,
                event.event_key,
                event.kind.value,
                event.source_id,
                event.points,
                event.occurred_at,
            ],
        )

    async def list_profile_events(self, user_id: UUID) -> list[ProfileEvent]:
        rows = await self._execute(self._get_events, [user_id])
        return [ProfileEvent.from_row(row) for row in rows]

    async def get_profile(self, user_id: UUID) -> UserProfile | None:
        result = await self._execute(self._get_profile, [user_id])
        row = result.one()
        return UserProfile.from_row(row) if row else None

    async def insert_profile(self, profile: UserProfile) -> bool:
        return await self._execute_conditional(
            self._insert_profile,
            [
                profile.user_id,
                profile.points,
                profile.current_streak,
                profile.last_activity_date,
                profile.total_lessons_completed,
                profile.total_quizzes_passed,
                profile.badges,
                profile.updated_at,
                profile.version,
            ],
        )

    async def update_profile(
        self, profile: UserProfile, expected_version: int
    ) -> bool:
        return await self._execute_conditional(
            self._update_profile,
            [
                profile.points,
                profile.current_streak,
                profile.last_activity_date,
                profile.total_lessons_completed,
                profile.total_quizzes_passed,
                profile.badges,
                profile.updated_at,
                profile.version,
                profile.user_id,
                expected_version,
            ],
        )
