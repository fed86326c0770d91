"""Submission orchestration.

Drives one quiz attempt or lesson event through validation, grading,
persistence and aggregation:

- Grading is pure and runs under a timeout.
- The submission and its answers are written in one atomic batch; a failed
  write is retried only once storage confirms nothing was committed.
- Aggregation (lesson progress, enrollment, profile) is idempotent, retried
  on transient storage failures, and can be re-run later through the
  ``resync_*`` operations.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar
from uuid import UUID, uuid1, uuid4

import structlog
from pydantic import ValidationError as SchemaValidationError

from cyberlearn.config import Settings, get_settings
from cyberlearn.content.models import Lesson
from cyberlearn.core.clock import Clock, utc_now
from cyberlearn.core.context import OperationContext, set_submission_id
from cyberlearn.core.errors import (
    AggregationIncompleteError,
    ConcurrencyConflictError,
    DuplicateSubmissionError,
    GradingTimeoutError,
    StorageError,
    ValidationError,
)
from cyberlearn.gamification.stats import ProfileStatsEngine
from cyberlearn.progress.aggregator import EnrollmentAggregator
from cyberlearn.progress.models import Enrollment, Progress
from cyberlearn.progress.tracker import ProgressTracker
from cyberlearn.quizzes.models import (
    Question,
    QuestionAnswer,
    QuestionType,
    Quiz,
    QuizSubmission,
    ShortAnswerPolicy,
)
from cyberlearn.quizzes.schemas import AnswerInput
from cyberlearn.quizzes.scoring import ScoreResult, best_submission, score_submission

from .states import SubmissionAttempt, SubmissionFlow, SubmissionState


if TYPE_CHECKING:
    from cyberlearn.storage.base import LearningStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")

AnswerPayload = AnswerInput | Mapping[str, Any]


class SubmissionOrchestrator:
    """Single entry point for quiz submissions and lesson events."""

    def __init__(
        self,
        store: "LearningStore",
        tracker: ProgressTracker,
        aggregator: EnrollmentAggregator,
        stats: ProfileStatsEngine,
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.tracker = tracker
        self.aggregator = aggregator
        self.stats = stats
        self.settings = settings or get_settings()
        self.clock = clock
        self.short_answer_policy = ShortAnswerPolicy(self.settings.short_answer_policy)

    # ==========================================================================
    # Quiz submissions
    # ==========================================================================

    async def submit_quiz(
        self,
        user_id: UUID,
        quiz_id: UUID,
        answers: Iterable[AnswerPayload],
        time_spent: int | None = None,
    ) -> QuizSubmission:
        """Grade and record a quiz attempt, then propagate its result.

        Raises:
            ValidationError: Unknown quiz/user/question/option or bad payload.
            DuplicateSubmissionError: Non-retakeable quiz already attempted.
            GradingTimeoutError: Grading exceeded the configured timeout.
            StorageError: The attempt could not be saved.
            AggregationIncompleteError: Saved, but aggregation must be resynced.
        """
        with OperationContext("submit_quiz", user_id=user_id):
            attempt = SubmissionAttempt(SubmissionFlow.QUIZ)
            submission_id = uuid4()
            set_submission_id(submission_id)
            logger.info("quiz_submission_received", quiz_id=str(quiz_id))

            try:
                quiz, questions, parsed = await self._validate_submission(
                    user_id, quiz_id, answers, submission_id
                )
            except (ValidationError, DuplicateSubmissionError) as e:
                attempt.advance(SubmissionState.REJECTED)
                logger.warning("quiz_submission_rejected", code=e.code, reason=e.message)
                raise
            except StorageError:
                attempt.advance(SubmissionState.FAILED)
                logger.error("quiz_submission_failed", step="validate")
                raise
            attempt.advance(SubmissionState.VALIDATED)

            try:
                result = await self._grade(quiz, questions, parsed)
            except GradingTimeoutError:
                attempt.advance(SubmissionState.FAILED)
                await self._release_claim(quiz, user_id, submission_id)
                raise
            attempt.advance(SubmissionState.GRADED)

            submission = QuizSubmission(
                id=submission_id,
                user_id=user_id,
                quiz_id=quiz.id,
                score=result.score,
                max_score=result.max_score,
                percentage=result.percentage,
                passed=result.passed,
                time_spent=time_spent,
                submitted_at=self.clock(),
            )
            await self._persist_or_fail(
                attempt, submission, result.to_answers(submission_id), quiz
            )
            logger.info(
                "quiz_submission_graded",
                quiz_id=str(quiz.id),
                score=result.score,
                max_score=result.max_score,
                percentage=str(result.percentage),
                passed=result.passed,
                pending_review=result.pending_review,
            )

            await self._aggregate_or_fail(attempt, submission, quiz)
            attempt.advance(SubmissionState.DONE)
            return submission

    async def _validate_submission(
        self,
        user_id: UUID,
        quiz_id: UUID,
        answers: Iterable[AnswerPayload],
        submission_id: UUID,
    ) -> tuple[Quiz, list[Question], list[AnswerInput]]:
        bundle = await self.store.get_quiz_bundle(quiz_id)
        if bundle is None:
            msg = "Quiz not found"
            raise ValidationError(msg)
        quiz, questions = bundle

        if not await self.store.user_exists(user_id):
            msg = "User not found"
            raise ValidationError(msg)

        parsed = self._parse_answers(answers, questions)
        path_id = await self.aggregator.resolve_path_id(quiz.scope)

        if self.settings.require_enrollment:
            if await self.store.get_enrollment(user_id, path_id) is None:
                msg = "User is not enrolled in this learning path"
                raise ValidationError(msg)

        if not quiz.retakeable:
            if await self.store.list_submissions(user_id, quiz.id):
                raise DuplicateSubmissionError
            claimed = await self.store.claim_attempt(
                user_id, quiz.id, submission_id, self.clock()
            )
            if not claimed:
                raise DuplicateSubmissionError

        return quiz, questions, parsed

    def _parse_answers(
        self, answers: Iterable[AnswerPayload], questions: list[Question]
    ) -> list[AnswerInput]:
        """Validate the answer payload against the quiz's questions."""
        questions_by_id = {question.id: question for question in questions}
        parsed: list[AnswerInput] = []
        seen: set[UUID] = set()

        for raw in answers:
            try:
                answer = (
                    raw
                    if isinstance(raw, AnswerInput)
                    else AnswerInput.model_validate(raw)
                )
            except SchemaValidationError as e:
                msg = "Malformed answer payload"
                raise ValidationError(msg) from e

            if answer.question_id in seen:
                msg = f"Duplicate answer for question {answer.question_id}"
                raise ValidationError(msg)
            seen.add(answer.question_id)

            question = questions_by_id.get(answer.question_id)
            if question is None:
                msg = f"Question {answer.question_id} does not belong to this quiz"
                raise ValidationError(msg)

            if (
                self.settings.strict_option_validation
                and answer.selected_option_id is not None
                and not question.has_option(answer.selected_option_id)
            ):
                msg = f"Option {answer.selected_option_id} does not belong to its question"
                raise ValidationError(msg)

            parsed.append(answer)

        return parsed

    async def _grade(
        self,
        quiz: Quiz,
        questions: list[Question],
        answers: list[AnswerInput],
        overrides: Mapping[UUID, bool] | None = None,
    ) -> ScoreResult:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    score_submission,
                    quiz,
                    questions,
                    answers,
                    short_answer_policy=self.short_answer_policy,
                    overrides=overrides,
                ),
                timeout=self.settings.grading_timeout_seconds,
            )
        except TimeoutError as e:
            logger.error(
                "quiz_grading_timeout",
                quiz_id=str(quiz.id),
                timeout=self.settings.grading_timeout_seconds,
            )
            raise GradingTimeoutError from e

    async def _release_claim(
        self, quiz: Quiz, user_id: UUID, submission_id: UUID
    ) -> None:
        """Give back a non-retakeable attempt that was never saved."""
        if quiz.retakeable:
            return
        try:
            await self.store.release_attempt(user_id, quiz.id, submission_id)
        except StorageError:
            logger.warning("attempt_claim_release_failed", quiz_id=str(quiz.id))

    # ==========================================================================
    # Persistence
    # ==========================================================================

    async def _persist_or_fail(
        self,
        attempt: SubmissionAttempt,
        submission: QuizSubmission,
        answers: list[QuestionAnswer],
        quiz: Quiz,
    ) -> None:
        try:
            await self._persist(submission, answers)
        except StorageError:
            attempt.advance(SubmissionState.FAILED)
            logger.error("quiz_submission_failed", step="persist")
            await self._release_claim(quiz, submission.user_id, submission.id)
            raise
        attempt.advance(SubmissionState.PERSISTED)

    async def _persist(
        self, submission: QuizSubmission, answers: list[QuestionAnswer]
    ) -> None:
        """Write the submission batch.

        A failed batch is only retried after reading back that the
        submission does not exist; when it does, the batch was committed.
        """
        attempts = self.settings.storage_max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                await self.store.save_submission(submission, answers)
                return
            except StorageError:
                if attempt == attempts:
                    raise
                if await self.store.get_submission(submission.id) is not None:
                    logger.info("submission_write_confirmed", attempt=attempt)
                    return
                logger.warning("submission_write_retry", attempt=attempt)
                await asyncio.sleep(self.settings.storage_retry_backoff_seconds * attempt)

    # ==========================================================================
    # Aggregation
    # ==========================================================================

    async def _aggregate_or_fail(
        self,
        attempt: SubmissionAttempt,
        submission: QuizSubmission,
        quiz: Quiz,
    ) -> None:
        try:
            await self._with_storage_retries(
                "aggregate_submission", self._aggregate_submission, submission, quiz
            )
        except (StorageError, ConcurrencyConflictError, ValidationError) as e:
            attempt.advance(SubmissionState.FAILED)
            logger.error(
                "submission_aggregation_incomplete",
                error=e.message,
                code=e.code,
            )
            raise AggregationIncompleteError(submission.id) from e
        attempt.advance(SubmissionState.AGGREGATED)

    async def _aggregate_submission(self, submission: QuizSubmission, quiz: Quiz) -> None:
        """Progress -> Enrollment -> Profile for one graded submission."""
        user_id = submission.user_id
        path_id = await self.aggregator.resolve_path_id(quiz.scope)

        completed_lessons: list[Progress] = []
        gated = await self.aggregator.gated_lessons(quiz, path_id)
        if gated:
            best = best_submission(await self.store.list_submissions(user_id, quiz.id))
            if best is not None and best.passed:
                for lesson in gated:
                    completion = await self.tracker.record_completion(user_id, lesson)
                    completed_lessons.append(completion.progress)

        await self.aggregator.recompute(user_id, path_id)

        for progress in completed_lessons:
            await self.stats.on_lesson_completed(user_id, progress)
        await self.stats.on_quiz_passed(user_id, submission)

    async def _with_storage_retries(
        self, step: str, func: Callable[..., Awaitable[T]], *args: Any
    ) -> T:
        """Run an idempotent step, retrying transient storage failures."""
        for attempt in range(1, self.settings.storage_max_retries + 1):
            try:
                return await func(*args)
            except StorageError as e:
                logger.warning(
                    "storage_retry", step=step, attempt=attempt, error=e.message
                )
                await asyncio.sleep(self.settings.storage_retry_backoff_seconds * attempt)
        return await func(*args)

    # ==========================================================================
    # Lesson events
    # ==========================================================================

    async def view_lesson(self, user_id: UUID, lesson_id: UUID) -> Progress:
        """Count a lesson view. Enrollment and profile are not affected."""
        with OperationContext("view_lesson", user_id=user_id):
            attempt = SubmissionAttempt(SubmissionFlow.LESSON)
            lesson = await self._load_lesson_or_reject(attempt, user_id, lesson_id)

            try:
                progress = await self.tracker.record_view(user_id, lesson)
            except (StorageError, ConcurrencyConflictError):
                attempt.advance(SubmissionState.FAILED)
                logger.error("lesson_view_failed", lesson_id=str(lesson_id))
                raise
            attempt.advance(SubmissionState.PERSISTED)

            # Views are not completion events: nothing to aggregate
            attempt.advance(SubmissionState.AGGREGATED)
            attempt.advance(SubmissionState.DONE)
            return progress

    async def complete_lesson(self, user_id: UUID, lesson_id: UUID) -> Progress:
        """Mark a lesson completed and propagate it (idempotent).

        Quiz-gated lessons are only completed by passing their quiz.
        """
        with OperationContext("complete_lesson", user_id=user_id):
            attempt = SubmissionAttempt(SubmissionFlow.LESSON)
            lesson = await self._load_lesson_or_reject(attempt, user_id, lesson_id)

            try:
                await self._check_lesson_completable(user_id, lesson)
            except ValidationError as e:
                attempt.advance(SubmissionState.REJECTED)
                logger.warning("lesson_completion_rejected", reason=e.message)
                raise
            except StorageError:
                attempt.advance(SubmissionState.FAILED)
                raise

            try:
                completion = await self._with_storage_retries(
                    "record_completion", self.tracker.record_completion, user_id, lesson
                )
            except (StorageError, ConcurrencyConflictError):
                attempt.advance(SubmissionState.FAILED)
                logger.error("lesson_completion_failed", lesson_id=str(lesson_id))
                raise
            attempt.advance(SubmissionState.PERSISTED)

            try:
                await self._with_storage_retries(
                    "aggregate_lesson",
                    self._aggregate_lesson,
                    user_id,
                    lesson,
                    completion.progress,
                )
            except (StorageError, ConcurrencyConflictError):
                attempt.advance(SubmissionState.FAILED)
                logger.error("lesson_aggregation_incomplete", lesson_id=str(lesson_id))
                raise
            attempt.advance(SubmissionState.AGGREGATED)
            attempt.advance(SubmissionState.DONE)
            return completion.progress

    async def _load_lesson_or_reject(
        self, attempt: SubmissionAttempt, user_id: UUID, lesson_id: UUID
    ) -> Lesson:
        try:
            lesson = await self.store.get_lesson(lesson_id)
            if lesson is None or not lesson.published:
                msg = "Lesson not found"
                raise ValidationError(msg)
            if not await self.store.user_exists(user_id):
                msg = "User not found"
                raise ValidationError(msg)
        except ValidationError as e:
            attempt.advance(SubmissionState.REJECTED)
            logger.warning("lesson_event_rejected", reason=e.message)
            raise
        except StorageError:
            attempt.advance(SubmissionState.FAILED)
            raise
        return lesson

    async def _check_lesson_completable(self, user_id: UUID, lesson: Lesson) -> None:
        if self.settings.require_enrollment:
            if await self.store.get_enrollment(user_id, lesson.path_id) is None:
                msg = "User is not enrolled in this learning path"
                raise ValidationError(msg)

        if lesson.quiz_id is not None:
            best = best_submission(
                await self.store.list_submissions(user_id, lesson.quiz_id)
            )
            if best is None or not best.passed:
                msg = "Lesson is completed by passing its quiz"
                raise ValidationError(msg)

    async def _aggregate_lesson(
        self, user_id: UUID, lesson: Lesson, progress: Progress
    ) -> None:
        await self.aggregator.recompute(user_id, lesson.path_id)
        await self.stats.on_lesson_completed(user_id, progress)

    # ==========================================================================
    # Enrollment
    # ==========================================================================

    async def enroll(self, user_id: UUID, path_id: UUID) -> Enrollment:
        """Enroll a learner in a path (idempotent)."""
        with OperationContext("enroll", user_id=user_id):
            if not await self.store.user_exists(user_id):
                msg = "User not found"
                raise ValidationError(msg)
            return await self._with_storage_retries(
                "ensure_enrollment", self.aggregator.ensure_enrollment, user_id, path_id
            )

    # ==========================================================================
    # Instructor overrides
    # ==========================================================================

    async def override_answer(
        self, submission_id: UUID, question_id: UUID, is_correct: bool
    ) -> QuizSubmission:
        """Record an instructor verdict on a short answer.

        The original submission is left untouched: the verdict produces a
        new regraded submission row pointing at the learner's original
        attempt, which is then aggregated like any other submission.
        """
        with OperationContext("override_answer"):
            original = await self.store.get_submission(submission_id)
            if original is None:
                msg = "Submission not found"
                raise ValidationError(msg)

            bundle = await self.store.get_quiz_bundle(original.quiz_id)
            if bundle is None:
                msg = "Quiz not found"
                raise ValidationError(msg)
            quiz, questions = bundle

            question = next((q for q in questions if q.id == question_id), None)
            if question is None:
                msg = f"Question {question_id} does not belong to this quiz"
                raise ValidationError(msg)
            if question.type is not QuestionType.SHORT_ANSWER:
                msg = "Only short-answer questions can be overridden"
                raise ValidationError(msg)

            attempt = SubmissionAttempt(SubmissionFlow.QUIZ)
            attempt.advance(SubmissionState.VALIDATED)

            latest = await self._latest_grading(original)
            stored_answers = await self.store.list_answers(latest.id)
            overrides = {a.question_id: a.is_correct for a in stored_answers if a.overridden}
            overrides[question_id] = is_correct
            answers = [
                AnswerInput(
                    question_id=a.question_id,
                    selected_option_id=a.selected_option_id,
                    text_answer=a.text_answer,
                )
                for a in stored_answers
            ]

            regraded_id = uuid1()
            set_submission_id(regraded_id)
            try:
                result = await self._grade(quiz, questions, answers, overrides)
            except GradingTimeoutError:
                attempt.advance(SubmissionState.FAILED)
                raise
            attempt.advance(SubmissionState.GRADED)

            regraded = QuizSubmission(
                id=regraded_id,
                user_id=original.user_id,
                quiz_id=original.quiz_id,
                score=result.score,
                max_score=result.max_score,
                percentage=result.percentage,
                passed=result.passed,
                time_spent=original.time_spent,
                submitted_at=original.submitted_at,
                regraded_from=original.root_id,
            )
            await self._persist_or_fail(
                attempt, regraded, result.to_answers(regraded_id), quiz
            )
            logger.info(
                "quiz_submission_regraded",
                user_id=str(original.user_id),
                original_id=str(original.id),
                question_id=str(question_id),
                is_correct=is_correct,
                percentage=str(result.percentage),
                passed=result.passed,
            )

            await self._aggregate_or_fail(attempt, regraded, quiz)
            attempt.advance(SubmissionState.DONE)
            return regraded

    async def _latest_grading(self, submission: QuizSubmission) -> QuizSubmission:
        """Most recent grading of the attempt ``submission`` belongs to.

        Regrades keep the original ``submitted_at`` and get time-based ids,
        so the newest one is the regrade with the latest id timestamp.
        """
        rows = await self.store.list_submissions(submission.user_id, submission.quiz_id)
        regrades = [row for row in rows if row.regraded_from == submission.root_id]
        if regrades:
            return max(regrades, key=lambda row: row.id.time)
        if submission.regraded_from is None:
            return submission
        root = await self.store.get_submission(submission.root_id)
        return root or submission

    # ==========================================================================
    # Repair
    # ==========================================================================

    async def resync_submission(self, submission_id: UUID) -> QuizSubmission:
        """Re-run aggregation of a persisted submission (idempotent)."""
        with OperationContext("resync_submission"):
            set_submission_id(submission_id)
            submission = await self.store.get_submission(submission_id)
            if submission is None:
                msg = "Submission not found"
                raise ValidationError(msg)
            bundle = await self.store.get_quiz_bundle(submission.quiz_id)
            if bundle is None:
                msg = "Quiz not found"
                raise ValidationError(msg)
            quiz, _ = bundle

            await self._with_storage_retries(
                "aggregate_submission", self._aggregate_submission, submission, quiz
            )
            logger.info("submission_resynced", user_id=str(submission.user_id))
            return submission

    async def resync_path(self, user_id: UUID, path_id: UUID) -> Enrollment:
        """Re-run aggregation of everything a learner did in a path."""
        with OperationContext("resync_path", user_id=user_id):
            enrollment = await self._with_storage_retries(
                "recompute_enrollment", self.aggregator.recompute, user_id, path_id
            )

            for progress in await self.store.list_path_progress(user_id, path_id):
                if progress.completed:
                    await self.stats.on_lesson_completed(user_id, progress)

            quiz_paths: dict[UUID, UUID | None] = {}
            for submission in await self.store.list_user_submissions(user_id):
                if not submission.passed:
                    continue
                if submission.quiz_id not in quiz_paths:
                    quiz_paths[submission.quiz_id] = await self._quiz_path_id(
                        submission.quiz_id
                    )
                if quiz_paths[submission.quiz_id] == path_id:
                    await self.stats.on_quiz_passed(user_id, submission)

            await self.stats.recompute(user_id)
            logger.info(
                "path_resynced",
                path_id=str(path_id),
                percentage=str(enrollment.percentage),
            )
            return enrollment

    async def _quiz_path_id(self, quiz_id: UUID) -> UUID | None:
        bundle = await self.store.get_quiz_bundle(quiz_id)
        if bundle is None:
            return None
        quiz, _ = bundle
        try:
            return await self.aggregator.resolve_path_id(quiz.scope)
        except ValidationError:
            return None
