"""End-to-end tests for the submission orchestrator.

Every test runs the real tracker, aggregator and stats engine over the
in-memory store.
"""

import asyncio
import time
from decimal import Decimal
from uuid import uuid4

import pytest

from cyberlearn.core.errors import (
    AggregationIncompleteError,
    DuplicateSubmissionError,
    GradingTimeoutError,
    StorageError,
    ValidationError,
)
from cyberlearn.quizzes import scoring
from cyberlearn.quizzes.models import QuizScope
from cyberlearn.quizzes.schemas import AnswerInput

from conftest import make_choice_question, make_short_answer


@pytest.fixture
def orchestrator(engine):
    return engine.orchestrator


@pytest.fixture
def gated(content):
    """Single-lesson path whose lesson is gated by the sample quiz."""
    module = content.module()
    lesson = content.lesson(module)
    sample = content.sample_quiz(QuizScope.lesson(lesson.id))
    lesson.quiz_id = sample.quiz.id
    return module, lesson, sample


def _answers(sample, mc, tf):
    return [
        {"question_id": str(sample.mc_id), "selected_option_id": str(mc)},
        {"question_id": str(sample.tf_id), "selected_option_id": str(tf)},
    ]


def _all_correct(sample):
    return _answers(sample, sample.option_a, sample.option_true)


def _all_wrong(sample):
    return _answers(sample, sample.option_b, sample.option_false)


class TestSubmitQuiz:
    """Grading, persistence and propagation of quiz attempts."""

    @pytest.mark.asyncio
    async def test_passing_submission_completes_everything(
        self, orchestrator, store, content, gated, clock
    ):
        # Arrange
        module, lesson, sample = gated
        user_id = content.user()

        # Act
        submission = await orchestrator.submit_quiz(
            user_id, sample.quiz.id, _all_correct(sample), time_spent=120
        )

        # Assert
        assert submission.score == 10
        assert submission.max_score == 10
        assert submission.percentage == Decimal("100.00")
        assert submission.passed is True
        assert submission.submitted_at == clock.now
        assert store.submissions[submission.id].time_spent == 120
        assert len(store.answers[submission.id]) == 2

        progress = store.progress[(user_id, lesson.id)]
        assert progress.completed is True

        enrollment = store.enrollments[(user_id, module.path_id)]
        assert enrollment.percentage == Decimal("100.00")
        assert enrollment.completed is True

        profile = store.profiles[user_id]
        assert profile.points == 110
        assert profile.total_lessons_completed == 1
        assert profile.total_quizzes_passed == 1
        assert profile.badges == ["first_lesson", "first_quiz_passed"]

    @pytest.mark.asyncio
    async def test_failing_submission_changes_no_completion(
        self, orchestrator, store, content, gated
    ):
        module, lesson, sample = gated
        user_id = content.user()

        submission = await orchestrator.submit_quiz(
            user_id, sample.quiz.id, _all_wrong(sample)
        )

        assert submission.score == 0
        assert submission.percentage == Decimal("0.00")
        assert submission.passed is False
        assert (user_id, lesson.id) not in store.progress
        assert store.enrollments[(user_id, module.path_id)].percentage == Decimal("0.00")
        assert user_id not in store.profiles

    @pytest.mark.asyncio
    async def test_retake_after_failure_completes_lesson(
        self, orchestrator, store, content, gated
    ):
        module, lesson, sample = gated
        user_id = content.user()

        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_wrong(sample))
        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        assert len(store.submissions) == 2
        assert store.progress[(user_id, lesson.id)].completed is True
        assert store.enrollments[(user_id, module.path_id)].completed is True

    @pytest.mark.asyncio
    async def test_second_pass_does_not_recomplete_lesson(
        self, orchestrator, store, content, gated, clock
    ):
        _, lesson, sample = gated
        user_id = content.user()
        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))
        completed_at = store.progress[(user_id, lesson.id)].completed_at
        clock.advance(hours=2)

        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        profile = store.profiles[user_id]
        assert store.progress[(user_id, lesson.id)].completed_at == completed_at
        assert profile.total_lessons_completed == 1
        assert profile.total_quizzes_passed == 2

    @pytest.mark.asyncio
    async def test_answer_models_are_accepted(self, orchestrator, content, gated):
        _, _, sample = gated

        submission = await orchestrator.submit_quiz(
            content.user(),
            sample.quiz.id,
            [AnswerInput(question_id=sample.mc_id, selected_option_id=sample.option_a)],
        )

        assert submission.score == 5
        assert submission.passed is False

    @pytest.mark.asyncio
    async def test_module_quiz_counts_without_completing_lessons(
        self, orchestrator, store, content
    ):
        module = content.module()
        lesson = content.lesson(module)
        sample = content.sample_quiz(QuizScope.module(module.id))
        user_id = content.user()

        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        assert (user_id, lesson.id) not in store.progress
        assert store.enrollments[(user_id, module.path_id)].percentage == Decimal("0.00")
        assert store.profiles[user_id].total_quizzes_passed == 1

    @pytest.mark.asyncio
    async def test_module_quiz_completes_lesson_it_gates(
        self, orchestrator, store, content
    ):
        module = content.module()
        sample = content.sample_quiz(QuizScope.module(module.id))
        lesson = content.lesson(module, quiz_id=sample.quiz.id)
        user_id = content.user()

        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        assert store.progress[(user_id, lesson.id)].completed is True
        assert store.enrollments[(user_id, module.path_id)].completed is True
        assert store.profiles[user_id].total_lessons_completed == 1

    @pytest.mark.asyncio
    async def test_unpublished_gated_lesson_is_not_completed(
        self, orchestrator, store, content
    ):
        module = content.module()
        lesson = content.lesson(module, published=False)
        sample = content.sample_quiz(QuizScope.lesson(lesson.id))
        lesson.quiz_id = sample.quiz.id
        user_id = content.user()

        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        profile = store.profiles[user_id]
        assert (user_id, lesson.id) not in store.progress
        assert profile.total_lessons_completed == 0
        assert profile.points == 100
        assert profile.badges == ["first_quiz_passed"]


class TestSubmitQuizRejections:
    """Requests that can never succeed are rejected before anything is written."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("make_scope", [QuizScope.module, QuizScope.lesson])
    async def test_quiz_with_missing_scope_target(
        self, orchestrator, store, content, make_scope
    ):
        sample = content.sample_quiz(make_scope(uuid4()), retakeable=False)

        with pytest.raises(ValidationError, match="not found"):
            await orchestrator.submit_quiz(
                content.user(), sample.quiz.id, _all_correct(sample)
            )

        assert store.submissions == {}
        assert store.claims == {}

    @pytest.mark.asyncio
    async def test_unknown_quiz(self, orchestrator, store, content):
        with pytest.raises(ValidationError, match="Quiz not found"):
            await orchestrator.submit_quiz(content.user(), uuid4(), [])

        assert store.submissions == {}

    @pytest.mark.asyncio
    async def test_unknown_user(self, orchestrator, store, gated):
        _, _, sample = gated

        with pytest.raises(ValidationError, match="User not found"):
            await orchestrator.submit_quiz(uuid4(), sample.quiz.id, _all_correct(sample))

        assert store.submissions == {}

    @pytest.mark.asyncio
    async def test_foreign_question(self, orchestrator, content, gated):
        _, _, sample = gated
        answers = [{"question_id": str(uuid4()), "selected_option_id": str(uuid4())}]

        with pytest.raises(ValidationError, match="does not belong to this quiz"):
            await orchestrator.submit_quiz(content.user(), sample.quiz.id, answers)

    @pytest.mark.asyncio
    async def test_foreign_option(self, orchestrator, content, gated):
        _, _, sample = gated

        with pytest.raises(ValidationError):
            await orchestrator.submit_quiz(
                content.user(), sample.quiz.id, _answers(sample, uuid4(), sample.option_true)
            )

    @pytest.mark.asyncio
    async def test_foreign_option_grades_incorrect_when_lenient(
        self, orchestrator, settings, content, gated
    ):
        _, _, sample = gated
        settings.strict_option_validation = False

        submission = await orchestrator.submit_quiz(
            content.user(), sample.quiz.id, _answers(sample, uuid4(), sample.option_true)
        )

        assert submission.score == 5

    @pytest.mark.asyncio
    async def test_duplicate_answers(self, orchestrator, content, gated):
        _, _, sample = gated
        answer = {"question_id": str(sample.mc_id), "selected_option_id": str(sample.option_a)}

        with pytest.raises(ValidationError, match="Duplicate answer"):
            await orchestrator.submit_quiz(content.user(), sample.quiz.id, [answer, answer])

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"question_id": "not-a-uuid"},
            {"selected_option_id": str(uuid4())},
            {"question_id": str(uuid4()), "unexpected": True},
        ],
    )
    async def test_malformed_payload(self, orchestrator, content, gated, payload):
        _, _, sample = gated

        with pytest.raises(ValidationError, match="Malformed answer payload"):
            await orchestrator.submit_quiz(content.user(), sample.quiz.id, [payload])

    @pytest.mark.asyncio
    async def test_enrollment_required(self, orchestrator, settings, content, gated):
        module, _, sample = gated
        settings.require_enrollment = True
        user_id = content.user()

        with pytest.raises(ValidationError, match="not enrolled"):
            await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        await orchestrator.enroll(user_id, module.path_id)
        submission = await orchestrator.submit_quiz(
            user_id, sample.quiz.id, _all_correct(sample)
        )
        assert submission.passed is True

    @pytest.mark.asyncio
    async def test_storage_failure_while_loading(self, orchestrator, store, content, gated):
        _, _, sample = gated
        store.fail("get_quiz_bundle")

        with pytest.raises(StorageError):
            await orchestrator.submit_quiz(content.user(), sample.quiz.id, [])


class TestNonRetakeableQuiz:
    """At most one attempt per learner."""

    @pytest.fixture
    def sample(self, content):
        return content.sample_quiz(QuizScope.path(uuid4()), retakeable=False)

    @pytest.mark.asyncio
    async def test_second_attempt_is_duplicate(self, orchestrator, store, content, sample):
        user_id = content.user()
        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_wrong(sample))

        with pytest.raises(DuplicateSubmissionError):
            await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        assert len(store.submissions) == 1

    @pytest.mark.asyncio
    async def test_concurrent_attempts_admit_one(self, orchestrator, store, content, sample):
        user_id = content.user()

        results = await asyncio.gather(
            orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample)),
            orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample)),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], DuplicateSubmissionError)
        assert len(store.submissions) == 1

    @pytest.mark.asyncio
    async def test_other_learners_are_independent(self, orchestrator, content, sample):
        await orchestrator.submit_quiz(content.user(), sample.quiz.id, _all_wrong(sample))

        submission = await orchestrator.submit_quiz(
            content.user(), sample.quiz.id, _all_correct(sample)
        )

        assert submission.passed is True

    @pytest.mark.asyncio
    async def test_grading_timeout_releases_attempt(
        self, orchestrator, store, settings, content, sample, monkeypatch
    ):
        user_id = content.user()
        settings.grading_timeout_seconds = 0.05

        def slow_scoring(*args, **kwargs):
            time.sleep(0.3)
            return scoring.score_submission(*args, **kwargs)

        monkeypatch.setattr(
            "cyberlearn.submissions.orchestrator.score_submission", slow_scoring
        )

        with pytest.raises(GradingTimeoutError):
            await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        assert store.submissions == {}
        assert store.claims == {}

        monkeypatch.undo()
        settings.grading_timeout_seconds = 5.0
        submission = await orchestrator.submit_quiz(
            user_id, sample.quiz.id, _all_correct(sample)
        )
        assert submission.passed is True

    @pytest.mark.asyncio
    async def test_failed_write_releases_attempt(self, orchestrator, store, content, sample):
        user_id = content.user()
        store.fail("save_submission", times=10)

        with pytest.raises(StorageError):
            await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        assert store.claims == {}


class TestPersistence:
    """Atomic submission writes with confirmation before retrying."""

    @pytest.mark.asyncio
    async def test_transient_write_failure_is_retried(
        self, orchestrator, store, content, gated
    ):
        _, _, sample = gated
        store.fail("save_submission", times=2)

        submission = await orchestrator.submit_quiz(
            content.user(), sample.quiz.id, _all_correct(sample)
        )

        assert store.calls["save_submission"] == 3
        assert list(store.submissions) == [submission.id]

    @pytest.mark.asyncio
    async def test_committed_write_is_not_repeated(self, orchestrator, store, content, gated):
        _, _, sample = gated
        store.fail_after_commit("save_submission")

        submission = await orchestrator.submit_quiz(
            content.user(), sample.quiz.id, _all_correct(sample)
        )

        assert store.calls["save_submission"] == 1
        assert list(store.submissions) == [submission.id]

    @pytest.mark.asyncio
    async def test_persistent_write_failure(self, orchestrator, store, settings, content, gated):
        _, _, sample = gated
        store.fail("save_submission", times=10)

        with pytest.raises(StorageError):
            await orchestrator.submit_quiz(content.user(), sample.quiz.id, _all_correct(sample))

        assert store.calls["save_submission"] == settings.storage_max_retries + 1
        assert store.submissions == {}
        assert store.enrollments == {}


class TestAggregationFailure:
    """A saved submission whose propagation failed can be resynced."""

    @pytest.mark.asyncio
    async def test_incomplete_aggregation_then_resync(
        self, orchestrator, store, settings, content, gated
    ):
        module, lesson, sample = gated
        user_id = content.user()
        store.fail("list_path_progress", times=settings.storage_max_retries + 1)

        with pytest.raises(AggregationIncompleteError) as exc_info:
            await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        submission_id = exc_info.value.submission_id
        assert list(store.submissions) == [submission_id]
        assert exc_info.value.retryable is True

        await orchestrator.resync_submission(submission_id)

        assert store.progress[(user_id, lesson.id)].completed is True
        assert store.enrollments[(user_id, module.path_id)].completed is True
        assert store.profiles[user_id].points == 110

    @pytest.mark.asyncio
    async def test_transient_aggregation_failure_is_retried(
        self, orchestrator, store, content, gated
    ):
        _, _, sample = gated
        user_id = content.user()
        store.fail("append_profile_event")

        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))

        profile = store.profiles[user_id]
        assert profile.total_lessons_completed == 1
        assert profile.total_quizzes_passed == 1

    @pytest.mark.asyncio
    async def test_resync_is_idempotent(self, orchestrator, store, content, gated):
        _, _, sample = gated
        user_id = content.user()
        submission = await orchestrator.submit_quiz(
            user_id, sample.quiz.id, _all_correct(sample)
        )
        before = store.profiles[user_id].version

        await orchestrator.resync_submission(submission.id)
        await orchestrator.resync_submission(submission.id)

        assert store.profiles[user_id].points == 110
        assert store.profiles[user_id].version == before

    @pytest.mark.asyncio
    async def test_resync_unknown_submission(self, orchestrator):
        with pytest.raises(ValidationError):
            await orchestrator.resync_submission(uuid4())


class TestLessonEvents:
    """Views and manual completions."""

    @pytest.mark.asyncio
    async def test_view_counts_without_aggregation(self, orchestrator, store, content):
        lesson = content.lesson(content.module())
        user_id = content.user()

        await orchestrator.view_lesson(user_id, lesson.id)
        progress = await orchestrator.view_lesson(user_id, lesson.id)

        assert progress.views == 2
        assert progress.completed is False
        assert store.enrollments == {}
        assert store.profiles == {}

    @pytest.mark.asyncio
    async def test_view_of_unpublished_lesson(self, orchestrator, content):
        lesson = content.lesson(content.module(), published=False)

        with pytest.raises(ValidationError, match="Lesson not found"):
            await orchestrator.view_lesson(content.user(), lesson.id)

    @pytest.mark.asyncio
    async def test_view_by_unknown_user(self, orchestrator, content):
        lesson = content.lesson(content.module())

        with pytest.raises(ValidationError, match="User not found"):
            await orchestrator.view_lesson(uuid4(), lesson.id)

    @pytest.mark.asyncio
    async def test_complete_lesson(self, orchestrator, store, content, settings):
        module = content.module()
        lesson = content.lesson(module)
        user_id = content.user()

        progress = await orchestrator.complete_lesson(user_id, lesson.id)

        assert progress.completed is True
        assert store.enrollments[(user_id, module.path_id)].percentage == Decimal("100.00")
        assert store.profiles[user_id].points == settings.points_per_lesson

    @pytest.mark.asyncio
    async def test_complete_lesson_twice(self, orchestrator, store, content, clock):
        lesson = content.lesson(content.module())
        user_id = content.user()

        first = await orchestrator.complete_lesson(user_id, lesson.id)
        clock.advance(days=1)
        second = await orchestrator.complete_lesson(user_id, lesson.id)

        assert second.completed_at == first.completed_at
        assert store.profiles[user_id].total_lessons_completed == 1
        assert store.profiles[user_id].current_streak == 1

    @pytest.mark.asyncio
    async def test_gated_lesson_needs_passing_quiz(self, orchestrator, content, gated):
        _, lesson, sample = gated
        user_id = content.user()

        with pytest.raises(ValidationError, match="passing its quiz"):
            await orchestrator.complete_lesson(user_id, lesson.id)

        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))
        progress = await orchestrator.complete_lesson(user_id, lesson.id)
        assert progress.completed is True

    @pytest.mark.asyncio
    async def test_completion_survives_transient_failure(self, orchestrator, store, content):
        lesson = content.lesson(content.module())
        user_id = content.user()
        store.fail("insert_progress")

        progress = await orchestrator.complete_lesson(user_id, lesson.id)

        assert progress.completed is True

    @pytest.mark.asyncio
    async def test_completion_requires_enrollment_when_configured(
        self, orchestrator, settings, content
    ):
        lesson = content.lesson(content.module())
        settings.require_enrollment = True

        with pytest.raises(ValidationError, match="not enrolled"):
            await orchestrator.complete_lesson(content.user(), lesson.id)


class TestEnroll:
    @pytest.mark.asyncio
    async def test_enroll_is_idempotent(self, orchestrator, content):
        user_id = content.user()
        path_id = uuid4()

        first = await orchestrator.enroll(user_id, path_id)
        second = await orchestrator.enroll(user_id, path_id)

        assert first.percentage == Decimal("0.00")
        assert second.enrolled_at == first.enrolled_at
        assert second.version == first.version

    @pytest.mark.asyncio
    async def test_enroll_unknown_user(self, orchestrator):
        with pytest.raises(ValidationError):
            await orchestrator.enroll(uuid4(), uuid4())


class TestOverrideAnswer:
    """Instructor verdicts on short answers."""

    @pytest.fixture
    def quiz_with_short_answer(self, content):
        option_a, option_b = uuid4(), uuid4()
        mc = make_choice_question(points=5, correct=option_a, wrong=option_b)
        short = make_short_answer(points=5, reference_answer=None)
        short.position = 1
        quiz = content.quiz(QuizScope.path(uuid4()), [mc, short])
        answers = [
            {"question_id": str(mc.id), "selected_option_id": str(option_a)},
            {"question_id": str(short.id), "text_answer": "Defense in depth"},
        ]
        return quiz, mc, short, answers

    @pytest.mark.asyncio
    async def test_override_creates_regraded_submission(
        self, orchestrator, store, content, clock, quiz_with_short_answer
    ):
        quiz, _, short, answers = quiz_with_short_answer
        user_id = content.user()
        original = await orchestrator.submit_quiz(user_id, quiz.id, answers)
        clock.advance(days=3)

        regraded = await orchestrator.override_answer(original.id, short.id, True)

        assert original.passed is False
        assert original.percentage == Decimal("50.00")
        assert regraded.id != original.id
        assert regraded.regraded_from == original.id
        assert regraded.submitted_at == original.submitted_at
        assert regraded.percentage == Decimal("100.00")
        assert regraded.passed is True
        assert store.submissions[original.id].percentage == Decimal("50.00")

        overridden = {a.question_id: a for a in store.answers[regraded.id]}
        assert overridden[short.id].overridden is True
        assert overridden[short.id].text_answer == "Defense in depth"
        assert store.profiles[user_id].total_quizzes_passed == 1

    @pytest.mark.asyncio
    async def test_chained_overrides_point_at_original(
        self, orchestrator, store, content, quiz_with_short_answer
    ):
        quiz, _, short, answers = quiz_with_short_answer
        user_id = content.user()
        original = await orchestrator.submit_quiz(user_id, quiz.id, answers)

        first = await orchestrator.override_answer(original.id, short.id, True)
        second = await orchestrator.override_answer(first.id, short.id, True)

        assert second.regraded_from == original.id
        assert store.profiles[user_id].total_quizzes_passed == 1

    @pytest.mark.asyncio
    async def test_overrides_on_original_accumulate(self, orchestrator, store, content):
        first_short = make_short_answer(points=5, reference_answer=None)
        second_short = make_short_answer(points=5, reference_answer=None)
        second_short.position = 1
        quiz = content.quiz(QuizScope.path(uuid4()), [first_short, second_short])
        user_id = content.user()
        original = await orchestrator.submit_quiz(
            user_id,
            quiz.id,
            [
                {"question_id": str(first_short.id), "text_answer": "Least privilege"},
                {"question_id": str(second_short.id), "text_answer": "Zero trust"},
            ],
        )

        first = await orchestrator.override_answer(original.id, first_short.id, True)
        second = await orchestrator.override_answer(original.id, second_short.id, True)

        assert (original.score, first.score, second.score) == (0, 5, 10)
        assert second.passed is True
        overridden = {a.question_id: a.overridden for a in store.answers[second.id]}
        assert overridden == {first_short.id: True, second_short.id: True}

    @pytest.mark.asyncio
    async def test_latest_verdict_wins(
        self, orchestrator, content, quiz_with_short_answer
    ):
        quiz, _, short, answers = quiz_with_short_answer
        original = await orchestrator.submit_quiz(content.user(), quiz.id, answers)

        await orchestrator.override_answer(original.id, short.id, True)
        revoked = await orchestrator.override_answer(original.id, short.id, False)

        assert revoked.percentage == Decimal("50.00")
        assert revoked.passed is False

    @pytest.mark.asyncio
    async def test_choice_question_cannot_be_overridden(
        self, orchestrator, content, quiz_with_short_answer
    ):
        quiz, mc, _, answers = quiz_with_short_answer
        original = await orchestrator.submit_quiz(content.user(), quiz.id, answers)

        with pytest.raises(ValidationError, match="short-answer"):
            await orchestrator.override_answer(original.id, mc.id, True)

    @pytest.mark.asyncio
    async def test_unknown_submission(self, orchestrator):
        with pytest.raises(ValidationError, match="Submission not found"):
            await orchestrator.override_answer(uuid4(), uuid4(), True)


class TestResyncPath:
    @pytest.mark.asyncio
    async def test_rebuilds_lost_aggregates(self, orchestrator, store, content, gated):
        module, _, sample = gated
        user_id = content.user()
        await orchestrator.submit_quiz(user_id, sample.quiz.id, _all_correct(sample))
        store.enrollments.clear()
        store.events.clear()
        store.profiles.clear()

        enrollment = await orchestrator.resync_path(user_id, module.path_id)

        assert enrollment.completed is True
        assert store.profiles[user_id].points == 110
        assert store.profiles[user_id].total_quizzes_passed == 1

    @pytest.mark.asyncio
    async def test_ignores_quizzes_of_other_paths(self, orchestrator, store, content, gated):
        module, _, _ = gated
        other = content.sample_quiz(QuizScope.path(uuid4()))
        user_id = content.user()
        await orchestrator.submit_quiz(user_id, other.quiz.id, _all_correct(other))
        store.events.clear()
        store.profiles.clear()

        await orchestrator.resync_path(user_id, module.path_id)

        assert user_id not in store.profiles
