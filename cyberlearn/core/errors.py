"""Engine error taxonomy.

Every failure that leaves the engine is one of four kinds:

- ``ValidationError``: the request can never succeed as sent.
- ``DuplicateSubmissionError``: a non-retakeable quiz was already attempted.
- ``ConcurrencyConflictError``: an aggregate kept changing under us.
- ``StorageError``: the database failed transiently.

Raw driver exceptions are converted to ``StorageError`` by the store.
"""

from uuid import UUID


class EngineError(Exception):
    """Base engine error."""

    retryable = False

    def __init__(self, message: str, code: str = "engine_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(EngineError):
    """Unknown quiz, question, option, lesson or user, or malformed answers."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, "validation_error")


class DuplicateSubmissionError(EngineError):
    """Quiz is not retakeable and the learner already has an attempt."""

    def __init__(self, message: str = "Quiz already attempted"):
        super().__init__(message, "duplicate_submission")


class ConcurrencyConflictError(EngineError):
    """Optimistic concurrency check kept failing after all retries."""

    retryable = True

    def __init__(self, message: str = "Concurrent update conflict, please retry"):
        super().__init__(message, "concurrency_conflict")


class StorageError(EngineError):
    """Transient storage failure."""

    retryable = True

    def __init__(
        self,
        message: str = "Temporary storage failure",
        code: str = "storage_error",
    ):
        super().__init__(message, code)


class GradingTimeoutError(StorageError):
    """Grading did not finish within the configured timeout."""

    def __init__(self, message: str = "Grading timed out"):
        super().__init__(message, "grading_timeout")


class AggregationIncompleteError(StorageError):
    """Submission was persisted but aggregation did not finish.

    The submission is safe; ``resync_submission(submission_id)`` finishes
    the aggregation.
    """

    def __init__(
        self,
        submission_id: UUID,
        message: str = "Submission saved, progress update pending",
    ):
        self.submission_id = submission_id
        super().__init__(message, "aggregation_incomplete")
