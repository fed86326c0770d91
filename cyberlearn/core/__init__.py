# Core infrastructure
from cyberlearn.core.context import (
    OperationContext,
    clear_context,
    get_context,
    get_operation_id,
    get_submission_id,
    get_user_id,
    set_submission_id,
)
from cyberlearn.core.errors import (
    AggregationIncompleteError,
    ConcurrencyConflictError,
    DuplicateSubmissionError,
    EngineError,
    GradingTimeoutError,
    StorageError,
    ValidationError,
)
from cyberlearn.core.logging import configure_structlog, get_logger


__all__ = [
    "AggregationIncompleteError",
    "ConcurrencyConflictError",
    "DuplicateSubmissionError",
    "EngineError",
    "GradingTimeoutError",
    "OperationContext",
    "StorageError",
    "ValidationError",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_operation_id",
    "get_submission_id",
    "get_user_id",
    "set_submission_id",
]
