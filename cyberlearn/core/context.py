"""Operation context management using contextvars.

Every orchestrator call (quiz submission, lesson view, lesson completion,
override, resync) runs inside an ``OperationContext``. The operation id,
learner id and submission id set here are picked up by the logging
processors, so each log line of one unit of work can be correlated without
passing identifiers through every call.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


operation_id_var: ContextVar[str] = ContextVar("operation_id", default="")
operation_name_var: ContextVar[str | None] = ContextVar("operation", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
submission_id_var: ContextVar[str | None] = ContextVar("submission_id", default=None)


def generate_operation_id() -> str:
    """Generate a new unique operation ID."""
    return str(uuid4())


def get_operation_id() -> str:
    """Get the current operation ID."""
    return operation_id_var.get()


def get_user_id() -> str | None:
    """Get the learner ID bound to the current operation."""
    return user_id_var.get()


def set_submission_id(submission_id: str | UUID | None) -> None:
    """Bind a submission ID once it has been assigned.

    Args:
        submission_id: The submission being graded (string or UUID).
    """
    submission_id_var.set(str(submission_id) if submission_id is not None else None)


def get_submission_id() -> str | None:
    """Get the submission ID bound to the current operation."""
    return submission_id_var.get()


def get_context() -> dict[str, Any]:
    """Get all context variables as a dictionary.

    Returns:
        Dictionary with whichever of operation_id, operation, user_id and
        submission_id are set.
    """
    context: dict[str, Any] = {}

    operation_id = get_operation_id()
    if operation_id:
        context["operation_id"] = operation_id

    operation = operation_name_var.get()
    if operation:
        context["operation"] = operation

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    submission_id = get_submission_id()
    if submission_id:
        context["submission_id"] = submission_id

    return context


def clear_context() -> None:
    """Clear all context variables."""
    operation_id_var.set("")
    operation_name_var.set(None)
    user_id_var.set(None)
    submission_id_var.set(None)


class OperationContext:
    """Context manager for one engine operation.

    Usage:
        with OperationContext("submit_quiz", user_id=user_id):
            log.info("quiz_submission_received")  # includes operation_id, user_id
    """

    def __init__(
        self,
        operation: str,
        user_id: str | UUID | None = None,
        operation_id: str | None = None,
    ) -> None:
        self.operation = operation
        self.user_id = user_id
        self.operation_id = operation_id or generate_operation_id()
        self._tokens: list[tuple[ContextVar, Token]] = []

    def __enter__(self) -> "OperationContext":
        """Enter context and set variables."""
        self._tokens.append(
            (operation_id_var, operation_id_var.set(self.operation_id))
        )
        self._tokens.append(
            (operation_name_var, operation_name_var.set(self.operation))
        )
        self._tokens.append((submission_id_var, submission_id_var.set(None)))
        if self.user_id is not None:
            self._tokens.append((user_id_var, user_id_var.set(str(self.user_id))))
        return self

    def __exit__(self, *_: object) -> None:
        """Exit context and restore previous values."""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
