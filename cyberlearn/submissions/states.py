"""Lifecycle of one orchestrated unit of work.

Quiz attempts go RECEIVED -> VALIDATED -> GRADED -> PERSISTED -> AGGREGATED
-> DONE. Lesson events skip validation and grading. A request that can never
succeed ends in REJECTED; a storage failure or timeout ends in FAILED.
"""

from enum import Enum

import structlog


logger = structlog.get_logger(__name__)


class SubmissionState(str, Enum):
    """State of an orchestrated submission or lesson event."""

    RECEIVED = "received"
    VALIDATED = "validated"
    GRADED = "graded"
    PERSISTED = "persisted"
    AGGREGATED = "aggregated"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


class SubmissionFlow(str, Enum):
    """Kind of unit of work."""

    QUIZ = "quiz"
    LESSON = "lesson"


S = SubmissionState

# FAILED from RECEIVED covers storage failures while loading what the
# request refers to
QUIZ_TRANSITIONS: dict[SubmissionState, frozenset[SubmissionState]] = {
    S.RECEIVED: frozenset({S.VALIDATED, S.REJECTED, S.FAILED}),
    S.VALIDATED: frozenset({S.GRADED, S.FAILED}),
    S.GRADED: frozenset({S.PERSISTED, S.FAILED}),
    S.PERSISTED: frozenset({S.AGGREGATED, S.FAILED}),
    S.AGGREGATED: frozenset({S.DONE}),
    S.DONE: frozenset(),
    S.REJECTED: frozenset(),
    S.FAILED: frozenset(),
}

LESSON_TRANSITIONS: dict[SubmissionState, frozenset[SubmissionState]] = {
    S.RECEIVED: frozenset({S.PERSISTED, S.REJECTED, S.FAILED}),
    S.PERSISTED: frozenset({S.AGGREGATED, S.FAILED}),
    S.AGGREGATED: frozenset({S.DONE}),
    S.DONE: frozenset(),
    S.REJECTED: frozenset(),
    S.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({S.DONE, S.REJECTED, S.FAILED})

_TRANSITIONS = {
    SubmissionFlow.QUIZ: QUIZ_TRANSITIONS,
    SubmissionFlow.LESSON: LESSON_TRANSITIONS,
}


class SubmissionAttempt:
    """Tracks the state of one unit of work and refuses illegal moves."""

    def __init__(self, flow: SubmissionFlow):
        self.flow = flow
        self.state = SubmissionState.RECEIVED
        self.history: list[SubmissionState] = [SubmissionState.RECEIVED]

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, target: SubmissionState) -> None:
        """Move to ``target``.

        Raises:
            RuntimeError: If the transition is not allowed from the current state.
        """
        allowed = _TRANSITIONS[self.flow].get(self.state, frozenset())
        if target not in allowed:
            msg = (
                f"Illegal {self.flow.value} transition: "
                f"{self.state.value} -> {target.value}"
            )
            raise RuntimeError(msg)

        logger.debug(
            "submission_state_changed",
            flow=self.flow.value,
            from_state=self.state.value,
            to_state=target.value,
        )
        self.state = target
        self.history.append(target)

    def __repr__(self) -> str:
        return f"<SubmissionAttempt {self.flow.value} {self.state.value}>"
