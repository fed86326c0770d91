"""Submission orchestration: quiz attempts and lesson events end to end."""

from .orchestrator import SubmissionOrchestrator
from .states import SubmissionAttempt, SubmissionFlow, SubmissionState


__all__ = [
    "SubmissionAttempt",
    "SubmissionFlow",
    "SubmissionOrchestrator",
    "SubmissionState",
]
