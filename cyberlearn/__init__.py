"""Submission grading and progress-aggregation engine."""

__version__ = "0.1.0"
