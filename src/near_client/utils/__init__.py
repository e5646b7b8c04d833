"""Utility helpers."""

from .logging import log_outcome_logs, log_outcome_logs_and_failures, logs_suppressed

__all__ = [
    "log_outcome_logs",
    "log_outcome_logs_and_failures",
    "logs_suppressed",
]
