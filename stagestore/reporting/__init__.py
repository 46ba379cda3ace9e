"""Outcome classification, error counting and outcome log lines."""

from __future__ import annotations

from .metrics import (
    DEFAULT_DURATION_HISTOGRAM_NAME,
    DurationHistogram,
    ErrorCounter,
    init_duration_histogram,
    init_error_counter,
)
from .outcomes import ErrorCategory, Outcome, OutcomeContext, categorize_error
from .reporter import OutcomeAction, OutcomeReporter, StageEventType, outcome_action

__all__ = [
    "DEFAULT_DURATION_HISTOGRAM_NAME",
    "DurationHistogram",
    "ErrorCategory",
    "ErrorCounter",
    "Outcome",
    "OutcomeAction",
    "OutcomeContext",
    "OutcomeReporter",
    "StageEventType",
    "categorize_error",
    "init_duration_histogram",
    "init_error_counter",
    "outcome_action",
]
