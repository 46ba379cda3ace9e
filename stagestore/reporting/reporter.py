"""Terminal reporting step of the stage event pipeline.

The reporter turns an :class:`Outcome` into exactly one counter action and one
log line. Duplicates and failures both increment the shared error counter, but
their log messages differ so operators can tell redelivery from data loss.
"""

from __future__ import annotations

import contextlib
import dataclasses as dc
import enum
import typing as typ

from stagestore.logging import (
    LogLevel,
    get_logger,
    log_at_level,
    log_exception,
)

from .outcomes import ErrorCategory, Outcome, OutcomeContext

if typ.TYPE_CHECKING:
    from stagestore.logging import SupportsLog

    from .metrics import ErrorCounter

logger = get_logger(__name__)


class StageEventType(enum.StrEnum):
    """Structured log event tags, one per outcome."""

    PERSISTED = "stage.persisted"
    SKIPPED = "stage.skipped"
    DUPLICATE = "stage.duplicate"
    FAILED = "stage.failed"


@dc.dataclass(frozen=True, slots=True)
class OutcomeAction:
    """Counter delta and log level emitted for one outcome."""

    counter_delta: int
    log_level: LogLevel


_OUTCOME_ACTIONS: dict[Outcome, OutcomeAction] = {
    Outcome.SKIPPED: OutcomeAction(0, LogLevel.TRACE),
    Outcome.PERSISTED: OutcomeAction(0, LogLevel.INFO),
    Outcome.DUPLICATE_REJECTED: OutcomeAction(1, LogLevel.ERROR),
    Outcome.FAILED: OutcomeAction(1, LogLevel.ERROR),
}


def outcome_action(outcome: Outcome) -> OutcomeAction:
    """Return the counter delta and log level for ``outcome``."""
    return _OUTCOME_ACTIONS[outcome]


class OutcomeReporter:
    """Emit the metric and log line for each pipeline outcome.

    Parameters
    ----------
    counter
        Error counter created once at process start.
    logger
        Destination for log lines; defaults to this module's femtologging
        logger.

    """

    def __init__(
        self,
        counter: ErrorCounter,
        *,
        logger: SupportsLog | None = None,
    ) -> None:
        """Hold the counter and log sink used for every report."""
        self._counter = counter
        self._logger = logger

    @property
    def _log(self) -> SupportsLog:
        return self._logger if self._logger is not None else logger

    def report(self, outcome: Outcome, context: OutcomeContext) -> None:
        """Record ``outcome``; never raises.

        The counter is bumped before the log line is written so a logging
        failure cannot lose the error signal.
        """
        try:
            action = outcome_action(outcome)
            if action.counter_delta:
                self._counter.increment(action.counter_delta)
            template, args, exc_info = _describe(outcome, context)
            log_at_level(
                self._log, action.log_level, template, *args, exc_info=exc_info
            )
        except Exception as exc:  # noqa: BLE001 - reporting is the pipeline boundary
            with contextlib.suppress(Exception):
                log_exception(
                    self._log,
                    f"[{StageEventType.FAILED}] failed to report outcome={outcome}",
                    exc,
                )


type _LogLine = tuple[str, tuple[object, ...], BaseException | None]


def _describe(outcome: Outcome, context: OutcomeContext) -> _LogLine:
    """Return the log template, arguments and exc_info for ``outcome``."""
    match outcome:
        case Outcome.SKIPPED:
            return ("[%s] reason=%s", (StageEventType.SKIPPED, context.reason), None)
        case Outcome.PERSISTED:
            return (
                "[%s] stage_id=%s build_id=%s row_id=%s",
                (
                    StageEventType.PERSISTED,
                    context.stage_id,
                    context.build_id,
                    context.row_id,
                ),
                None,
            )
        case Outcome.DUPLICATE_REJECTED:
            return (
                "[%s] Duplicate delivery: build stage record already stored "
                "stage_id=%s build_id=%s",
                (StageEventType.DUPLICATE, context.stage_id, context.build_id),
                context.error,
            )
        case Outcome.FAILED:
            return _describe_failure(context)


def _describe_failure(context: OutcomeContext) -> _LogLine:
    category = context.category
    if category is ErrorCategory.MALFORMED_PAYLOAD:
        return (
            "[%s] Malformed stage event payload error_category=%s reason=%s",
            (StageEventType.FAILED, category, context.reason),
            None,
        )
    summary = (
        "Unexpected error while handling stage event"
        if category is ErrorCategory.UNEXPECTED
        else "Error while saving build stage record"
    )
    return (
        "[%s] %s stage_id=%s error_type=%s error_category=%s error_message=%s",
        (
            StageEventType.FAILED,
            summary,
            context.stage_id,
            type(context.error).__name__ if context.error else None,
            category,
            context.reason,
        ),
        context.error,
    )
