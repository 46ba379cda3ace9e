"""femtologging helpers shared by the stage store pipeline.

Messages are formatted before they reach femtologging so every call site emits
the same ``[event.tag] key=value`` shape regardless of handler configuration.

Example:
>>> from stagestore.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "[%s] stage_id=%s", "stage.persisted", "abc")

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger


class LogLevel(enum.StrEnum):
    """Log levels understood by femtologging."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return ``(level, invalid)`` for a raw level string.

    Unknown or empty values normalise to ``INFO`` with ``invalid`` set so the
    caller can warn once logging is configured.
    """
    if not level:
        return ("INFO", True)

    normalized = level.strip().upper()
    if normalized in LogLevel.__members__:
        return (normalized, False)

    return ("INFO", True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Configure femtologging at ``level``.

    Parameters
    ----------
    level : str
        Raw log level string, typically read from ``STAGESTORE_LOG_LEVEL``.
    force : bool, optional
        Replace any handler configuration already installed.

    Returns
    -------
    tuple[str, bool]
        The level actually applied and whether the input was invalid.

    """
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, invalid)


class SupportsLog(typ.Protocol):
    """Structural type for femtologging loggers and test doubles."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def log_at_level(
    logger: SupportsLog,
    level: str,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Interpolate ``template`` with ``args`` and log it at ``level``."""
    logger.log(
        str(level),
        template % args if args else template,
        exc_info=exc_info,
        stack_info=False,
    )


def log_info(logger: SupportsLog, template: str, *args: object) -> None:
    """Log an INFO message with percent-style formatting."""
    log_at_level(logger, LogLevel.INFO, template, *args)


def log_warning(logger: SupportsLog, template: str, *args: object) -> None:
    """Log a WARNING message with percent-style formatting."""
    log_at_level(logger, LogLevel.WARNING, template, *args)


def log_exception(logger: SupportsLog, message: str, exc: BaseException) -> None:
    """Log a pre-formatted ERROR message with ``exc`` as exc_info."""
    logger.log(str(LogLevel.ERROR), message, exc_info=exc, stack_info=False)


__all__ = [
    "LogLevel",
    "SupportsLog",
    "configure_logging",
    "get_logger",
    "log_at_level",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
