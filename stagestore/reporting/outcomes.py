"""Outcome classification for one pipeline invocation."""

from __future__ import annotations

import dataclasses as dc
import enum

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from stagestore.decoding import MalformedPayloadError


class Outcome(enum.StrEnum):
    """Terminal classification of a delivered message."""

    PERSISTED = "persisted"
    SKIPPED = "skipped"
    DUPLICATE_REJECTED = "duplicate_rejected"
    FAILED = "failed"


class ErrorCategory(enum.StrEnum):
    """Failure categories attached to ``FAILED`` outcomes for alert routing."""

    MALFORMED_PAYLOAD = "malformed_payload"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    UNEXPECTED = "unexpected"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (MalformedPayloadError, ErrorCategory.MALFORMED_PAYLOAD),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (OSError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException | None) -> ErrorCategory:
    """Map a failure to the category operators alert on."""
    if exc is None:
        return ErrorCategory.UNEXPECTED
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category
    return ErrorCategory.UNEXPECTED


@dc.dataclass(frozen=True, slots=True)
class OutcomeContext:
    """Details the reporter needs to describe an outcome.

    Attributes
    ----------
    stage_id
        Identifying key of the decoded record, when decoding got that far.
    build_id
        Build owning the record, when known.
    row_id
        Surrogate key of a committed row.
    reason
        Human-readable reason for skips and failures.
    error
        Exception behind a duplicate or failure.

    """

    stage_id: str | None = None
    build_id: str | None = None
    row_id: int | None = None
    reason: str | None = None
    error: BaseException | None = None

    @property
    def category(self) -> ErrorCategory:
        """Return the error category for ``error``."""
        return categorize_error(self.error)
