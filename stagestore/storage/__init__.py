"""Relational storage for build stage records."""

from __future__ import annotations

from .models import (
    STAGE_ID_UNIQUE_CONSTRAINT,
    BuildStageRow,
    NaiveDatetimeError,
    UTCDateTime,
    init_stage_storage,
)
from .persister import (
    BuildStagePersister,
    PersistResult,
    PersistStatus,
    SessionFactory,
    is_unique_violation,
)

__all__ = [
    "STAGE_ID_UNIQUE_CONSTRAINT",
    "BuildStagePersister",
    "BuildStageRow",
    "NaiveDatetimeError",
    "PersistResult",
    "PersistStatus",
    "SessionFactory",
    "UTCDateTime",
    "init_stage_storage",
    "is_unique_violation",
]
