"""Runtime configuration for the stage store consumer.

Usage
-----
Defaults suit local development:

>>> config = StageStoreConfig()
>>> config.error_counter_name
'stagestore_consumer_errors'

Deployments configure the consumer through environment variables:

>>> import os
>>> os.environ["STAGESTORE_DATABASE_URL"] = "sqlite+aiosqlite:///stages.db"
>>> StageStoreConfig.from_env().database_url
'sqlite+aiosqlite:///stages.db'

"""

from __future__ import annotations

import dataclasses as dc
import os
import re

DEFAULT_ERROR_COUNTER_NAME = "stagestore_consumer_errors"

_METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")


class StageStoreConfigError(ValueError):
    """Raised when consumer configuration is missing or invalid."""

    @classmethod
    def missing_database_url(cls) -> StageStoreConfigError:
        """Return an error when no database URL is configured."""
        return cls("STAGESTORE_DATABASE_URL is required to persist stage events")

    @classmethod
    def invalid_counter_name(cls, name: str) -> StageStoreConfigError:
        """Return an error for a counter name Prometheus would reject."""
        return cls(
            f"STAGESTORE_ERROR_COUNTER_NAME must be a valid metric name, got: {name!r}"
        )


@dc.dataclass(frozen=True, slots=True)
class StageStoreConfig:
    """Configuration for a stage store consumer process.

    Attributes
    ----------
    database_url
        SQLAlchemy async database URL, e.g.
        ``postgresql+asyncpg://user:pass@db/stages``. Required before a
        pipeline can be built.
    log_level
        Raw log level; normalised when logging is configured.
    error_counter_name
        Name of the counter incremented for duplicate and failed deliveries.

    """

    database_url: str | None = None
    log_level: str = "INFO"
    error_counter_name: str = DEFAULT_ERROR_COUNTER_NAME

    def __post_init__(self) -> None:
        """Reject counter names the metrics registry cannot accept."""
        if not _METRIC_NAME_RE.match(self.error_counter_name):
            raise StageStoreConfigError.invalid_counter_name(self.error_counter_name)

    def require_database_url(self) -> str:
        """Return the database URL or raise when it is not configured."""
        if self.database_url is None:
            raise StageStoreConfigError.missing_database_url()
        return self.database_url

    @classmethod
    def from_env(cls) -> StageStoreConfig:
        """Create configuration from ``STAGESTORE_*`` environment variables.

        Reads ``STAGESTORE_DATABASE_URL``, ``STAGESTORE_LOG_LEVEL`` and
        ``STAGESTORE_ERROR_COUNTER_NAME``. Blank values fall back to defaults.

        Raises
        ------
        StageStoreConfigError
            If the counter name is not a valid metric name.

        """
        database_url = os.environ.get("STAGESTORE_DATABASE_URL", "").strip() or None
        log_level = os.environ.get("STAGESTORE_LOG_LEVEL", "").strip() or "INFO"
        counter_name = (
            os.environ.get("STAGESTORE_ERROR_COUNTER_NAME", "").strip()
            or DEFAULT_ERROR_COUNTER_NAME
        )
        return cls(
            database_url=database_url,
            log_level=log_level,
            error_counter_name=counter_name,
        )
