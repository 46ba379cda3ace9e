"""Process-wide wiring for the stage store consumer.

The pipeline and everything it holds (engine, session factory, error counter)
are created once per database URL and shared by every delivery the process
handles. Worker threads may race to build it, so construction is guarded by a
lock.

Configuration is read from the environment (see
:class:`stagestore.config.StageStoreConfig`):

- ``STAGESTORE_DATABASE_URL``: async SQLAlchemy URL (required)
- ``STAGESTORE_LOG_LEVEL``: log level (default ``INFO``)
- ``STAGESTORE_ERROR_COUNTER_NAME``: error counter name
"""

from __future__ import annotations

import asyncio
import threading
import typing as typ

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from stagestore.config import StageStoreConfig, StageStoreConfigError
from stagestore.logging import configure_logging, get_logger, log_info, log_warning
from stagestore.pipeline import StageEventPipeline
from stagestore.reporting import (
    Outcome,
    OutcomeContext,
    OutcomeReporter,
    init_duration_histogram,
    init_error_counter,
)
from stagestore.storage import BuildStagePersister, init_stage_storage

if typ.TYPE_CHECKING:
    from prometheus_client import CollectorRegistry

logger = get_logger(__name__)

_PIPELINE_CACHE: dict[str, StageEventPipeline] = {}
_CACHE_LOCK = threading.Lock()
_logging_configured = False


def configure_runtime_logging(config: StageStoreConfig) -> str:
    """Configure femtologging from ``config`` and warn on an invalid level."""
    normalized_level, invalid_level = configure_logging(config.log_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid STAGESTORE_LOG_LEVEL %r, falling back to %s",
            config.log_level,
            normalized_level,
        )
    return normalized_level


def _configure_logging_once(config: StageStoreConfig) -> None:
    """Configure logging on the first pipeline build only.

    Precondition: the caller **must** hold ``_CACHE_LOCK``.
    """
    global _logging_configured

    if not _logging_configured:
        configure_runtime_logging(config)
        _logging_configured = True


def build_pipeline(
    config: StageStoreConfig,
    *,
    registry: CollectorRegistry | None = None,
) -> StageEventPipeline:
    """Create the engine, schema, counter and pipeline for ``config``.

    Each broker delivery runs in its own event loop, so the engine uses
    ``NullPool``: pooled connections would stay bound to a loop that has
    already closed.

    Raises
    ------
    StageStoreConfigError
        If ``config`` has no database URL.
    sqlalchemy.exc.SQLAlchemyError, OSError
        If the schema cannot be created because storage is unreachable.

    """
    database_url = config.require_database_url()
    engine = create_async_engine(database_url, poolclass=NullPool)
    try:
        asyncio.run(init_stage_storage(engine))
    except Exception:
        asyncio.run(engine.dispose())
        raise
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    counter = init_error_counter(config.error_counter_name, registry=registry)
    log_info(
        logger,
        "Stage store pipeline ready (error_counter=%s)",
        counter.name,
    )
    return StageEventPipeline(
        BuildStagePersister(session_factory),
        OutcomeReporter(counter),
        durations=init_duration_histogram(registry=registry),
    )


def get_pipeline(config: StageStoreConfig | None = None) -> StageEventPipeline:
    """Return the process-wide pipeline, building it on first use.

    Thread-safe: concurrent callers for the same database URL share one
    pipeline.
    """
    resolved = config if config is not None else StageStoreConfig.from_env()
    database_url = resolved.require_database_url()
    with _CACHE_LOCK:
        pipeline = _PIPELINE_CACHE.get(database_url)
        if pipeline is None:
            _configure_logging_once(resolved)
            pipeline = build_pipeline(resolved)
            _PIPELINE_CACHE[database_url] = pipeline
        return pipeline


def report_startup_failure(
    exc: Exception,
    *,
    registry: CollectorRegistry | None = None,
) -> Outcome:
    """Report a delivery that failed before a pipeline could be built.

    The pipeline is rebuilt on the next delivery, so a storage outage at
    start-up is reported per message like any other storage failure. The
    error counter is resolved from the environment when it is readable and
    from the default name otherwise.
    """
    try:
        config = StageStoreConfig.from_env()
    except StageStoreConfigError:
        config = StageStoreConfig()
    counter = init_error_counter(config.error_counter_name, registry=registry)
    OutcomeReporter(counter).report(
        Outcome.FAILED, OutcomeContext(reason=str(exc), error=exc)
    )
    return Outcome.FAILED
