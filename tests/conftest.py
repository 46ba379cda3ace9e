"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from stagestore.reporting import ErrorCounter, OutcomeReporter
from stagestore.storage import BuildStagePersister, init_stage_storage
from tests.helpers.recording_logger import RecordingLogger

if typ.TYPE_CHECKING:
    from pathlib import Path

TEST_COUNTER_NAME = "stagestore_test_errors"


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory backed by a fresh SQLite database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stages.db'}")
    try:
        await init_stage_storage(engine)
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
def error_counter() -> ErrorCounter:
    """Return an error counter registered in a private registry."""
    return ErrorCounter(TEST_COUNTER_NAME, registry=CollectorRegistry())


@pytest.fixture
def recording_logger() -> RecordingLogger:
    """Return a logger double that keeps every record."""
    return RecordingLogger()


@pytest.fixture
def reporter(
    error_counter: ErrorCounter, recording_logger: RecordingLogger
) -> OutcomeReporter:
    """Return a reporter wired to the test counter and recording logger."""
    return OutcomeReporter(error_counter, logger=recording_logger)


@pytest.fixture
def persister(
    session_factory: async_sessionmaker[AsyncSession],
) -> BuildStagePersister:
    """Return a persister bound to the test database."""
    return BuildStagePersister(session_factory)
