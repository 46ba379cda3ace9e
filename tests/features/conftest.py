"""Shared fixtures for BDD feature tests."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from stagestore.storage import init_stage_storage

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


def open_stage_store(database_url: str) -> AsyncEngine:
    """Return an engine usable from successive ``asyncio.run`` calls."""
    return create_async_engine(database_url, poolclass=NullPool)


@pytest.fixture
def stage_store_url(tmp_path: Path) -> str:
    """Return the URL of a per-scenario SQLite database file."""
    return f"sqlite+aiosqlite:///{tmp_path / 'stages.db'}"


@pytest.fixture
def stage_store_engine(stage_store_url: str) -> typ.Iterator[AsyncEngine]:
    """Yield an initialised engine for the scenario database."""
    engine = open_stage_store(stage_store_url)
    asyncio.run(init_stage_storage(engine))
    try:
        yield engine
    finally:
        asyncio.run(engine.dispose())


@pytest.fixture
def stage_store_sessions(
    stage_store_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Return a session factory bound to the scenario database."""
    return async_sessionmaker(stage_store_engine, expire_on_commit=False)


@pytest.fixture
def unreachable_stage_sessions(
    tmp_path: Path,
) -> typ.Iterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory whose database directory does not exist."""
    missing = tmp_path / "missing-dir" / "stages.db"
    engine = open_stage_store(f"sqlite+aiosqlite:///{missing}")
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        asyncio.run(engine.dispose())
