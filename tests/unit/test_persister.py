"""Unit tests for the single-record BuildStagePersister."""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from stagestore.decoding import BuildStageRecord
from stagestore.storage import BuildStagePersister, BuildStageRow, PersistStatus

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession


async def _count_rows(
    session_factory: async_sessionmaker[AsyncSession], stage_id: str | None = None
) -> int:
    stmt = select(func.count()).select_from(BuildStageRow)
    if stage_id is not None:
        stmt = stmt.where(BuildStageRow.stage_id == stage_id)
    async with session_factory() as session:
        return int(await session.scalar(stmt) or 0)


async def _load_row(
    session_factory: async_sessionmaker[AsyncSession], stage_id: str
) -> BuildStageRow | None:
    async with session_factory() as session:
        return await session.scalar(
            select(BuildStageRow).where(BuildStageRow.stage_id == stage_id)
        )


@pytest.mark.asyncio
async def test_fresh_key_is_committed(
    persister: BuildStagePersister,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A record with an unseen key is inserted and committed."""
    record = BuildStageRecord(
        stage_id="abc",
        status="DONE",
        build_id="build-1",
        stage_name="BUILD",
        occurred_at=dt.datetime(2024, 7, 1, 12, 0, tzinfo=dt.UTC),
        duration_ms=250,
        metadata={"host": "builder-1"},
    )

    result = await persister.persist(record)

    assert result.status is PersistStatus.COMMITTED
    assert result.row_id is not None
    assert result.error is None
    stored = await _load_row(session_factory, "abc")
    assert stored is not None
    assert stored.id == result.row_id
    assert stored.status == "DONE"
    assert stored.build_id == "build-1"
    assert stored.stage_name == "BUILD"
    assert stored.duration_ms == 250
    assert stored.stage_metadata == {"host": "builder-1"}
    assert stored.occurred_at == record.occurred_at
    assert stored.ingested_at.tzinfo == dt.UTC


@pytest.mark.asyncio
async def test_existing_key_is_duplicate_conflict(
    persister: BuildStagePersister,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A second insert for a stored key is rejected and leaves the row alone."""
    first = await persister.persist(BuildStageRecord(stage_id="abc", status="DONE"))
    second = await persister.persist(
        BuildStageRecord(stage_id="abc", status="FAILED", build_id="other")
    )

    assert first.status is PersistStatus.COMMITTED
    assert second.status is PersistStatus.DUPLICATE_CONFLICT
    assert second.row_id is None
    assert second.detail is not None
    assert second.detail.startswith("IntegrityError")
    assert await _count_rows(session_factory, "abc") == 1
    stored = await _load_row(session_factory, "abc")
    assert stored is not None
    assert stored.status == "DONE", "duplicate insert must not modify the row"
    assert stored.build_id is None


@pytest.mark.asyncio
async def test_concurrent_inserts_commit_exactly_once(
    persister: BuildStagePersister,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Concurrent inserts of one key yield one commit and duplicates otherwise."""
    record = BuildStageRecord(stage_id="race", status="DONE")

    results = await asyncio.gather(*(persister.persist(record) for _ in range(5)))

    statuses = [result.status for result in results]
    assert statuses.count(PersistStatus.COMMITTED) == 1
    assert statuses.count(PersistStatus.DUPLICATE_CONFLICT) == 4
    assert await _count_rows(session_factory, "race") == 1


@pytest.mark.asyncio
async def test_unrelated_constraint_violation_is_storage_error(
    persister: BuildStagePersister,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Check-constraint failures are storage errors, not duplicates."""
    result = await persister.persist(
        BuildStageRecord(stage_id="negative", status="DONE", duration_ms=-5)
    )

    assert result.status is PersistStatus.STORAGE_ERROR
    assert result.detail is not None
    assert "IntegrityError" in result.detail
    assert await _count_rows(session_factory) == 0


@pytest.mark.asyncio
async def test_naive_datetime_is_storage_error(
    persister: BuildStagePersister,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Naive datetimes are rejected at bind time and nothing is written."""
    result = await persister.persist(
        BuildStageRecord(
            stage_id="naive",
            status="DONE",
            occurred_at=dt.datetime(2024, 7, 1, 12, 0),  # noqa: DTZ001 - intentional naive value
        )
    )

    assert result.status is PersistStatus.STORAGE_ERROR
    assert await _count_rows(session_factory) == 0


@pytest.mark.asyncio
async def test_unreachable_storage_is_storage_error(tmp_path: Path) -> None:
    """Connection failures are reported as storage errors."""
    missing = tmp_path / "missing-dir" / "stages.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{missing}")
    try:
        persister = BuildStagePersister(
            async_sessionmaker(engine, expire_on_commit=False)
        )
        result = await persister.persist(
            BuildStageRecord(stage_id="abc", status="DONE")
        )
    finally:
        await engine.dispose()

    assert result.status is PersistStatus.STORAGE_ERROR
    assert result.error is not None
    assert result.row_id is None
