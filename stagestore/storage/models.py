"""Persistence models for build stage records."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from stagestore.common.time import is_aware, utcnow

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine

    from stagestore.decoding import BuildStageRecord

STAGE_ID_UNIQUE_CONSTRAINT = "uq_build_stage_records_stage_id"


class NaiveDatetimeError(ValueError):
    """Raised when a naive datetime is bound to a UTC column."""

    def __init__(self) -> None:
        """Use a fixed message so log lines stay greppable."""
        super().__init__("build stage datetimes must be timezone aware")


class Base(DeclarativeBase):
    """Declarative base for stage store tables."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime column that binds and loads UTC-aware values on every backend."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Convert aware values to UTC; naive values are rejected."""
        if value is None:
            return None
        if not is_aware(value):
            raise NaiveDatetimeError
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Attach UTC to values SQLite returns without tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class BuildStageRow(Base):
    """Append-only row for one observed build stage event."""

    __tablename__ = "build_stage_records"
    __table_args__ = (
        UniqueConstraint("stage_id", name=STAGE_ID_UNIQUE_CONSTRAINT),
        CheckConstraint(
            "duration_ms IS NULL OR duration_ms >= 0",
            name="ck_build_stage_records_duration_non_negative",
        ),
        Index("ix_build_stage_records_build_id", "build_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    stage_id: Mapped[str] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(64))
    build_id: Mapped[str | None] = mapped_column(String(255), default=None)
    stage_name: Mapped[str | None] = mapped_column(String(255), default=None)
    occurred_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    duration_ms: Mapped[int | None] = mapped_column(Integer, default=None)
    stage_metadata: Mapped[dict[str, typ.Any]] = mapped_column(JSON, default=dict)
    ingested_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)

    @classmethod
    def from_record(cls, record: BuildStageRecord) -> BuildStageRow:
        """Map a decoded record onto a new, unsaved row."""
        return cls(
            stage_id=record.stage_id,
            status=record.status,
            build_id=record.build_id,
            stage_name=record.stage_name,
            occurred_at=record.occurred_at,
            duration_ms=record.duration_ms,
            stage_metadata=dict(record.metadata),
        )


async def init_stage_storage(engine: AsyncEngine) -> None:
    """Create the stage store tables if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
