"""Wire and domain models for build stage events."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import typing as typ

import msgspec

from .errors import MalformedPayloadError

StageMetadata: typ.TypeAlias = dict[str, typ.Any]

NonEmptyStr = typ.Annotated[str, msgspec.Meta(min_length=1)]


class StageEventMessage(msgspec.Struct, kw_only=True, rename="camel"):
    """JSON shape of a stage event as published on the ``duration`` topic.

    Attributes
    ----------
    stage_id
        Identifier of the observed stage; unique across stored records.
    status
        Stage status reported by the build system, e.g. ``DONE``.
    build_id
        Build that owns the stage, when reported.
    stage
        Human-readable stage name.
    timestamp
        When the event happened; must carry a UTC offset.
    duration_ms
        Time the stage took in milliseconds.
    metadata
        Arbitrary stage attributes stored verbatim.

    """

    stage_id: NonEmptyStr
    status: NonEmptyStr
    build_id: str | None = None
    stage: str | None = None
    timestamp: dt.datetime | None = None
    duration_ms: int | None = None
    metadata: StageMetadata = msgspec.field(default_factory=dict)


@dc.dataclass(frozen=True, slots=True)
class BuildStageRecord:
    """One decoded stage event, ready for a single insert."""

    stage_id: str
    status: str
    build_id: str | None = None
    stage_name: str | None = None
    occurred_at: dt.datetime | None = None
    duration_ms: int | None = None
    metadata: StageMetadata = dc.field(default_factory=dict)

    @classmethod
    def from_message(cls, message: StageEventMessage) -> BuildStageRecord:
        """Build a record from a validated wire message."""
        return cls(
            stage_id=message.stage_id,
            status=message.status,
            build_id=message.build_id,
            stage_name=message.stage,
            occurred_at=message.timestamp,
            duration_ms=message.duration_ms,
            metadata=dict(message.metadata),
        )


class DecodeStatus(enum.StrEnum):
    """Classification of a decoded payload."""

    PRESENT = "present"
    ABSENT = "absent"
    MALFORMED = "malformed"


@dc.dataclass(frozen=True, slots=True)
class DecodeResult:
    """Outcome of decoding one payload.

    ``PRESENT`` carries a record, ``ABSENT`` carries the reason the payload was
    skipped, and ``MALFORMED`` carries the error describing the bad input.
    """

    status: DecodeStatus
    record: BuildStageRecord | None = None
    reason: str | None = None
    error: MalformedPayloadError | None = None

    @classmethod
    def present(cls, record: BuildStageRecord) -> DecodeResult:
        """Wrap a successfully decoded record."""
        return cls(DecodeStatus.PRESENT, record=record)

    @classmethod
    def absent(cls, reason: str) -> DecodeResult:
        """Mark a payload that carries nothing to persist."""
        return cls(DecodeStatus.ABSENT, reason=reason)

    @classmethod
    def malformed(cls, error: MalformedPayloadError) -> DecodeResult:
        """Mark a payload that could not be interpreted."""
        return cls(DecodeStatus.MALFORMED, reason=str(error), error=error)
