"""Payload decoding: raw broker messages to build stage records."""

from __future__ import annotations

from .decoder import decode_stage_event
from .errors import MalformedPayloadError
from .models import (
    BuildStageRecord,
    DecodeResult,
    DecodeStatus,
    StageEventMessage,
)

__all__ = [
    "BuildStageRecord",
    "DecodeResult",
    "DecodeStatus",
    "MalformedPayloadError",
    "StageEventMessage",
    "decode_stage_event",
]
