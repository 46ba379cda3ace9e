"""Decode raw broker payloads into build stage records.

Decoding never raises for bad input. Every payload maps to exactly one
:class:`DecodeResult`:

- blank payloads and JSON objects without a ``stageId`` (heartbeats, control
  messages) are ``ABSENT`` and are skipped;
- payloads that are not JSON objects, or objects with a ``stageId`` that do
  not fit :class:`StageEventMessage`, are ``MALFORMED``;
- everything else is ``PRESENT``.

"""

from __future__ import annotations

import typing as typ

import msgspec

from stagestore.common.time import is_aware

from .errors import MalformedPayloadError
from .models import BuildStageRecord, DecodeResult, StageEventMessage

STAGE_ID_FIELD = "stageId"


def _json_type_name(value: object) -> str:
    match value:
        case list():
            return "array"
        case str():
            return "string"
        case bool():
            return "boolean"
        case int() | float():
            return "number"
        case None:
            return "null"
        case _:
            return type(value).__name__


def decode_stage_event(raw: str | bytes) -> DecodeResult:
    """Classify ``raw`` and decode it into a record when possible."""
    if not raw.strip():
        return DecodeResult.absent("empty payload")

    try:
        document: object = msgspec.json.decode(raw)
    except msgspec.DecodeError as exc:
        return DecodeResult.malformed(MalformedPayloadError.invalid_json(str(exc)))

    if not isinstance(document, dict):
        return DecodeResult.malformed(
            MalformedPayloadError.not_an_object(_json_type_name(document))
        )

    fields = typ.cast("dict[str, object]", document)
    if fields.get(STAGE_ID_FIELD) is None:
        return DecodeResult.absent(f"no {STAGE_ID_FIELD} in payload")

    try:
        message = msgspec.convert(fields, type=StageEventMessage)
    except msgspec.ValidationError as exc:
        return DecodeResult.malformed(MalformedPayloadError.schema_mismatch(str(exc)))

    if message.timestamp is not None and not is_aware(message.timestamp):
        return DecodeResult.malformed(MalformedPayloadError.naive_timestamp())

    return DecodeResult.present(BuildStageRecord.from_message(message))
