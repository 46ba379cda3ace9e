"""Decoder failure types."""

from __future__ import annotations


class MalformedPayloadError(ValueError):
    """Describes why a payload could not be interpreted as a stage event."""

    @classmethod
    def invalid_json(cls, detail: str) -> MalformedPayloadError:
        """Return an error for payloads that are not valid JSON."""
        return cls(f"payload is not valid JSON: {detail}")

    @classmethod
    def not_an_object(cls, type_name: str) -> MalformedPayloadError:
        """Return an error for JSON documents that are not objects."""
        return cls(f"payload must be a JSON object, got {type_name}")

    @classmethod
    def schema_mismatch(cls, detail: str) -> MalformedPayloadError:
        """Return an error for objects that do not fit the stage event schema."""
        return cls(f"stage event schema mismatch: {detail}")

    @classmethod
    def naive_timestamp(cls) -> MalformedPayloadError:
        """Return an error for timestamps without a UTC offset."""
        return cls("timestamp must be timezone aware")
