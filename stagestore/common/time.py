"""Time helpers shared by storage and decoding."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for column defaults."""
    return dt.datetime.now(dt.UTC)


def is_aware(value: dt.datetime) -> bool:
    """Return True when ``value`` carries a usable UTC offset."""
    return value.tzinfo is not None and value.utcoffset() is not None
