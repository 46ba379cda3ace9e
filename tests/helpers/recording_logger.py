"""In-memory logger double compatible with femtologging's ``log`` signature."""

from __future__ import annotations

import dataclasses


@dataclasses.dataclass(slots=True)
class LogRecord:
    """Captured log call for test assertions."""

    level: str
    message: str
    exc_info: object | None = None


class RecordingLogger:
    """Collect log calls synchronously."""

    def __init__(self) -> None:
        """Start with no records."""
        self.records: list[LogRecord] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        """Store the record and echo the message as femtologging does."""
        del stack_info
        self.records.append(LogRecord(str(level), message, exc_info))
        return message

    @property
    def levels(self) -> list[str]:
        """Return the level of every captured record in order."""
        return [record.level for record in self.records]


class ExplodingLogger:
    """Logger double whose ``log`` always raises."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        """Raise to simulate a broken log sink."""
        msg = f"log sink unavailable for {level}"
        raise RuntimeError(msg)
