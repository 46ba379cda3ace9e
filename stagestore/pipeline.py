"""Per-message pipeline: decode, persist once, report.

:meth:`StageEventPipeline.handle` is the boundary the broker delivers into.
It always returns an :class:`Outcome` and never raises, because a raised
exception would interfere with the broker's acknowledgement of the delivery.

Usage
-----
>>> pipeline = StageEventPipeline(
...     BuildStagePersister(session_factory),
...     OutcomeReporter(ErrorCounter("stage_errors")),
... )
>>> await pipeline.handle('{"stageId": "abc", "status": "DONE"}')
<Outcome.PERSISTED: 'persisted'>

"""

from __future__ import annotations

import time
import typing as typ

from stagestore.decoding import DecodeResult, DecodeStatus, decode_stage_event
from stagestore.reporting import Outcome, OutcomeContext
from stagestore.storage import PersistStatus

if typ.TYPE_CHECKING:
    from stagestore.decoding import BuildStageRecord
    from stagestore.reporting import DurationHistogram, OutcomeReporter
    from stagestore.storage import BuildStagePersister, PersistResult

type Decoder = typ.Callable[[str], DecodeResult]


def classify_persist(
    record: BuildStageRecord, result: PersistResult
) -> tuple[Outcome, OutcomeContext]:
    """Map a persist result onto the outcome reported for ``record``."""
    context = OutcomeContext(
        stage_id=record.stage_id,
        build_id=record.build_id,
        row_id=result.row_id,
        reason=result.detail,
        error=result.error,
    )
    match result.status:
        case PersistStatus.COMMITTED:
            return (Outcome.PERSISTED, context)
        case PersistStatus.DUPLICATE_CONFLICT:
            return (Outcome.DUPLICATE_REJECTED, context)
        case PersistStatus.STORAGE_ERROR:
            return (Outcome.FAILED, context)


class StageEventPipeline:
    """Run one delivered payload through decode, persist and report."""

    def __init__(
        self,
        persister: BuildStagePersister,
        reporter: OutcomeReporter,
        *,
        decoder: Decoder = decode_stage_event,
        durations: DurationHistogram | None = None,
    ) -> None:
        """Wire the pipeline stages together.

        ``durations``, when given, records the wall time of every
        :meth:`handle` call, whatever its outcome.
        """
        self._persister = persister
        self._reporter = reporter
        self._decoder = decoder
        self._durations = durations

    async def handle(self, raw: str) -> Outcome:
        """Process ``raw`` and return the reported outcome."""
        started = time.perf_counter()
        try:
            outcome, context = await self._process(raw)
        except Exception as exc:  # noqa: BLE001 - nothing may escape to the broker
            outcome = Outcome.FAILED
            context = OutcomeContext(reason=str(exc), error=exc)
        self._reporter.report(outcome, context)
        if self._durations is not None:
            self._durations.observe(time.perf_counter() - started)
        return outcome

    async def _process(self, raw: str) -> tuple[Outcome, OutcomeContext]:
        decoded = self._decoder(raw)
        match decoded.status:
            case DecodeStatus.ABSENT:
                return (Outcome.SKIPPED, OutcomeContext(reason=decoded.reason))
            case DecodeStatus.MALFORMED:
                return (
                    Outcome.FAILED,
                    OutcomeContext(reason=decoded.reason, error=decoded.error),
                )
        record = decoded.record
        if record is None:
            msg = "decoder reported a present result without a record"
            raise RuntimeError(msg)
        result = await self._persister.persist(record)
        return classify_persist(record, result)
