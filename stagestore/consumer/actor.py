"""Dramatiq actor that feeds delivered stage events into the pipeline.

Usage
-----
Publish a stage event for the consumer:

>>> consume_stage_event.send('{"stageId": "abc", "status": "DONE"}')

Run a worker with ``dramatiq stagestore.consumer.actor``; the worker reads
``STAGESTORE_DATABASE_URL`` on its first delivery.
"""

from __future__ import annotations

import asyncio

import dramatiq

from stagestore.consumer._broker import ensure_broker_configured
from stagestore.runtime import get_pipeline, report_startup_failure

STAGE_EVENT_QUEUE = "duration"

ensure_broker_configured()


@dramatiq.actor(queue_name=STAGE_EVENT_QUEUE)
def consume_stage_event(payload: str) -> str:
    """Persist one delivered stage event and return the outcome name.

    Every failure is reported as a ``failed`` outcome, including failures to
    build the pipeline on first use, so this actor returns normally for every
    payload and the broker never schedules a retry.
    """
    try:
        pipeline = get_pipeline()
    except Exception as exc:  # noqa: BLE001 - nothing may escape to the broker
        return report_startup_failure(exc).value
    return asyncio.run(pipeline.handle(payload)).value
