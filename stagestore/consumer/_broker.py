"""Dramatiq broker detection for the stage event actor.

A real broker (RabbitMQ or Redis) must be configured in production. Test runs,
and local runs with ``STAGESTORE_ALLOW_STUB_BROKER`` set, fall back to a
``StubBroker`` so the actor can be declared and called directly.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

_BROKER_LOCK = threading.Lock()
_broker_configured = False

_TRUTHY = frozenset({"1", "true", "yes"})


def _is_running_tests() -> bool:
    """Return True when the process is a pytest run."""
    return "pytest" in sys.modules or any(
        key in os.environ
        for key in ["PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS"]
    )


def should_use_stub_broker() -> bool:
    """Return True when a missing broker may be replaced by a StubBroker."""
    allow_stub = os.environ.get("STAGESTORE_ALLOW_STUB_BROKER", "")
    return allow_stub.strip().lower() in _TRUTHY or _is_running_tests()


def ensure_broker_configured() -> dramatiq.Broker:
    """Return the global broker, installing a StubBroker where permitted.

    Thread-safe and idempotent. ``dramatiq.get_broker`` defaults to RabbitMQ,
    which raises ``ImportError`` when its client library is not installed;
    a broker lookup that finds nothing raises ``LookupError``.

    Raises
    ------
    RuntimeError
        If no broker is available and stub brokers are not permitted.

    """
    global _broker_configured

    with _BROKER_LOCK:
        if _broker_configured:
            return dramatiq.get_broker()

        try:
            current_broker = dramatiq.get_broker()
        except (ImportError, LookupError):
            current_broker = None

        if current_broker is None:
            if not should_use_stub_broker():
                message = (
                    "No Dramatiq broker configured. "
                    "Set STAGESTORE_ALLOW_STUB_BROKER=1 for "
                    "local/test runs or configure a real broker."
                )
                raise RuntimeError(message)
            current_broker = StubBroker()
            dramatiq.set_broker(current_broker)

        _broker_configured = True
        return current_broker
