"""Prometheus metrics for the stage event consumer.

Two metrics are exported per process: the error counter backing the
error-rate signal, and a histogram of how long each delivery took to handle.
"""

from __future__ import annotations

import threading
import typing as typ

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

DEFAULT_DURATION_HISTOGRAM_NAME = "stagestore_consume_duration_seconds"

_DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

_METRICS_LOCK = threading.Lock()
# Keyed by the registry object itself; each entry keeps its registry alive.
_PROCESS_METRICS: dict[CollectorRegistry, dict[str, object]] = {}


class ErrorCounter:
    """Monotonic counter of duplicate and failed deliveries.

    Increments are atomic: prometheus-client guards each counter value with a
    lock, so concurrent worker threads never lose an update.
    """

    def __init__(
        self,
        name: str,
        *,
        registry: CollectorRegistry | None = None,
        documentation: str = "Stage events that were duplicates or failed to persist",
    ) -> None:
        """Register the counter in ``registry``, or in a private registry."""
        self._registry = registry if registry is not None else CollectorRegistry()
        self._counter = Counter(name, documentation, registry=self._registry)
        self.name = name.removesuffix("_total")

    def increment(self, amount: int = 1) -> None:
        """Add ``amount`` to the counter."""
        self._counter.inc(amount)

    @property
    def value(self) -> int:
        """Return the current count as read back from the registry."""
        sample = self._registry.get_sample_value(f"{self.name}_total")
        return int(sample or 0)


class DurationHistogram:
    """Histogram of seconds spent handling one delivery."""

    def __init__(
        self,
        name: str = DEFAULT_DURATION_HISTOGRAM_NAME,
        *,
        registry: CollectorRegistry | None = None,
        documentation: str = "Time spent handling one stage event delivery in seconds",
    ) -> None:
        """Register the histogram in ``registry``, or in a private registry."""
        self._registry = registry if registry is not None else CollectorRegistry()
        self._histogram = Histogram(
            name, documentation, registry=self._registry, buckets=_DURATION_BUCKETS
        )
        self.name = name

    def observe(self, seconds: float) -> None:
        """Record one handled delivery that took ``seconds``."""
        self._histogram.observe(seconds)

    @property
    def count(self) -> int:
        """Return how many deliveries have been observed."""
        sample = self._registry.get_sample_value(f"{self.name}_count")
        return int(sample or 0)

    @property
    def total_seconds(self) -> float:
        """Return the summed duration of every observed delivery."""
        return self._registry.get_sample_value(f"{self.name}_sum") or 0.0


def _registered[T](
    registry: CollectorRegistry | None,
    name: str,
    factory: typ.Callable[[CollectorRegistry], T],
) -> T:
    """Return the metric ``name`` in ``registry``, creating it on first use.

    Registering one metric name twice in a registry is an error, so repeated
    calls return the first instance. The default registry is the global one
    scraped by the exporter.
    """
    target = registry if registry is not None else REGISTRY
    with _METRICS_LOCK:
        metrics = _PROCESS_METRICS.setdefault(target, {})
        metric = metrics.get(name)
        if metric is None:
            metric = factory(target)
            metrics[name] = metric
        return typ.cast("T", metric)


def init_error_counter(
    name: str, *, registry: CollectorRegistry | None = None
) -> ErrorCounter:
    """Return the process-wide counter called ``name``, creating it once."""
    return _registered(
        registry, name, lambda target: ErrorCounter(name, registry=target)
    )


def init_duration_histogram(
    name: str = DEFAULT_DURATION_HISTOGRAM_NAME,
    *,
    registry: CollectorRegistry | None = None,
) -> DurationHistogram:
    """Return the process-wide delivery duration histogram, creating it once."""
    return _registered(
        registry, name, lambda target: DurationHistogram(name, registry=target)
    )
