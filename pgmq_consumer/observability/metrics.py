"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from pgmq_consumer.constants import (
    METRIC_CYCLES,
    METRIC_ERRORS,
    METRIC_IN_FLIGHT,
    METRIC_MESSAGE_DURATION,
    METRIC_MESSAGES,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for consumers.

    Collects metrics for:
    - Messages by outcome (finished, failed, dead_lettered, aborted)
    - Poll cycles by result (processed, empty, error)
    - Errors surfaced as events
    - Per-message processing duration
    - Messages in flight
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.messages = Counter(
            METRIC_MESSAGES,
            "Total number of messages dispatched, by outcome",
            ["queue", "outcome"],
            registry=self._registry,
        )

        self.cycles = Counter(
            METRIC_CYCLES,
            "Total number of poll cycles, by result",
            ["queue", "result"],
            registry=self._registry,
        )

        self.errors = Counter(
            METRIC_ERRORS,
            "Total number of errors surfaced as events",
            ["queue", "kind"],
            registry=self._registry,
        )

        self.message_duration = Histogram(
            METRIC_MESSAGE_DURATION,
            "Message processing duration in seconds",
            ["queue"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )

        self.in_flight = Gauge(
            METRIC_IN_FLIGHT,
            "Number of messages currently being processed",
            ["queue"],
            registry=self._registry,
        )

    def record_message(
        self,
        queue: str,
        outcome: str,
        duration_seconds: float | None = None,
    ) -> None:
        """Record the outcome of one message."""
        self.messages.labels(queue=queue, outcome=outcome).inc()
        if duration_seconds is not None:
            self.message_duration.labels(queue=queue).observe(duration_seconds)

    def record_cycle(self, queue: str, result: str) -> None:
        """Record a completed poll cycle."""
        self.cycles.labels(queue=queue, result=result).inc()

    def record_error(self, queue: str, kind: str) -> None:
        """Record an error or abort-error event."""
        self.errors.labels(queue=queue, kind=kind).inc()

    def set_in_flight(self, queue: str, count: int) -> None:
        """Update the number of messages being processed."""
        self.in_flight.labels(queue=queue).set(count)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
