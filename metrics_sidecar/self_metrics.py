"""Self-monitoring metrics for the side-car."""
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram


class PushSelfMetrics:
    """Metrics describing the push pipeline and the ingest route."""

    def __init__(self, registry=None, prefix=""):
        if registry is None:
            registry = CollectorRegistry()

        self.pushes_total = Counter(
            f"{prefix}push_total",
            "Total number of remote write push attempts",
            ["outcome"],
            registry=registry
        )

        self.push_errors_total = Counter(
            f"{prefix}push_errors_total",
            "Total number of failed remote write pushes by error kind",
            ["kind"],
            registry=registry
        )

        self.push_duration_seconds = Histogram(
            f"{prefix}push_duration_seconds",
            "Duration of each push tick in seconds",
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=registry
        )

        self.pushed_series = Gauge(
            f"{prefix}pushed_series",
            "Number of time series in the last successful push",
            registry=registry
        )

        self.client_recreations_total = Counter(
            f"{prefix}push_client_recreations_total",
            "Number of times the push HTTP client was recreated",
            registry=registry
        )

        self.received_series_total = Counter(
            f"{prefix}received_series_total",
            "Total number of time series received on the ingest route",
            registry=registry
        )

    def record_success(self, series_count: int, duration: float):
        """Record a successful push."""
        self.pushes_total.labels(outcome="success").inc()
        self.pushed_series.set(series_count)
        self.push_duration_seconds.observe(duration)

    def record_failure(self, kind: str, duration: float):
        """Record a failed push."""
        self.pushes_total.labels(outcome="failure").inc()
        self.push_errors_total.labels(kind=kind).inc()
        self.push_duration_seconds.observe(duration)

    def record_client_recreation(self):
        self.client_recreations_total.inc()

    def record_received(self, series_count: int):
        self.received_series_total.inc(series_count)
