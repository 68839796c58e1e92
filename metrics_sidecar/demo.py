"""Demo metrics that exercise every kind the push pipeline encodes."""
import logging
import threading
import time

import numpy as np
from prometheus_client import CollectorRegistry, Gauge, Histogram

from metrics_sidecar import __version__

logger = logging.getLogger(__name__)

REQUEST_DURATION_BUCKETS = [0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]


class DemoMetrics:
    """Gauges and a histogram refreshed with seeded random values."""

    def __init__(self, registry: CollectorRegistry, seed: int = 42):
        self.rng = np.random.default_rng(seed)

        self.current_time = Gauge(
            "current_time",
            "Current time",
            registry=registry
        )
        self.build_info = Gauge(
            "seal_build_info",
            "Seal binary info",
            ["version"],
            registry=registry
        )
        self.request_duration = Histogram(
            "seal_request_duration",
            "Seal request duration",
            buckets=REQUEST_DURATION_BUCKETS,
            registry=registry
        )

    def generate(self, observations: int = 10):
        """Update every demo metric once."""
        self.current_time.set(int(time.time()))
        self.build_info.labels(version=__version__).set(1)

        # Lognormal latencies centred around 0.3s
        for value in self.rng.lognormal(mean=-1.2, sigma=0.8, size=observations):
            self.request_duration.observe(float(value))


def start_demo_thread(demo: DemoMetrics, interval_s: float, stop: threading.Event) -> threading.Thread:
    """Refresh demo metrics every interval until stop is set."""

    def _run():
        logger.info(f"Demo metrics generator started, interval {interval_s}s")
        while not stop.is_set():
            try:
                demo.generate()
            except Exception as e:
                logger.error(f"Error generating demo metrics: {e}", exc_info=True)
            stop.wait(interval_s)

    thread = threading.Thread(target=_run, name="demo-metrics", daemon=True)
    thread.start()
    return thread
