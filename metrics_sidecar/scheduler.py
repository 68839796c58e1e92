"""Periodic Remote-Write push scheduler."""
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, Optional
import logging
import threading
import time

import httpx

from metrics_sidecar.config import MetricsPushConfig
from metrics_sidecar.encoder import encode
from metrics_sidecar.errors import PushPipelineError, PushTransportError
from metrics_sidecar.pusher import create_push_client, push
from metrics_sidecar.self_metrics import PushSelfMetrics
from metrics_sidecar.serializer import serialize_and_compress
from metrics_sidecar.snapshot import SnapshotSource

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"


class PushScheduler:
    """Pushes a registry snapshot to a Remote-Write endpoint on a fixed interval.

    Ticks never overlap. A tick that overruns the interval causes the missed
    ticks to be dropped rather than fired back to back. Failures never stop
    the loop; only the cancellation event does, and a cancelled scheduler
    cannot be restarted.
    """

    def __init__(
        self,
        config: MetricsPushConfig,
        source: SnapshotSource,
        cancel: Optional[threading.Event] = None,
        client_factory: Optional[Callable[[], httpx.Client]] = None,
        self_metrics: Optional[PushSelfMetrics] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.source = source
        self.cancel = cancel if cancel is not None else threading.Event()
        self.client_factory = client_factory or partial(create_push_client, config.timeout_s)
        self.self_metrics = self_metrics
        self.clock = clock

        self._client = self.client_factory()
        self._state = SchedulerState.IDLE
        self._status_lock = threading.Lock()

        self.tick_count = 0
        self.consecutive_failures = 0
        self.last_success_time: Optional[float] = None
        self.last_error: Optional[str] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def client(self) -> httpx.Client:
        return self._client

    def push_once(self) -> bool:
        """Run one gather, encode, compress and push cycle.

        Returns:
            True if the payload was accepted by the endpoint
        """
        tick_start = time.perf_counter()

        try:
            snapshot = self.source.gather()
            write_request = encode(snapshot, self.config.labels)
            payload = serialize_and_compress(write_request)
            push(self._client, self.config.push_url, self.config.bearer_token, payload)
        except PushTransportError as e:
            logger.warning(f"Unable to push metrics to remote write endpoint: {e}")
            self._record_failure(e, time.perf_counter() - tick_start)
            self._recreate_client()
            return False
        except PushPipelineError as e:
            logger.warning(f"Unable to push metrics to remote write endpoint: {e}")
            self._record_failure(e, time.perf_counter() - tick_start)
            return False

        duration = time.perf_counter() - tick_start
        series_count = len(write_request.timeseries)

        with self._status_lock:
            self.consecutive_failures = 0
            self.last_success_time = time.time()
            self.last_error = None
        if self.self_metrics:
            self.self_metrics.record_success(series_count, duration)

        logger.debug(
            f"Successfully pushed {series_count} timeseries to remote write "
            f"in {duration:.3f}s"
        )
        return True

    def run(self):
        """Run the push loop until the cancellation event is set."""
        if self._state is SchedulerState.CANCELLED:
            raise RuntimeError("Push scheduler was cancelled and cannot be restarted")

        self._state = SchedulerState.RUNNING
        interval = self.config.push_interval_s

        logger.info(
            f"Starting prometheus remote write push to '{self.config.push_url}' "
            f"every {interval}s"
        )

        next_tick = self.clock()
        try:
            while not self.cancel.wait(max(0.0, next_tick - self.clock())):
                try:
                    self.push_once()
                except Exception as e:
                    logger.error(f"Error in push tick: {e}", exc_info=True)
                    self._record_failure(e, 0.0)

                with self._status_lock:
                    self.tick_count += 1

                next_tick += interval
                now = self.clock()
                if now > next_tick:
                    missed = int((now - next_tick) // interval) + 1
                    logger.warning(
                        f"Push tick overran interval {interval}s, skipping {missed} tick(s)"
                    )
                    next_tick += missed * interval
        finally:
            self._state = SchedulerState.CANCELLED
            self._client.close()
            logger.info("Received cancellation request, shutting down prometheus push")

    def stop(self):
        """Request cancellation; the loop exits at the next wait."""
        logger.info("Stopping push scheduler")
        self.cancel.set()

    def status(self) -> Dict[str, Any]:
        with self._status_lock:
            return {
                "state": self._state.value,
                "push_url": self.config.push_url,
                "push_interval_s": self.config.push_interval_s,
                "tick_count": self.tick_count,
                "consecutive_failures": self.consecutive_failures,
                "last_success_time": self.last_success_time,
                "last_error": self.last_error,
            }

    def _record_failure(self, error: Exception, duration: float):
        with self._status_lock:
            self.consecutive_failures += 1
            self.last_error = str(error)
        if self.self_metrics:
            self.self_metrics.record_failure(type(error).__name__, duration)

    def _recreate_client(self):
        """Replace the HTTP client; the old one is closed, never reused."""
        old_client = self._client
        self._client = self.client_factory()
        old_client.close()
        if self.self_metrics:
            self.self_metrics.record_client_recreation()
        logger.info("Recreated remote write push client")


def start_scheduler_thread(scheduler: PushScheduler) -> threading.Thread:
    """Run the scheduler in a daemon thread."""

    def _run():
        try:
            scheduler.run()
        except Exception as e:
            logger.error(f"Push scheduler thread error: {e}", exc_info=True)

    thread = threading.Thread(target=_run, name="remote-write-push", daemon=True)
    thread.start()
    return thread
