"""Tests for the periodic push scheduler."""
import threading
import time

import httpx
import pytest
from prometheus_client import CollectorRegistry

from metrics_sidecar import scheduler as scheduler_module
from metrics_sidecar.config import MetricsPushConfig
from metrics_sidecar.errors import CompressionError
from metrics_sidecar.pusher import create_push_client
from metrics_sidecar.scheduler import PushScheduler, SchedulerState, start_scheduler_thread
from metrics_sidecar.self_metrics import PushSelfMetrics
from metrics_sidecar.serializer import decompress_and_deserialize
from metrics_sidecar.snapshot import Metric, MetricFamily, MetricKind


class StaticSource:
    """Snapshot source returning a fixed counter family."""

    def __init__(self, on_gather=None):
        self.calls = 0
        self.on_gather = on_gather

    def gather(self):
        self.calls += 1
        if self.on_gather:
            self.on_gather()
        return [MetricFamily(
            name="requests_total",
            kind=MetricKind.COUNTER,
            help="Total requests",
            samples=[Metric(labels={"route": "/x"}, value=5.0)],
        )]


class ClientFactory:
    """Builds mock-transport clients and remembers every client it made."""

    def __init__(self, handler):
        self.handler = handler
        self.clients = []

    def __call__(self):
        client = create_push_client(transport=httpx.MockTransport(self.handler))
        self.clients.append(client)
        return client


def push_config(**overrides):
    values = {
        "push_url": "http://backend.test/api/v1/write",
        "push_interval_s": 0.02,
        "bearer_token": "secret",
        "labels": {"env": "prod"},
    }
    values.update(overrides)
    return MetricsPushConfig(**values)


def ok_handler(request):
    return httpx.Response(200)


def test_push_once_success():
    received = []

    def handler(request):
        received.append(decompress_and_deserialize(request.content))
        return httpx.Response(204)

    self_metrics = PushSelfMetrics(registry=CollectorRegistry())
    scheduler = PushScheduler(
        push_config(), StaticSource(), client_factory=ClientFactory(handler),
        self_metrics=self_metrics,
    )

    assert scheduler.push_once() is True
    assert len(received) == 1
    series = received[0].timeseries[0]
    assert series.label_dict() == {"__name__": "requests_total", "env": "prod", "route": "/x"}
    assert series.samples[0].value == 5.0

    status = scheduler.status()
    assert status["last_error"] is None
    assert status["last_success_time"] is not None
    assert self_metrics.pushed_series._value.get() == 1


def test_rejected_push_keeps_client():
    """A 503 is logged and the same client is used for the next tick."""
    factory = ClientFactory(lambda request: httpx.Response(503, text="unavailable"))
    scheduler = PushScheduler(push_config(), StaticSource(), client_factory=factory)
    client = scheduler.client

    assert scheduler.push_once() is False
    assert scheduler.push_once() is False

    assert len(factory.clients) == 1
    assert scheduler.client is client
    assert scheduler.consecutive_failures == 2
    assert "503" in scheduler.status()["last_error"]


def test_transport_failure_recreates_client():
    def handler(request):
        raise httpx.ConnectError("connection reset", request=request)

    factory = ClientFactory(handler)
    self_metrics = PushSelfMetrics(registry=CollectorRegistry())
    scheduler = PushScheduler(
        push_config(), StaticSource(), client_factory=factory, self_metrics=self_metrics
    )
    old_client = scheduler.client

    assert scheduler.push_once() is False

    assert len(factory.clients) == 2
    assert scheduler.client is factory.clients[1]
    assert old_client.is_closed
    assert not scheduler.client.is_closed
    assert self_metrics.client_recreations_total._value.get() == 1


def test_compression_failure_is_not_fatal(monkeypatch):
    def fail(write_request):
        raise CompressionError("boom")

    monkeypatch.setattr(scheduler_module, "serialize_and_compress", fail)
    factory = ClientFactory(ok_handler)
    scheduler = PushScheduler(push_config(), StaticSource(), client_factory=factory)

    assert scheduler.push_once() is False
    assert len(factory.clients) == 1
    assert scheduler.status()["last_error"] == "boom"


def test_failure_then_success_resets_counter():
    responses = iter([httpx.Response(500), httpx.Response(200)])
    scheduler = PushScheduler(
        push_config(), StaticSource(), client_factory=ClientFactory(lambda r: next(responses))
    )

    assert scheduler.push_once() is False
    assert scheduler.push_once() is True
    assert scheduler.consecutive_failures == 0


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


def test_cancellation_stops_loop():
    """After cancellation the loop exits and issues no further pushes."""
    pushes = []

    def handler(request):
        pushes.append(request)
        return httpx.Response(200)

    factory = ClientFactory(handler)
    scheduler = PushScheduler(push_config(), StaticSource(), client_factory=factory)
    thread = start_scheduler_thread(scheduler)

    assert wait_for(lambda: len(pushes) >= 2)
    assert scheduler.state is SchedulerState.RUNNING

    scheduler.stop()
    thread.join(timeout=1.0)

    assert not thread.is_alive()
    assert scheduler.state is SchedulerState.CANCELLED
    assert scheduler.client.is_closed

    count = len(pushes)
    time.sleep(0.1)
    assert len(pushes) == count


def test_cancelled_before_run_pushes_nothing():
    cancel = threading.Event()
    cancel.set()
    source = StaticSource()
    scheduler = PushScheduler(
        push_config(), source, cancel=cancel, client_factory=ClientFactory(ok_handler)
    )

    scheduler.run()

    assert source.calls == 0
    assert scheduler.state is SchedulerState.CANCELLED
    with pytest.raises(RuntimeError):
        scheduler.run()


def test_unexpected_error_does_not_stop_loop():
    def explode():
        raise RuntimeError("collector failed")

    source = StaticSource(on_gather=explode)
    scheduler = PushScheduler(push_config(), source, client_factory=ClientFactory(ok_handler))
    thread = start_scheduler_thread(scheduler)

    assert wait_for(lambda: source.calls >= 3)

    scheduler.stop()
    thread.join(timeout=1.0)
    assert not thread.is_alive()
    assert "collector failed" in scheduler.status()["last_error"]


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class RecordingEvent:
    """Cancellation event that advances a fake clock and fires after N waits."""

    def __init__(self, clock, waits_before_cancel):
        self.clock = clock
        self.remaining = waits_before_cancel
        self.timeouts = []

    def wait(self, timeout=None):
        self.timeouts.append(timeout)
        self.clock.now += timeout
        self.remaining -= 1
        return self.remaining < 0

    def set(self):
        self.remaining = -1


def run_with_tick_duration(tick_duration):
    clock = FakeClock()
    cancel = RecordingEvent(clock, waits_before_cancel=3)

    def advance():
        clock.now += tick_duration

    scheduler = PushScheduler(
        push_config(push_interval_s=10),
        StaticSource(on_gather=advance),
        cancel=cancel,
        client_factory=ClientFactory(ok_handler),
        clock=clock,
    )
    scheduler.run()
    return scheduler, cancel.timeouts


def test_ticks_follow_fixed_interval():
    scheduler, timeouts = run_with_tick_duration(1.0)

    assert timeouts == [0.0, 9.0, 9.0, 9.0]
    assert scheduler.tick_count == 3


def test_overrun_ticks_are_skipped():
    """A tick lasting 2.5 intervals drops the missed ticks instead of bursting."""
    scheduler, timeouts = run_with_tick_duration(25.0)

    assert timeouts == [0.0, 5.0, 5.0, 5.0]
    assert scheduler.tick_count == 3
