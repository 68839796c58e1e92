"""Tests for the authenticated remote write pusher."""
import httpx
import pytest

from metrics_sidecar.errors import PushRejectedError, PushTransportError
from metrics_sidecar.pusher import create_push_client, push

PUSH_URL = "http://backend.test/api/v1/write"


def client_with(handler):
    return create_push_client(timeout_s=5.0, transport=httpx.MockTransport(handler))


def test_push_sends_headers_and_body():
    captured = {}

    def handler(request):
        captured["request"] = request
        return httpx.Response(204)

    with client_with(handler) as client:
        push(client, PUSH_URL, "secret-token", b"payload-bytes")

    request = captured["request"]
    assert request.method == "POST"
    assert str(request.url) == PUSH_URL
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert request.headers["Content-Type"] == "application/x-protobuf"
    assert request.headers["Content-Encoding"] == "snappy"
    assert request.headers["X-Prometheus-Remote-Write-Version"] == "0.1.0"
    assert request.content == b"payload-bytes"


def test_non_success_status_is_rejected():
    def handler(request):
        return httpx.Response(503, text="backend overloaded")

    with client_with(handler) as client:
        with pytest.raises(PushRejectedError) as exc_info:
            push(client, PUSH_URL, "t", b"x")

    assert exc_info.value.status == 503
    assert exc_info.value.body == "backend overloaded"


def test_undecodable_body_degrades_to_placeholder(monkeypatch):
    def handler(request):
        return httpx.Response(400, content=b"\xff\xfe")

    def broken_text(self):
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    monkeypatch.setattr(httpx.Response, "text", property(broken_text))

    with client_with(handler) as client:
        with pytest.raises(PushRejectedError) as exc_info:
            push(client, PUSH_URL, "t", b"x")

    assert exc_info.value.status == 400
    assert exc_info.value.body.startswith("couldn't decode response body")


def test_connection_failure_is_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection reset", request=request)

    with client_with(handler) as client:
        with pytest.raises(PushTransportError) as exc_info:
            push(client, PUSH_URL, "t", b"x")

    assert isinstance(exc_info.value.cause, httpx.ConnectError)


def test_timeout_is_transport_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with client_with(handler) as client:
        with pytest.raises(PushTransportError):
            push(client, PUSH_URL, "t", b"x")


def test_client_has_fixed_timeout():
    client = create_push_client(timeout_s=12.5)
    try:
        assert client.timeout.read == 12.5
        assert client.timeout.connect == 12.5
    finally:
        client.close()
