"""Authenticated HTTP delivery of Remote-Write payloads."""
from typing import Optional
import logging

import httpx

from metrics_sidecar.errors import PushRejectedError, PushTransportError

logger = logging.getLogger(__name__)

DEFAULT_PUSH_TIMEOUT_S = 30.0

REMOTE_WRITE_HEADERS = {
    "Content-Type": "application/x-protobuf",
    "Content-Encoding": "snappy",
    "X-Prometheus-Remote-Write-Version": "0.1.0",
}


def create_push_client(
    timeout_s: float = DEFAULT_PUSH_TIMEOUT_S,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create the HTTP client used to push metrics."""
    return httpx.Client(timeout=timeout_s, transport=transport)


def push(client: httpx.Client, endpoint_url: str, bearer_token: str, payload: bytes) -> None:
    """
    POST a compressed WriteRequest to a Remote-Write endpoint.

    Raises:
        PushRejectedError: the endpoint answered with a non-2xx status
        PushTransportError: the request never got a response
    """
    headers = dict(REMOTE_WRITE_HEADERS)
    headers["Authorization"] = f"Bearer {bearer_token}"

    logger.debug(f"Pushing {len(payload)} bytes to {endpoint_url}")

    try:
        response = client.post(endpoint_url, content=payload, headers=headers)
    except httpx.RequestError as e:
        raise PushTransportError(e) from e

    if not response.is_success:
        raise PushRejectedError(response.status_code, _response_text(response))


def _response_text(response: httpx.Response) -> str:
    try:
        return response.text
    except (UnicodeDecodeError, LookupError) as e:
        return f"couldn't decode response body; {e}"
