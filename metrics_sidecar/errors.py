"""Errors raised by the Remote-Write push pipeline."""


class PushPipelineError(Exception):
    """Base class for failures of a single push tick."""


class EncodeError(PushPipelineError):
    """The WriteRequest could not be serialized."""


class CompressionError(PushPipelineError):
    """The payload could not be compressed or decompressed."""


class PayloadDecodeError(PushPipelineError):
    """A received payload is not a valid WriteRequest."""


class PushError(PushPipelineError):
    """The payload could not be delivered."""


class PushRejectedError(PushError):
    """The remote backend answered with a non-success status."""

    def __init__(self, status: int, body: str):
        super().__init__(f"remote write rejected: [{status}]: {body}")
        self.status = status
        self.body = body


class PushTransportError(PushError):
    """Connection, timeout or DNS failure while sending the payload."""

    def __init__(self, cause: Exception):
        super().__init__(f"remote write transport failure: {cause!r}")
        self.cause = cause
