"""Protobuf serialization and snappy compression of WriteRequests."""
from google.protobuf.message import DecodeError as ProtoDecodeError
from google.protobuf.message import EncodeError as ProtoEncodeError
import snappy

from metrics_sidecar import remote_write_pb as pb
from metrics_sidecar.errors import CompressionError, EncodeError, PayloadDecodeError
from metrics_sidecar.series import (
    MetricType, WireLabel, WireMetadata, WireSample, WireTimeSeries, WriteRequest
)


def to_proto(write_request: WriteRequest):
    """Convert a WriteRequest into its protobuf message."""
    message = pb.WriteRequest()

    for series in write_request.timeseries:
        ts = message.timeseries.add()
        for label in series.labels:
            ts.labels.add(name=label.name, value=label.value)
        for sample in series.samples:
            ts.samples.add(value=sample.value, timestamp=sample.timestamp_ms)

    for meta in write_request.metadata:
        message.metadata.add(
            type=int(meta.type),
            metric_family_name=meta.metric_family_name,
            help=meta.help,
            unit=meta.unit,
        )

    return message


def from_proto(message) -> WriteRequest:
    """Convert a protobuf WriteRequest back into the dataclass model."""
    timeseries = [
        WireTimeSeries(
            labels=[WireLabel(label.name, label.value) for label in ts.labels],
            samples=[WireSample(s.value, s.timestamp) for s in ts.samples],
        )
        for ts in message.timeseries
    ]
    metadata = [
        WireMetadata(
            type=_metric_type(meta.type),
            metric_family_name=meta.metric_family_name,
            help=meta.help,
            unit=meta.unit,
        )
        for meta in message.metadata
    ]
    return WriteRequest(timeseries=timeseries, metadata=metadata)


def _metric_type(value: int) -> MetricType:
    try:
        return MetricType(value)
    except ValueError:
        return MetricType.UNKNOWN


def serialize_and_compress(write_request: WriteRequest) -> bytes:
    """Serialize to protobuf and compress the whole buffer as one snappy block."""
    try:
        buf = to_proto(write_request).SerializeToString()
    except (ProtoEncodeError, TypeError, ValueError) as e:
        raise EncodeError(f"Failed to encode protobuf: {e}") from e

    try:
        return snappy.compress(buf)
    except Exception as e:
        raise CompressionError(f"Failed to compress: {e}") from e


def decompress_and_deserialize(payload: bytes) -> WriteRequest:
    """Inverse of serialize_and_compress."""
    try:
        buf = snappy.decompress(payload)
    except Exception as e:
        raise CompressionError(f"Failed to decompress: {e}") from e

    message = pb.WriteRequest()
    try:
        message.ParseFromString(buf)
    except ProtoDecodeError as e:
        raise PayloadDecodeError(f"Failed to decode protobuf: {e}") from e

    return from_proto(message)
