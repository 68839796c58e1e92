"""Protocol buffer messages for the Prometheus Remote-Write protocol.

The schema follows prompb/types.proto and prompb/remote.proto. It is
assembled from a FileDescriptorProto at import time into a private
descriptor pool, so it never clashes with other registrations of the
``prometheus`` package.
"""
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from metrics_sidecar.series import MetricType

_PACKAGE = "prometheus"

_Field = descriptor_pb2.FieldDescriptorProto


def _add_field(message, name, number, field_type, repeated=False, type_name=None):
    field = message.field.add(
        name=name,
        number=number,
        type=field_type,
        label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL,
    )
    if type_name:
        field.type_name = f".{_PACKAGE}.{type_name}"
    return field


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(
        name="metrics_sidecar/remote_write.proto",
        package=_PACKAGE,
        syntax="proto3",
    )

    write_request = proto.message_type.add(name="WriteRequest")
    _add_field(write_request, "timeseries", 1, _Field.TYPE_MESSAGE, True, "TimeSeries")
    _add_field(write_request, "metadata", 3, _Field.TYPE_MESSAGE, True, "MetricMetadata")
    # field 2 is used by Cortex to mark the write source
    write_request.reserved_range.add(start=2, end=3)

    time_series = proto.message_type.add(name="TimeSeries")
    _add_field(time_series, "labels", 1, _Field.TYPE_MESSAGE, True, "Label")
    _add_field(time_series, "samples", 2, _Field.TYPE_MESSAGE, True, "Sample")

    label = proto.message_type.add(name="Label")
    _add_field(label, "name", 1, _Field.TYPE_STRING)
    _add_field(label, "value", 2, _Field.TYPE_STRING)

    sample = proto.message_type.add(name="Sample")
    _add_field(sample, "value", 1, _Field.TYPE_DOUBLE)
    _add_field(sample, "timestamp", 2, _Field.TYPE_INT64)

    metadata = proto.message_type.add(name="MetricMetadata")
    metric_type = metadata.enum_type.add(name="MetricType")
    for member in MetricType:
        metric_type.value.add(name=member.name, number=member.value)
    _add_field(metadata, "type", 1, _Field.TYPE_ENUM, type_name="MetricMetadata.MetricType")
    _add_field(metadata, "metric_family_name", 2, _Field.TYPE_STRING)
    _add_field(metadata, "help", 4, _Field.TYPE_STRING)
    _add_field(metadata, "unit", 5, _Field.TYPE_STRING)
    metadata.reserved_range.add(start=3, end=4)

    return proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file_descriptor().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{_PACKAGE}.{name}"))


WriteRequest = _message_class("WriteRequest")
TimeSeries = _message_class("TimeSeries")
Label = _message_class("Label")
Sample = _message_class("Sample")
MetricMetadata = _message_class("MetricMetadata")
