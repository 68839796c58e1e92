"""Conversion of registry snapshots into Remote-Write time series."""
from typing import Dict, Iterable, List, Optional
import logging
import math
import time

from metrics_sidecar.series import (
    MetricType, WireLabel, WireMetadata, WireSample, WireTimeSeries, WriteRequest
)
from metrics_sidecar.snapshot import HistogramValue, MetricFamily, MetricKind

logger = logging.getLogger(__name__)

NAME_LABEL = "__name__"
BUCKET_LABEL = "le"

METRIC_TYPE_BY_KIND = {
    MetricKind.COUNTER: MetricType.COUNTER,
    MetricKind.GAUGE: MetricType.GAUGE,
    MetricKind.HISTOGRAM: MetricType.HISTOGRAM,
    MetricKind.SUMMARY: MetricType.SUMMARY,
}


def current_timestamp_ms() -> int:
    """Milliseconds since the Unix epoch."""
    return int(time.time() * 1000)


def format_float(value: float) -> str:
    """Format a float the way the exposition format renders it.

    Integral values drop the fractional part, so a bucket bound of 10.0
    becomes "10".
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def encode(
    snapshot: Iterable[MetricFamily],
    external_labels: Optional[Dict[str, str]] = None,
    now_ms: Optional[int] = None,
) -> WriteRequest:
    """
    Build a WriteRequest from a snapshot.

    Args:
        snapshot: Metric families read from the registry
        external_labels: Labels attached to every emitted series. They
            override metric labels with the same name.
        now_ms: Sample timestamp, defaults to the current time

    Returns:
        WriteRequest with one metadata record per family
    """
    if now_ms is None:
        now_ms = current_timestamp_ms()

    request = WriteRequest()

    for family in snapshot:
        request.metadata.append(WireMetadata(
            type=METRIC_TYPE_BY_KIND.get(family.kind, MetricType.UNKNOWN),
            metric_family_name=family.name,
            help=family.help,
            unit=family.unit or "",
        ))

        if family.kind not in (MetricKind.COUNTER, MetricKind.GAUGE, MetricKind.HISTOGRAM):
            logger.debug(f"Skipping series for {family.kind.value} family {family.name}")
            continue

        for metric in family.samples:
            base = _base_labels(family.name, metric.labels, external_labels)

            if family.kind is MetricKind.HISTOGRAM:
                if metric.histogram is None:
                    continue
                request.timeseries.extend(
                    _histogram_series(family.name, base, metric.histogram, now_ms)
                )
            elif metric.value is not None:
                request.timeseries.append(_series(base, metric.value, now_ms))

    return request


def _base_labels(
    family_name: str,
    labels: Dict[str, str],
    external_labels: Optional[Dict[str, str]],
) -> Dict[str, str]:
    merged = dict(labels)
    if external_labels:
        merged.update(external_labels)
    merged[NAME_LABEL] = family_name
    return merged


def _sorted_labels(labels: Dict[str, str]) -> List[WireLabel]:
    return [WireLabel(name, labels[name]) for name in sorted(labels)]


def _series(labels: Dict[str, str], value: float, now_ms: int) -> WireTimeSeries:
    return WireTimeSeries(
        labels=_sorted_labels(labels),
        samples=[WireSample(value=float(value), timestamp_ms=now_ms)],
    )


def _histogram_series(
    family_name: str,
    base: Dict[str, str],
    histogram: HistogramValue,
    now_ms: int,
) -> List[WireTimeSeries]:
    """Expand one histogram into _bucket, _count and _sum series."""
    series = []

    for upper_bound, cumulative_count in histogram.buckets:
        labels = dict(base)
        labels[BUCKET_LABEL] = format_float(upper_bound)
        labels[NAME_LABEL] = f"{family_name}_bucket"
        series.append(_series(labels, cumulative_count, now_ms))

    count_labels = dict(base)
    count_labels[NAME_LABEL] = f"{family_name}_count"
    series.append(_series(count_labels, histogram.sample_count, now_ms))

    sum_labels = dict(base)
    sum_labels[NAME_LABEL] = f"{family_name}_sum"
    series.append(_series(sum_labels, histogram.sample_sum, now_ms))

    return series
