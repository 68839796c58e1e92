"""Point-in-time snapshots of a prometheus_client registry."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple
import logging

from prometheus_client import REGISTRY, CollectorRegistry

logger = logging.getLogger(__name__)


class MetricKind(str, Enum):
    """Kind of a metric family."""
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    SUMMARY = "summary"
    UNTYPED = "untyped"


@dataclass
class HistogramValue:
    """Cumulative histogram buckets plus count and sum."""
    buckets: List[Tuple[float, int]] = field(default_factory=list)
    sample_count: int = 0
    sample_sum: float = 0.0


@dataclass
class Metric:
    """One labeled instance within a family."""
    labels: Dict[str, str]
    value: Optional[float] = None
    histogram: Optional[HistogramValue] = None


@dataclass
class MetricFamily:
    """A named group of metrics sharing kind and help text."""
    name: str
    kind: MetricKind
    help: str = ""
    samples: List[Metric] = field(default_factory=list)
    unit: str = ""


class SnapshotSource(Protocol):
    """Anything that can produce a consistent snapshot of metric families."""

    def gather(self) -> List[MetricFamily]:
        ...


_KIND_BY_TYPE = {
    "counter": MetricKind.COUNTER,
    "gauge": MetricKind.GAUGE,
    "histogram": MetricKind.HISTOGRAM,
    "summary": MetricKind.SUMMARY,
    "unknown": MetricKind.UNTYPED,
}


class RegistrySnapshotSource:
    """Reads families from a prometheus_client registry.

    The registry is borrowed, never mutated. ``collect()`` takes each metric's
    own lock only while reading its value, so concurrent scrapes and metric
    updates from the rest of the process are not blocked.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

    def gather(self) -> List[MetricFamily]:
        """Return the current snapshot of every family in the registry."""
        return [convert_family(family) for family in self.registry.collect()]


def convert_family(family) -> MetricFamily:
    """Convert a prometheus_client metric family into a MetricFamily."""
    kind = _KIND_BY_TYPE.get(family.type, MetricKind.UNTYPED)
    help_text = family.documentation or ""
    unit = family.unit or ""

    if kind is MetricKind.COUNTER:
        # prometheus_client strips _total from counter family names
        name = f"{family.name}_total"
        samples = [
            Metric(labels=dict(s.labels), value=s.value)
            for s in family.samples
            if s.name == name
        ]
        return MetricFamily(name, kind, help_text, samples, unit)

    if kind is MetricKind.HISTOGRAM:
        return MetricFamily(family.name, kind, help_text, _group_histogram(family), unit)

    if kind is MetricKind.SUMMARY:
        return MetricFamily(family.name, kind, help_text, _group_summary(family), unit)

    if kind is MetricKind.UNTYPED and family.type != "unknown":
        logger.debug(f"Family {family.name} has unsupported type {family.type}")
        return MetricFamily(family.name, kind, help_text, [], unit)

    samples = [
        Metric(labels=dict(s.labels), value=s.value)
        for s in family.samples
        if s.name == family.name
    ]
    return MetricFamily(family.name, kind, help_text, samples, unit)


def _label_key(labels: Dict[str, str], exclude: str) -> Tuple[Tuple[str, str], ...]:
    return tuple(sorted((k, v) for k, v in labels.items() if k != exclude))


def _group_histogram(family) -> List[Metric]:
    """Fold _bucket/_count/_sum samples into one Metric per label set."""
    grouped: Dict[Tuple[Tuple[str, str], ...], Metric] = {}

    for sample in family.samples:
        key = _label_key(sample.labels, "le")
        metric = grouped.get(key)
        if metric is None:
            metric = Metric(labels=dict(key), histogram=HistogramValue())
            grouped[key] = metric

        suffix = sample.name[len(family.name):]
        if suffix == "_bucket":
            upper_bound = float(sample.labels["le"])
            metric.histogram.buckets.append((upper_bound, int(sample.value)))
        elif suffix == "_count":
            metric.histogram.sample_count = int(sample.value)
        elif suffix == "_sum":
            metric.histogram.sample_sum = float(sample.value)

    for metric in grouped.values():
        metric.histogram.buckets.sort(key=lambda bucket: bucket[0])

    return list(grouped.values())


def _group_summary(family) -> List[Metric]:
    grouped: Dict[Tuple[Tuple[str, str], ...], Metric] = {}
    for sample in family.samples:
        key = _label_key(sample.labels, "quantile")
        if key not in grouped:
            grouped[key] = Metric(labels=dict(key))
    return list(grouped.values())
