"""Data structures for Remote-Write time series."""
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List


class MetricType(IntEnum):
    """Remote-Write metric type enumeration."""
    UNKNOWN = 0
    COUNTER = 1
    GAUGE = 2
    HISTOGRAM = 3
    GAUGEHISTOGRAM = 4
    SUMMARY = 5
    INFO = 6
    STATESET = 7


@dataclass(frozen=True)
class WireLabel:
    """A single label name/value pair."""
    name: str
    value: str


@dataclass
class WireSample:
    """A single sample with a millisecond timestamp."""
    value: float
    timestamp_ms: int


@dataclass
class WireTimeSeries:
    """A labeled series carrying one or more samples."""
    labels: List[WireLabel]
    samples: List[WireSample] = field(default_factory=list)

    @property
    def name(self) -> str:
        """Return the value of the reserved __name__ label."""
        for label in self.labels:
            if label.name == "__name__":
                return label.value
        return ""

    def label_dict(self) -> Dict[str, str]:
        return {label.name: label.value for label in self.labels}


@dataclass
class WireMetadata:
    """Per-family metadata record."""
    type: MetricType
    metric_family_name: str
    help: str = ""
    unit: str = ""


@dataclass
class WriteRequest:
    """Unit of transmission for one push."""
    timeseries: List[WireTimeSeries] = field(default_factory=list)
    metadata: List[WireMetadata] = field(default_factory=list)
