"""In-memory metric data model: resources, scopes, metrics and number data points."""

from __future__ import annotations

import enum
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Union

Number = Union[int, float]


class MetricType(enum.Enum):
    """Kind of data a metric carries."""

    EMPTY = "empty"
    GAUGE = "gauge"
    SUM = "sum"


class AggregationTemporality(enum.IntEnum):
    """How the values of a sum relate to each other over time."""

    UNSPECIFIED = 0
    DELTA = 1
    CUMULATIVE = 2


class ValueType(enum.Enum):
    """Numeric type held by a data point."""

    EMPTY = "empty"
    INT = "int"
    DOUBLE = "double"


@dataclass
class NumberDataPoint:
    """A single timestamped numeric observation with attributes."""

    start_timestamp: int = 0
    timestamp: int = 0
    value: Number | None = None
    attributes: dict[str, str] = field(default_factory=dict)

    def value_type(self) -> ValueType:
        """Return whether the point holds an integer, a double, or nothing."""
        if self.value is None:
            return ValueType.EMPTY
        if isinstance(self.value, float):
            return ValueType.DOUBLE
        return ValueType.INT


@dataclass
class Metric:
    """A named metric with its metadata and data points."""

    name: str = ""
    description: str = ""
    unit: str = ""
    type: MetricType = MetricType.EMPTY
    is_monotonic: bool = False
    aggregation_temporality: AggregationTemporality = AggregationTemporality.UNSPECIFIED
    points: list[NumberDataPoint] = field(default_factory=list)

    def data_points(self) -> list[NumberDataPoint]:
        """Return the metric's data points, whether it is a gauge or a sum."""
        return self.points


@dataclass
class Scope:
    """Instrumentation scope that produced a set of metrics."""

    name: str = ""
    version: str = ""


@dataclass
class ScopeMetrics:
    """Metrics produced by one instrumentation scope."""

    scope: Scope = field(default_factory=Scope)
    metrics: list[Metric] = field(default_factory=list)


@dataclass
class Resource:
    """The entity that metrics describe, identified by its attributes."""

    attributes: dict[str, str] = field(default_factory=dict)


@dataclass
class ResourceMetrics:
    """Metrics grouped under one resource."""

    resource: Resource = field(default_factory=Resource)
    schema_url: str = ""
    scope_metrics: list[ScopeMetrics] = field(default_factory=list)


@dataclass
class Metrics:
    """Top-level container of metrics for any number of resources."""

    resource_metrics: list[ResourceMetrics] = field(default_factory=list)

    def all_metrics(self) -> Iterator[Metric]:
        """Yield every metric, in resource, scope and metric order."""
        for rm in self.resource_metrics:
            for sm in rm.scope_metrics:
                yield from sm.metrics

    def metric_count(self) -> int:
        """Return the total number of metrics across all resources and scopes."""
        return sum(1 for _ in self.all_metrics())

    def data_point_count(self) -> int:
        """Return the total number of data points across all metrics."""
        return sum(len(metric.data_points()) for metric in self.all_metrics())