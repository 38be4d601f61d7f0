"""Metric definitions, their configuration and the builder that records and emits them."""

from __future__ import annotations

import enum
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from .pdata import (
    AggregationTemporality,
    Metric,
    Metrics,
    MetricType,
    NumberDataPoint,
    Resource,
    ResourceMetrics,
    Scope,
    ScopeMetrics,
)

TYPE = "ping"
SCOPE_NAME = "pingcheck"
METRICS_STABILITY = "development"

ATTR_NET_PEER_NAME = "net.peer.name"
ATTR_NET_PEER_IP = "net.peer.ip"
ATTR_ERROR_TYPE = "error.type"


class AttributeErrorType(enum.Enum):
    """Values of the ``error.type`` attribute."""

    TIMEOUT = "timeout"
    DNS_FAILURE = "dns_failure"
    NETWORK_UNREACHABLE = "network_unreachable"
    PERMISSION_DENIED = "permission_denied"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


@dataclass
class MetricConfig:
    """Whether one metric is collected."""

    enabled: bool = False
    enabled_set_by_user: bool = field(default=False, compare=False)


def _metric(key: str, enabled: bool = True) -> Any:
    return field(
        default_factory=lambda: MetricConfig(enabled=enabled),
        metadata={"key": key},
    )


@dataclass
class MetricsConfig:
    """Per-metric configuration for every ping metric."""

    ping_duration: MetricConfig = _metric("ping.duration")
    ping_duration_avg: MetricConfig = _metric("ping.duration.avg")
    ping_duration_max: MetricConfig = _metric("ping.duration.max")
    ping_duration_min: MetricConfig = _metric("ping.duration.min")
    ping_duration_stddev: MetricConfig = _metric("ping.duration.stddev")
    ping_errors: MetricConfig = _metric("ping.errors", enabled=False)
    ping_packet_loss: MetricConfig = _metric("ping.packet_loss")
    ping_packets_received: MetricConfig = _metric("ping.packets.received")
    ping_packets_sent: MetricConfig = _metric("ping.packets.sent")


@dataclass
class MetricsBuilderConfig:
    """Configuration of the metrics builder."""

    metrics: MetricsConfig = field(default_factory=MetricsConfig)


def default_metrics_config() -> MetricsConfig:
    """Return the default per-metric configuration."""
    return MetricsConfig()


def default_metrics_builder_config() -> MetricsBuilderConfig:
    """Return the default metrics builder configuration."""
    return MetricsBuilderConfig(metrics=default_metrics_config())


_ATTR_BY_KEY = {f.metadata["key"]: f.name for f in fields(MetricsConfig)}


def _metric_config_from_dict(value: Any, current: MetricConfig) -> MetricConfig:
    if value is None:
        return current
    if not isinstance(value, Mapping):
        raise ValueError(f"metric configuration must be a mapping, got {type(value).__name__}")
    unknown = set(value) - {"enabled"}
    if unknown:
        raise ValueError(f"unknown metric configuration keys: {sorted(unknown)}")
    if "enabled" not in value:
        return current
    enabled = value["enabled"]
    if not isinstance(enabled, bool):
        raise ValueError(f"'enabled' must be a boolean, got {enabled!r}")
    return MetricConfig(enabled=enabled, enabled_set_by_user=True)


def metrics_builder_config_from_dict(data: Mapping[str, Any] | None) -> MetricsBuilderConfig:
    """Build a configuration from a mapping, overriding the defaults.

    The mapping has the form ``{"metrics": {"ping.duration": {"enabled": False}}}``.
    Unknown keys raise ``ValueError``.
    """
    config = default_metrics_builder_config()
    if not data:
        return config
    if not isinstance(data, Mapping):
        raise ValueError(f"configuration must be a mapping, got {type(data).__name__}")
    unknown = set(data) - {"metrics"}
    if unknown:
        raise ValueError(f"unknown configuration keys: {sorted(unknown)}")
    metrics = data.get("metrics") or {}
    if not isinstance(metrics, Mapping):
        raise ValueError("'metrics' must be a mapping")
    for key, value in metrics.items():
        try:
            attr = _ATTR_BY_KEY[key]
        except KeyError:
            raise ValueError(f"unknown metric {key!r}") from None
        setattr(config.metrics, attr, _metric_config_from_dict(value, getattr(config.metrics, attr)))
    return config


def now_timestamp() -> int:
    """Return the current time in nanoseconds since the Unix epoch."""
    return time.time_ns()


BuilderOption = Callable[["MetricsBuilder"], None]
ResourceMetricsOption = Callable[[ResourceMetrics], None]


def with_start_time(start_time: int) -> BuilderOption:
    """Option that sets the start time applied to recorded data points."""

    def apply(builder: MetricsBuilder) -> None:
        builder.start_time = start_time

    return apply


def with_resource(resource: Resource) -> ResourceMetricsOption:
    """Option that copies the given resource onto emitted resource metrics."""

    def apply(rm: ResourceMetrics) -> None:
        rm.resource = Resource(attributes=dict(resource.attributes))

    return apply


def with_start_time_override(start: int) -> ResourceMetricsOption:
    """Option that overrides the start time of every emitted data point."""

    def apply(rm: ResourceMetrics) -> None:
        for metric in rm.scope_metrics[0].metrics:
            for point in metric.data_points():
                point.start_timestamp = start

    return apply


@dataclass(frozen=True)
class _MetricSpec:
    name: str
    description: str
    unit: str
    type: MetricType
    value_kind: type


_SPECS = {
    "ping_duration": _MetricSpec(
        "ping.duration", "Round-trip time for ping packets", "ms", MetricType.GAUGE, float
    ),
    "ping_duration_avg": _MetricSpec(
        "ping.duration.avg", "Average round-trip time", "ms", MetricType.GAUGE, float
    ),
    "ping_duration_max": _MetricSpec(
        "ping.duration.max", "Maximum round-trip time", "ms", MetricType.GAUGE, float
    ),
    "ping_duration_min": _MetricSpec(
        "ping.duration.min", "Minimum round-trip time", "ms", MetricType.GAUGE, float
    ),
    "ping_duration_stddev": _MetricSpec(
        "ping.duration.stddev",
        "Standard deviation of round-trip times",
        "ms",
        MetricType.GAUGE,
        float,
    ),
    "ping_errors": _MetricSpec(
        "ping.errors", "Number of errors encountered", "{error}", MetricType.SUM, int
    ),
    "ping_packet_loss": _MetricSpec(
        "ping.packet_loss", "Ratio of packets lost", "1", MetricType.GAUGE, float
    ),
    "ping_packets_received": _MetricSpec(
        "ping.packets.received", "Number of packets received", "{packet}", MetricType.SUM, int
    ),
    "ping_packets_sent": _MetricSpec(
        "ping.packets.sent", "Number of packets sent", "{packet}", MetricType.SUM, int
    ),
}


class _MetricRecorder:
    """Buffers data points of one metric until they are emitted."""

    def __init__(self, spec: _MetricSpec, config: MetricConfig) -> None:
        self.spec = spec
        self.config = config
        self._metric = self._new_metric()

    def _new_metric(self) -> Metric:
        metric = Metric(
            name=self.spec.name,
            description=self.spec.description,
            unit=self.spec.unit,
            type=self.spec.type,
        )
        if self.spec.type is MetricType.SUM:
            metric.is_monotonic = True
            metric.aggregation_temporality = AggregationTemporality.UNSPECIFIED
        return metric

    def record(self, start: int, ts: int, val: float | int, attributes: dict[str, str]) -> None:
        if not self.config.enabled:
            return
        self._metric.points.append(
            NumberDataPoint(
                start_timestamp=start,
                timestamp=ts,
                value=self.spec.value_kind(val),
                attributes=dict(attributes),
            )
        )

    def emit(self, out: list[Metric]) -> None:
        if self.config.enabled and self._metric.points:
            out.append(self._metric)
            self._metric = self._new_metric()


class MetricsBuilder:
    """Records ping data points and emits them as a :class:`Metrics` batch."""

    def __init__(
        self,
        config: MetricsBuilderConfig | None = None,
        *options: BuilderOption,
        version: str = "",
        schema_url: str = "",
    ) -> None:
        self.config = config if config is not None else default_metrics_builder_config()
        self.start_time = now_timestamp()
        self.version = version
        self.schema_url = schema_url
        self._buffer = Metrics()
        self._recorders = {
            attr: _MetricRecorder(spec, getattr(self.config.metrics, attr))
            for attr, spec in _SPECS.items()
        }
        for option in options:
            option(self)

    def _record(self, attr: str, ts: int, val: float | int, attributes: dict[str, str]) -> None:
        self._recorders[attr].record(self.start_time, ts, val, attributes)

    @staticmethod
    def _peer(net_peer_name: str, net_peer_ip: str) -> dict[str, str]:
        return {ATTR_NET_PEER_NAME: net_peer_name, ATTR_NET_PEER_IP: net_peer_ip}

    def record_ping_duration_data_point(self, ts, val, net_peer_name, net_peer_ip) -> None:
        """Add a data point to ``ping.duration``."""
        self._record("ping_duration", ts, val, self._peer(net_peer_name, net_peer_ip))

    def record_ping_duration_avg_data_point(self, ts, val, net_peer_name, net_peer_ip) -> None:
        """Add a data point to ``ping.duration.avg``."""
        self._record("ping_duration_avg", ts, val, self._peer(net_peer_name, net_peer_ip))

    def record_ping_duration_max_data_point(self, ts, val, net_peer_name, net_peer_ip) -> None:
        """Add a data point to ``ping.duration.max``."""
        self._record("ping_duration_max", ts, val, self._peer(net_peer_name, net_peer_ip))

    def record_ping_duration_min_data_point(self, ts, val, net_peer_name, net_peer_ip) -> None:
        """Add a data point to ``ping.duration.min``."""
        self._record("ping_duration_min", ts, val, self._peer(net_peer_name, net_peer_ip))

    def record_ping_duration_stddev_data_point(self, ts, val, net_peer_name, net_peer_ip) -> None:
        """Add a data point to ``ping.duration.stddev``."""
        self._record("ping_duration_stddev", ts, val, self._peer(net_peer_name, net_peer_ip))

    def record_ping_errors_data_point(
        self, ts, val, net_peer_name, net_peer_ip, error_type
    ) -> None:
        """Add a data point to ``ping.errors``."""
        attributes = self._peer(net_peer_name, net_peer_ip)
        attributes[ATTR_ERROR_TYPE] = AttributeErrorType(error_type).value
        self._record("ping_errors", ts, val, attributes)

    def record_ping_packet_loss_data_point(self, ts, val, net_peer_name, net_peer_ip) -> None:
        """Add a data point to ``ping.packet_loss``."""
        self._record("ping_packet_loss", ts, val, self._peer(net_peer_name, net_peer_ip))

    def record_ping_packets_received_data_point(self, ts, val, net_peer_name, net_peer_ip) -> None:
        """Add a data point to ``ping.packets.received``."""
        self._record("ping_packets_received", ts, val, self._peer(net_peer_name, net_peer_ip))

    def record_ping_packets_sent_data_point(self, ts, val, net_peer_name, net_peer_ip) -> None:
        """Add a data point to ``ping.packets.sent``."""
        self._record("ping_packets_sent", ts, val, self._peer(net_peer_name, net_peer_ip))

    def emit_for_resource(self, *options: ResourceMetricsOption) -> None:
        """Move recorded data points into the buffer under a new resource."""
        scope_metrics = ScopeMetrics(scope=Scope(name=SCOPE_NAME, version=self.version))
        rm = ResourceMetrics(schema_url=self.schema_url, scope_metrics=[scope_metrics])
        for recorder in self._recorders.values():
            recorder.emit(scope_metrics.metrics)
        for option in options:
            option(rm)
        if scope_metrics.metrics:
            self._buffer.resource_metrics.append(rm)

    def emit(self, *options: ResourceMetricsOption) -> Metrics:
        """Return everything recorded so far and start a fresh batch."""
        self.emit_for_resource(*options)
        metrics, self._buffer = self._buffer, Metrics()
        return metrics

    def reset(self, *options: BuilderOption) -> None:
        """Set the start time to now, then apply the given options."""
        self.start_time = now_timestamp()
        for option in options:
            option(self)