"""Configuration of the ping check receiver.

The receiver performs ICMP ping checks against configured targets and reports
network connectivity metrics.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .metadata import (
    MetricsBuilderConfig,
    MetricsConfig,
    default_metrics_builder_config,
    metrics_builder_config_from_dict,
)


class ConfigError(ValueError):
    """Raised when a configuration is invalid; holds every problem found."""

    def __init__(self, errors: str | Iterable[str]) -> None:
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors))


@dataclass
class ControllerConfig:
    """Scheduling of scrapes. Durations are in seconds."""

    collection_interval: float = 60.0
    initial_delay: float = 1.0
    timeout: float = 0.0


@dataclass
class Target:
    """A host to ping. Zero values fall back to defaults when the scraper starts."""

    endpoint: str = ""
    count: int = 0
    timeout: float = 0.0
    interval: float = 0.0


@dataclass
class Config:
    """Configuration of the ping receiver."""

    controller: ControllerConfig = field(default_factory=ControllerConfig)
    metrics_builder_config: MetricsBuilderConfig = field(
        default_factory=default_metrics_builder_config
    )
    targets: list[Target] = field(default_factory=list)
    privileged: bool = False

    @property
    def metrics(self) -> MetricsConfig:
        """Per-metric configuration."""
        return self.metrics_builder_config.metrics

    def validate(self) -> None:
        """Raise :class:`ConfigError` listing every problem in the configuration."""
        errors: list[str] = []
        if not self.targets:
            errors.append("at least one target must be specified")
        for i, target in enumerate(self.targets):
            if target.endpoint == "":
                errors.append(f"targets[{i}]: endpoint cannot be empty")
            if target.count < 0:
                errors.append(f"targets[{i}]: count cannot be negative")
            if target.timeout < 0:
                errors.append(f"targets[{i}]: timeout cannot be negative")
            if target.interval < 0:
                errors.append(f"targets[{i}]: interval cannot be negative")
        if errors:
            raise ConfigError(errors)


_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def _parse_duration(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name}: invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise ConfigError(f"{name}: invalid duration {value!r}")
    text = value.strip()
    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        raise ConfigError(f"{name}: invalid duration {value!r}")
    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ConfigError(f"{name}: invalid duration {value!r}")
        total += float(match[1]) * _UNITS[match[2]]
        pos = match.end()
    return sign * total


def _check_keys(data: Mapping[str, Any], known: set[str], where: str) -> None:
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"{where}: unknown keys {sorted(unknown)}")


def _load_target(index: int, raw: Any) -> Target:
    where = f"targets[{index}]"
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{where}: must be a mapping")
    _check_keys(raw, {"endpoint", "count", "timeout", "interval"}, where)
    endpoint = raw.get("endpoint", "")
    if not isinstance(endpoint, str):
        raise ConfigError(f"{where}: endpoint must be a string")
    count = raw.get("count", 0)
    if isinstance(count, bool) or not isinstance(count, int):
        raise ConfigError(f"{where}: count must be an integer")
    return Target(
        endpoint=endpoint,
        count=count,
        timeout=_parse_duration(raw.get("timeout", 0), f"{where}.timeout"),
        interval=_parse_duration(raw.get("interval", 0), f"{where}.interval"),
    )


def load_config(data: Mapping[str, Any] | None) -> Config:
    """Build a :class:`Config` from a mapping such as parsed YAML.

    Durations may be numbers of seconds or strings such as ``"5s"`` or ``"1m30s"``.
    The result is not validated; call :meth:`Config.validate` for that.
    """
    data = data or {}
    if not isinstance(data, Mapping):
        raise ConfigError("configuration must be a mapping")
    _check_keys(
        data,
        {"collection_interval", "initial_delay", "timeout", "metrics", "targets", "privileged"},
        "config",
    )
    defaults = ControllerConfig()
    controller = ControllerConfig(
        collection_interval=_parse_duration(
            data.get("collection_interval", defaults.collection_interval), "collection_interval"
        ),
        initial_delay=_parse_duration(
            data.get("initial_delay", defaults.initial_delay), "initial_delay"
        ),
        timeout=_parse_duration(data.get("timeout", defaults.timeout), "timeout"),
    )
    try:
        metrics_config = metrics_builder_config_from_dict(
            {"metrics": data["metrics"]} if "metrics" in data else None
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    raw_targets = data.get("targets") or []
    if not isinstance(raw_targets, list):
        raise ConfigError("targets must be a list")
    targets = [_load_target(i, raw) for i, raw in enumerate(raw_targets)]

    privileged = data.get("privileged", False)
    if not isinstance(privileged, bool):
        raise ConfigError("privileged must be a boolean")

    return Config(
        controller=controller,
        metrics_builder_config=metrics_config,
        targets=targets,
        privileged=privileged,
    )