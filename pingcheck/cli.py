"""Command line entry point: ping hosts and print their metrics as JSON lines."""

from __future__ import annotations

import argparse
import dataclasses
import enum
import json
import logging
import sys
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .config import Config, ConfigError, load_config
from .factory import Factory
from .pdata import Metrics
from .scraper import PingScraper, ScrapeError

_PROG = "pingcheck"


def _duration(value: str) -> float | str:
    try:
        return float(value)
    except ValueError:
        return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=_PROG,
        description="Ping hosts with ICMP echo requests and print connectivity metrics as JSON.",
    )
    parser.add_argument("endpoints", nargs="*", metavar="ENDPOINT", help="host name or IP to ping")
    parser.add_argument("-c", "--config", type=Path, help="JSON configuration file")
    parser.add_argument("--count", type=int, help="packets per check (default 4)")
    parser.add_argument("--timeout", type=_duration, help="time limit per check, e.g. 5s")
    parser.add_argument("--interval", type=_duration, help="time between packets, e.g. 1s")
    parser.add_argument(
        "--collection-interval", type=_duration, help="time between checks, e.g. 60s"
    )
    parser.add_argument("--privileged", action="store_true", help="use raw ICMP sockets")
    parser.add_argument(
        "--enable-metric", action="append", default=[], metavar="NAME", help="enable a metric"
    )
    parser.add_argument(
        "--disable-metric", action="append", default=[], metavar="NAME", help="disable a metric"
    )
    parser.add_argument("--once", action="store_true", help="run a single check and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug messages")
    return parser


def _settings(args: argparse.Namespace) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if args.config is not None:
        with args.config.open(encoding="utf-8") as fh:
            loaded = json.load(fh)
        if not isinstance(loaded, Mapping):
            raise ConfigError("configuration file must hold a JSON object")
        data.update(loaded)

    if args.collection_interval is not None:
        data["collection_interval"] = args.collection_interval
    if args.privileged:
        data["privileged"] = True

    metrics = data.get("metrics") or {}
    if not isinstance(metrics, Mapping):
        raise ConfigError("'metrics' must be a mapping")
    metrics = dict(metrics)
    for name in args.enable_metric:
        metrics[name] = {"enabled": True}
    for name in args.disable_metric:
        metrics[name] = {"enabled": False}
    if metrics:
        data["metrics"] = metrics

    targets = data.get("targets") or []
    if not isinstance(targets, list):
        raise ConfigError("targets must be a list")
    targets = list(targets)
    for endpoint in args.endpoints:
        target: dict[str, Any] = {"endpoint": endpoint}
        if args.count is not None:
            target["count"] = args.count
        if args.timeout is not None:
            target["timeout"] = args.timeout
        if args.interval is not None:
            target["interval"] = args.interval
        targets.append(target)
    if targets:
        data["targets"] = targets
    return data


def _json_default(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    raise TypeError(f"cannot serialise {type(value).__name__}")


class _JsonWriter:
    """Consumer that writes each metrics batch as one JSON line."""

    def __init__(self, stream) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    def __call__(self, metrics: Metrics) -> None:
        line = json.dumps(dataclasses.asdict(metrics), default=_json_default)
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()


def _error(message: Any) -> None:
    print(f"{_PROG}: error: {message}", file=sys.stderr)


def _run_once(cfg: Config, writer: _JsonWriter, logger: logging.Logger) -> int:
    scraper = PingScraper(cfg, logger=logger)
    try:
        scraper.start()
        metrics = scraper.scrape()
    except ScrapeError as err:
        if err.metrics is not None:
            writer(err.metrics)
        _error(err)
        return 1
    finally:
        scraper.shutdown()
    writer(metrics)
    return 0


def _run_forever(cfg: Config, writer: _JsonWriter, logger: logging.Logger) -> int:
    receiver = Factory(logger=logger).create_metrics(cfg, writer)
    try:
        receiver.start()
    except (ScrapeError, ValueError) as err:
        receiver.shutdown()
        _error(err)
        return 1
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        receiver.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the command; return the process exit status."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger(_PROG)

    try:
        cfg = load_config(_settings(args))
        cfg.validate()
    except ConfigError as err:
        _error(err)
        return 2
    except (OSError, ValueError) as err:
        _error(f"cannot read configuration: {err}")
        return 2

    writer = _JsonWriter(sys.stdout)
    if args.once:
        return _run_once(cfg, writer, logger)
    return _run_forever(cfg, writer, logger)


if __name__ == "__main__":
    sys.exit(main())