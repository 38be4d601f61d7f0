"""Scraper that pings every configured target and records the results as metrics."""

from __future__ import annotations

import dataclasses
import logging
import sys
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from .config import Config, Target
from .metadata import AttributeErrorType, MetricsBuilder, now_timestamp
from .pdata import Metrics
from .pinger import Packet, Pinger, PingError

_DEFAULT_COUNT = 4
_DEFAULT_TIMEOUT = 5.0
_DEFAULT_INTERVAL = 1.0


class ScrapeError(Exception):
    """A scraper failure. ``metrics`` holds what was still collected, if anything."""

    def __init__(
        self, message: str, errors: list[str] | None = None, metrics: Metrics | None = None
    ) -> None:
        super().__init__(message)
        self.errors = list(errors) if errors else [message]
        self.metrics = metrics


def categorize_error(err: BaseException | None) -> AttributeErrorType:
    """Map an error to the ``error.type`` attribute value."""
    if err is None:
        return AttributeErrorType.UNKNOWN
    message = str(err).lower()
    if "timeout" in message:
        return AttributeErrorType.TIMEOUT
    if "no such host" in message:
        return AttributeErrorType.DNS_FAILURE
    if "network is unreachable" in message:
        return AttributeErrorType.NETWORK_UNREACHABLE
    if "permission denied" in message or "operation not permitted" in message:
        return AttributeErrorType.PERMISSION_DENIED
    return AttributeErrorType.UNKNOWN


def _milliseconds(seconds: float) -> float:
    return float(int(round(seconds * 1_000_000)) // 1000)


class PingScraper:
    """Owns one pinger per target and turns their statistics into metrics."""

    def __init__(
        self,
        cfg: Config,
        *,
        logger: logging.Logger | None = None,
        version: str = "",
        pinger_factory: Callable[[str], Pinger] = Pinger,
    ) -> None:
        self.cfg = cfg
        self.logger = logger or logging.getLogger(__name__)
        self.version = version
        self.mb: MetricsBuilder | None = None
        self.pingers: dict[str, Pinger] = {}
        self._pinger_factory = pinger_factory
        self._lock = threading.RLock()
        self._stop_event: threading.Event | None = None

    def start(self) -> None:
        """Create the metrics builder and a pinger for each target.

        Targets whose pinger cannot be created are logged and skipped; if none
        remain, :class:`ScrapeError` is raised.
        """
        self.mb = MetricsBuilder(self.cfg.metrics_builder_config, version=self.version)
        for target in self.cfg.targets:
            try:
                pinger = self._pinger_factory(target.endpoint)
            except PingError as err:
                self.logger.error("Failed to create pinger for %s: %s", target.endpoint, err)
                continue

            target = dataclasses.replace(
                target,
                count=_DEFAULT_COUNT if target.count == 0 else target.count,
                timeout=_DEFAULT_TIMEOUT if target.timeout == 0 else target.timeout,
                interval=_DEFAULT_INTERVAL if target.interval == 0 else target.interval,
            )
            pinger.count = target.count
            pinger.timeout = target.timeout
            pinger.interval = target.interval

            if sys.platform == "win32":
                pinger.set_privileged(True)
                self.logger.debug("Windows detected, using privileged mode for %s", target.endpoint)
            else:
                pinger.set_privileged(self.cfg.privileged)

            pinger.record_rtts = False
            pinger.on_recv = self._packet_logger(target.endpoint)

            with self._lock:
                self.pingers[target.endpoint] = pinger

        if not self.pingers:
            raise ScrapeError("no valid pingers could be created")

    def _packet_logger(self, endpoint: str) -> Callable[[Packet], None]:
        def on_recv(packet: Packet) -> None:
            self.logger.debug(
                "Received packet from %s: seq=%d rtt=%.3fms",
                endpoint,
                packet.seq,
                packet.rtt * 1000,
            )

        return on_recv

    def shutdown(self) -> None:
        """Stop every pinger and forget them."""
        with self._lock:
            for endpoint, pinger in self.pingers.items():
                pinger.stop()
                self.logger.debug("Stopped pinger for %s", endpoint)
            self.pingers = {}

    def scrape(self, stop_event: threading.Event | None = None) -> Metrics:
        """Ping all targets concurrently and return the recorded metrics.

        If any target fails, :class:`ScrapeError` is raised with every error
        and the metrics that were still recorded.
        """
        if self.mb is None:
            raise ScrapeError("scraper has not been started")
        self._stop_event = stop_event
        lock = threading.Lock()
        targets = list(self.cfg.targets)
        errors: list[str] = []
        if targets:
            with ThreadPoolExecutor(max_workers=len(targets)) as pool:
                futures = [(t, pool.submit(self.ping_target, t, lock)) for t in targets]
            for target, future in futures:
                err = future.exception()
                if err is None:
                    continue
                message = f"target {target.endpoint}: {err}"
                errors.append(message)
                self.logger.warning("Ping failed: %s", message)
        metrics = self.mb.emit()
        if errors:
            raise ScrapeError("; ".join(errors), errors=errors, metrics=metrics)
        return metrics

    def ping_target(self, target: Target, lock: threading.Lock) -> None:
        """Ping one target and record its statistics; raise :class:`ScrapeError` on failure."""
        with self._lock:
            pinger = self.pingers.get(target.endpoint)
        if pinger is None:
            raise ScrapeError(f"pinger not found for target: {target.endpoint}")
        if self.mb is None:
            raise ScrapeError("scraper has not been started")
        mb = self.mb
        metrics = self.cfg.metrics

        try:
            pinger.run(self._stop_event)
        except PingError as err:
            if metrics.ping_errors.enabled:
                with lock:
                    mb.record_ping_errors_data_point(
                        now_timestamp(), 1, target.endpoint, "", categorize_error(err)
                    )
            raise ScrapeError(f"ping failed: {err}") from err

        stats = pinger.statistics()
        now = now_timestamp()
        name, ip = target.endpoint, stats.ip_addr

        with lock:
            if metrics.ping_duration.enabled:
                for rtt in stats.rtts:
                    mb.record_ping_duration_data_point(now, _milliseconds(rtt), name, ip)
            if stats.min_rtt > 0 and metrics.ping_duration_min.enabled:
                mb.record_ping_duration_min_data_point(now, _milliseconds(stats.min_rtt), name, ip)
            if stats.max_rtt > 0 and metrics.ping_duration_max.enabled:
                mb.record_ping_duration_max_data_point(now, _milliseconds(stats.max_rtt), name, ip)
            if stats.avg_rtt > 0 and metrics.ping_duration_avg.enabled:
                mb.record_ping_duration_avg_data_point(now, _milliseconds(stats.avg_rtt), name, ip)
            if stats.std_dev_rtt > 0 and metrics.ping_duration_stddev.enabled:
                mb.record_ping_duration_stddev_data_point(
                    now, _milliseconds(stats.std_dev_rtt), name, ip
                )
            if metrics.ping_packet_loss.enabled:
                mb.record_ping_packet_loss_data_point(now, stats.packet_loss / 100.0, name, ip)
            if metrics.ping_packets_sent.enabled:
                mb.record_ping_packets_sent_data_point(now, int(stats.packets_sent), name, ip)
            if metrics.ping_packets_received.enabled:
                mb.record_ping_packets_received_data_point(now, int(stats.packets_recv), name, ip)