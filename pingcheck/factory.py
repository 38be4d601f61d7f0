"""Factory for ping metrics receivers, and the receiver that runs scrapes on a schedule."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from .config import Config, ControllerConfig
from .metadata import METRICS_STABILITY, TYPE
from .pdata import Metrics
from .pinger import Pinger
from .scraper import PingScraper, ScrapeError

Consumer = Callable[[Metrics], None]


class ConfigNotPingError(TypeError):
    """Raised when a receiver is requested with something other than a ping :class:`Config`."""

    def __init__(self, message: str = "config was not a Ping receiver config") -> None:
        super().__init__(message)


def create_default_config() -> Config:
    """Return the receiver's default configuration: no targets, a 60 second interval."""
    return Config(controller=ControllerConfig(collection_interval=60.0), targets=[])


class MetricsReceiver:
    """Runs the scraper every collection interval and hands the metrics to a consumer."""

    def __init__(
        self,
        cfg: Config,
        consumer: Consumer,
        scraper: PingScraper,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cfg = cfg
        self.consumer = consumer
        self.scraper = scraper
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._shutdown = threading.Event()
        self._active: set[threading.Event] = set()
        self._thread: threading.Thread | None = None
        self._started = False

    def start(self) -> None:
        """Start the scraper and the background scrape schedule."""
        interval = self.cfg.controller.collection_interval
        if interval <= 0:
            raise ValueError("collection_interval must be greater than zero")
        with self._lock:
            if self._shutdown.is_set():
                raise RuntimeError("receiver has been shut down")
            if self._started:
                raise RuntimeError("receiver already started")
            self.scraper.start()
            self._started = True
            self._thread = threading.Thread(
                target=self._run, name=f"{TYPE}-receiver", daemon=True
            )
            self._thread.start()

    def _run(self) -> None:
        controller = self.cfg.controller
        if self._shutdown.wait(max(controller.initial_delay, 0.0)):
            return
        while not self._shutdown.is_set():
            try:
                self.scrape_once()
            except ScrapeError as err:
                self.logger.error("Scrape failed: %s", err)
            except Exception:
                self.logger.exception("Delivering metrics failed")
            if self._shutdown.wait(controller.collection_interval):
                return

    def scrape_once(self) -> Metrics:
        """Scrape all targets now, pass the metrics to the consumer and return them.

        On a failed scrape the metrics still collected are delivered and the
        :class:`ScrapeError` is raised again.
        """
        event = threading.Event()
        with self._lock:
            if self._shutdown.is_set():
                event.set()
            self._active.add(event)
        timer: threading.Timer | None = None
        timeout = self.cfg.controller.timeout
        if timeout > 0:
            timer = threading.Timer(timeout, event.set)
            timer.daemon = True
            timer.start()
        try:
            try:
                metrics = self.scraper.scrape(event)
            except ScrapeError as err:
                if err.metrics is not None:
                    self.consumer(err.metrics)
                raise
        finally:
            if timer is not None:
                timer.cancel()
            with self._lock:
                self._active.discard(event)
        self.consumer(metrics)
        return metrics

    def shutdown(self) -> None:
        """Stop the schedule, interrupt running scrapes and stop the scraper."""
        with self._lock:
            self._shutdown.set()
            for event in self._active:
                event.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self.scraper.shutdown()


class Factory:
    """Creates default configurations and metrics receivers of the ``ping`` type."""

    def __init__(
        self,
        *,
        logger: logging.Logger | None = None,
        version: str = "",
        pinger_factory: Callable[[str], Any] = Pinger,
    ) -> None:
        self.type = TYPE
        self.metrics_stability = METRICS_STABILITY
        self.logger = logger or logging.getLogger("pingcheck")
        self.version = version
        self._pinger_factory = pinger_factory

    def create_default_config(self) -> Config:
        """Return a fresh default configuration."""
        return create_default_config()

    def create_metrics(self, cfg: Any, consumer: Consumer) -> MetricsReceiver:
        """Build a receiver for ``cfg`` that delivers metrics to ``consumer``."""
        if not isinstance(cfg, Config):
            raise ConfigNotPingError()
        scraper = PingScraper(
            cfg,
            logger=self.logger,
            version=self.version,
            pinger_factory=self._pinger_factory,
        )
        return MetricsReceiver(cfg, consumer, scraper, logger=self.logger)


def new_factory() -> Factory:
    """Return a factory with default settings."""
    return Factory()