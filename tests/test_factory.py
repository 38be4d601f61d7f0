import threading

import pytest

from pingcheck.config import Config, Target
from pingcheck.factory import (
    ConfigNotPingError,
    Factory,
    MetricsReceiver,
    create_default_config,
    new_factory,
)
from pingcheck.metadata import AttributeErrorType
from pingcheck.pinger import PingError, Statistics
from pingcheck.scraper import ScrapeError


class FakePinger:
    def __init__(self, addr, stats=None, error=None, wait=False):
        self.addr = addr
        self.count = -1
        self.timeout = None
        self.interval = 1.0
        self.record_rtts = True
        self.on_recv = None
        self.privileged = False
        self.stopped = False
        self.runs = 0
        self.stop_seen = None
        self._stats = stats or Statistics(ip_addr="127.0.0.1", addr=addr)
        self._error = error
        self._wait = wait

    def set_privileged(self, privileged):
        self.privileged = privileged

    def run(self, stop_event=None):
        self.runs += 1
        if self._wait and stop_event is not None:
            self.stop_seen = stop_event.wait(5)
        if self._error is not None:
            raise self._error

    def stop(self):
        self.stopped = True

    def statistics(self):
        return self._stats


def make_factory(**kwargs):
    created = {}

    def build(addr):
        pinger = FakePinger(addr, **kwargs)
        created[addr] = pinger
        return pinger

    return Factory(pinger_factory=build), created


def sample_stats():
    return Statistics(
        packets_recv=3,
        packets_sent=4,
        packet_loss=25.0,
        ip_addr="127.0.0.1",
        addr="localhost",
        min_rtt=0.010,
        max_rtt=0.030,
        avg_rtt=0.020,
        std_dev_rtt=0.008,
    )


def config_with_target(endpoint="localhost"):
    cfg = create_default_config()
    cfg.targets = [Target(endpoint=endpoint, count=1, timeout=1.0)]
    return cfg


def test_new_factory_type():
    factory = new_factory()
    assert factory.type == "ping"
    assert factory.metrics_stability == "development"


def test_create_default_config():
    cfg = new_factory().create_default_config()
    assert isinstance(cfg, Config)
    assert cfg.controller.collection_interval == 60.0
    assert cfg.controller.initial_delay == 1.0
    assert cfg.privileged is False
    assert cfg.targets == []


def test_module_default_config_matches_factory():
    assert create_default_config() == new_factory().create_default_config()


def test_create_metrics_receiver():
    factory = new_factory()
    cfg = factory.create_default_config()
    cfg.targets = [Target(endpoint="localhost", count=1, timeout=1.0)]
    receiver = factory.create_metrics(cfg, lambda metrics: None)
    assert isinstance(receiver, MetricsReceiver)
    assert receiver.cfg is cfg


def test_create_metrics_receiver_invalid_config():
    with pytest.raises(ConfigNotPingError, match="config was not a Ping receiver config"):
        new_factory().create_metrics(None, lambda metrics: None)


def test_create_metrics_receiver_with_empty_targets():
    factory = new_factory()
    receiver = factory.create_metrics(factory.create_default_config(), lambda metrics: None)
    assert isinstance(receiver, MetricsReceiver)
    assert receiver.cfg.targets == []


def test_shutdown_without_start_then_start_refused():
    factory, _ = make_factory()
    receiver = factory.create_metrics(config_with_target(), lambda metrics: None)
    receiver.shutdown()
    with pytest.raises(RuntimeError):
        receiver.start()


def test_lifecycle_two_receivers():
    factory, created = make_factory()
    cfg = config_with_target()
    for _ in range(2):
        receiver = factory.create_metrics(cfg, lambda metrics: None)
        receiver.start()
        receiver.shutdown()
        assert created["localhost"].stopped is True
        assert receiver.scraper.pingers == {}


def test_start_twice_raises():
    factory, _ = make_factory()
    receiver = factory.create_metrics(config_with_target(), lambda metrics: None)
    receiver.start()
    try:
        with pytest.raises(RuntimeError, match="already started"):
            receiver.start()
    finally:
        receiver.shutdown()


def test_start_with_empty_targets_fails():
    factory, _ = make_factory()
    receiver = factory.create_metrics(factory.create_default_config(), lambda metrics: None)
    with pytest.raises(ScrapeError, match="no valid pingers"):
        receiver.start()


def test_start_rejects_non_positive_interval():
    factory, _ = make_factory()
    cfg = config_with_target()
    cfg.controller.collection_interval = 0
    receiver = factory.create_metrics(cfg, lambda metrics: None)
    with pytest.raises(ValueError):
        receiver.start()


def test_scrape_once_delivers_metrics():
    factory, _ = make_factory(stats=sample_stats())
    delivered = []
    cfg = config_with_target()
    cfg.controller.collection_interval = 3600
    cfg.controller.initial_delay = 3600
    receiver = factory.create_metrics(cfg, delivered.append)
    receiver.start()
    try:
        metrics = receiver.scrape_once()
    finally:
        receiver.shutdown()
    assert delivered == [metrics]
    by_name = {m.name: m for m in metrics.all_metrics()}
    assert set(by_name) == {
        "ping.duration.min",
        "ping.duration.max",
        "ping.duration.avg",
        "ping.duration.stddev",
        "ping.packet_loss",
        "ping.packets.sent",
        "ping.packets.received",
    }
    assert by_name["ping.duration.min"].data_points()[0].value == 10.0
    assert by_name["ping.duration.max"].data_points()[0].value == 30.0
    assert by_name["ping.duration.avg"].data_points()[0].value == 20.0
    assert by_name["ping.duration.stddev"].data_points()[0].value == 8.0
    assert by_name["ping.packet_loss"].data_points()[0].value == pytest.approx(0.25)
    assert by_name["ping.packets.sent"].data_points()[0].value == 4
    assert by_name["ping.packets.received"].data_points()[0].value == 3
    point = by_name["ping.packets.sent"].data_points()[0]
    assert point.attributes == {"net.peer.name": "localhost", "net.peer.ip": "127.0.0.1"}


def test_scrape_once_failure_delivers_error_metric_and_raises():
    factory, _ = make_factory(error=PingError("i/o timeout"))
    delivered = []
    cfg = config_with_target()
    cfg.controller.initial_delay = 3600
    cfg.metrics.ping_errors.enabled = True
    receiver = factory.create_metrics(cfg, delivered.append)
    receiver.start()
    try:
        with pytest.raises(ScrapeError, match="target localhost: ping failed"):
            receiver.scrape_once()
    finally:
        receiver.shutdown()
    assert len(delivered) == 1
    errors = [m for m in delivered[0].all_metrics() if m.name == "ping.errors"]
    assert len(errors) == 1
    point = errors[0].data_points()[0]
    assert point.value == 1
    assert point.attributes["error.type"] == AttributeErrorType.TIMEOUT.value
    assert point.attributes["net.peer.ip"] == ""


def test_scheduled_scrapes_reach_consumer():
    factory, created = make_factory(stats=sample_stats())
    cfg = config_with_target()
    cfg.controller.initial_delay = 0
    cfg.controller.collection_interval = 0.05
    delivered = []
    arrived = threading.Event()

    def consume(metrics):
        delivered.append(metrics)
        arrived.set()

    receiver = factory.create_metrics(cfg, consume)
    receiver.start()
    try:
        assert arrived.wait(5)
    finally:
        receiver.shutdown()
    assert delivered[0].metric_count() == 7
    assert created["localhost"].runs >= 1


def test_controller_timeout_interrupts_scrape():
    factory, created = make_factory(wait=True)
    cfg = config_with_target()
    cfg.controller.initial_delay = 3600
    cfg.controller.timeout = 0.05
    receiver = factory.create_metrics(cfg, lambda metrics: None)
    receiver.start()
    try:
        receiver.scrape_once()
    finally:
        receiver.shutdown()
    assert created["localhost"].stop_seen is True