import pytest

from pingcheck.config import Config, ConfigError, ControllerConfig, Target, load_config
from pingcheck.metadata import default_metrics_builder_config


def _config(*targets):
    return Config(
        controller=ControllerConfig(),
        metrics_builder_config=default_metrics_builder_config(),
        targets=list(targets),
    )


@pytest.mark.parametrize(
    "config",
    [
        _config(Target(endpoint="google.com", count=4, timeout=5.0, interval=1.0)),
        _config(Target(endpoint="google.com", count=0, timeout=5.0)),
    ],
    ids=["valid config", "zero count allowed"],
)
def test_validate_accepts(config):
    assert config.validate() is None


@pytest.mark.parametrize(
    "config, expected",
    [
        (_config(), "at least one target must be specified"),
        (
            _config(Target(endpoint="", count=4, timeout=5.0)),
            "targets[0]: endpoint cannot be empty",
        ),
        (
            _config(Target(endpoint="google.com", count=-1, timeout=5.0)),
            "targets[0]: count cannot be negative",
        ),
        (
            _config(Target(endpoint="google.com", count=4, timeout=-1.0)),
            "targets[0]: timeout cannot be negative",
        ),
        (
            _config(Target(endpoint="google.com", count=4, timeout=5.0, interval=-1.0)),
            "targets[0]: interval cannot be negative",
        ),
        (
            _config(Target(endpoint="", count=-1, timeout=-1.0, interval=-1.0)),
            "targets[0]: endpoint cannot be empty; "
            "targets[0]: count cannot be negative; "
            "targets[0]: timeout cannot be negative; "
            "targets[0]: interval cannot be negative",
        ),
    ],
    ids=[
        "no targets",
        "empty endpoint",
        "negative count",
        "negative timeout",
        "negative interval",
        "multiple errors",
    ],
)
def test_validate_rejects(config, expected):
    with pytest.raises(ConfigError) as exc:
        config.validate()
    assert str(exc.value) == expected
    assert exc.value.errors == expected.split("; ")


def test_errors_name_the_target_index():
    config = _config(Target(endpoint="a"), Target(endpoint=""))
    with pytest.raises(ConfigError) as exc:
        config.validate()
    assert exc.value.errors == ["targets[1]: endpoint cannot be empty"]


def test_load_config_defaults():
    config = load_config(None)
    assert config.controller.collection_interval == 60.0
    assert config.controller.initial_delay == 1.0
    assert config.targets == []
    assert config.privileged is False
    assert config.metrics_builder_config == default_metrics_builder_config()


def test_load_config_targets_and_durations():
    config = load_config(
        {
            "collection_interval": "1m30s",
            "privileged": True,
            "targets": [
                {"endpoint": "google.com", "count": 4, "timeout": "5s", "interval": "500ms"},
                {"endpoint": "127.0.0.1", "timeout": 2},
            ],
        }
    )
    assert config.controller.collection_interval == 90.0
    assert config.privileged is True
    assert config.targets == [
        Target(endpoint="google.com", count=4, timeout=5.0, interval=0.5),
        Target(endpoint="127.0.0.1", count=0, timeout=2.0, interval=0.0),
    ]
    assert config.validate() is None


def test_load_config_metrics_override():
    config = load_config(
        {
            "targets": [{"endpoint": "google.com"}],
            "metrics": {"ping.errors": {"enabled": True}, "ping.duration": {"enabled": False}},
        }
    )
    assert config.metrics.ping_errors.enabled is True
    assert config.metrics.ping_duration.enabled is False
    assert config.metrics.ping_packet_loss.enabled is True


def test_load_config_negative_duration_fails_validation():
    config = load_config({"targets": [{"endpoint": "google.com", "timeout": "-1s"}]})
    assert config.targets[0].timeout == -1.0
    with pytest.raises(ConfigError, match=r"targets\[0\]: timeout cannot be negative"):
        config.validate()


@pytest.mark.parametrize(
    "data",
    [
        {"unknown": 1},
        {"targets": [{"endpoint": "google.com", "timeout": "5 parsecs"}]},
        {"targets": [{"endpoint": "google.com", "count": "four"}]},
        {"targets": "google.com"},
        {"metrics": {"ping.nothing": {"enabled": True}}},
        {"privileged": "yes"},
    ],
)
def test_load_config_rejects_bad_input(data):
    with pytest.raises(ConfigError):
        load_config(data)