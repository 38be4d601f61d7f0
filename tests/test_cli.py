import json

import pytest

from pingcheck.cli import main


def test_no_targets_is_a_config_error(capsys):
    assert main([]) == 2
    assert "at least one target must be specified" in capsys.readouterr().err


def test_negative_count_rejected(capsys):
    assert main(["--count", "-1", "--once", "localhost"]) == 2
    assert "targets[0]: count cannot be negative" in capsys.readouterr().err


def test_negative_timeout_rejected(capsys):
    assert main(["--timeout=-1s", "--once", "localhost"]) == 2
    assert "targets[0]: timeout cannot be negative" in capsys.readouterr().err


def test_negative_interval_rejected(capsys):
    assert main(["--interval=-1", "--once", "localhost"]) == 2
    assert "targets[0]: interval cannot be negative" in capsys.readouterr().err


def test_unknown_metric_rejected(capsys):
    assert main(["--enable-metric", "ping.bogus", "--once", "localhost"]) == 2
    assert "ping.bogus" in capsys.readouterr().err


def test_config_file_errors_are_reported(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"targets": [{"endpoint": "", "count": -1}]}), encoding="utf-8")
    assert main(["--config", str(path), "--once"]) == 2
    err = capsys.readouterr().err
    assert "targets[0]: endpoint cannot be empty" in err
    assert "targets[0]: count cannot be negative" in err


def test_config_file_targets_combine_with_arguments(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"targets": [{"endpoint": "localhost"}]}), encoding="utf-8")
    assert main(["--config", str(path), "--count", "-1", "--once", "127.0.0.1"]) == 2
    err = capsys.readouterr().err
    assert "targets[1]: count cannot be negative" in err
    assert "targets[0]" not in err


def test_invalid_json_file(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert main(["--config", str(path), "--once"]) == 2
    assert "cannot read configuration" in capsys.readouterr().err


def test_missing_config_file(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "absent.json"), "--once"]) == 2
    assert "cannot read configuration" in capsys.readouterr().err


def test_unresolvable_endpoint_fails_start(capsys):
    assert main(["--once", "a..b"]) == 1
    captured = capsys.readouterr()
    assert "no valid pingers could be created" in captured.err
    assert captured.out == ""


def test_help_exits_cleanly(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])
    assert excinfo.value.code == 0
    assert "ENDPOINT" in capsys.readouterr().out