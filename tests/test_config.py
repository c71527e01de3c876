"""Tests for configuration loading."""
import pytest

from dogmetrics.config import Config, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("DATADOG_API_KEY", "DATADOG_HOST", "LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


def write(tmp_path, text):
    path = tmp_path / "reporter.yaml"
    path.write_text(text)
    return str(path)


def test_load_config(tmp_path):
    path = write(tmp_path, """
global:
  log_level: DEBUG
  control_api_port: 9000
datadog:
  host: web-1
  api_key: abc123
reporter:
  interval_s: 30
  self_metrics: false
""")
    config = load_config(path)

    assert isinstance(config, Config)
    assert config.global_.log_level == "DEBUG"
    assert config.global_.control_api_port == 9000
    assert config.datadog.host == "web-1"
    assert config.datadog.api_key == "abc123"
    assert config.datadog.endpoint == "https://app.datadoghq.com/api"
    assert config.reporter.interval_s == 30
    assert config.reporter.self_metrics is False


def test_defaults(tmp_path):
    config = load_config(write(tmp_path, "datadog:\n  api_key: k\n"))
    assert config.datadog.host
    assert config.reporter.interval_s == 10.0
    assert config.reporter.prefix == "dogmetrics.reporter"
    assert config.global_.log_format == "text"
    assert config.global_.control_api_enabled is True


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("DATADOG_API_KEY", "from-env")
    monkeypatch.setenv("DATADOG_HOST", "i-0123")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    config = load_config(write(tmp_path, "reporter:\n  interval_s: 5\n"))
    assert config.datadog.api_key == "from-env"
    assert config.datadog.host == "i-0123"
    assert config.global_.log_level == "WARNING"


def test_missing_api_key(tmp_path):
    with pytest.raises(ValueError, match="api_key"):
        load_config(write(tmp_path, "datadog:\n  host: h\n"))


def test_empty_file_needs_api_key(tmp_path):
    with pytest.raises(ValueError):
        load_config(write(tmp_path, ""))


def test_invalid_interval(tmp_path):
    with pytest.raises(ValueError, match="interval_s"):
        load_config(write(tmp_path, "datadog:\n  api_key: k\nreporter:\n  interval_s: 0\n"))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_cli_exits_on_bad_config(tmp_path, capsys):
    from dogmetrics.main import main

    with pytest.raises(SystemExit) as exc:
        main(["--config", str(tmp_path / "nope.yaml")])
    assert exc.value.code == 1
    assert "Error loading configuration" in capsys.readouterr().err
