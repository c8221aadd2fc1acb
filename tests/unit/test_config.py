import pytest

from config import CollectorConfig, ObservabilityConfig, load_config

_ENV_VARS = [
    "PROBE_COLLECTOR_HEALTH_PATH",
    "PROBE_COLLECTOR_OBSERVATIONS_PATH",
    "PROBE_COLLECTOR_RESPONSES_PATH",
    "PROBE_COLLECTOR_TIMEOUT",
    "PROBE_COLLECTOR_VERIFY_TLS",
    "OBSERVABILITY_DB_PATH",
    "OBSERVABILITY_MAX_QUEUE_SIZE",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


def test_collector_config_normalizes_base_url():
    cfg = CollectorConfig(base_url="https://collector.example.org/")
    assert cfg.base_url == "https://collector.example.org"
    assert cfg.url(cfg.health_path) == "https://collector.example.org/health"


@pytest.mark.parametrize("base_url", ["", "your_collector_url_here", "ftp://collector"])
def test_collector_config_base_url_required(base_url: str):
    with pytest.raises(ValueError):
        CollectorConfig(base_url=base_url)


def test_collector_config_rejects_relative_paths_and_bad_timeout():
    with pytest.raises(ValueError):
        CollectorConfig(base_url="http://c", observations_path="observations")
    with pytest.raises(ValueError):
        CollectorConfig(base_url="http://c", timeout_s=0)


def test_observability_config_normalizes_log_level():
    assert ObservabilityConfig(log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValueError):
        ObservabilityConfig(log_level="chatty")


def test_load_config_reads_required_and_defaults(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PROBE_COLLECTOR_URL", "http://localhost:8080")
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    cfg = load_config()
    assert cfg.collector.base_url == "http://localhost:8080"
    assert cfg.collector.health_path == "/health"
    assert cfg.collector.observations_path == "/observations"
    assert cfg.collector.responses_path == "/responses"
    assert cfg.collector.timeout_s == 10.0
    assert cfg.collector.verify_tls is True
    assert cfg.observability.db_path is None
    assert cfg.observability.log_level == "INFO"
    assert cfg.observability.log_format == "json"
    assert cfg.observability.max_queue_size == 10000


def test_load_config_parses_optional_fields(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PROBE_COLLECTOR_URL", "https://collector.example.org")
    monkeypatch.setenv("PROBE_COLLECTOR_HEALTH_PATH", "/ping")
    monkeypatch.setenv("PROBE_COLLECTOR_TIMEOUT", "2.5")
    monkeypatch.setenv("PROBE_COLLECTOR_VERIFY_TLS", "no")
    monkeypatch.setenv("OBSERVABILITY_DB_PATH", "/tmp/events.duckdb")
    monkeypatch.setenv("OBSERVABILITY_MAX_QUEUE_SIZE", "50")
    monkeypatch.setenv("LOG_LEVEL", "warning")
    monkeypatch.setenv("LOG_FORMAT", "text")

    cfg = load_config()
    assert cfg.collector.health_path == "/ping"
    assert cfg.collector.timeout_s == 2.5
    assert cfg.collector.verify_tls is False
    assert cfg.observability.db_path == "/tmp/events.duckdb"
    assert cfg.observability.max_queue_size == 50
    assert cfg.observability.log_level == "WARNING"
    assert cfg.observability.log_format == "text"


def test_load_config_requires_collector_url(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PROBE_COLLECTOR_URL", "")
    with pytest.raises(ValueError, match="PROBE_COLLECTOR_URL"):
        load_config()


def test_load_config_rejects_bad_bool(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PROBE_COLLECTOR_URL", "http://localhost:8080")
    monkeypatch.setenv("PROBE_COLLECTOR_VERIFY_TLS", "maybe")
    with pytest.raises(ValueError, match="PROBE_COLLECTOR_VERIFY_TLS"):
        load_config()
