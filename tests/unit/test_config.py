"""Unit tests for TrackboxConfig."""

from __future__ import annotations

import pytest

from trackbox.config import ConfigError, MqttEndpoint, TrackboxConfig

_ENV_VARS = (
    "TRACKBOX_DATABASE_URL",
    "TRACKBOX_MQTT_URI",
    "TRACKBOX_MQTT_CLIENT_ID",
    "TRACKBOX_MQTT_USERNAME",
    "TRACKBOX_MQTT_PASSWORD",
    "TRACKBOX_PUBLISH_TIMEOUT",
    "TRACKBOX_SHUTDOWN_GRACE",
    "TRACKBOX_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test from an environment without TRACKBOX_* variables."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Only the database URL is required."""
    monkeypatch.setenv("TRACKBOX_DATABASE_URL", "sqlite+aiosqlite:///t.db")

    config = TrackboxConfig.from_env()

    assert config.database_url == "sqlite+aiosqlite:///t.db"
    assert config.mqtt == MqttEndpoint(
        uri="tcp://localhost:1883", host="localhost", port=1883, tls=False
    )
    assert config.mqtt_client_id == "trackbox-ingest"
    assert config.mqtt_username is None
    assert config.publish_timeout == 5.0
    assert config.shutdown_grace == 10.0


def test_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every field can be set from the environment."""
    monkeypatch.setenv("TRACKBOX_DATABASE_URL", "postgresql+asyncpg://db/trackbox")
    monkeypatch.setenv("TRACKBOX_MQTT_URI", "ssl://broker.example:8884")
    monkeypatch.setenv("TRACKBOX_MQTT_CLIENT_ID", "ingest-2")
    monkeypatch.setenv("TRACKBOX_MQTT_USERNAME", "trackbox")
    monkeypatch.setenv("TRACKBOX_MQTT_PASSWORD", "s3cret")
    monkeypatch.setenv("TRACKBOX_PUBLISH_TIMEOUT", "2.5")
    monkeypatch.setenv("TRACKBOX_SHUTDOWN_GRACE", "30")

    config = TrackboxConfig.from_env()

    assert config.mqtt.host == "broker.example"
    assert config.mqtt.port == 8884
    assert config.mqtt.tls is True
    assert config.mqtt_client_id == "ingest-2"
    assert (config.mqtt_username, config.mqtt_password) == ("trackbox", "s3cret")
    assert config.publish_timeout == 2.5
    assert config.shutdown_grace == 30.0


def test_missing_database_url_raises() -> None:
    """The store location has no default."""
    with pytest.raises(ConfigError, match="TRACKBOX_DATABASE_URL is required"):
        TrackboxConfig.from_env()


@pytest.mark.parametrize("raw", ["soon", "0", "-1"])
def test_invalid_publish_timeout_raises(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    """Timeouts must be positive numbers."""
    monkeypatch.setenv("TRACKBOX_DATABASE_URL", "sqlite+aiosqlite:///t.db")
    monkeypatch.setenv("TRACKBOX_PUBLISH_TIMEOUT", raw)

    with pytest.raises(ConfigError, match="TRACKBOX_PUBLISH_TIMEOUT"):
        TrackboxConfig.from_env()


class TestMqttEndpoint:
    """Tests for broker URI parsing."""

    @pytest.mark.parametrize(
        ("uri", "port", "tls"),
        [
            ("tcp://broker", 1883, False),
            ("mqtt://broker:1884", 1884, False),
            ("mqtts://broker", 8883, True),
            ("SSL://broker", 8883, True),
        ],
    )
    def test_parse_schemes(self, uri: str, port: int, tls: bool) -> None:  # noqa: FBT001
        """Plain and TLS schemes pick the right default port."""
        endpoint = MqttEndpoint.parse(uri)

        assert (endpoint.host, endpoint.port, endpoint.tls) == ("broker", port, tls)

    @pytest.mark.parametrize(
        "uri",
        ["http://broker", "broker:1883", "tcp://", "tcp://broker:99999"],
    )
    def test_rejects_invalid_uris(self, uri: str) -> None:
        """Unsupported schemes, missing hosts and bad ports are rejected."""
        with pytest.raises(ConfigError, match="TRACKBOX_MQTT_URI"):
            MqttEndpoint.parse(uri)
