"""Environment-driven configuration for the ingest service.

Usage
-----
>>> import os
>>> os.environ["TRACKBOX_DATABASE_URL"] = "sqlite+aiosqlite:///trackbox.db"
>>> config = TrackboxConfig.from_env()
>>> config.mqtt.host
'localhost'

"""

from __future__ import annotations

import dataclasses as dc
import os
from urllib.parse import urlsplit

_DEFAULT_MQTT_URI = "tcp://localhost:1883"
_PLAIN_SCHEMES = {"tcp": 1883, "mqtt": 1883}
_TLS_SCHEMES = {"ssl": 8883, "mqtts": 8883}


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""

    @classmethod
    def missing(cls, env_var: str) -> ConfigError:
        """Return an error for a required variable that is unset."""
        return cls(f"{env_var} is required")

    @classmethod
    def invalid(cls, env_var: str, raw: str, expected: str) -> ConfigError:
        """Return an error for a variable that does not parse."""
        return cls(f"{env_var} must be {expected}, got: {raw!r}")


@dc.dataclass(frozen=True, slots=True)
class MqttEndpoint:
    """Broker address parsed from an MQTT URI."""

    uri: str
    host: str
    port: int
    tls: bool = False

    @classmethod
    def parse(cls, uri: str) -> MqttEndpoint:
        """Parse ``tcp://``, ``mqtt://``, ``ssl://`` or ``mqtts://`` URIs.

        Raises
        ------
        ConfigError
            If the scheme is unsupported, the host is missing, or the port is
            not a valid TCP port.

        """
        parts = urlsplit(uri)
        scheme = parts.scheme.lower()
        if scheme in _PLAIN_SCHEMES:
            default_port, tls = _PLAIN_SCHEMES[scheme], False
        elif scheme in _TLS_SCHEMES:
            default_port, tls = _TLS_SCHEMES[scheme], True
        else:
            raise ConfigError.invalid(
                "TRACKBOX_MQTT_URI", uri, "a tcp://, mqtt://, ssl:// or mqtts:// URI"
            )
        try:
            port = parts.port or default_port
        except ValueError as exc:
            raise ConfigError.invalid(
                "TRACKBOX_MQTT_URI", uri, "a URI with a valid port"
            ) from exc
        if not parts.hostname:
            raise ConfigError.invalid("TRACKBOX_MQTT_URI", uri, "a URI with a host")
        return cls(uri=uri, host=parts.hostname, port=port, tls=tls)


@dc.dataclass(frozen=True, slots=True)
class TrackboxConfig:
    """Settings for the ingest runtime.

    Attributes
    ----------
    database_url
        SQLAlchemy async URL of the event store.
    mqtt
        Broker endpoint.
    mqtt_client_id
        Client identifier presented to the broker.
    mqtt_username, mqtt_password
        Optional broker credentials.
    publish_timeout
        Seconds to wait for the broker to acknowledge a notification.
    shutdown_grace
        Seconds to wait for in-flight messages on shutdown.

    """

    database_url: str
    mqtt: MqttEndpoint = dc.field(
        default_factory=lambda: MqttEndpoint.parse(_DEFAULT_MQTT_URI)
    )
    mqtt_client_id: str = "trackbox-ingest"
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    publish_timeout: float = 5.0
    shutdown_grace: float = 10.0

    @staticmethod
    def _optional(env_var: str) -> str | None:
        raw = os.environ.get(env_var, "")
        return raw.strip() or None

    @staticmethod
    def _parse_positive_float(env_var: str, default: float) -> float:
        """Read a positive number of seconds, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            raise ConfigError.invalid(env_var, raw, "a number") from exc
        if value <= 0:
            raise ConfigError.invalid(env_var, raw, "positive")
        return value

    @classmethod
    def from_env(cls) -> TrackboxConfig:
        """Create configuration from ``TRACKBOX_*`` environment variables.

        Reads ``TRACKBOX_DATABASE_URL`` (required), ``TRACKBOX_MQTT_URI``,
        ``TRACKBOX_MQTT_CLIENT_ID``, ``TRACKBOX_MQTT_USERNAME``,
        ``TRACKBOX_MQTT_PASSWORD``, ``TRACKBOX_PUBLISH_TIMEOUT``
        and ``TRACKBOX_SHUTDOWN_GRACE``. ``TRACKBOX_LOG_LEVEL`` is read by
        :func:`trackbox.runtime.main` so logging is configured first.

        Raises
        ------
        ConfigError
            If a required variable is missing or a value does not parse.

        """
        database_url = cls._optional("TRACKBOX_DATABASE_URL")
        if database_url is None:
            raise ConfigError.missing("TRACKBOX_DATABASE_URL")

        return cls(
            database_url=database_url,
            mqtt=MqttEndpoint.parse(
                cls._optional("TRACKBOX_MQTT_URI") or _DEFAULT_MQTT_URI
            ),
            mqtt_client_id=cls._optional("TRACKBOX_MQTT_CLIENT_ID")
            or "trackbox-ingest",
            mqtt_username=cls._optional("TRACKBOX_MQTT_USERNAME"),
            mqtt_password=cls._optional("TRACKBOX_MQTT_PASSWORD"),
            publish_timeout=cls._parse_positive_float("TRACKBOX_PUBLISH_TIMEOUT", 5.0),
            shutdown_grace=cls._parse_positive_float("TRACKBOX_SHUTDOWN_GRACE", 10.0),
        )
