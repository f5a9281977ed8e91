"""MQTT transport errors."""

from __future__ import annotations


class TransportError(RuntimeError):
    """Raised when the broker connection cannot carry out a request."""

    def __init__(self, message: str, *, reason_code: object | None = None) -> None:
        """Initialise with a message and the broker's reason code, if any."""
        self.reason_code = reason_code
        super().__init__(message)

    @classmethod
    def connect_failed(cls, uri: str, reason_code: object) -> TransportError:
        """Return an error for a refused or failed broker connection."""
        return cls(
            f"MQTT connect to {uri} failed: {reason_code}", reason_code=reason_code
        )

    @classmethod
    def subscribe_failed(cls, pattern: str, reason_code: object) -> TransportError:
        """Return an error for a rejected subscription."""
        return cls(
            f"MQTT subscribe to {pattern} failed: {reason_code}",
            reason_code=reason_code,
        )

    @classmethod
    def publish_failed(cls, topic: str, reason_code: object) -> TransportError:
        """Return an error for a publish the client could not queue."""
        return cls(
            f"MQTT publish to {topic} failed: {reason_code}", reason_code=reason_code
        )

    @classmethod
    def publish_timeout(cls, topic: str, timeout: float) -> TransportError:
        """Return an error for a publish left unacknowledged past ``timeout``."""
        return cls(f"MQTT publish to {topic} not acknowledged within {timeout:.1f}s")

    @classmethod
    def not_connected(cls) -> TransportError:
        """Return an error for operations attempted before ``start``."""
        return cls("MQTT transport is not connected")
