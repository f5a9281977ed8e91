"""Broker transport adapters."""

from __future__ import annotations

from .errors import TransportError
from .mqtt import MqttSettings, MqttTransport

__all__ = ["MqttSettings", "MqttTransport", "TransportError"]
