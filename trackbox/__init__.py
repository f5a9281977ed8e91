"""Trackbox geofence transition ingest service."""

from __future__ import annotations

__all__: list[str] = []
