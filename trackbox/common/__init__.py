"""Shared helpers used across Trackbox packages."""
