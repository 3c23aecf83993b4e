"""Hostwatch: batch host connectivity and telemetry probing."""

__version__ = "0.4.0"
