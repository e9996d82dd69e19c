"""Prometheus exporter for Clash proxy connection statistics."""

__version__ = "0.3.0"
