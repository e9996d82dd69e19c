# File: core/errors.py


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigError(ExporterError):
    """Invalid or unreadable exporter configuration."""


class FetchError(ExporterError):
    """
    The Clash API could not be reached or answered with an error status.
    Recoverable: the cycle is skipped and retried on the next interval.
    """


class SnapshotDecodeError(ExporterError):
    """The /connections payload is not a valid connections snapshot."""
