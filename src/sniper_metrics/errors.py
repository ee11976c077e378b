"""Exception types raised by the metrics engine."""


class MetricsError(Exception):
    """Base class for metrics engine failures."""


class StorageError(MetricsError):
    """Raised when the metrics config file cannot be created, read, or written."""


class TransportError(MetricsError):
    """Raised when a report could not be delivered or the collector rejected it."""
