"""MCStats plugin metrics reporting engine."""

from .errors import MetricsError, StorageError, TransportError
from .host import ServerHost, StaticServerHost
from .payload import PayloadBuilder, SystemInfo
from .registry import CallbackPlotter, Graph, GraphSnapshot, MetricsRegistry, Plotter
from .scheduler import MetricsScheduler, SchedulerState
from .store import ConfigStore, MetricsConfig
from .transport import ReportResult, Transport, classify_response

__all__ = [
    "CallbackPlotter",
    "ConfigStore",
    "Graph",
    "GraphSnapshot",
    "MetricsConfig",
    "MetricsError",
    "MetricsRegistry",
    "MetricsScheduler",
    "PayloadBuilder",
    "Plotter",
    "ReportResult",
    "SchedulerState",
    "ServerHost",
    "StaticServerHost",
    "StorageError",
    "SystemInfo",
    "Transport",
    "TransportError",
    "classify_response",
]
