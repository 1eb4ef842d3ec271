"""Telemetry subpackage.

Logging setup, the Prometheus collector for squid reports and the HTTP
server exposing it.
"""

from .logging import get_logger
from .prom import SquidCollector, build_registry
from .metrics_server import MetricsServer

__all__ = [
    "get_logger",
    "SquidCollector",
    "build_registry",
    "MetricsServer",
]
