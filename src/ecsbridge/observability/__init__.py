"""Observability - Metrics and logging."""

from .logger import LogContext, clear_all_context, configure_logging, current_context
from .metrics import LoggerBackend, MetricsCollector, get_global_collector

__all__ = [
    "MetricsCollector",
    "LoggerBackend",
    "get_global_collector",
    "configure_logging",
    "clear_all_context",
    "current_context",
    "LogContext",
]
