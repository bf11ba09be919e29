"""Metrics collection for monitoring remote API usage."""

from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class MetricsBackend(ABC):
    """Abstract base class for metrics backends."""

    @abstractmethod
    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        pass

    @abstractmethod
    def timing(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        pass


class LoggerBackend(MetricsBackend):
    """
    Simple in-memory metrics backend that aggregates stats for logging.
    """

    def __init__(self) -> None:
        self.counters: Counter[str] = Counter()
        self.timings: dict[str, list[float]] = defaultdict(list)

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        """Increment a counter."""
        key = self._format_key(name, tags)
        self.counters[key] += value

    def timing(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Record a timing."""
        key = self._format_key(name, tags)
        self.timings[key].append(value)

    def _format_key(self, name: str, tags: dict[str, str] | None) -> str:
        if not tags:
            return name
        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}[{tag_str}]"

    def get_summary(self) -> dict[str, Any]:
        """Return a summary of collected metrics."""
        summary: dict[str, Any] = {
            "counters": dict(self.counters),
            "timings": {},
        }

        for name, values in self.timings.items():
            if values:
                summary["timings"][name] = {
                    "count": len(values),
                    "avg": sum(values) / len(values),
                    "min": min(values),
                    "max": max(values),
                }
        return summary


class MetricsCollector:
    """
    Central collector for bridge metrics.
    """

    def __init__(self, backend: str = "logger") -> None:
        """
        Initialize Metrics Collector.

        Args:
            backend: Backend type to use. Only "logger" is supported.
        """
        self.backend: MetricsBackend

        if backend != "logger":
            logger.warning("Unknown metrics backend, defaulting to 'logger'", backend=backend)
        self.backend = LoggerBackend()

    def count_request(self, action: str) -> None:
        """Record a remote API call."""
        self.backend.increment("ecs_api_requests_total", tags={"action": action})

    def record_latency(self, action: str, duration_ms: float) -> None:
        """Record remote API latency."""
        self.backend.timing("ecs_api_latency_ms", duration_ms, tags={"action": action})

    def count_error(self, kind: str) -> None:
        """Record a failed remote API call by error kind."""
        self.backend.increment("ecs_api_errors_total", tags={"kind": kind})

    def get_summary(self) -> dict[str, Any]:
        """Get summary from backend if supported."""
        if hasattr(self.backend, "get_summary"):
            return self.backend.get_summary()  # type: ignore
        return {}


# Singleton instance
_GLOBAL_COLLECTOR: MetricsCollector | None = None


def get_global_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _GLOBAL_COLLECTOR
    if _GLOBAL_COLLECTOR is None:
        _GLOBAL_COLLECTOR = MetricsCollector()
    return _GLOBAL_COLLECTOR
