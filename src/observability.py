"""Observability: in-process counters and timers for the generation pipeline."""

import threading
import time
from contextlib import contextmanager
from typing import Any

import structlog

logger = structlog.get_logger().bind(source="observability")


def _key(name: str, labels: dict[str, Any]) -> str:
    if not labels:
        return name
    rendered = ",".join(f"{k}={labels[k]}" for k in sorted(labels))
    return f"{name}{{{rendered}}}"


class Metrics:
    """Dict-based metrics collector; counters and timers may carry labels.

    Requests run in the web threadpool, so updates are guarded by a lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._timers: dict[str, list[float]] = {}

    def counter(self, name: str, value: int = 1, **labels):
        """Increment a counter, e.g. ``counter("llm.calls", offer="pdf")``."""
        key = _key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + value

    def get(self, name: str, **labels) -> int:
        return self._counters.get(_key(name, labels), 0)

    @contextmanager
    def timer(self, name: str, **labels):
        """Time the enclosed block and record its duration in seconds."""
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            key = _key(name, labels)
            with self._lock:
                self._timers.setdefault(key, []).append(duration)

    def summary(self) -> dict[str, Any]:
        """Counters plus count/avg/max per timer."""
        with self._lock:
            timers = {
                name: {
                    "count": len(durations),
                    "avg": sum(durations) / len(durations),
                    "max": max(durations),
                }
                for name, durations in self._timers.items()
                if durations
            }
            return {"counters": dict(self._counters), "timers": timers}

    def reset(self):
        with self._lock:
            self._counters.clear()
            self._timers.clear()


# Process-wide collector
metrics = Metrics()


def log_metrics_summary():
    """Log the current metrics summary via structlog."""
    logger.info("metrics.summary", **metrics.summary())
