"""
Lightweight telemetry helpers.

Events are emitted as structured log lines and counters are kept in memory,
so tests can assert instrumentation without an external metrics backend.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("floworx.telemetry")

_COUNTERS: dict[str, int] = {}
_LATENCIES: dict[str, list[float]] = {}


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event. Caller must keep emails and tokens out of fields.

    Side Effects:
        - Writes to logger (info level)
    """
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter and emit a debug log.

    Side Effects:
        - Modifies _COUNTERS dict (in-memory state)
    """
    value = _COUNTERS.get(name, 0) + increment
    _COUNTERS[name] = value
    logger.debug("counter=%s value=%s", name, value)
    return value


def get_counter(name: str) -> int:
    return _COUNTERS.get(name, 0)


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Context manager for timing code blocks.

    Side Effects:
        - Appends to _LATENCIES dict (in-memory state)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        name = metric_name if metric_name.endswith("_ms") else f"{metric_name}_ms"
        logger.debug("timing=%s seconds=%.6f", name, elapsed)
        _LATENCIES.setdefault(name, []).append(elapsed)


def get_latency_stats(metric_name: str) -> dict[str, float]:
    """Get latency statistics (count, min, max, avg, p95) for a metric."""
    name = metric_name if metric_name.endswith("_ms") else f"{metric_name}_ms"
    samples = sorted(_LATENCIES.get(name, []))
    if not samples:
        return {"count": 0, "min": 0.0, "max": 0.0, "avg": 0.0, "p95": 0.0}

    count = len(samples)
    return {
        "count": count,
        "min": samples[0],
        "max": samples[-1],
        "avg": sum(samples) / count,
        "p95": samples[min(int(count * 0.95), count - 1)],
    }


def reset() -> None:
    """Clear counters and latencies (useful for tests)."""
    _COUNTERS.clear()
    _LATENCIES.clear()
