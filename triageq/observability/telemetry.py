"""
In-process telemetry helpers for the triage core.

Nothing is shipped to an external collector; events go to the log and
counters/timings stay in memory so tests can assert instrumentation and the
presentation layer can show processing stats.

Session callbacks may run on data-source threads, so every update takes the
module lock.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("triageq.telemetry")

_LOCK = threading.Lock()
_COUNTERS: dict[str, int] = {}
# metric -> [samples, total seconds, last seconds]
_TIMINGS: dict[str, list[float]] = {}


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event. Item content must never be passed as a field.

    Side Effects:
        - Writes to logger (info level)
    """
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter and emit a debug log.

    Side Effects:
        - Modifies _COUNTERS (in-memory state)
        - Writes to logger (debug level)
    """
    with _LOCK:
        value = _COUNTERS.get(name, 0) + increment
        _COUNTERS[name] = value
    logger.debug("counter=%s value=%s", name, value)
    return value


def get_counter(name: str) -> int:
    """Current value of a counter (0 when never incremented)."""
    with _LOCK:
        return _COUNTERS.get(name, 0)


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Time a block, including blocks that raise.

    Side Effects:
        - Updates _TIMINGS (in-memory state)
        - Writes to logger (debug level) with timing
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        with _LOCK:
            timing = _TIMINGS.setdefault(metric_name, [0, 0.0, 0.0])
            timing[0] += 1
            timing[1] += elapsed
            timing[2] = elapsed
        logger.debug("timing=%s seconds=%.6f", metric_name, elapsed)


def get_timing(metric_name: str) -> dict[str, float]:
    """Sample count, mean and last duration (seconds) of a timed block."""
    with _LOCK:
        timing = _TIMINGS.get(metric_name)
        if timing is None:
            return {"count": 0, "mean_seconds": 0.0, "last_seconds": 0.0}
        count, total, last = timing
    return {"count": int(count), "mean_seconds": total / count, "last_seconds": last}


def snapshot() -> dict[str, Any]:
    """Copy of every counter and timing, for a processing-status panel."""
    with _LOCK:
        counters = dict(_COUNTERS)
        names = list(_TIMINGS)
    return {"counters": counters, "timings": {name: get_timing(name) for name in names}}


def reset_telemetry() -> None:
    """
    Clear all counters and timings (useful for tests).

    Side Effects:
        - Clears _COUNTERS and _TIMINGS (in-memory state)
    """
    with _LOCK:
        _COUNTERS.clear()
        _TIMINGS.clear()
