"""In-process decode metrics.

Counters track decode outcomes (``decode.completed``, ``decode.canceled``,
``decode.failed``, ``probe.empty``, ``cancelable.late_cancel``); timings keep
a running summary per key rather than every sample, so long-lived hosts do
not grow without bound.

Usage:
    from uri_image.image_engine.metrics import metrics
    metrics.inc("decode.canceled")
    with metrics.timed("decode.duration"):
        ...
    metrics.timing("decode.duration").mean
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any


@dataclass
class TimingStats:
    count: int = 0
    total: float = 0.0
    longest: float = 0.0

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0

    def add(self, seconds: float) -> None:
        self.count += 1
        self.total += seconds
        self.longest = max(self.longest, seconds)


class DecodeMetrics:
    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: Counter[str] = Counter()
        self._timings: dict[str, TimingStats] = {}

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    def count(self, key: str) -> int:
        with self._lock:
            return self._counters[key]

    def record(self, key: str, seconds: float) -> None:
        with self._lock:
            self._timings.setdefault(key, TimingStats()).add(seconds)

    def timing(self, key: str) -> TimingStats:
        """Copy of the summary for ``key``; empty if nothing was recorded."""
        with self._lock:
            stats = self._timings.get(key)
            return TimingStats(**asdict(stats)) if stats is not None else TimingStats()

    @contextmanager
    def timed(self, key: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(key, time.perf_counter() - start)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {k: asdict(v) for k, v in self._timings.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()


metrics = DecodeMetrics()
