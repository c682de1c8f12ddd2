# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Engine Metrics: what the counter engine itself is doing.

These describe the engine (batches applied, cells written, scans, failed
writes, batch latency), not the user-facing counters it maintains. They
live in process memory and are exported by the /health and /api/metrics
endpoints.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any, Dict, List

# Latency histograms keep only the most recent observations
HISTOGRAM_WINDOW = 1000


class Metrics:
    """Counters, gauges and windowed latency histograms for one process."""

    def __init__(self):
        self._counters: Dict[str, int] = defaultdict(int)
        self._gauges: Dict[str, float] = {}
        self._histograms: Dict[str, List[float]] = defaultdict(list)
        self._start_time = time.time()

    # ── Counters ────────────────────────────────────────────────

    def inc(self, name: str, amount: int = 1) -> None:
        self._counters[name] += amount

    def get_counter(self, name: str) -> int:
        return self._counters.get(name, 0)

    # ── Gauges ──────────────────────────────────────────────────

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def get_gauge(self, name: str) -> float:
        return self._gauges.get(name, 0.0)

    # ── Histograms ──────────────────────────────────────────────

    def observe(self, name: str, value: float) -> None:
        """Record one observation, e.g. a batch round trip in ms."""
        window = self._histograms[name]
        window.append(value)
        if len(window) > HISTOGRAM_WINDOW:
            del window[:-HISTOGRAM_WINDOW]

    def reset(self) -> None:
        """Forget every recorded value; uptime keeps counting."""
        self._counters.clear()
        self._gauges.clear()
        self._histograms.clear()

    # ── Export ──────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
        }
        for name, window in self._histograms.items():
            if not window:
                continue
            result[f"histogram_{name}"] = {
                "count": len(window),
                "avg": round(sum(window) / len(window), 2),
                "max": round(max(window), 2),
                "min": round(min(window), 2),
            }
        return result


engine_metrics = Metrics()
