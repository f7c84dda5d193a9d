"""Latency statistics over a finished sample.

Percentiles use the nearest-rank method: the value returned is always one of
the recorded samples, never an interpolation between two of them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np


@dataclass(frozen=True, slots=True)
class LatencyStats:
    count: int = 0
    mean_ms: float = 0.0
    min_ms: int = 0
    max_ms: int = 0
    p50_ms: int = 0
    p95_ms: int = 0
    p99_ms: int = 0


def percentile_at(sorted_latencies: Sequence[int], p: float) -> int:
    """Return the nearest-rank ``p``-th percentile of an ascending sequence.

    ``p`` is expected in (0, 100]; the rank is clamped so values outside that
    range pick the first or last sample. An empty sequence yields ``0``.
    """
    n = len(sorted_latencies)
    if n == 0:
        return 0
    index = math.ceil(p * n / 100) - 1
    index = max(0, min(index, n - 1))
    return int(sorted_latencies[index])


def summarize(latencies: Iterable[int]) -> LatencyStats:
    values = np.sort(np.fromiter(latencies, dtype=np.int64))
    if values.size == 0:
        return LatencyStats()
    return LatencyStats(
        count=int(values.size),
        mean_ms=float(values.mean()),
        min_ms=int(values[0]),
        max_ms=int(values[-1]),
        p50_ms=percentile_at(values, 50),
        p95_ms=percentile_at(values, 95),
        p99_ms=percentile_at(values, 99),
    )
