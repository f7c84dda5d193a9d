"""Process-wide live progress of the active run.

Workers call :meth:`LiveProgress.record_outcome` as results land and any
thread may call :meth:`LiveProgress.snapshot` at the same time. All state sits
behind one lock held only for a few field updates, so a reader always sees a
single generation: ``total == successful + failed`` and the recent buffer
belong to the same set of outcomes.
"""

from __future__ import annotations

import threading
import time
from collections import deque

from postload.config import RECENT_LATENCY_CAPACITY
from postload.metrics.models import LiveSnapshot, RequestOutcome
from postload.metrics.stats import percentile_at


class LiveProgress:
    def __init__(self, capacity: int = RECENT_LATENCY_CAPACITY) -> None:
        self._lock = threading.Lock()
        self._capacity = capacity
        self._recent: deque[tuple[int, bool]] = deque(maxlen=capacity)
        self._running = False
        self._ever_started = False
        self._success = 0
        self._failure = 0
        self._latency_sum = 0
        self._latency_min = 0
        self._latency_max = 0
        self._started_mono = 0.0
        self._finished_mono: float | None = None
        self._target_duration = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def begin(self, target_duration_seconds: int = 0) -> bool:
        """Claim the live slot for a new run; ``False`` if one is active."""
        with self._lock:
            if self._running:
                return False
            self._reset_locked(target_duration_seconds)
            self._running = True
            return True

    def reset(self, target_duration_seconds: int = 0) -> None:
        with self._lock:
            self._reset_locked(target_duration_seconds)

    def finish(self) -> None:
        with self._lock:
            self._running = False
            self._finished_mono = time.perf_counter()

    def record_outcome(self, outcome: RequestOutcome) -> None:
        latency = outcome.latency_ms
        success = outcome.success
        with self._lock:
            if success:
                if self._success == 0:
                    self._latency_min = latency
                    self._latency_max = latency
                else:
                    self._latency_min = min(self._latency_min, latency)
                    self._latency_max = max(self._latency_max, latency)
                self._success += 1
                self._latency_sum += latency
            else:
                self._failure += 1
            self._recent.append((latency, success))

    def snapshot(self) -> LiveSnapshot:
        with self._lock:
            if not self._ever_started:
                return LiveSnapshot.idle()
            running = self._running
            success = self._success
            failure = self._failure
            latency_sum = self._latency_sum
            latency_min = self._latency_min
            latency_max = self._latency_max
            recent = list(self._recent)
            target = self._target_duration
            end = self._finished_mono if self._finished_mono is not None else time.perf_counter()
            elapsed = max(0.0, end - self._started_mono)

        total = success + failure
        window = sorted(latency for latency, ok in recent if ok)
        return LiveSnapshot(
            running=running,
            total_requests=total,
            successful_requests=success,
            failed_requests=failure,
            elapsed_seconds=elapsed,
            target_duration_seconds=target,
            requests_per_second=total / elapsed if elapsed > 0 else 0.0,
            average_latency_ms=latency_sum / success if success else 0.0,
            min_latency_ms=latency_min,
            max_latency_ms=latency_max,
            p50_latency_ms=percentile_at(window, 50),
            p95_latency_ms=percentile_at(window, 95),
            p99_latency_ms=percentile_at(window, 99),
            recent_latencies=[latency for latency, _ in recent],
        )

    def _reset_locked(self, target_duration_seconds: int) -> None:
        self._recent.clear()
        self._success = 0
        self._failure = 0
        self._latency_sum = 0
        self._latency_min = 0
        self._latency_max = 0
        self._started_mono = time.perf_counter()
        self._finished_mono = None
        self._target_duration = max(0, target_duration_seconds)
        self._ever_started = True


LIVE_PROGRESS = LiveProgress()


def poll_live_progress(live: LiveProgress | None = None) -> LiveSnapshot:
    return (live or LIVE_PROGRESS).snapshot()
