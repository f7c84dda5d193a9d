from __future__ import annotations

from postload.metrics.live import LIVE_PROGRESS, LiveProgress, poll_live_progress
from postload.metrics.models import (
    ErrorType,
    LiveSnapshot,
    RequestOutcome,
    RunResult,
    RunStatus,
    is_success_status,
)
from postload.metrics.stats import LatencyStats, percentile_at, summarize

__all__ = [
    "ErrorType",
    "LIVE_PROGRESS",
    "LatencyStats",
    "LiveProgress",
    "LiveSnapshot",
    "RequestOutcome",
    "RunResult",
    "RunStatus",
    "is_success_status",
    "percentile_at",
    "poll_live_progress",
    "summarize",
]
