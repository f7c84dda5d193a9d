from __future__ import annotations

from postload.config.models import (
    DEFAULT_LOG_PATH,
    DISPATCH_PAUSE_SEC,
    GRACE_PERIOD_SEC,
    RECENT_LATENCY_CAPACITY,
    RunConfig,
    RunMode,
    TransportConfig,
)

__all__ = [
    "DEFAULT_LOG_PATH",
    "DISPATCH_PAUSE_SEC",
    "GRACE_PERIOD_SEC",
    "RECENT_LATENCY_CAPACITY",
    "RunConfig",
    "RunMode",
    "TransportConfig",
]
