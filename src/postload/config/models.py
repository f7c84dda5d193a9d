from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

DEFAULT_LOG_PATH = "logs/performance_test.log"
DISPATCH_PAUSE_SEC = 0.010
GRACE_PERIOD_SEC = 5.0
RECENT_LATENCY_CAPACITY = 100


class RunMode(str, Enum):
    COUNT = "count"
    DURATION = "duration"


@dataclass(frozen=True, slots=True)
class TransportConfig:
    max_connections: int = 500
    max_connections_per_host: int = 100
    connect_timeout_sec: float = 30.0
    read_timeout_sec: float = 60.0
    pool_timeout_sec: float = 5.0
    idle_timeout_sec: float = 30.0


@dataclass(frozen=True, slots=True)
class RunConfig:
    url: str
    payload: Mapping[str, Any]
    mode: RunMode = RunMode.COUNT
    concurrency: int = 10
    request_count: int = 100
    duration_sec: int = 0
    log_path: str = DEFAULT_LOG_PATH
    dispatch_pause_sec: float = DISPATCH_PAUSE_SEC
    grace_period_sec: float = GRACE_PERIOD_SEC
    transport_config: TransportConfig = field(default_factory=TransportConfig)
    run_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notes: str = ""

    @property
    def target_duration_sec(self) -> int:
        if self.mode is RunMode.DURATION:
            return self.duration_sec
        return 0

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "run_id": self.run_id or "",
            "created_at": self.created_at.isoformat(),
            "url": self.url,
            "payload": dict(self.payload),
            "mode": self.mode.value,
            "concurrency": self.concurrency,
            "request_count": self.request_count if self.mode is RunMode.COUNT else 0,
            "duration_sec": self.target_duration_sec,
            "log_path": self.log_path,
            "notes": self.notes,
            "transport": {
                "max_connections": self.transport_config.max_connections,
                "max_connections_per_host": self.transport_config.max_connections_per_host,
                "connect_timeout_sec": self.transport_config.connect_timeout_sec,
                "read_timeout_sec": self.transport_config.read_timeout_sec,
                "pool_timeout_sec": self.transport_config.pool_timeout_sec,
                "idle_timeout_sec": self.transport_config.idle_timeout_sec,
            },
        }
