from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ErrorType(str, Enum):
    TIMEOUT = "timeout"
    CONNECT = "connect"
    READ = "read"
    POOL = "pool"
    OTHER = "other"


class RunStatus(str, Enum):
    SUCCESS = "SUCCESS"
    ALL_FAILED = "ALL_FAILED"
    ERROR = "ERROR"


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code < 300


@dataclass(frozen=True, slots=True)
class RequestOutcome:
    sequence_number: int
    issued_at: datetime
    latency_ms: int
    status_code: int
    url: str
    request_body: str
    method: str = "POST"
    status_text: str | None = None
    response_body: str | None = None
    error_detail: str | None = None
    error_type: ErrorType | None = None

    @property
    def success(self) -> bool:
        return is_success_status(self.status_code)


@dataclass(frozen=True, slots=True)
class RunResult:
    run_id: str
    mode: str
    status: RunStatus
    started_at: datetime | None = None
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_duration_ms: int = 0
    average_latency_ms: float = 0.0
    min_latency_ms: int = 0
    max_latency_ms: int = 0
    p50_latency_ms: int = 0
    p95_latency_ms: int = 0
    p99_latency_ms: int = 0
    requests_per_second: float = 0.0
    error_message: str | None = None
    log_file_path: str | None = None

    @classmethod
    def error(cls, run_id: str, mode: str, message: str) -> RunResult:
        return cls(run_id=run_id, mode=mode, status=RunStatus.ERROR, error_message=message)

    @property
    def success_rate(self) -> float:
        if self.total_requests <= 0:
            return 0.0
        return self.successful_requests * 100.0 / self.total_requests

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["started_at"] = self.started_at.isoformat() if self.started_at else None
        return data


@dataclass(frozen=True, slots=True)
class LiveSnapshot:
    running: bool = False
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    elapsed_seconds: float = 0.0
    target_duration_seconds: int = 0
    requests_per_second: float = 0.0
    average_latency_ms: float = 0.0
    min_latency_ms: int = 0
    max_latency_ms: int = 0
    p50_latency_ms: int = 0
    p95_latency_ms: int = 0
    p99_latency_ms: int = 0
    recent_latencies: list[int] = field(default_factory=list)

    @classmethod
    def idle(cls) -> LiveSnapshot:
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
