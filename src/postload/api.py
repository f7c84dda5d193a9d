"""
FastAPI wrapper around the load engine.

``POST /api/performance/test`` runs a test and returns its result;
``GET /api/performance/progress`` can be polled meanwhile for live figures.
Both share the process-wide live progress, so only one test runs at a time.

Responses carry the engine's snake_case fields plus the camelCase names
older HTTP clients of this service read (``totalRequests``,
``p95ResponseTime`` and so on).
"""

from __future__ import annotations

from typing import Any

from fastapi import Body, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from postload.config import DEFAULT_LOG_PATH
from postload.loadgen.runner import run_count_based, run_duration_based
from postload.metrics import poll_live_progress

_CAMEL_ALIASES = {
    "total_requests": "totalRequests",
    "successful_requests": "successfulRequests",
    "failed_requests": "failedRequests",
    "total_duration_ms": "totalTime",
    "average_latency_ms": "averageResponseTime",
    "min_latency_ms": "minResponseTime",
    "max_latency_ms": "maxResponseTime",
    "p50_latency_ms": "p50ResponseTime",
    "p95_latency_ms": "p95ResponseTime",
    "p99_latency_ms": "p99ResponseTime",
    "requests_per_second": "requestsPerSecond",
    "error_message": "errorMessage",
    "log_file_path": "logFilePath",
    "elapsed_seconds": "elapsedSeconds",
    "target_duration_seconds": "targetDurationSeconds",
    "recent_latencies": "recentResponseTimes",
}

app = FastAPI(title="POST load tester")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

# Request log destination and optional httpx transport; tests override both.
app.state.log_path = DEFAULT_LOG_PATH
app.state.transport = None


def _with_aliases(data: dict[str, Any]) -> dict[str, Any]:
    aliased = dict(data)
    for name, alias in _CAMEL_ALIASES.items():
        if name in data:
            aliased[alias] = data[name]
    return aliased


@app.get("/api/performance/progress")
def get_progress() -> dict[str, Any]:
    """Current live snapshot; idle figures when no run has started yet."""
    return _with_aliases(poll_live_progress().to_dict())


@app.post("/api/performance/test")
async def run_performance_test(
    url: str = Query(...),
    number_of_requests: int = Query(100, alias="numberOfRequests"),
    concurrent_threads: int = Query(10, alias="concurrentThreads"),
    duration_seconds: int = Query(0, alias="durationSeconds"),
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """Duration test when ``durationSeconds > 0``, otherwise a count test."""
    options = {"log_path": app.state.log_path, "transport": app.state.transport}
    if duration_seconds > 0:
        result = await run_duration_based(url, payload, duration_seconds, concurrent_threads, **options)
    else:
        result = await run_count_based(url, payload, number_of_requests, concurrent_threads, **options)
    return _with_aliases(result.to_dict())
