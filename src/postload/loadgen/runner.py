from __future__ import annotations

import asyncio
import itertools
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

import httpx

from postload.config import RunConfig, RunMode
from postload.errors import RunRejectedError
from postload.loadgen.client import TransportClient, send_request
from postload.loadgen.pool import WorkerPool
from postload.metrics import (
    LIVE_PROGRESS,
    LiveProgress,
    RequestOutcome,
    RunResult,
    RunStatus,
    summarize,
)
from postload.storage.log_sink import RequestLogSink

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[RequestOutcome], None]


@dataclass(slots=True)
class RunContext:
    """State owned by one run; workers only ever talk to this object."""

    run_id: str
    config: RunConfig
    client: TransportClient
    sink: RequestLogSink
    live: LiveProgress
    body: bytes
    on_outcome: OutcomeCallback | None = None
    outcomes: list[RequestOutcome] = field(default_factory=list)
    _sequence: itertools.count = field(default_factory=lambda: itertools.count(1))

    def next_sequence(self) -> int:
        return next(self._sequence)

    def record(self, outcome: RequestOutcome) -> None:
        self.outcomes.append(outcome)
        self.live.record_outcome(outcome)
        self.sink.write_record(outcome)
        if self.on_outcome is not None:
            self.on_outcome(outcome)

    def collected(self) -> list[RequestOutcome]:
        return list(self.outcomes)


def _new_run_id() -> str:
    return uuid.uuid4().hex


def encode_payload(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(dict(payload), separators=(",", ":")).encode("utf-8")


async def run_load_test(
    config: RunConfig,
    *,
    live: LiveProgress | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> RunResult:
    """Execute one run and always return a result, never raise.

    Only one run may own a :class:`LiveProgress` at a time; a second run
    started while the first is active gets an ``ERROR`` result.
    """
    live = live or LIVE_PROGRESS
    run_id = config.run_id or _new_run_id()
    if not live.begin(config.target_duration_sec):
        exc = RunRejectedError()
        logger.warning("Run %s rejected: %s", run_id, exc)
        return RunResult.error(run_id, config.mode.value, str(exc))
    try:
        return await _execute(run_id, config, live, transport, on_outcome)
    except Exception as exc:
        logger.exception("Run %s aborted", run_id)
        return RunResult.error(run_id, config.mode.value, str(exc) or type(exc).__name__)
    finally:
        live.finish()


async def run_count_based(
    url: str,
    payload: Mapping[str, Any],
    request_count: int,
    concurrency: int,
    **options: Any,
) -> RunResult:
    run_options, exec_options = _split_options(options)
    config = RunConfig(
        url=url,
        payload=payload,
        mode=RunMode.COUNT,
        request_count=request_count,
        concurrency=concurrency,
        **run_options,
    )
    return await run_load_test(config, **exec_options)


async def run_duration_based(
    url: str,
    payload: Mapping[str, Any],
    duration_seconds: int,
    concurrency: int,
    **options: Any,
) -> RunResult:
    run_options, exec_options = _split_options(options)
    config = RunConfig(
        url=url,
        payload=payload,
        mode=RunMode.DURATION,
        duration_sec=duration_seconds,
        concurrency=concurrency,
        **run_options,
    )
    return await run_load_test(config, **exec_options)


def _split_options(options: Mapping[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    exec_keys = {"live", "transport", "on_outcome"}
    run_options = {k: v for k, v in options.items() if k not in exec_keys}
    exec_options = {k: v for k, v in options.items() if k in exec_keys}
    return run_options, exec_options


async def _execute(
    run_id: str,
    config: RunConfig,
    live: LiveProgress,
    transport: httpx.AsyncBaseTransport | None,
    on_outcome: OutcomeCallback | None,
) -> RunResult:
    pool = WorkerPool(config.concurrency)
    body = encode_payload(config.payload)
    started_at = datetime.now(timezone.utc)
    logger.info(
        "Starting %s run %s: url=%s concurrency=%d %s log=%s",
        config.mode.value,
        run_id,
        config.url,
        config.concurrency,
        _volume(config),
        config.log_path,
    )
    with RequestLogSink.open(config.log_path) as sink:
        sink.write_header(config)
        async with TransportClient(config.transport_config, transport=transport) as client:
            ctx = RunContext(
                run_id=run_id,
                config=config,
                client=client,
                sink=sink,
                live=live,
                body=body,
                on_outcome=on_outcome,
            )
            started_mono = time.perf_counter()
            if config.mode is RunMode.DURATION:
                await _duration_based(ctx, pool)
            else:
                await _count_based(ctx, pool)
            outcomes = ctx.collected()
            total_ms = round((time.perf_counter() - started_mono) * 1000.0)
        result = build_result(run_id, config, outcomes, total_ms, started_at, str(sink.path))
        sink.write_summary(result)
    _log_summary(result)
    return result


async def _count_based(ctx: RunContext, pool: WorkerPool) -> None:
    for _ in range(max(0, ctx.config.request_count)):
        await _submit(ctx, pool)
    await pool.join()


async def _duration_based(ctx: RunContext, pool: WorkerPool) -> None:
    config = ctx.config
    deadline = time.perf_counter() + max(0, config.duration_sec)
    while True:
        remaining = deadline - time.perf_counter()
        if remaining <= 0:
            break
        if not await _submit(ctx, pool, deadline=deadline, timeout=remaining):
            break
        await asyncio.sleep(config.dispatch_pause_sec)
    abandoned = await pool.join(timeout=config.grace_period_sec)
    if abandoned:
        logger.warning(
            "Run %s: abandoned %d in-flight requests after %.1fs grace period",
            ctx.run_id,
            abandoned,
            config.grace_period_sec,
        )


async def _submit(
    ctx: RunContext,
    pool: WorkerPool,
    deadline: float | None = None,
    timeout: float | None = None,
) -> bool:
    if not await pool.reserve(timeout):
        return False
    sequence_number = ctx.next_sequence()
    pool.spawn(_dispatch(ctx, sequence_number, deadline))
    return True


async def _dispatch(ctx: RunContext, sequence_number: int, deadline: float | None) -> None:
    if deadline is not None and time.perf_counter() >= deadline:
        logger.debug("Request #%d skipped: deadline passed before dispatch", sequence_number)
        return
    outcome = await send_request(ctx.client, sequence_number, ctx.config.url, ctx.body)
    ctx.record(outcome)


def build_result(
    run_id: str,
    config: RunConfig,
    outcomes: list[RequestOutcome],
    total_duration_ms: int,
    started_at: datetime | None = None,
    log_file_path: str | None = None,
) -> RunResult:
    total = len(outcomes)
    stats = summarize(o.latency_ms for o in outcomes if o.success)
    failed = total - stats.count
    if stats.count == 0:
        return RunResult(
            run_id=run_id,
            mode=config.mode.value,
            status=RunStatus.ALL_FAILED,
            started_at=started_at,
            total_requests=total,
            successful_requests=0,
            failed_requests=total,
            error_message="All requests failed",
            log_file_path=log_file_path,
        )
    rps = total / (total_duration_ms / 1000.0) if total_duration_ms > 0 else 0.0
    return RunResult(
        run_id=run_id,
        mode=config.mode.value,
        status=RunStatus.SUCCESS,
        started_at=started_at,
        total_requests=total,
        successful_requests=stats.count,
        failed_requests=failed,
        total_duration_ms=total_duration_ms,
        average_latency_ms=stats.mean_ms,
        min_latency_ms=stats.min_ms,
        max_latency_ms=stats.max_ms,
        p50_latency_ms=stats.p50_ms,
        p95_latency_ms=stats.p95_ms,
        p99_latency_ms=stats.p99_ms,
        requests_per_second=rps,
        log_file_path=log_file_path,
    )


def _volume(config: RunConfig) -> str:
    if config.mode is RunMode.DURATION:
        return f"duration={config.duration_sec}s"
    return f"requests={config.request_count}"


def _log_summary(result: RunResult) -> None:
    if result.status is RunStatus.ALL_FAILED:
        logger.error("Run %s: all %d requests failed", result.run_id, result.total_requests)
        return
    logger.info(
        "Run %s completed: total=%d ok=%d failed=%d p50=%dms p95=%dms p99=%dms rps=%.2f log=%s",
        result.run_id,
        result.total_requests,
        result.successful_requests,
        result.failed_requests,
        result.p50_latency_ms,
        result.p95_latency_ms,
        result.p99_latency_ms,
        result.requests_per_second,
        result.log_file_path,
    )
