"""Human-readable request log written while a run is in progress.

The file is recreated for every run. Records are appended in arrival order,
which can differ from sequence order since workers finish out of order.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import TextIO

from postload.config import RunConfig, RunMode
from postload.metrics import RequestOutcome, RunResult

RULE = "=" * 80
THIN_RULE = "-" * 80
_TS_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def _timestamp(value: datetime | None = None) -> str:
    value = value or datetime.now().astimezone()
    return value.strftime(_TS_FORMAT)[:-3]


def _banner(title: str) -> list[str]:
    return [RULE, title.center(80).rstrip(), RULE, ""]


class RequestLogSink:
    def __init__(self, path: Path, handle: TextIO) -> None:
        self.path = path
        self._handle = handle
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: str | Path) -> RequestLogSink:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        return cls(target, target.open("w", encoding="utf-8"))

    def __enter__(self) -> RequestLogSink:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def write_header(self, config: RunConfig) -> None:
        lines = _banner("API PERFORMANCE TEST LOG")
        lines.append(f"Test Started: {_timestamp()}")
        lines.append(f"Target URL: {config.url}")
        if config.mode is RunMode.DURATION:
            lines.append("Test Mode: DURATION-BASED")
            lines.append(f"Duration: {config.duration_sec} seconds")
        else:
            lines.append("Test Mode: COUNT-BASED")
            lines.append(f"Total Requests: {config.request_count}")
        lines.append(f"Concurrent Threads: {config.concurrency}")
        lines.append(f"Request Payload: {json.dumps(dict(config.payload))}")
        lines.append("")
        lines.extend(_banner("REQUEST LOGS"))
        self._write(lines)

    def write_record(self, outcome: RequestOutcome) -> None:
        marker = "SUCCESS" if outcome.success else "FAILED"
        status_text = outcome.status_text or "ERROR"
        lines = [
            THIN_RULE,
            f"REQUEST #{outcome.sequence_number} | {marker} | {outcome.status_code} {status_text}",
            THIN_RULE,
            f"Timestamp:     {_timestamp(outcome.issued_at.astimezone())}",
            f"Method:        {outcome.method}",
            f"URL:           {outcome.url}",
            f"Response Time: {outcome.latency_ms} ms",
            "",
            "REQUEST BODY:",
            outcome.request_body,
            "",
            "RESPONSE BODY:",
        ]
        if outcome.response_body is not None:
            lines.append(outcome.response_body)
        elif outcome.error_detail is not None:
            lines.append(f"ERROR: {outcome.error_detail}")
        else:
            lines.append("(empty)")
        lines.append("")
        self._write(lines)

    def write_summary(self, result: RunResult) -> None:
        lines = [""]
        lines.extend(_banner("TEST SUMMARY"))
        lines.extend(
            [
                f"Test Completed: {_timestamp()}",
                f"Status: {result.status.value}",
                "",
                "RESULTS:",
                f"  Total Requests:      {result.total_requests}",
                f"  Successful:          {result.successful_requests}",
                f"  Failed:              {result.failed_requests}",
                f"  Success Rate:        {result.success_rate:.2f}%",
                "",
                "TIMING:",
                f"  Total Duration:      {result.total_duration_ms} ms",
                f"  Average Response:    {result.average_latency_ms:.2f} ms",
                f"  Min Response:        {result.min_latency_ms} ms",
                f"  Max Response:        {result.max_latency_ms} ms",
                f"  P50 (Median):        {result.p50_latency_ms} ms",
                f"  P95:                 {result.p95_latency_ms} ms",
                f"  P99:                 {result.p99_latency_ms} ms",
                "",
                "THROUGHPUT:",
                f"  Requests/Second:     {result.requests_per_second:.2f}",
                "",
            ]
        )
        lines.extend(_banner("END OF LOG")[:-1])
        self._write(lines)

    def close(self) -> None:
        with self._lock:
            if not self._handle.closed:
                self._handle.close()

    def _write(self, lines: list[str]) -> None:
        text = "\n".join(lines) + "\n"
        with self._lock:
            self._handle.write(text)
            self._handle.flush()
