from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Mapping

from postload.config import DEFAULT_LOG_PATH, RunConfig, RunMode
from postload.loadgen.runner import run_load_test
from postload.metrics import RequestOutcome, RunResult, RunStatus
from postload.storage import default_storage


def _load_payload(args: argparse.Namespace) -> Mapping[str, Any]:
    if args.payload_file:
        raw = Path(args.payload_file).read_text(encoding="utf-8")
    else:
        raw = args.payload
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        msg = "payload must be a JSON object"
        raise ValueError(msg)
    return payload


def _build_config(args: argparse.Namespace) -> RunConfig:
    mode = RunMode.DURATION if args.duration > 0 else RunMode.COUNT
    return RunConfig(
        url=args.target,
        payload=_load_payload(args),
        mode=mode,
        concurrency=args.concurrency,
        request_count=args.requests,
        duration_sec=args.duration,
        log_path=args.log_file,
        notes=args.notes,
    )


def _format_result(result: RunResult) -> str:
    lines = [
        f"Run:            {result.run_id} ({result.mode})",
        f"Status:         {result.status.value}",
    ]
    if result.error_message:
        lines.append(f"Message:        {result.error_message}")
    if result.status is RunStatus.ERROR:
        return "\n".join(lines)
    lines.extend(
        [
            f"Total:          {result.total_requests}",
            f"Successful:     {result.successful_requests}",
            f"Failed:         {result.failed_requests}",
            f"Duration:       {result.total_duration_ms} ms",
            f"Latency avg:    {result.average_latency_ms:.2f} ms",
            f"Latency min/max: {result.min_latency_ms} / {result.max_latency_ms} ms",
            f"p50/p95/p99:    {result.p50_latency_ms} / {result.p95_latency_ms} / {result.p99_latency_ms} ms",
            f"Requests/sec:   {result.requests_per_second:.2f}",
            f"Log file:       {result.log_file_path}",
        ]
    )
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Concurrent HTTP POST load tester")
    parser.add_argument("--target", required=True, help="Target URL")
    body = parser.add_mutually_exclusive_group()
    body.add_argument("--payload", default="{}", help="JSON object sent as the request body")
    body.add_argument("--payload-file", help="File holding the JSON request body")
    parser.add_argument("--requests", type=int, default=100, help="Request count (count mode)")
    parser.add_argument("--duration", type=int, default=0, help="Seconds to run; > 0 selects duration mode")
    parser.add_argument("--concurrency", type=int, default=10)
    parser.add_argument("--log-file", default=DEFAULT_LOG_PATH)
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--notes", default="")
    parser.add_argument("--save", action="store_true", help="Record the run in the local history store")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _build_config(args)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    outcomes: list[RequestOutcome] = []
    result = asyncio.run(run_load_test(config, on_outcome=outcomes.append if args.save else None))
    print(_format_result(result))
    if args.save and result.status is not RunStatus.ERROR:
        default_storage().save_run(config, result, outcomes)
    return 1 if result.status is RunStatus.ERROR else 0


if __name__ == "__main__":
    sys.exit(main())
