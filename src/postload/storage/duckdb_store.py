from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

import duckdb
import pandas as pd

from postload.config import RunConfig
from postload.metrics import RequestOutcome, RunResult, RunStatus


@dataclass(slots=True)
class Storage:
    db_path: Path

    def __post_init__(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def _init_schema(self) -> None:
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS run_results (
                    run_id TEXT PRIMARY KEY,
                    created_at TIMESTAMP,
                    started_at TIMESTAMP,
                    mode TEXT,
                    status TEXT,
                    total_requests INTEGER,
                    successful_requests INTEGER,
                    failed_requests INTEGER,
                    total_duration_ms BIGINT,
                    average_latency_ms DOUBLE,
                    min_latency_ms BIGINT,
                    max_latency_ms BIGINT,
                    p50_latency_ms BIGINT,
                    p95_latency_ms BIGINT,
                    p99_latency_ms BIGINT,
                    requests_per_second DOUBLE,
                    error_message TEXT,
                    log_file_path TEXT,
                    config_json TEXT,
                    notes TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS request_outcomes (
                    run_id TEXT,
                    sequence_number INTEGER,
                    issued_at TIMESTAMP,
                    latency_ms BIGINT,
                    status_code INTEGER,
                    success BOOLEAN,
                    error_type TEXT,
                    error_detail TEXT
                );
                """
            )

    def run_exists(self, run_id: str) -> bool:
        with self._connect() as con:
            result = con.execute(
                "SELECT COUNT(*) FROM run_results WHERE run_id = ?",
                [run_id],
            ).fetchone()
            return bool(result and result[0] > 0)

    def save_run(
        self,
        config: RunConfig,
        result: RunResult,
        outcomes: Iterable[RequestOutcome] = (),
    ) -> None:
        if self.run_exists(result.run_id):
            msg = f"Run {result.run_id} already exists"
            raise ValueError(msg)
        config_json = json.dumps(config.to_metadata())
        with self._connect() as con:
            con.execute(
                "INSERT INTO run_results VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    result.run_id,
                    _naive(config.created_at),
                    _naive(result.started_at),
                    result.mode,
                    result.status.value,
                    result.total_requests,
                    result.successful_requests,
                    result.failed_requests,
                    result.total_duration_ms,
                    result.average_latency_ms,
                    result.min_latency_ms,
                    result.max_latency_ms,
                    result.p50_latency_ms,
                    result.p95_latency_ms,
                    result.p99_latency_ms,
                    result.requests_per_second,
                    result.error_message,
                    result.log_file_path,
                    config_json,
                    config.notes,
                ],
            )
            outcomes_df = pd.DataFrame(
                [
                    {
                        "run_id": result.run_id,
                        "sequence_number": o.sequence_number,
                        "issued_at": _naive(o.issued_at),
                        "latency_ms": o.latency_ms,
                        "status_code": o.status_code,
                        "success": o.success,
                        "error_type": o.error_type.value if o.error_type else None,
                        "error_detail": o.error_detail,
                    }
                    for o in outcomes
                ]
            )
            if not outcomes_df.empty:
                con.execute("INSERT INTO request_outcomes SELECT * FROM outcomes_df")

    def list_runs(self) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                """
                SELECT run_id, created_at, mode, status, total_requests,
                       successful_requests, failed_requests, p95_latency_ms,
                       requests_per_second, notes
                FROM run_results ORDER BY created_at DESC
                """
            ).fetchdf()

    def load_result(self, run_id: str) -> RunResult | None:
        with self._connect() as con:
            row = con.execute(
                """
                SELECT run_id, mode, status, started_at, total_requests,
                       successful_requests, failed_requests, total_duration_ms,
                       average_latency_ms, min_latency_ms, max_latency_ms,
                       p50_latency_ms, p95_latency_ms, p99_latency_ms,
                       requests_per_second, error_message, log_file_path
                FROM run_results WHERE run_id = ?
                """,
                [run_id],
            ).fetchone()
        if not row:
            return None
        return RunResult(
            run_id=row[0],
            mode=row[1],
            status=RunStatus(row[2]),
            started_at=row[3],
            total_requests=row[4],
            successful_requests=row[5],
            failed_requests=row[6],
            total_duration_ms=row[7],
            average_latency_ms=row[8],
            min_latency_ms=row[9],
            max_latency_ms=row[10],
            p50_latency_ms=row[11],
            p95_latency_ms=row[12],
            p99_latency_ms=row[13],
            requests_per_second=row[14],
            error_message=row[15],
            log_file_path=row[16],
        )

    def load_run_meta(self, run_id: str) -> dict[str, object] | None:
        with self._connect() as con:
            row = con.execute(
                "SELECT config_json FROM run_results WHERE run_id = ?",
                [run_id],
            ).fetchone()
            if not row:
                return None
            return json.loads(row[0])

    def load_outcomes(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM request_outcomes WHERE run_id = ? ORDER BY sequence_number",
                [run_id],
            ).fetchdf()


def _naive(value: datetime | None) -> datetime | None:
    # DuckDB TIMESTAMP columns carry no zone; store UTC wall time.
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
