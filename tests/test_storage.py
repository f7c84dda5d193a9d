from __future__ import annotations

from datetime import datetime, timezone

import pytest

from postload.config import RunConfig
from postload.loadgen.runner import build_result
from postload.metrics import ErrorType, RequestOutcome, RunStatus
from postload.storage import Storage

TARGET_URL = "http://target.test/api/login"


def _outcomes() -> list[RequestOutcome]:
    issued = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    return [
        RequestOutcome(1, issued, 12, 200, TARGET_URL, "{}", status_text="OK", response_body="{}"),
        RequestOutcome(2, issued, 18, 200, TARGET_URL, "{}", status_text="OK", response_body="{}"),
        RequestOutcome(3, issued, 0, 0, TARGET_URL, "{}", error_detail="refused", error_type=ErrorType.CONNECT),
    ]


def test_save_and_load_run(tmp_path) -> None:
    storage = Storage(tmp_path / "db" / "postload.duckdb")
    config = RunConfig(url=TARGET_URL, payload={"username": "demo"}, request_count=3, run_id="run-1", notes="smoke")
    outcomes = _outcomes()
    result = build_result("run-1", config, outcomes, total_duration_ms=1500, started_at=config.created_at)
    storage.save_run(config, result, outcomes)

    assert storage.run_exists("run-1")
    loaded = storage.load_result("run-1")
    assert loaded is not None
    assert loaded.status is RunStatus.SUCCESS
    assert loaded.total_requests == 3
    assert loaded.successful_requests == 2
    assert loaded.p95_latency_ms == 18
    assert loaded.requests_per_second == pytest.approx(2.0)

    runs = storage.list_runs()
    assert runs["run_id"].tolist() == ["run-1"]
    assert runs["notes"].tolist() == ["smoke"]

    frame = storage.load_outcomes("run-1")
    assert frame["sequence_number"].tolist() == [1, 2, 3]
    assert frame["success"].tolist() == [True, True, False]
    assert frame["error_type"].tolist()[2] == "connect"

    meta = storage.load_run_meta("run-1")
    assert meta["url"] == TARGET_URL
    assert meta["payload"] == {"username": "demo"}


def test_duplicate_run_is_rejected(tmp_path) -> None:
    storage = Storage(tmp_path / "postload.duckdb")
    config = RunConfig(url=TARGET_URL, payload={}, run_id="dup")
    result = build_result("dup", config, [], total_duration_ms=0)
    storage.save_run(config, result)
    with pytest.raises(ValueError):
        storage.save_run(config, result)
    assert storage.load_result("missing") is None
