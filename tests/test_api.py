from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from postload.api import app

TARGET_URL = "http://target.test/api/login"


@pytest.fixture
def client(make_transport, log_path):
    app.state.transport = make_transport()
    app.state.log_path = log_path
    yield TestClient(app)
    app.state.transport = None


def test_count_test_then_progress(client, log_path) -> None:
    resp = client.post(
        "/api/performance/test",
        params={"url": TARGET_URL, "numberOfRequests": 5, "concurrentThreads": 2},
        json={"username": "demo", "password": "secret"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "SUCCESS"
    assert body["mode"] == "count"
    assert body["total_requests"] == 5
    assert body["successful_requests"] == 5
    assert body["log_file_path"] == log_path

    progress = client.get("/api/performance/progress")
    assert progress.status_code == 200
    snap = progress.json()
    assert snap["running"] is False
    assert snap["total_requests"] == 5
    assert snap["target_duration_seconds"] == 0
    assert len(snap["recent_latencies"]) == 5


def test_duration_test(client) -> None:
    resp = client.post(
        "/api/performance/test",
        params={"url": TARGET_URL, "durationSeconds": 1, "concurrentThreads": 2},
        json={"username": "demo"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["mode"] == "duration"
    assert body["status"] == "SUCCESS"
    assert body["total_requests"] > 0
    assert client.get("/api/performance/progress").json()["target_duration_seconds"] == 1


def test_responses_carry_camel_case_names(client) -> None:
    body = client.post(
        "/api/performance/test",
        params={"url": TARGET_URL, "numberOfRequests": 4, "concurrentThreads": 2},
        json={"username": "demo"},
    ).json()
    assert body["totalRequests"] == body["total_requests"] == 4
    assert body["successfulRequests"] == 4
    assert body["failedRequests"] == 0
    assert body["p95ResponseTime"] == body["p95_latency_ms"]
    assert body["totalTime"] == body["total_duration_ms"]
    assert body["averageResponseTime"] == body["average_latency_ms"]
    assert body["logFilePath"] == body["log_file_path"]
    assert body["errorMessage"] is None

    snap = client.get("/api/performance/progress").json()
    assert snap["totalRequests"] == 4
    assert snap["targetDurationSeconds"] == 0
    assert snap["recentResponseTimes"] == snap["recent_latencies"]
