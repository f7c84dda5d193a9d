from __future__ import annotations

import asyncio
import json

import httpx

from postload.config import TransportConfig
from postload.loadgen.client import TransportClient, send_request
from postload.metrics import ErrorType

TARGET_URL = "http://target.test/api/login"
BODY = b'{"username":"demo"}'


def test_post_carries_json_body_and_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"token": "abc"})

    async def scenario():
        async with TransportClient(transport=httpx.MockTransport(handler)) as client:
            return await send_request(client, 7, TARGET_URL, BODY)

    outcome = asyncio.run(scenario())
    assert outcome.success
    assert outcome.sequence_number == 7
    assert outcome.status_code == 201
    assert outcome.status_text == "Created"
    assert json.loads(outcome.response_body) == {"token": "abc"}
    assert outcome.error_detail is None
    assert outcome.latency_ms >= 0
    request = seen[0]
    assert request.method == "POST"
    assert request.headers["content-type"] == "application/json"
    assert request.content == BODY


def test_non_2xx_is_a_failed_outcome_with_body(make_transport) -> None:
    async def scenario():
        async with TransportClient(transport=make_transport(status=500, body="boom")) as client:
            return await send_request(client, 1, TARGET_URL, BODY)

    outcome = asyncio.run(scenario())
    assert not outcome.success
    assert outcome.status_code == 500
    assert outcome.response_body == "boom"
    assert outcome.error_detail is None


def test_connect_error_becomes_status_zero() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        async with TransportClient(transport=httpx.MockTransport(handler)) as client:
            return await send_request(client, 3, TARGET_URL, BODY)

    outcome = asyncio.run(scenario())
    assert not outcome.success
    assert outcome.status_code == 0
    assert outcome.error_type is ErrorType.CONNECT
    assert "connection refused" in outcome.error_detail
    assert outcome.response_body is None
    assert outcome.status_text is None


def test_read_timeout_is_classified() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    async def scenario():
        async with TransportClient(transport=httpx.MockTransport(handler)) as client:
            return await send_request(client, 1, TARGET_URL, BODY)

    outcome = asyncio.run(scenario())
    assert outcome.status_code == 0
    assert outcome.error_type is ErrorType.TIMEOUT


def test_per_host_slots_fail_fast(make_transport) -> None:
    config = TransportConfig(max_connections_per_host=1, pool_timeout_sec=0.05)

    async def scenario():
        async with TransportClient(config, transport=make_transport(delay_sec=0.5)) as client:
            return await asyncio.gather(
                send_request(client, 1, TARGET_URL, BODY),
                send_request(client, 2, TARGET_URL, BODY),
            )

    outcomes = asyncio.run(scenario())
    statuses = sorted(o.status_code for o in outcomes)
    assert statuses == [0, 200]
    starved = next(o for o in outcomes if o.status_code == 0)
    assert starved.error_type is ErrorType.POOL
    assert starved.latency_ms == 0


def test_unexpected_transport_exception_becomes_failed_outcome() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("handler blew up")

    async def scenario():
        async with TransportClient(transport=httpx.MockTransport(handler)) as client:
            return await send_request(client, 4, TARGET_URL, BODY)

    outcome = asyncio.run(scenario())
    assert not outcome.success
    assert outcome.status_code == 0
    assert outcome.error_type is ErrorType.OTHER
    assert "handler blew up" in outcome.error_detail
