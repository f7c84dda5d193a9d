from __future__ import annotations

import asyncio
from typing import Callable

import httpx
import pytest


def fixed_transport(status: int = 200, delay_sec: float = 0.0, body: str = '{"ok": true}') -> httpx.MockTransport:
    async def handler(request: httpx.Request) -> httpx.Response:
        if delay_sec:
            await asyncio.sleep(delay_sec)
        return httpx.Response(status, text=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def make_transport() -> Callable[..., httpx.MockTransport]:
    return fixed_transport


@pytest.fixture
def log_path(tmp_path) -> str:
    return str(tmp_path / "logs" / "performance_test.log")
