from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from types import TracebackType
from urllib.parse import urlsplit

import httpx

from postload.config import TransportConfig
from postload.errors import TransportError
from postload.metrics import ErrorType, RequestOutcome

logger = logging.getLogger(__name__)

_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


@dataclass(frozen=True, slots=True)
class TransportResponse:
    status_code: int
    status_text: str
    body: str
    latency_ms: int


class TransportClient:
    """Pooled POST sender shared by every worker of a run.

    ``httpx`` caps total connections; the per-destination cap is a semaphore
    per host acquired under the same pool timeout, so an exhausted pool fails
    fast instead of queueing without bound.
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or TransportConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._host_slots: dict[str, asyncio.Semaphore] = {}

    async def __aenter__(self) -> TransportClient:
        cfg = self._config
        self._client = httpx.AsyncClient(
            transport=self._transport,
            limits=httpx.Limits(
                max_connections=cfg.max_connections,
                max_keepalive_connections=cfg.max_connections_per_host,
                keepalive_expiry=cfg.idle_timeout_sec,
            ),
            timeout=httpx.Timeout(
                connect=cfg.connect_timeout_sec,
                read=cfg.read_timeout_sec,
                write=cfg.read_timeout_sec,
                pool=cfg.pool_timeout_sec,
            ),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, url: str, body: bytes) -> TransportResponse:
        if self._client is None:
            raise TransportError("transport client is closed")
        slots = self._slots_for(url)
        try:
            await asyncio.wait_for(slots.acquire(), timeout=self._config.pool_timeout_sec)
        except asyncio.TimeoutError as exc:
            msg = f"timed out after {self._config.pool_timeout_sec}s waiting for a connection slot"
            raise TransportError(msg, ErrorType.POOL) from exc
        try:
            start = time.perf_counter()
            try:
                resp = await self._client.post(url, content=body, headers=_HEADERS)
            except httpx.PoolTimeout as exc:
                raise TransportError(_describe(exc), ErrorType.POOL) from exc
            except httpx.TimeoutException as exc:
                raise TransportError(_describe(exc), ErrorType.TIMEOUT, _elapsed_ms(start)) from exc
            except httpx.ConnectError as exc:
                raise TransportError(_describe(exc), ErrorType.CONNECT, _elapsed_ms(start)) from exc
            except httpx.ReadError as exc:
                raise TransportError(_describe(exc), ErrorType.READ, _elapsed_ms(start)) from exc
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise TransportError(_describe(exc), ErrorType.OTHER, _elapsed_ms(start)) from exc
            except Exception as exc:
                # Anything a transport raises still counts as a failed request.
                raise TransportError(_describe(exc), ErrorType.OTHER, _elapsed_ms(start)) from exc
            latency_ms = _elapsed_ms(start)
        finally:
            slots.release()
        return TransportResponse(
            status_code=resp.status_code,
            status_text=resp.reason_phrase,
            body=resp.text,
            latency_ms=latency_ms,
        )

    def _slots_for(self, url: str) -> asyncio.Semaphore:
        host = urlsplit(url).netloc
        slots = self._host_slots.get(host)
        if slots is None:
            slots = asyncio.Semaphore(self._config.max_connections_per_host)
            self._host_slots[host] = slots
        return slots


async def send_request(
    client: TransportClient,
    sequence_number: int,
    url: str,
    body: bytes,
) -> RequestOutcome:
    issued_at = datetime.now(timezone.utc)
    request_body = body.decode("utf-8")
    try:
        resp = await client.send(url, body)
    except TransportError as exc:
        logger.debug("Request #%d ERROR (%s) - %s", sequence_number, exc.error_type.value, exc.message)
        return RequestOutcome(
            sequence_number=sequence_number,
            issued_at=issued_at,
            latency_ms=exc.latency_ms,
            status_code=0,
            url=url,
            request_body=request_body,
            error_detail=exc.message,
            error_type=exc.error_type,
        )
    outcome = RequestOutcome(
        sequence_number=sequence_number,
        issued_at=issued_at,
        latency_ms=resp.latency_ms,
        status_code=resp.status_code,
        url=url,
        request_body=request_body,
        status_text=resp.status_text,
        response_body=resp.body,
    )
    marker = "OK" if outcome.success else "FAILED"
    logger.debug(
        "Request #%d %s [%d %s] - %dms",
        sequence_number,
        marker,
        resp.status_code,
        resp.status_text,
        resp.latency_ms,
    )
    return outcome


def _elapsed_ms(start: float) -> int:
    return max(0, round((time.perf_counter() - start) * 1000.0))


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__
