"""Exception hierarchy for the load engine.

Per-request failures are turned into failed outcomes by the transport layer
and never leave a worker; only run-level problems reach the executor, which
reports them as an ``ERROR`` result.
"""

from __future__ import annotations

from postload.metrics.models import ErrorType


class PostloadError(Exception):
    """Base class for engine errors."""


class TransportError(PostloadError):
    """A POST could not produce an HTTP response."""

    def __init__(self, message: str, error_type: ErrorType = ErrorType.OTHER, latency_ms: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.latency_ms = latency_ms


class RunRejectedError(PostloadError):
    """Another run already owns the live progress slot."""

    def __init__(self) -> None:
        super().__init__("run already in progress")
