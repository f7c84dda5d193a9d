from __future__ import annotations

from pathlib import Path

from postload.storage.duckdb_store import Storage
from postload.storage.log_sink import RequestLogSink


def default_storage() -> Storage:
    return Storage(Path(".postload/postload.duckdb"))


__all__ = ["RequestLogSink", "Storage", "default_storage"]
