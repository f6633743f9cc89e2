from __future__ import annotations

from typing import Dict, Type

from .base import DetectionStats, ResultSink, compute_stats
from .json_store import JsonFileResultSink
from .sqlite_store import SQLiteResultSink

_BACKENDS: Dict[str, Type] = {
    "json": JsonFileResultSink,
    "sqlite": SQLiteResultSink,
}


def create_result_sink(backend: str, path: str) -> ResultSink:
    """Build the configured result store."""
    cls = _BACKENDS.get(backend)
    if cls is None:
        raise ValueError(f"Unknown result store '{backend}'. Available: {', '.join(sorted(_BACKENDS))}")
    return cls(path)


__all__ = [
    "DetectionStats",
    "JsonFileResultSink",
    "ResultSink",
    "SQLiteResultSink",
    "compute_stats",
    "create_result_sink",
]
