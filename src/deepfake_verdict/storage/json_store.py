from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional

from ..result import DetectionResult
from .base import DetectionStats, compute_stats

logger = logging.getLogger(__name__)

OWNER_KEY = "ownerId"


class JsonFileResultSink:
    """
    Local result cache: one JSON list in one file, newest first.

    A missing or corrupt file reads as an empty store.
    """

    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _read(self) -> List[Dict]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Failed to retrieve detection results from %s: %s", self.path, e)
            return []
        if not isinstance(data, list):
            logger.error("Ignoring malformed results file %s", self.path)
            return []
        return data

    def _write(self, records: List[Dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(records, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    @staticmethod
    def _to_result(record: Dict) -> DetectionResult:
        data = {k: v for k, v in record.items() if k != OWNER_KEY}
        return DetectionResult.from_dict(data)

    def save(self, result: DetectionResult, owner_id: Optional[str] = None) -> str:
        record = result.to_dict()
        record[OWNER_KEY] = owner_id
        with self._lock:
            records = [r for r in self._read() if r.get("id") != result.id]
            self._write([record] + records)
        return result.id

    def list(self, owner_id: Optional[str] = None) -> List[DetectionResult]:
        with self._lock:
            records = self._read()
        if owner_id is not None:
            records = [r for r in records if r.get(OWNER_KEY) == owner_id]
        return [self._to_result(r) for r in records]

    def get(self, result_id: str) -> Optional[DetectionResult]:
        with self._lock:
            records = self._read()
        for r in records:
            if r.get("id") == result_id:
                return self._to_result(r)
        return None

    def delete_by_owner(self, owner_id: str) -> int:
        with self._lock:
            records = self._read()
            kept = [r for r in records if r.get(OWNER_KEY) != owner_id]
            self._write(kept)
        return len(records) - len(kept)

    def clear(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()

    def stats(self, owner_id: Optional[str] = None) -> DetectionStats:
        return compute_stats(self.list(owner_id))
