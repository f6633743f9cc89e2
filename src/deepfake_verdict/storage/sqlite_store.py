from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

from ..result import DetectionResult
from .base import DetectionStats


class SQLiteResultSink:
    """
    Relational result store.

    Features and metadata are stored as JSON text columns. Connections are
    thread-local; every write commits or rolls back as a unit.
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS detection_results (
        id TEXT PRIMARY KEY,
        user_id TEXT,
        filename TEXT NOT NULL,
        verdict TEXT NOT NULL CHECK (verdict IN ('real', 'fake', 'uncertain')),
        confidence REAL NOT NULL,
        real_score REAL NOT NULL,
        fake_score REAL NOT NULL,
        detection_time REAL NOT NULL,
        features TEXT NOT NULL,
        timestamp INTEGER NOT NULL,
        metadata TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_results_user ON detection_results(user_id);
    CREATE INDEX IF NOT EXISTS idx_results_timestamp ON detection_results(timestamp);
    """

    def __init__(self, db_path: str):
        self.db_path = Path(db_path).expanduser()
        self._local = threading.local()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._cursor() as cursor:
            cursor.executescript(self.SCHEMA)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "conn", None) is None:
            self._local.conn = sqlite3.connect(str(self.db_path), timeout=30.0)
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    @contextmanager
    def _cursor(self):
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    @staticmethod
    def _row_to_result(row: sqlite3.Row) -> DetectionResult:
        return DetectionResult(
            id=row["id"],
            filename=row["filename"],
            timestamp=int(row["timestamp"]),
            real_score=float(row["real_score"]),
            fake_score=float(row["fake_score"]),
            confidence=float(row["confidence"]),
            verdict=row["verdict"],
            features=json.loads(row["features"]),
            detection_time=float(row["detection_time"]),
            metadata=json.loads(row["metadata"]),
        )

    def save(self, result: DetectionResult, owner_id: Optional[str] = None) -> str:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT OR REPLACE INTO detection_results
                    (id, user_id, filename, verdict, confidence, real_score, fake_score,
                     detection_time, features, timestamp, metadata)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.id,
                    owner_id,
                    result.filename,
                    result.verdict,
                    result.confidence,
                    result.real_score,
                    result.fake_score,
                    result.detection_time,
                    json.dumps(dict(result.features)),
                    result.timestamp,
                    json.dumps(dict(result.metadata)),
                ),
            )
        return result.id

    def list(self, owner_id: Optional[str] = None) -> List[DetectionResult]:
        query = "SELECT * FROM detection_results"
        params: tuple = ()
        if owner_id is not None:
            query += " WHERE user_id = ?"
            params = (owner_id,)
        query += " ORDER BY timestamp DESC, rowid DESC"
        with self._cursor() as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()
        return [self._row_to_result(r) for r in rows]

    def get(self, result_id: str) -> Optional[DetectionResult]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM detection_results WHERE id = ?", (result_id,))
            row = cursor.fetchone()
        return self._row_to_result(row) if row else None

    def delete_by_owner(self, owner_id: str) -> int:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM detection_results WHERE user_id = ?", (owner_id,))
            return cursor.rowcount

    def clear(self) -> None:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM detection_results")

    def stats(self, owner_id: Optional[str] = None) -> DetectionStats:
        query = """
            SELECT
                COUNT(*) AS total,
                SUM(CASE WHEN verdict = 'real' THEN 1 ELSE 0 END) AS real_n,
                SUM(CASE WHEN verdict = 'fake' THEN 1 ELSE 0 END) AS fake_n,
                SUM(CASE WHEN verdict = 'uncertain' THEN 1 ELSE 0 END) AS uncertain_n,
                AVG(confidence) AS avg_conf
            FROM detection_results
        """
        params: tuple = ()
        if owner_id is not None:
            query += " WHERE user_id = ?"
            params = (owner_id,)
        with self._cursor() as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
        return DetectionStats(
            total_analyzed=int(row["total"] or 0),
            real_detected=int(row["real_n"] or 0),
            fake_detected=int(row["fake_n"] or 0),
            uncertain_detected=int(row["uncertain_n"] or 0),
            average_confidence=float(row["avg_conf"] or 0.0),
        )
