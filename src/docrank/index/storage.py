"""SQLite persistence for the tracked-document set and per-document metrics."""

from __future__ import annotations

import json
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from docrank.models import DocumentMetrics


@dataclass(slots=True)
class TrackResult:
    added: int = 0
    skipped: int = 0


def _decode_values(raw: Optional[str]) -> Dict[str, float]:
    """Decode stored metric values, ignoring anything that is not numeric."""
    try:
        decoded = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        return {}
    if not isinstance(decoded, dict):
        return {}
    return {
        str(key): float(value)
        for key, value in decoded.items()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    }


def _metrics_from_row(row: sqlite3.Row) -> DocumentMetrics:
    return DocumentMetrics(
        values=_decode_values(row["metric_values"]),
        last_visited=int(row["last_visited"] or 0),
        visit_count=int(row["visit_count"] or 0),
    )


class SQLiteMetricsStore:
    """Persistence layer for tracked documents and their metrics.

    Entries may be partial (missing metric keys) or absent; callers fill in
    defaults through the priority scorer.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tracked_documents (
                    path TEXT PRIMARY KEY,
                    added_at INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS document_metrics (
                    path TEXT PRIMARY KEY,
                    metric_values TEXT NOT NULL DEFAULT '{}',
                    last_visited INTEGER NOT NULL DEFAULT 0,
                    visit_count INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS document_metrics_updated
                AFTER UPDATE ON document_metrics
                BEGIN
                    UPDATE document_metrics SET updated_at = CURRENT_TIMESTAMP
                    WHERE path = NEW.path;
                END;
                """
            )

    def track(self, paths: Iterable[str], default_metrics: DocumentMetrics) -> TrackResult:
        """Add paths to the tracked set, creating default metrics where none exist."""
        result = TrackResult()
        added_at = int(time.time() * 1000)
        with self.transaction() as conn:
            for path in paths:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO tracked_documents(path, added_at) VALUES (?, ?)",
                    (path, added_at),
                )
                if cursor.rowcount == 0:
                    result.skipped += 1
                    continue
                result.added += 1
                conn.execute(
                    """
                    INSERT OR IGNORE INTO document_metrics(path, metric_values, last_visited, visit_count)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        path,
                        json.dumps(default_metrics.values, ensure_ascii=False),
                        default_metrics.last_visited,
                        default_metrics.visit_count,
                    ),
                )
        return result

    def untrack(self, path: str) -> bool:
        """Remove a path from the tracked set. Its metrics are kept."""
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM tracked_documents WHERE path = ?", (path,))
        return cursor.rowcount > 0

    def is_tracked(self, path: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM tracked_documents WHERE path = ?", (path,)
        ).fetchone()
        return row is not None

    def tracked_paths(self) -> List[str]:
        rows = self._conn.execute(
            "SELECT path FROM tracked_documents ORDER BY added_at, path"
        ).fetchall()
        return [row["path"] for row in rows]

    def get_metrics(self, path: str) -> Optional[DocumentMetrics]:
        row = self._conn.execute(
            "SELECT metric_values, last_visited, visit_count FROM document_metrics WHERE path = ?",
            (path,),
        ).fetchone()
        return _metrics_from_row(row) if row else None

    def all_metrics(self) -> Dict[str, DocumentMetrics]:
        rows = self._conn.execute(
            "SELECT path, metric_values, last_visited, visit_count FROM document_metrics"
        ).fetchall()
        return {row["path"]: _metrics_from_row(row) for row in rows}

    def save_metrics(self, path: str, metrics: DocumentMetrics) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO document_metrics(path, metric_values, last_visited, visit_count)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    metric_values = excluded.metric_values,
                    last_visited = excluded.last_visited,
                    visit_count = excluded.visit_count
                """,
                (
                    path,
                    json.dumps(metrics.values, ensure_ascii=False),
                    metrics.last_visited,
                    metrics.visit_count,
                ),
            )

    def remove_metric_key(self, metric_id: str) -> int:
        """Drop one metric from every stored entry; return entries touched."""
        touched = 0
        with self.transaction() as conn:
            rows = conn.execute("SELECT path, metric_values FROM document_metrics").fetchall()
            for row in rows:
                values = _decode_values(row["metric_values"])
                if metric_id not in values:
                    continue
                del values[metric_id]
                conn.execute(
                    "UPDATE document_metrics SET metric_values = ? WHERE path = ?",
                    (json.dumps(values, ensure_ascii=False), row["path"]),
                )
                touched += 1
        return touched

    def reset_history(self, *, untrack_all: bool = False) -> int:
        """Zero visit history for every entry, keeping entries and metric values.

        With ``untrack_all`` the tracked set is emptied as well.
        """
        with self.transaction() as conn:
            if untrack_all:
                conn.execute("DELETE FROM tracked_documents")
            cursor = conn.execute(
                "UPDATE document_metrics SET last_visited = 0, visit_count = 0"
            )
        return cursor.rowcount

    def remove_missing(self, root: Path) -> int:
        """Untrack documents whose files no longer exist below ``root``."""
        with self.transaction() as conn:
            rows = conn.execute("SELECT path FROM tracked_documents").fetchall()
            missing = [row["path"] for row in rows if not (Path(root) / row["path"]).exists()]
            for path in missing:
                conn.execute("DELETE FROM tracked_documents WHERE path = ?", (path,))
        return len(missing)

    def get_stats(self) -> Dict[str, int]:
        tracked = self._conn.execute("SELECT COUNT(*) FROM tracked_documents").fetchone()[0]
        with_metrics = self._conn.execute("SELECT COUNT(*) FROM document_metrics").fetchone()[0]
        return {"tracked_count": int(tracked), "metrics_count": int(with_metrics)}
