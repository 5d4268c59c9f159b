"""SQLite persistence for scraped records."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict

from ..errors import DuplicateContentError, StorageError
from ..models import Record

_COLUMNS = (
    "id",
    "url",
    "title",
    "content",
    "content_type",
    "metadata",
    "scraped_at",
    "content_hash",
    "is_dynamic",
    "status_code",
)


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                id TEXT PRIMARY KEY,
                url TEXT NOT NULL,
                title TEXT,
                content TEXT,
                content_type TEXT,
                metadata TEXT,
                scraped_at TEXT NOT NULL,
                content_hash TEXT NOT NULL UNIQUE,
                is_dynamic INTEGER NOT NULL DEFAULT 0,
                status_code INTEGER
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_records_scraped_at ON records(scraped_at)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_records_url ON records(url)")
        conn.commit()

    def reset(self, path: Path) -> None:
        with self._lock:
            if path in self._connections:
                self._connections[path].close()
                del self._connections[path]
        if path.exists():
            path.unlink()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


def _format_ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _row_to_record(row: sqlite3.Row) -> Record:
    metadata = json.loads(row["metadata"]) if row["metadata"] else {}
    return Record(
        id=row["id"],
        url=row["url"],
        title=row["title"] or "",
        content=row["content"] or "",
        content_type=row["content_type"] or "text/html",
        metadata=metadata if isinstance(metadata, dict) else {},
        scraped_at=datetime.fromisoformat(row["scraped_at"]),
        content_hash=row["content_hash"],
        is_dynamic=bool(row["is_dynamic"]),
        status_code=row["status_code"] if row["status_code"] is not None else 200,
    )


class RecordStore:
    """Record table access; every driver error surfaces as a ``StorageError``."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    # ------------------------------------------------------------------
    def find_by_hash(self, content_hash: str) -> Record | None:
        return self._fetch_one("SELECT * FROM records WHERE content_hash = ?", (content_hash,))

    def find_by_id(self, record_id: str) -> Record | None:
        return self._fetch_one("SELECT * FROM records WHERE id = ?", (record_id,))

    def insert(self, record: Record) -> Record:
        if not record.content_hash:
            raise StorageError("Cannot persist a record without a content hash")
        values = (
            record.id,
            record.url,
            record.title,
            record.content,
            record.content_type,
            json.dumps(record.metadata or {}, ensure_ascii=False, default=str),
            _format_ts(record.scraped_at),
            record.content_hash,
            int(record.is_dynamic),
            record.status_code,
        )
        placeholders = ", ".join("?" for _ in _COLUMNS)
        sql = f"INSERT INTO records({', '.join(_COLUMNS)}) VALUES ({placeholders})"
        with self._lock:
            try:
                self._conn.execute(sql, values)
                self._conn.commit()
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                if "content_hash" in str(exc):
                    raise DuplicateContentError(record.content_hash) from exc
                raise StorageError(f"Failed to insert record {record.id}: {exc}") from exc
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to insert record {record.id}: {exc}") from exc
        return record

    def delete(self, record_id: str) -> bool:
        with self._lock:
            try:
                cur = self._conn.execute("DELETE FROM records WHERE id = ?", (record_id,))
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to delete record {record_id}: {exc}") from exc
        return cur.rowcount > 0

    def query(
        self,
        page: int = 1,
        page_size: int = 20,
        url_filter: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> tuple[list[Record], int]:
        """Return one page of records, newest first, plus the total match count."""

        clauses: list[str] = []
        params: list[Any] = []
        if url_filter:
            clauses.append("url LIKE ?")
            params.append(f"%{url_filter}%")
        if start is not None:
            clauses.append("scraped_at >= ?")
            params.append(_format_ts(start))
        if end is not None:
            clauses.append("scraped_at <= ?")
            params.append(_format_ts(end))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        offset = (max(page, 1) - 1) * page_size
        with self._lock:
            try:
                total = self._conn.execute(
                    f"SELECT COUNT(*) FROM records{where}", params
                ).fetchone()[0]
                rows = self._conn.execute(
                    f"SELECT * FROM records{where} ORDER BY scraped_at DESC LIMIT ? OFFSET ?",
                    [*params, page_size, offset],
                ).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to query records: {exc}") from exc
        return [_row_to_record(row) for row in rows], int(total)

    def count(self) -> int:
        with self._lock:
            try:
                return int(self._conn.execute("SELECT COUNT(*) FROM records").fetchone()[0])
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to count records: {exc}") from exc

    def _fetch_one(self, sql: str, params: tuple) -> Record | None:
        with self._lock:
            try:
                row = self._conn.execute(sql, params).fetchone()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to read records: {exc}") from exc
        return _row_to_record(row) if row is not None else None


__all__ = ["RecordStore", "SQLiteManager"]
