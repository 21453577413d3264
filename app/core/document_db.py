"""
Lightweight SQLite registry of ingested documents.

Creates data/documents.db (relative to project root unless an absolute path is given).
Table: documents (document_id, filename, chunks_count, created_at, updated_at).
The vector index stays the source of truth for chunks; this only lets the API list what was ingested.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Project root
_ROOT = Path(__file__).resolve().parent.parent.parent
_TABLE = "documents"


class DocumentRegistry:
    def __init__(self, db_path: str | Path) -> None:
        path = Path(db_path)
        self.db_path = path if path.is_absolute() else _ROOT / path

    def _get_conn(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create the documents table if it does not exist."""
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_TABLE} (
                    document_id TEXT PRIMARY KEY,
                    filename TEXT NOT NULL,
                    chunks_count INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def upsert(self, document_id: str, filename: str, chunks_count: int) -> None:
        """Insert a document row, or update filename/count (keeping created_at) when re-indexed."""
        now = datetime.now(timezone.utc).isoformat()
        self.init_db()
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                INSERT INTO {_TABLE} (document_id, filename, chunks_count, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(document_id) DO UPDATE SET
                    filename = excluded.filename,
                    chunks_count = excluded.chunks_count,
                    updated_at = excluded.updated_at
                """,
                (document_id, filename, chunks_count, now, now),
            )
            conn.commit()
            logger.info("[document_db] upsert document_id=%s filename=%s chunks=%d", document_id, filename, chunks_count)
        finally:
            conn.close()

    def get(self, document_id: str) -> dict[str, Any] | None:
        self.init_db()
        conn = self._get_conn()
        try:
            row = conn.execute(f"SELECT * FROM {_TABLE} WHERE document_id = ?", (document_id,)).fetchone()
            return _to_dict(row) if row else None
        finally:
            conn.close()

    def list_all(self) -> list[dict[str, Any]]:
        """Return all documents, oldest first."""
        self.init_db()
        conn = self._get_conn()
        try:
            rows = conn.execute(f"SELECT * FROM {_TABLE} ORDER BY created_at ASC, rowid ASC").fetchall()
            return [_to_dict(r) for r in rows]
        finally:
            conn.close()

    def delete(self, document_id: str) -> bool:
        self.init_db()
        conn = self._get_conn()
        try:
            cur = conn.execute(f"DELETE FROM {_TABLE} WHERE document_id = ?", (document_id,))
            conn.commit()
            logger.info("[document_db] delete document_id=%s removed=%d", document_id, cur.rowcount)
            return cur.rowcount > 0
        finally:
            conn.close()


def _to_dict(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "documentId": row["document_id"],
        "filename": row["filename"],
        "chunksCount": row["chunks_count"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }
