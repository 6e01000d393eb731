"""SQLite implementation of the fragment store.

Fragments live in ``chunks`` (with the embedding as a float32 BLOB) joined to
``files`` for their source path. ``chunks_fts`` is an external-content FTS5
table over ``chunks.content`` kept in sync by triggers, so full-text rowids
are fragment ids.

Connection management
- ``sqlite3`` is blocking, so every call runs on a worker thread via
  ``asyncio.to_thread``
- Each call opens its own short-lived connection; concurrent retrieval paths
  never share a cursor and WAL mode lets them read in parallel
"""

import asyncio
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence, Tuple, TypeVar

import structlog

from ..models import FragmentRow
from .base import (
    FragmentStore,
    FragmentStoreConnectionError,
    FragmentStoreQueryError,
    LexicalQueryError,
)

logger = structlog.get_logger("fragment_store.sqlite")

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY,
    path TEXT UNIQUE NOT NULL,
    last_modified REAL,
    hash TEXT
);

CREATE TABLE IF NOT EXISTS chunks (
    id INTEGER PRIMARY KEY,
    file_id INTEGER,
    content TEXT NOT NULL,
    start_line INTEGER,
    end_line INTEGER,
    embedding BLOB,
    FOREIGN KEY(file_id) REFERENCES files(id) ON DELETE CASCADE
);

CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
    content,
    content='chunks',
    content_rowid='id'
);

CREATE TRIGGER IF NOT EXISTS chunks_ai AFTER INSERT ON chunks BEGIN
    INSERT INTO chunks_fts(rowid, content) VALUES (new.id, new.content);
END;

CREATE TRIGGER IF NOT EXISTS chunks_ad AFTER DELETE ON chunks BEGIN
    INSERT INTO chunks_fts(chunks_fts, rowid, content) VALUES ('delete', old.id, old.content);
END;

CREATE TRIGGER IF NOT EXISTS chunks_au AFTER UPDATE ON chunks BEGIN
    INSERT INTO chunks_fts(chunks_fts, rowid, content) VALUES ('delete', old.id, old.content);
    INSERT INTO chunks_fts(rowid, content) VALUES (new.id, new.content);
END;
"""

# Stay under SQLITE_MAX_VARIABLE_NUMBER on old builds.
_FETCH_BATCH_SIZE = 500

_FTS_ERROR_MARKERS = ("fts5", "syntax error", "unterminated", "malformed match", "no such column")


def _is_fts_syntax_error(error: sqlite3.Error) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _FTS_ERROR_MARKERS)


class SQLiteFragmentStore(FragmentStore):
    """SQLite/FTS5 implementation of the fragment store."""

    def __init__(self, path: str, busy_timeout: float = 5.0):
        """Configure a SQLite-backed fragment store.

        Parameters
        - path: Database file path (created on ``initialize``); must be a
          file, since every call opens its own connection
        - busy_timeout: Seconds to wait on a locked database
        """
        self.path = path
        self.busy_timeout = busy_timeout

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.path, timeout=self.busy_timeout)
        except sqlite3.Error as e:
            raise FragmentStoreConnectionError(f"Failed to open {self.path}: {e}")
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    async def _run(self, operation: str, func: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``func`` with a fresh connection on a worker thread.

        Driver errors other than full-text syntax errors are wrapped in
        ``FragmentStoreQueryError``.
        """
        def call() -> T:
            with closing(self._connect()) as conn:
                return func(conn)

        try:
            return await asyncio.to_thread(call)
        except (FragmentStoreConnectionError, LexicalQueryError):
            raise
        except sqlite3.Error as e:
            logger.error("Query execution failed", operation=operation, error=str(e))
            raise FragmentStoreQueryError(f"{operation} failed: {e}")

    async def initialize(self) -> None:
        """Create the schema if absent and switch the database to WAL mode."""
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        def create(conn: sqlite3.Connection) -> None:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA)
            conn.commit()

        await self._run("initialize", create)
        logger.info("SQLite fragment store ready", path=self.path)

    async def lexical_query(self, match_expression: str, limit: int) -> List[int]:
        """Run an FTS5 MATCH and return rowids ordered by bm25 rank."""
        def query(conn: sqlite3.Connection) -> List[int]:
            try:
                rows = conn.execute(
                    """
                    SELECT rowid
                    FROM chunks_fts
                    WHERE chunks_fts MATCH ?
                    ORDER BY rank, rowid
                    LIMIT ?
                    """,
                    (match_expression, limit),
                ).fetchall()
            except sqlite3.OperationalError as e:
                if _is_fts_syntax_error(e):
                    raise LexicalQueryError(f"Full-text query rejected: {e}")
                raise
            return [int(row[0]) for row in rows]

        return await self._run("lexical_query", query)

    async def load_embeddings(self) -> List[Tuple[int, bytes]]:
        def query(conn: sqlite3.Connection) -> List[Tuple[int, bytes]]:
            rows = conn.execute(
                "SELECT id, embedding FROM chunks WHERE embedding IS NOT NULL ORDER BY id"
            ).fetchall()
            return [(int(row[0]), bytes(row[1])) for row in rows]

        return await self._run("load_embeddings", query)

    async def fetch_fragments(self, ids: Sequence[int]) -> List[FragmentRow]:
        if not ids:
            return []
        unique_ids = list(dict.fromkeys(ids))

        def query(conn: sqlite3.Connection) -> List[FragmentRow]:
            fetched: List[FragmentRow] = []
            for start in range(0, len(unique_ids), _FETCH_BATCH_SIZE):
                batch = unique_ids[start:start + _FETCH_BATCH_SIZE]
                placeholders = ",".join("?" for _ in batch)
                rows = conn.execute(
                    f"""
                    SELECT c.id, c.content, c.start_line, c.end_line, f.path
                    FROM chunks c
                    JOIN files f ON c.file_id = f.id
                    WHERE c.id IN ({placeholders})
                    """,
                    batch,
                ).fetchall()
                fetched.extend(_row_to_fragment(row) for row in rows)
            return fetched

        return await self._run("fetch_fragments", query)

    async def count_fragments(self) -> Dict[str, int]:
        def query(conn: sqlite3.Connection) -> Dict[str, int]:
            fragments, embedded = conn.execute(
                "SELECT COUNT(*), COUNT(embedding) FROM chunks"
            ).fetchone()
            files = conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]
            return {"fragments": fragments, "embedded": embedded, "files": files}

        return await self._run("count_fragments", query)

    async def health_check(self) -> bool:
        try:
            await self._run("health_check", lambda conn: conn.execute("SELECT 1").fetchone())
            return True
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False


def _row_to_fragment(row: Sequence[Any]) -> FragmentRow:
    fragment_id, content, start_line, end_line, path = row
    return FragmentRow(
        id=int(fragment_id),
        content=content,
        source_file=path,
        start_line=int(start_line) if start_line is not None else 1,
        end_line=int(end_line) if end_line is not None else 1,
    )
