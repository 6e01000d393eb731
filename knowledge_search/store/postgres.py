"""PostgreSQL implementation of the fragment store.

Mirrors the SQLite layout (``files`` and ``chunks`` with a ``BYTEA`` float32
embedding). Full-text ranking uses ``to_tsvector`` over ``chunks.content``
with a GIN expression index; the phrase expression is parsed with
``websearch_to_tsquery`` so quoted phrases behave as in FTS5.

Connection management
- A shared asyncpg pool is created on ``initialize`` (or lazily) and reused
- Queries are funneled through ``_fetch`` for uniform error handling
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import asyncpg
from asyncpg import Pool
import structlog

from ..models import FragmentRow
from .base import (
    FragmentStore,
    FragmentStoreConnectionError,
    FragmentStoreQueryError,
    LexicalQueryError,
)

logger = structlog.get_logger("fragment_store.postgres")


def schema_statements(language: str) -> List[str]:
    """DDL for the fragment tables and the full-text index."""
    return [
        """
        CREATE TABLE IF NOT EXISTS files (
            id BIGSERIAL PRIMARY KEY,
            path TEXT UNIQUE NOT NULL,
            last_modified DOUBLE PRECISION,
            hash TEXT
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS chunks (
            id BIGSERIAL PRIMARY KEY,
            file_id BIGINT REFERENCES files(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            start_line INTEGER,
            end_line INTEGER,
            embedding BYTEA
        )
        """,
        f"""
        CREATE INDEX IF NOT EXISTS chunks_content_fts
        ON chunks USING GIN (to_tsvector('{language}', content))
        """,
    ]


class PostgresFragmentStore(FragmentStore):
    """PostgreSQL full-text implementation of the fragment store."""

    def __init__(
        self,
        dsn: str,
        pool_size: int = 5,
        command_timeout: float = 30.0,
        language: str = "english",
    ):
        """Configure a PostgreSQL-backed fragment store.

        Parameters
        - dsn: PostgreSQL DSN including database and credentials
        - pool_size: Max size of the asyncpg connection pool
        - command_timeout: Seconds to allow per statement
        - language: Text search configuration for ``to_tsvector``
        """
        if not language.isidentifier():
            raise ValueError(f"Invalid text search configuration: {language!r}")
        self.dsn = dsn
        self.pool_size = pool_size
        self.command_timeout = command_timeout
        self.language = language
        self._pool: Optional[Pool] = None

    async def _get_pool(self) -> Pool:
        """Get or create the connection pool."""
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=1,
                    max_size=self.pool_size,
                    command_timeout=self.command_timeout,
                )
                logger.info("Created PostgreSQL connection pool", pool_size=self.pool_size)
            except (OSError, asyncpg.PostgresError) as e:
                logger.error("Failed to create PostgreSQL connection pool", error=str(e))
                raise FragmentStoreConnectionError(f"Failed to create connection pool: {e}")

        return self._pool

    async def _fetch(self, operation: str, query: str, *args: Any) -> List[asyncpg.Record]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error("Query execution failed", operation=operation, error=str(e))
            raise FragmentStoreQueryError(f"{operation} failed: {e}")

    async def initialize(self) -> None:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                for statement in schema_statements(self.language):
                    await conn.execute(statement)
        except (OSError, asyncpg.PostgresError) as e:
            raise FragmentStoreQueryError(f"initialize failed: {e}")
        logger.info("PostgreSQL fragment store ready", language=self.language)

    async def lexical_query(self, match_expression: str, limit: int) -> List[int]:
        query = f"""
            SELECT id
            FROM chunks, websearch_to_tsquery('{self.language}', $1) AS q
            WHERE to_tsvector('{self.language}', content) @@ q
            ORDER BY ts_rank(to_tsvector('{self.language}', content), q) DESC, id
            LIMIT $2
        """
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(query, match_expression, limit)
        except asyncpg.PostgresSyntaxError as e:
            raise LexicalQueryError(f"Full-text query rejected: {e}")
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error("Query execution failed", operation="lexical_query", error=str(e))
            raise FragmentStoreQueryError(f"lexical_query failed: {e}")
        return [int(row["id"]) for row in rows]

    async def load_embeddings(self) -> List[Tuple[int, bytes]]:
        rows = await self._fetch(
            "load_embeddings",
            "SELECT id, embedding FROM chunks WHERE embedding IS NOT NULL ORDER BY id",
        )
        return [(int(row["id"]), bytes(row["embedding"])) for row in rows]

    async def fetch_fragments(self, ids: Sequence[int]) -> List[FragmentRow]:
        if not ids:
            return []
        rows = await self._fetch(
            "fetch_fragments",
            """
            SELECT c.id, c.content, c.start_line, c.end_line, f.path
            FROM chunks c
            JOIN files f ON c.file_id = f.id
            WHERE c.id = ANY($1::bigint[])
            """,
            list(dict.fromkeys(ids)),
        )
        return [
            FragmentRow(
                id=int(row["id"]),
                content=row["content"],
                source_file=row["path"],
                start_line=row["start_line"] or 1,
                end_line=row["end_line"] or 1,
            )
            for row in rows
        ]

    async def count_fragments(self) -> Dict[str, int]:
        rows = await self._fetch(
            "count_fragments",
            """
            SELECT (SELECT COUNT(*) FROM chunks) AS fragments,
                   (SELECT COUNT(embedding) FROM chunks) AS embedded,
                   (SELECT COUNT(*) FROM files) AS files
            """,
        )
        row = rows[0]
        return {"fragments": row["fragments"], "embedded": row["embedded"], "files": row["files"]}

    async def health_check(self) -> bool:
        try:
            await self._fetch("health_check", "SELECT 1")
            return True
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Closed PostgreSQL connection pool")
