"""Tests for the SQLite/FTS5 fragment store."""

import sqlite3
from contextlib import closing

import numpy as np
import pytest

from knowledge_search.hybrid.search_manager import HybridSearcher
from knowledge_search.store.base import FragmentStoreQueryError, LexicalQueryError
from knowledge_search.store.codec import decode_embedding
from knowledge_search.store.sqlite import SQLiteFragmentStore

from .fakes import FakeEmbedder


@pytest.mark.asyncio
async def test_initialize_creates_schema(tmp_path):
    store = SQLiteFragmentStore(str(tmp_path / "nested" / "memory.db"))

    await store.initialize()

    assert await store.count_fragments() == {"fragments": 0, "embedded": 0, "files": 0}
    assert await store.health_check() is True


@pytest.mark.asyncio
async def test_initialize_is_idempotent(sqlite_store):
    await sqlite_store.initialize()

    assert (await sqlite_store.count_fragments())["fragments"] == 4


@pytest.mark.asyncio
async def test_lexical_phrase_query(sqlite_store):
    ids = await sqlite_store.lexical_query('"event loop"', 10)

    assert sorted(ids) == [1, 4]


@pytest.mark.asyncio
async def test_lexical_query_respects_limit(sqlite_store):
    assert len(await sqlite_store.lexical_query('"event loop"', 1)) == 1


@pytest.mark.asyncio
async def test_lexical_query_no_match(sqlite_store):
    assert await sqlite_store.lexical_query('"kubernetes"', 10) == []


@pytest.mark.asyncio
async def test_malformed_match_expression_raises(sqlite_store):
    with pytest.raises(LexicalQueryError):
        await sqlite_store.lexical_query('"unterminated', 10)


@pytest.mark.asyncio
async def test_load_embeddings_skips_nulls(sqlite_store):
    rows = await sqlite_store.load_embeddings()

    assert [fragment_id for fragment_id, _ in rows] == [1, 2, 3]
    np.testing.assert_allclose(decode_embedding(rows[0][1]), [1.0, 0.0, 0.0])


@pytest.mark.asyncio
async def test_fetch_fragments(sqlite_store):
    rows = {row.id: row for row in await sqlite_store.fetch_fragments([3, 1, 999, 3])}

    assert set(rows) == {1, 3}
    assert rows[1].content == "Python asyncio event loop basics"
    assert rows[1].source_file == "/kb/python/asyncio.md"
    assert (rows[3].start_line, rows[3].end_line) == (1, 8)


@pytest.mark.asyncio
async def test_fetch_fragments_empty(sqlite_store):
    assert await sqlite_store.fetch_fragments([]) == []


@pytest.mark.asyncio
async def test_count_fragments(sqlite_store):
    assert await sqlite_store.count_fragments() == {"fragments": 4, "embedded": 3, "files": 2}


@pytest.mark.asyncio
async def test_deleted_chunks_leave_the_index(sqlite_store, sqlite_db_path):
    with closing(sqlite3.connect(sqlite_db_path)) as conn:
        conn.execute("DELETE FROM chunks WHERE id = 4")
        conn.commit()

    assert await sqlite_store.lexical_query('"event loop"', 10) == [1]


@pytest.mark.asyncio
async def test_query_against_missing_tables_raises(tmp_path):
    store = SQLiteFragmentStore(str(tmp_path / "empty.db"))

    with pytest.raises(FragmentStoreQueryError):
        await store.load_embeddings()


@pytest.mark.asyncio
async def test_hybrid_search_over_sqlite(sqlite_store):
    searcher = HybridSearcher(store=sqlite_store, embedder=FakeEmbedder([1.0, 0.0, 0.0]))

    results = await searcher.search("event loop", limit=3)

    assert results[0].id == 1
    assert results[0].file_path == "/kb/python/asyncio.md"
    assert {r.id for r in results} <= {1, 2, 3, 4}
    assert len(results) == 3


@pytest.mark.asyncio
async def test_hybrid_search_with_quote_in_query(sqlite_store):
    searcher = HybridSearcher(store=sqlite_store, embedder=FakeEmbedder([0.0, 0.0, 1.0]))

    results = await searcher.search('borrowing "rules')

    assert results[0].id == 3
