"""Shared fixtures."""

import sqlite3
from contextlib import closing

import pytest

from knowledge_search.store.codec import encode_embedding
from knowledge_search.store.sqlite import SCHEMA, SQLiteFragmentStore

from .fakes import FakeClock, InMemoryStore, make_fragment


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def two_doc_store():
    """Doc A (id 10) and Doc B (id 20) with orthogonal 2-d embeddings."""
    return InMemoryStore(
        fragments=[
            make_fragment(10, "Doc A Content", "/kb/docs/a.md"),
            make_fragment(20, "Doc B Content", "/kb/docs/b.md"),
        ],
        embeddings={10: [1.0, 0.0], 20: [0.0, 1.0]},
        lexical_ids=[10, 20],
    )


SQLITE_FILES = [
    (1, "/kb/python/asyncio.md"),
    (2, "/kb/rust/ownership.md"),
]

SQLITE_CHUNKS = [
    (1, 1, "Python asyncio event loop basics", 1, 5, [1.0, 0.0, 0.0]),
    (2, 1, "Configuring structured logging with structlog", 6, 10, [0.0, 1.0, 0.0]),
    (3, 2, "Rust ownership and borrowing rules", 1, 8, [0.0, 0.0, 1.0]),
    (4, 2, "Notes about the event loop without an embedding", 9, 12, None),
]


@pytest.fixture
def sqlite_db_path(tmp_path):
    """A populated SQLite database using the store's schema."""
    path = tmp_path / "memory.db"
    with closing(sqlite3.connect(path)) as conn:
        conn.executescript(SCHEMA)
        conn.executemany("INSERT INTO files (id, path) VALUES (?, ?)", SQLITE_FILES)
        conn.executemany(
            "INSERT INTO chunks (id, file_id, content, start_line, end_line, embedding) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            [
                (cid, fid, content, start, end, encode_embedding(vec) if vec is not None else None)
                for cid, fid, content, start, end, vec in SQLITE_CHUNKS
            ],
        )
        conn.commit()
    return path


@pytest.fixture
def sqlite_store(sqlite_db_path):
    return SQLiteFragmentStore(str(sqlite_db_path))
