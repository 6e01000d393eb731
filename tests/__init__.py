"""Tests for the knowledge search engine.

Store-level tests run against a real SQLite/FTS5 database in a temporary
directory; engine-level tests use in-memory fakes for the store and
embedder. The PostgreSQL backend is only exercised up to construction since
it needs a running server.
"""
