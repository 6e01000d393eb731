"""Tests for lexical retrieval."""

import pytest

from knowledge_search.common.metrics import MetricsCollector
from knowledge_search.retrievers.lexical import LexicalRetriever, build_phrase_query
from knowledge_search.store.base import FragmentStoreQueryError, LexicalQueryError

from .fakes import InMemoryStore


def test_phrase_query_wraps_and_escapes_quotes():
    assert build_phrase_query("event loop") == '"event loop"'
    assert build_phrase_query('say "hi"') == '"say ""hi"""'
    assert build_phrase_query('"unterminated') == '"""unterminated"'


@pytest.mark.asyncio
async def test_retrieve_sends_phrase_and_limit():
    store = InMemoryStore(lexical_ids=[3, 1, 2])

    ids = await LexicalRetriever(store).retrieve("event loop", limit=2)

    assert ids == [3, 1]
    assert store.lexical_calls == [('"event loop"', 2)]


@pytest.mark.asyncio
async def test_rejected_query_degrades_to_empty():
    metrics = MetricsCollector("test")
    store = InMemoryStore(lexical_ids=[1])
    store.lexical_error = LexicalQueryError("fts5: syntax error")

    assert await LexicalRetriever(store, metrics=metrics).retrieve("x", limit=5) == []
    assert metrics.registry.get_sample_value(
        "ks_retrieval_failures_total", {"path": "lexical", "reason": "error"}
    ) == 1.0


@pytest.mark.asyncio
async def test_store_failure_degrades_to_empty():
    store = InMemoryStore(lexical_ids=[1])
    store.lexical_error = FragmentStoreQueryError("disk I/O error")

    assert await LexicalRetriever(store).retrieve("x", limit=5) == []
