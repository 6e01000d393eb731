"""Tests for result hydration."""

import pytest

from knowledge_search.models import FusedRanking
from knowledge_search.ranking.fusion import ReciprocalRankFusion
from knowledge_search.retrievers.hydrator import Hydrator
from knowledge_search.store.base import FragmentStoreQueryError


@pytest.mark.asyncio
async def test_results_follow_ranking_order(two_doc_store):
    ranking = ReciprocalRankFusion().fuse([10, 20], [10, 20])

    results = await Hydrator(two_doc_store).resolve(ranking)

    assert [r.id for r in results] == [10, 20]
    assert [r.content for r in results] == ["Doc A Content", "Doc B Content"]
    assert results[0].file_path == "/kb/docs/a.md"
    assert results[0].score == pytest.approx(2 / 61)
    assert results[0].lexical_rank == 1
    assert results[1].semantic_rank == 2


@pytest.mark.asyncio
async def test_unresolvable_ids_are_dropped(two_doc_store):
    ranking = ReciprocalRankFusion().fuse([10, 99, 20], [])

    results = await Hydrator(two_doc_store).resolve(ranking)

    assert [r.id for r in results] == [10, 20]
    assert two_doc_store.fetch_calls == [[10, 99, 20]]


@pytest.mark.asyncio
async def test_empty_ranking_skips_store(two_doc_store):
    assert await Hydrator(two_doc_store).resolve(FusedRanking(ids=[], scores={})) == []
    assert two_doc_store.fetch_calls == []


@pytest.mark.asyncio
async def test_store_errors_propagate(two_doc_store):
    two_doc_store.fetch_error = FragmentStoreQueryError("connection reset")

    with pytest.raises(FragmentStoreQueryError):
        await Hydrator(two_doc_store).resolve(ReciprocalRankFusion().fuse([10], []))
