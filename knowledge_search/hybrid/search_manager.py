"""Search manager for hybrid semantic and lexical search.

Combines full-text ranking (lexical) with vector similarity (semantic) and
merges the two id lists using Reciprocal Rank Fusion (RRF). Either path may
fail or time out on its own; the search then degrades to the other signal
instead of failing.
"""

import asyncio
import time
from typing import Any, Awaitable, Dict, List, Optional

import structlog

from ..common.config import SearchConfig
from ..common.metrics import MetricsCollector
from ..embedding.base import Embedder
from ..models import SearchResult
from ..ranking.fusion import RankFusionAlgorithm, ReciprocalRankFusion
from ..retrievers.hydrator import Hydrator
from ..retrievers.lexical import LexicalRetriever
from ..retrievers.semantic import SemanticRetriever
from ..retrievers.vector_cache import VectorCache
from ..store.base import FragmentStore

logger = structlog.get_logger("search.search_manager")


def search_mode(use_lexical: bool, use_semantic: bool) -> str:
    """Metrics label for the combination of enabled paths."""
    if use_lexical and use_semantic:
        return "hybrid"
    if use_lexical:
        return "lexical"
    if use_semantic:
        return "semantic"
    return "none"


async def _no_candidates() -> List[int]:
    return []


class HybridSearcher:
    """Runs hybrid searches over one fragment store.

    Responsibilities
    - Fetch ``limit * candidate_multiplier`` candidates from each enabled path
    - Run both paths concurrently, each under its own timeout
    - Fuse the id lists with RRF and keep the top ``limit``
    - Hydrate the survivors in fused order

    Store errors during hydration propagate to the caller.
    """

    def __init__(
        self,
        store: FragmentStore,
        embedder: Embedder,
        vector_cache: Optional[VectorCache] = None,
        fuser: Optional[RankFusionAlgorithm] = None,
        default_limit: int = 5,
        candidate_multiplier: int = 2,
        retrieval_timeout: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Construct a searcher.

        Parameters
        - store: Fragment store used for lexical queries and hydration
        - embedder: Query embedder for the semantic path
        - vector_cache: Shared vector cache; one with the default TTL is
          created when omitted
        - fuser: Fusion algorithm, RRF with k=60 by default
        - default_limit: Result count when ``search`` is called without one
        - candidate_multiplier: Candidates fetched per path per result slot
        - retrieval_timeout: Per-path bound in seconds, ``None`` for unbounded
        - metrics: Optional metrics collector
        """
        if default_limit < 1:
            raise ValueError("default_limit must be at least 1")
        if candidate_multiplier < 1:
            raise ValueError("candidate_multiplier must be at least 1")

        self.store = store
        self.embedder = embedder
        self.vector_cache = vector_cache or VectorCache(store, metrics=metrics)
        self.fuser = fuser or ReciprocalRankFusion()
        self.default_limit = default_limit
        self.candidate_multiplier = candidate_multiplier
        self.retrieval_timeout = retrieval_timeout
        self.metrics = metrics

        self.lexical = LexicalRetriever(store, metrics=metrics)
        self.semantic = SemanticRetriever(embedder, self.vector_cache, metrics=metrics)
        self.hydrator = Hydrator(store)

    @classmethod
    def from_config(
        cls,
        config: SearchConfig,
        store: FragmentStore,
        embedder: Embedder,
        vector_cache: Optional[VectorCache] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> "HybridSearcher":
        """Build a searcher whose tunables come from ``config``."""
        return cls(
            store=store,
            embedder=embedder,
            vector_cache=vector_cache or VectorCache(
                store, ttl_seconds=config.ks_vector_cache_ttl_seconds, metrics=metrics
            ),
            fuser=ReciprocalRankFusion(k=config.ks_rrf_k),
            default_limit=config.ks_search_default_limit,
            candidate_multiplier=config.ks_search_candidate_multiplier,
            retrieval_timeout=config.retrieval_timeout,
            metrics=metrics,
        )

    async def search(
        self,
        query: str,
        limit: Optional[int] = None,
        use_lexical: bool = True,
        use_semantic: bool = True,
    ) -> List[SearchResult]:
        """Perform hybrid search.

        Returns at most ``limit`` results sorted by fused score. The score is
        a relative ranking signal, not an absolute probability or similarity.
        A blank query returns an empty list without touching the store.
        """
        if limit is None:
            limit = self.default_limit
        if limit < 1:
            raise ValueError("limit must be at least 1")

        mode = search_mode(use_lexical, use_semantic)
        start_time = time.perf_counter()

        if not query.strip() or mode == "none":
            self._record_search(mode, start_time)
            return []

        candidate_limit = limit * self.candidate_multiplier
        lexical_ids, semantic_ids = await asyncio.gather(
            self._run_path("lexical", self.lexical.retrieve(query, candidate_limit))
            if use_lexical else _no_candidates(),
            self._run_path("semantic", self.semantic.retrieve(query, candidate_limit))
            if use_semantic else _no_candidates(),
        )

        ranking = self.fuser.fuse(lexical_ids, semantic_ids).top(limit)

        try:
            results = await self.hydrator.resolve(ranking)
        except Exception as e:
            logger.error("Search hydration failed", query=query[:50], error=str(e))
            raise

        self._record_search(mode, start_time)
        logger.info(
            "Search completed",
            query=query[:50],
            mode=mode,
            lexical_count=len(lexical_ids),
            semantic_count=len(semantic_ids),
            results_count=len(results),
            duration_ms=round((time.perf_counter() - start_time) * 1000, 3)
        )
        return results

    async def _run_path(self, path: str, retrieval: Awaitable[List[int]]) -> List[int]:
        """Await one retrieval path, degrading to no candidates on timeout."""
        if self.retrieval_timeout is None:
            return await retrieval

        try:
            return await asyncio.wait_for(retrieval, timeout=self.retrieval_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Retrieval path timed out",
                path=path,
                timeout_seconds=self.retrieval_timeout
            )
            if self.metrics:
                self.metrics.record_retrieval_failure(path, "timeout")
            return []

    def _record_search(self, mode: str, start_time: float) -> None:
        if self.metrics:
            self.metrics.record_search(mode, time.perf_counter() - start_time)

    async def health_check(self) -> bool:
        """Check that the fragment store answers."""
        try:
            return await self.store.health_check()
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def index_stats(self) -> Dict[str, Any]:
        """Get search index statistics."""
        try:
            counts = await self.store.count_fragments()
        except Exception as e:
            logger.error("Failed to get index stats", error=str(e))
            counts = {}

        return {
            **counts,
            "vector_cache": self.vector_cache.stats(),
        }
