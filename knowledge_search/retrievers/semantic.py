"""Semantic (embedding) retrieval.

Scores every cached vector against the query embedding with cosine
similarity in one vectorized pass and returns ids by descending similarity.
A full linear scan is fine up to roughly 1e5 vectors; larger corpora would
want an approximate nearest neighbor index.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from ..common.metrics import MetricsCollector
from ..embedding.base import Embedder
from .vector_cache import VectorCache, VectorSnapshot

logger = structlog.get_logger("retrievers.semantic")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns ``0.0`` when the lengths differ or either vector has zero norm,
    never ``NaN``.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        return 0.0

    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0 or not np.isfinite(norm_a * norm_b):
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def scan_snapshot(
    snapshot: VectorSnapshot,
    query_vector: np.ndarray,
    limit: int
) -> List[Tuple[int, float]]:
    """Rank the snapshot's vectors against ``query_vector``.

    Only rows with the query's dimensionality and a non-zero norm are
    comparable; the rest are left out. Ties keep store order.
    """
    query = np.asarray(query_vector, dtype=np.float32)
    if query.ndim != 1:
        return []

    group = snapshot.group(int(query.shape[0]))
    if group is None:
        if snapshot.groups:
            logger.warning(
                "Query embedding dimension mismatch",
                query_dimension=int(query.shape[0]),
                cache_dimensions=sorted(snapshot.groups)
            )
        return []

    query_norm = float(np.linalg.norm(query))
    if query_norm == 0.0 or not np.isfinite(query_norm):
        return []

    comparable = np.flatnonzero((group.norms > 0) & np.isfinite(group.norms))
    if comparable.size == 0:
        return []

    similarities = (group.matrix[comparable] @ query) / (group.norms[comparable] * query_norm)
    order = np.argsort(-similarities, kind="stable")[:limit]
    return [(int(group.ids[comparable[i]]), float(similarities[i])) for i in order]


class SemanticRetriever:
    """Ranks fragment ids by embedding similarity to the query."""

    def __init__(
        self,
        embedder: Embedder,
        vector_cache: VectorCache,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.embedder = embedder
        self.vector_cache = vector_cache
        self.metrics = metrics

    async def rank(self, query_vector: np.ndarray, limit: int) -> List[Tuple[int, float]]:
        """Return ``(fragment_id, similarity)`` pairs for an already-embedded query."""
        snapshot = await self.vector_cache.snapshot()
        return scan_snapshot(snapshot, query_vector, limit)

    async def retrieve(self, query: str, limit: int) -> List[int]:
        """Embed ``query`` and return up to ``limit`` fragment ids, most similar first.

        Embedding failures and cache reload failures degrade to an empty list.
        """
        try:
            query_vector = await self.embedder.embed(query)
        except Exception as e:
            logger.warning("Query embedding failed", query=query[:50], error=str(e))
            self._record_failure("error")
            return []

        if query_vector is None:
            logger.warning("Embedding generation failed", query=query[:50])
            self._record_failure("embedding_unavailable")
            return []

        try:
            ranked = await self.rank(query_vector, limit)
        except Exception as e:
            logger.warning("Semantic search failed", error=str(e))
            self._record_failure("error")
            return []

        logger.debug("Semantic search completed", results_count=len(ranked))
        return [fragment_id for fragment_id, _ in ranked]

    def _record_failure(self, reason: str) -> None:
        if self.metrics:
            self.metrics.record_retrieval_failure("semantic", reason)
