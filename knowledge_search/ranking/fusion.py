"""Rank fusion for hybrid search."""

from typing import Dict, List, Optional, Sequence

import structlog

from ..models import FusedRanking, RankedId

logger = structlog.get_logger("search_fusion")


def assign_ranks(ids: Sequence[int]) -> List[RankedId]:
    """Attach 1-based ranks to an ordered id list.

    An id repeated within one list keeps only its first (best) rank.
    """
    ranked: List[RankedId] = []
    seen = set()
    for position, fragment_id in enumerate(ids, start=1):
        if fragment_id in seen:
            continue
        seen.add(fragment_id)
        ranked.append(RankedId(fragment_id, position))
    return ranked


class RankFusionAlgorithm:
    """Base class for rank fusion algorithms."""

    def fuse(self, lexical_ids: Sequence[int], semantic_ids: Sequence[int]) -> FusedRanking:
        """Fuse the lexical and semantic candidate lists."""
        raise NotImplementedError


class ReciprocalRankFusion(RankFusionAlgorithm):
    """Reciprocal Rank Fusion (RRF) algorithm.

    Each id scores ``sum(1 / (k + rank))`` over the lists it appears in.
    Only ranks matter, so the two paths' raw scores never need calibrating
    against each other.
    """

    def __init__(self, k: float = 60.0):
        if k <= 0:
            raise ValueError("RRF k must be positive")
        self.k = k  # RRF parameter

    def contribution(self, rank: int) -> float:
        return 1.0 / (self.k + rank)

    def fuse(self, lexical_ids: Sequence[int], semantic_ids: Sequence[int]) -> FusedRanking:
        """Fuse results using the RRF algorithm.

        The output is sorted by descending score. Ties keep the order in which
        ids were first seen: lexical list first, then semantic.
        """
        scores: Dict[int, float] = {}
        details: Dict[int, Dict[str, Optional[int]]] = {}

        for path, ids in (("lexical", lexical_ids), ("semantic", semantic_ids)):
            for item in assign_ranks(ids):
                scores[item.id] = scores.get(item.id, 0.0) + self.contribution(item.rank)
                entry = details.setdefault(item.id, {"lexical_rank": None, "semantic_rank": None})
                entry[f"{path}_rank"] = item.rank

        # sorted() is stable, so equal scores keep first-seen order.
        ordered = sorted(scores, key=lambda fragment_id: -scores[fragment_id])

        logger.debug(
            "RRF fusion completed",
            lexical_count=len(lexical_ids),
            semantic_count=len(semantic_ids),
            fused_count=len(ordered),
            k_parameter=self.k
        )

        return FusedRanking(ids=ordered, scores=scores, details=details)


def create_fusion_algorithm(algorithm: str = "rrf", **params) -> RankFusionAlgorithm:
    """Create a fusion algorithm instance."""
    if algorithm == "rrf":
        return ReciprocalRankFusion(k=params.get("k", 60.0))

    raise ValueError(f"Unknown fusion algorithm: {algorithm}")
