"""Resolve fused fragment ids back into full search results."""

from typing import List

import structlog

from ..models import FusedRanking, SearchResult
from ..store.base import FragmentStore

logger = structlog.get_logger("retrievers.hydrator")


class Hydrator:
    """Batch-fetches ranked fragments and restores the ranking order.

    Store errors propagate: without hydration there is nothing to return.
    Ids that no longer resolve (deleted since ranking) are dropped.
    """

    def __init__(self, store: FragmentStore):
        self.store = store

    async def resolve(self, ranking: FusedRanking) -> List[SearchResult]:
        if not ranking.ids:
            return []

        rows = await self.store.fetch_fragments(ranking.ids)
        rows_by_id = {row.id: row for row in rows}

        results: List[SearchResult] = []
        missing: List[int] = []
        for fragment_id in ranking.ids:
            row = rows_by_id.get(fragment_id)
            if row is None:
                missing.append(fragment_id)
                continue

            details = ranking.details.get(fragment_id, {})
            results.append(SearchResult(
                id=row.id,
                content=row.content,
                file_path=row.source_file,
                start_line=row.start_line,
                end_line=row.end_line,
                score=ranking.scores.get(fragment_id, 0.0),
                lexical_rank=details.get("lexical_rank"),
                semantic_rank=details.get("semantic_rank"),
            ))

        if missing:
            logger.info("Dropped unresolvable fragments", fragment_ids=missing)
        return results
