"""Data model for the retrieval engine.

Fragments are owned by the backing store and read-only here. Everything else
(ranked ids, fused scores, search results) is transient and per query.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass(frozen=True)
class FragmentRow:
    """A fragment as returned by the store for hydration.

    ``start_line`` and ``end_line`` are 1-based and inclusive.
    """
    id: int
    content: str
    source_file: str
    start_line: int
    end_line: int


@dataclass(frozen=True)
class VectorCacheEntry:
    """A ``(fragment_id, embedding)`` pair held by the vector cache."""
    fragment_id: int
    embedding: np.ndarray = field(repr=False, compare=False)

    @property
    def dimension(self) -> int:
        return int(self.embedding.shape[0])


@dataclass(frozen=True)
class RankedId:
    """An id and its 1-based rank within one retrieval path's list."""
    id: int
    rank: int


@dataclass
class FusedRanking:
    """Outcome of fusing the lexical and semantic lists for one query.

    ``ids`` is ordered by descending fused score with deterministic ties;
    ``scores`` maps id to accumulated RRF score; ``details`` keeps each id's
    per-path rank (``None`` when the id was absent from that path).
    """
    ids: List[int]
    scores: Dict[int, float]
    details: Dict[int, Dict[str, Optional[int]]] = field(default_factory=dict)

    def top(self, limit: int) -> "FusedRanking":
        """Return a copy truncated to the first ``limit`` ids."""
        kept = self.ids[:limit]
        return FusedRanking(
            ids=kept,
            scores={i: self.scores[i] for i in kept},
            details={i: self.details[i] for i in kept if i in self.details},
        )

    def __len__(self) -> int:
        return len(self.ids)


@dataclass(frozen=True)
class SearchResult:
    """A ranked search result returned to the caller.

    ``score`` is the fused RRF score. It only orders results within a single
    query and is not a probability.
    """
    id: int
    content: str
    file_path: str
    start_line: int
    end_line: int
    score: float
    lexical_rank: Optional[int] = None
    semantic_rank: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase shape consumed by API and UI callers."""
        return {
            "id": self.id,
            "content": self.content,
            "filePath": self.file_path,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "score": self.score,
        }

    def __repr__(self) -> str:
        preview = self.content[:60].replace("\n", " ")
        return (
            f"SearchResult(id={self.id}, score={self.score:.4f}, "
            f"file='{self.file_path}', lines={self.start_line}-{self.end_line}, "
            f"preview='{preview}')"
        )
