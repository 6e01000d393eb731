"""Test doubles for the store, embedder and clock."""

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from knowledge_search.embedding.base import Embedder
from knowledge_search.models import FragmentRow
from knowledge_search.store.base import FragmentStore
from knowledge_search.store.codec import encode_embedding


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryStore(FragmentStore):
    """Fragment store double with scripted lexical results.

    ``fetch_fragments`` returns rows in descending id order so tests notice
    when callers rely on the store's ordering.
    """

    def __init__(
        self,
        fragments: Sequence[FragmentRow] = (),
        embeddings: Optional[Dict[int, Sequence[float]]] = None,
        lexical_ids: Sequence[int] = (),
    ):
        self.fragments = {row.id: row for row in fragments}
        self.embedding_rows: List[Tuple[int, bytes]] = [
            (fragment_id, encode_embedding(vector))
            for fragment_id, vector in (embeddings or {}).items()
        ]
        self.lexical_ids = list(lexical_ids)
        self.lexical_error: Optional[Exception] = None
        self.fetch_error: Optional[Exception] = None
        self.load_delay = 0.0
        self.lexical_calls: List[Tuple[str, int]] = []
        self.fetch_calls: List[List[int]] = []
        self.load_calls = 0

    async def lexical_query(self, match_expression: str, limit: int) -> List[int]:
        self.lexical_calls.append((match_expression, limit))
        if self.lexical_error:
            raise self.lexical_error
        return self.lexical_ids[:limit]

    async def load_embeddings(self) -> List[Tuple[int, bytes]]:
        self.load_calls += 1
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        return list(self.embedding_rows)

    async def fetch_fragments(self, ids: Sequence[int]) -> List[FragmentRow]:
        self.fetch_calls.append(list(ids))
        if self.fetch_error:
            raise self.fetch_error
        return [self.fragments[i] for i in sorted(set(ids), reverse=True) if i in self.fragments]

    async def count_fragments(self) -> Dict[str, int]:
        return {
            "fragments": len(self.fragments),
            "embedded": len(self.embedding_rows),
            "files": len({row.source_file for row in self.fragments.values()}),
        }

    async def health_check(self) -> bool:
        return True


class FakeEmbedder(Embedder):
    """Embedder double returning a fixed vector (or ``None``)."""

    def __init__(
        self,
        vector: Optional[Sequence[float]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.vector = vector
        self.error = error
        self.delay = delay
        self.calls: List[str] = []
        self.closed = False

    async def embed(self, text: str) -> Optional[np.ndarray]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if self.vector is None:
            return None
        return np.asarray(self.vector, dtype=np.float32)

    async def close(self) -> None:
        self.closed = True


def make_fragment(fragment_id: int, content: str, source_file: str = "/kb/notes.md") -> FragmentRow:
    return FragmentRow(
        id=fragment_id,
        content=content,
        source_file=source_file,
        start_line=1,
        end_line=3,
    )


