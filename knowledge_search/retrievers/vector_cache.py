"""In-memory cache of the corpus's embedding vectors.

The cache holds a point-in-time ``VectorSnapshot`` of every fragment with a
non-null embedding. A read that finds the snapshot older than the TTL reloads
it wholesale from the store and swaps the reference; the old snapshot is
never mutated, so concurrent readers always see a complete one.

Writes elsewhere do not invalidate the cache: a newly embedded fragment
becomes searchable on the first read after the TTL expires.
"""

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import structlog

from ..common.metrics import MetricsCollector
from ..models import VectorCacheEntry
from ..store.base import FragmentStore
from ..store.codec import decode_embedding

logger = structlog.get_logger("retrievers.vector_cache")


@dataclass(frozen=True, eq=False)
class VectorGroup:
    """Vectors of one dimensionality, stacked for a vectorized scan.

    ``ids`` and ``norms`` are aligned with ``matrix`` rows, which keep store
    order.
    """
    dimension: int
    ids: np.ndarray = field(repr=False)
    matrix: np.ndarray = field(repr=False)
    norms: np.ndarray = field(repr=False)

    @classmethod
    def stack(cls, entries: Sequence[VectorCacheEntry]) -> "VectorGroup":
        matrix = np.vstack([entry.embedding for entry in entries]).astype(np.float32, copy=False)
        return cls(
            dimension=int(matrix.shape[1]),
            ids=np.fromiter((entry.fragment_id for entry in entries), dtype=np.int64, count=len(entries)),
            matrix=matrix,
            norms=np.linalg.norm(matrix, axis=1),
        )

    def __len__(self) -> int:
        return int(self.matrix.shape[0])


@dataclass(frozen=True, eq=False)
class VectorSnapshot:
    """Immutable view of the cached vectors.

    ``entries`` keeps every decodable vector in store order. ``groups`` maps
    each dimensionality present in the corpus to its stacked vectors, so a
    query is only ever scored against rows of its own length. ``dimension``
    is the most common dimensionality, or ``None`` for an empty corpus.
    """
    entries: Tuple[VectorCacheEntry, ...]
    groups: Mapping[int, VectorGroup] = field(repr=False)
    dimension: Optional[int]
    refreshed_at: float

    @classmethod
    def build(cls, entries: Sequence[VectorCacheEntry], refreshed_at: float) -> "VectorSnapshot":
        entries = tuple(entries)
        by_dimension: Dict[int, List[VectorCacheEntry]] = {}
        for entry in entries:
            by_dimension.setdefault(entry.dimension, []).append(entry)

        dimension = None
        if entries:
            dimension = Counter(entry.dimension for entry in entries).most_common(1)[0][0]
        return cls(
            entries=entries,
            groups=MappingProxyType({dim: VectorGroup.stack(rows) for dim, rows in by_dimension.items()}),
            dimension=dimension,
            refreshed_at=refreshed_at,
        )

    def group(self, dimension: int) -> Optional[VectorGroup]:
        """Vectors whose length equals ``dimension``, if any."""
        return self.groups.get(dimension)

    def __len__(self) -> int:
        return len(self.entries)


def decode_rows(rows: Sequence[Tuple[int, bytes]]) -> List[VectorCacheEntry]:
    """Decode store rows into cache entries, skipping blobs that aren't float32 arrays."""
    entries: List[VectorCacheEntry] = []
    skipped: List[int] = []
    for fragment_id, blob in rows:
        try:
            entries.append(VectorCacheEntry(fragment_id, decode_embedding(blob)))
        except ValueError:
            skipped.append(fragment_id)

    if skipped:
        logger.warning("Skipped undecodable embeddings", count=len(skipped), fragment_ids=skipped[:20])
    return entries


class VectorCache:
    """TTL-refreshed snapshot of ``(fragment_id, embedding)`` pairs.

    At most one reload runs at a time per cache: callers that observe
    staleness while a reload is in flight wait for it and reuse its result.
    """

    def __init__(
        self,
        store: FragmentStore,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Create an empty cache.

        Parameters
        - store: Fragment store to reload from
        - ttl_seconds: Maximum snapshot age before the next read reloads
        - clock: Monotonic time source in seconds, injectable for tests
        - metrics: Optional metrics collector
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.metrics = metrics
        self._snapshot: Optional[VectorSnapshot] = None
        self._refresh_lock = asyncio.Lock()
        self.reload_count = 0

    def _is_fresh(self, snapshot: Optional[VectorSnapshot]) -> bool:
        return snapshot is not None and self._clock() - snapshot.refreshed_at < self.ttl_seconds

    async def snapshot(self) -> VectorSnapshot:
        """Return the current snapshot, reloading it first if stale."""
        snapshot = self._snapshot
        if self._is_fresh(snapshot):
            if self.metrics:
                self.metrics.record_cache_hit("vector")
            return snapshot

        async with self._refresh_lock:
            # Another caller may have reloaded while we waited.
            snapshot = self._snapshot
            if self._is_fresh(snapshot):
                return snapshot
            if self.metrics:
                self.metrics.record_cache_miss("vector")
            return await self._reload()

    async def get_all(self) -> List[VectorCacheEntry]:
        """Return every cached ``(fragment_id, embedding)`` entry."""
        return list((await self.snapshot()).entries)

    async def _reload(self) -> VectorSnapshot:
        refreshed_at = self._clock()
        start_time = time.perf_counter()
        rows = await self.store.load_embeddings()
        snapshot = VectorSnapshot.build(decode_rows(rows), refreshed_at)

        self._snapshot = snapshot
        self.reload_count += 1
        if self.metrics:
            self.metrics.record_vector_cache_reload(len(snapshot))

        logger.info(
            "Vector cache reloaded",
            vectors=len(snapshot),
            dimensions=sorted(snapshot.groups),
            dimension=snapshot.dimension,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 3)
        )
        return snapshot

    def age(self) -> Optional[float]:
        """Seconds since the last reload, or ``None`` before the first one."""
        if self._snapshot is None:
            return None
        return self._clock() - self._snapshot.refreshed_at

    def stats(self) -> Dict[str, Any]:
        """Describe the current snapshot without triggering a reload."""
        snapshot = self._snapshot
        return {
            "vectors": len(snapshot) if snapshot else 0,
            "dimension": snapshot.dimension if snapshot else None,
            "dimensions": sorted(snapshot.groups) if snapshot else [],
            "age_seconds": self.age(),
            "ttl_seconds": self.ttl_seconds,
            "reloads": self.reload_count,
        }
