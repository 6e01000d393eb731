"""Base fragment store interface.

Defines the read contract the retrieval engine depends on, independent of
the backing implementation (SQLite FTS5, PostgreSQL full-text, ...). The
engine never writes; ingestion owns the tables.

All methods are asynchronous so retrieval paths can run concurrently.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Tuple

from ..models import FragmentRow


class FragmentStore(ABC):
    """Abstract base class for fragment stores.

    Implementations wrap driver exceptions into the ``FragmentStoreError``
    hierarchy so callers can tell signal degradation from programming errors.
    """

    async def initialize(self) -> None:
        """Prepare connections and schema. Idempotent."""

    async def close(self) -> None:
        """Release connections."""

    @abstractmethod
    async def lexical_query(self, match_expression: str, limit: int) -> List[int]:
        """Run a full-text query.

        Parameters
        - match_expression: Phrase expression already escaped for the index
        - limit: Maximum number of ids to return

        Returns
        - Fragment ids ordered by full-text relevance, best first

        Raises
        - ``LexicalQueryError`` when the index rejects the expression
        """

    @abstractmethod
    async def load_embeddings(self) -> List[Tuple[int, bytes]]:
        """Return every ``(fragment_id, embedding_blob)`` with a non-null embedding, by id."""

    @abstractmethod
    async def fetch_fragments(self, ids: Sequence[int]) -> List[FragmentRow]:
        """Return rows for the resolvable ids in ``ids``. Order is unspecified."""

    @abstractmethod
    async def count_fragments(self) -> Dict[str, int]:
        """Return ``fragments``, ``embedded`` and ``files`` counts."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the store is reachable."""


class FragmentStoreError(Exception):
    """Base exception for fragment store operations."""
    pass


class FragmentStoreConnectionError(FragmentStoreError):
    """Connection error to the fragment store."""
    pass


class FragmentStoreQueryError(FragmentStoreError):
    """Query error in the fragment store."""
    pass


class LexicalQueryError(FragmentStoreQueryError):
    """The full-text index rejected the match expression."""
    pass
