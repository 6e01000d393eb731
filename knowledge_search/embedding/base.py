"""Query embedder contract.

An embedder turns query text into a fixed-length float32 vector. The
dimensionality is fixed per deployment. Adapters report failures (model
unavailable, timeout, bad response) by returning ``None``: the engine treats
that as "semantic path unavailable for this query", not as an error.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np


class Embedder(ABC):
    """Abstract base class for query embedders."""

    @abstractmethod
    async def embed(self, text: str) -> Optional[np.ndarray]:
        """Embed ``text``; ``None`` when no vector could be produced."""

    async def close(self) -> None:
        """Release clients or models held by the embedder."""


def as_query_vector(values) -> Optional[np.ndarray]:
    """Coerce a model/service output to a 1-D float32 vector, or ``None`` if unusable."""
    vector = np.asarray(values, dtype=np.float32)
    if vector.ndim != 1 or vector.size == 0:
        return None
    return vector
