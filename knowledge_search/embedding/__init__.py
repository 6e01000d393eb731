"""Query embedder adapters.

The embedding model is an external collaborator; these adapters only turn
query text into a vector (or ``None``).

Contents
- ``base``: the ``Embedder`` contract
- ``http``: client for the embedding service HTTP API
- ``local``: in-process sentence-transformers model (``local`` extra)
- ``factory``: construct the configured embedder
"""

from .base import Embedder

__all__ = ["Embedder"]
