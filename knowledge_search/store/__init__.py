"""Fragment store adapters.

Primary components:
- ``base``: abstract ``FragmentStore`` read contract and its exceptions.
- ``sqlite``: SQLite/FTS5 implementation (default backend).
- ``postgres``: PostgreSQL full-text implementation over asyncpg.
- ``codec``: packed float32 embedding blob encoding.
- ``factory``: construct a store from ``SearchConfig``.
"""

from .base import (
    FragmentStore,
    FragmentStoreConnectionError,
    FragmentStoreError,
    FragmentStoreQueryError,
    LexicalQueryError,
)
from .codec import decode_embedding, encode_embedding

__all__ = [
    "FragmentStore",
    "FragmentStoreConnectionError",
    "FragmentStoreError",
    "FragmentStoreQueryError",
    "LexicalQueryError",
    "decode_embedding",
    "encode_embedding",
]
