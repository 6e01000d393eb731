"""Hybrid retrieval over a personal knowledge corpus.

Subpackages:
- ``knowledge_search.common``: configuration, logging, metrics, circuit breaker.
- ``knowledge_search.store``: fragment store abstraction and SQLite/PostgreSQL backends.
- ``knowledge_search.embedding``: query embedder adapters.
- ``knowledge_search.retrievers``: vector cache, lexical/semantic retrieval, hydration.
- ``knowledge_search.ranking``: rank fusion.
- ``knowledge_search.hybrid``: the ``HybridSearcher`` orchestrator.
- ``knowledge_search.runtime``: composition root that builds and owns one engine.
- ``knowledge_search.tools``: agent-facing tool adapter.

Usage:
- Build ``SearchServices(SearchConfig())`` once at startup and pass
  ``services.searcher`` to whatever needs search.
"""

__version__ = "0.1.0"
