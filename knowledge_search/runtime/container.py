"""Composition root for the search engine.

``SearchServices`` builds the store, embedder, vector cache and searcher
from one ``SearchConfig`` and owns their lifecycle. Every component is
constructed explicitly and passed to its users, so an application may hold
several independent engines (e.g. one per database) side by side.

Usage::

    async with SearchServices(SearchConfig()) as services:
        results = await services.searcher.search("how is config loaded?")
"""

import time
from typing import Callable, Optional

import structlog

from ..common.config import SearchConfig
from ..common.logging import configure_logging
from ..common.metrics import MetricsCollector
from ..embedding.base import Embedder
from ..embedding.factory import create_embedder
from ..hybrid.search_manager import HybridSearcher
from ..retrievers.vector_cache import VectorCache
from ..store.base import FragmentStore
from ..store.factory import create_fragment_store
from ..tools.knowledge_base import KnowledgeBaseTool

logger = structlog.get_logger("search.runtime")


class SearchServices:
    """Owns one engine's components.

    Parameters
    - config: Settings; read from the environment when omitted
    - store / embedder: Pre-built collaborators, e.g. test doubles. Components
      passed in are not closed by ``close()``
    - metrics: Metrics collector; a private one is created when omitted
    - clock: Time source for the vector cache
    - configure_logs: Whether ``initialize`` configures structlog
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        store: Optional[FragmentStore] = None,
        embedder: Optional[Embedder] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic,
        configure_logs: bool = False,
    ):
        self.config = config or SearchConfig()
        self.metrics = metrics or MetricsCollector("knowledge-search")
        self._owns_store = store is None
        self._owns_embedder = embedder is None
        self.store = store or create_fragment_store(self.config)
        self.embedder = embedder or create_embedder(self.config, metrics=self.metrics)
        self.vector_cache = VectorCache(
            self.store,
            ttl_seconds=self.config.ks_vector_cache_ttl_seconds,
            clock=clock,
            metrics=self.metrics,
        )
        self.searcher = HybridSearcher.from_config(
            self.config,
            store=self.store,
            embedder=self.embedder,
            vector_cache=self.vector_cache,
            metrics=self.metrics,
        )
        self.tool = KnowledgeBaseTool(self.searcher)
        self._configure_logs = configure_logs
        self._initialized = False

    async def initialize(self) -> None:
        """Prepare the store (schema, pools). Safe to call more than once."""
        if self._initialized:
            return
        if self._configure_logs:
            configure_logging("knowledge-search", self.config.ks_log_level, self.config.ks_log_format)

        try:
            await self.store.initialize()
        except Exception as e:
            logger.error("Failed to initialize search services", error=str(e))
            raise

        self._initialized = True
        logger.info(
            "Search services initialized",
            store_backend=self.config.ks_store_backend,
            embedder_backend=self.config.ks_embedder_backend
        )

    async def close(self) -> None:
        """Release the components this container created."""
        if self._owns_embedder:
            await self.embedder.close()
        if self._owns_store:
            await self.store.close()
        self._initialized = False
        logger.info("Search services closed")

    async def __aenter__(self) -> "SearchServices":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
