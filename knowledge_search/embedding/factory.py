"""Embedder factory."""

from typing import Optional

from ..common.circuit_breaker import CircuitBreaker
from ..common.config import SearchConfig
from ..common.metrics import MetricsCollector
from .base import Embedder
from .http import HttpEmbedder


def create_embedder(config: SearchConfig, metrics: Optional[MetricsCollector] = None) -> Embedder:
    """Create the embedder selected by ``ks_embedder_backend``."""
    if config.ks_embedder_backend == "local":
        # sentence-transformers is an optional extra; only import it when selected.
        from .local import SentenceTransformerEmbedder

        return SentenceTransformerEmbedder(config.ks_embedding_model)

    breaker = CircuitBreaker(
        failure_threshold=config.ks_embedding_breaker_failure_threshold,
        recovery_timeout=config.ks_embedding_breaker_recovery_timeout,
        name="embedding_service",
    )
    return HttpEmbedder(
        base_url=config.ks_embedding_service_url,
        model=config.ks_embedding_model,
        timeout=config.ks_embedding_timeout_seconds,
        retry_attempts=config.ks_embedding_retry_attempts,
        retry_base_delay=config.ks_embedding_retry_base_delay,
        retry_max_delay=config.ks_embedding_retry_max_delay,
        circuit_breaker=breaker,
        metrics=metrics,
    )
