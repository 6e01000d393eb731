"""Metrics collection for the knowledge search engine.

Provides a thin convenience wrapper around ``prometheus_client`` so the
engine can consistently record search, retrieval-path, embedding and cache
metrics.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- Each collector owns its registry, so tests can create fresh ones
- Collectors are optional everywhere; passing ``None`` disables recording
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
import structlog

logger = structlog.get_logger("metrics")


class MetricsCollector:
    """Centralized metrics collection for the search engine.

    Parameters
    - service_name: Logical name used for scoping
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.search_requests = Counter(
            'ks_search_requests_total',
            'Total search requests',
            ['mode'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'ks_search_duration_seconds',
            'Search duration',
            ['mode'],
            registry=self.registry
        )

        self.retrieval_failures = Counter(
            'ks_retrieval_failures_total',
            'Retrieval paths that degraded to an empty candidate list',
            ['path', 'reason'],
            registry=self.registry
        )

        self.embedding_requests = Counter(
            'ks_embedding_requests_total',
            'Total query embedding requests',
            ['status'],
            registry=self.registry
        )

        self.embedding_duration = Histogram(
            'ks_embedding_duration_seconds',
            'Query embedding duration',
            registry=self.registry
        )

        self.vector_cache_reloads = Counter(
            'ks_vector_cache_reloads_total',
            'Full reloads of the in-memory vector cache',
            registry=self.registry
        )

        self.vector_cache_size = Gauge(
            'ks_vector_cache_size',
            'Number of vectors held by the vector cache',
            registry=self.registry
        )

        self.cache_hits = Counter(
            'ks_cache_hits_total',
            'Total cache hits',
            ['cache_type'],
            registry=self.registry
        )

        self.cache_misses = Counter(
            'ks_cache_misses_total',
            'Total cache misses',
            ['cache_type'],
            registry=self.registry
        )

    def record_search(self, mode: str, duration: float) -> None:
        """Record search metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.search_requests.labels(mode=mode).inc()
        self.search_duration.labels(mode=mode).observe(duration)

    def record_retrieval_failure(self, path: str, reason: str) -> None:
        """Record a retrieval path that contributed no candidates due to a failure."""
        self.retrieval_failures.labels(path=path, reason=reason).inc()

    def record_embedding(self, status: str, duration: float) -> None:
        """Record query embedding metrics."""
        self.embedding_requests.labels(status=status).inc()
        self.embedding_duration.observe(duration)

    def record_vector_cache_reload(self, size: int) -> None:
        """Record a full vector cache reload and the resulting snapshot size."""
        self.vector_cache_reloads.inc()
        self.vector_cache_size.set(size)

    def record_cache_hit(self, cache_type: str) -> None:
        """Record cache hit."""
        self.cache_hits.labels(cache_type=cache_type).inc()

    def record_cache_miss(self, cache_type: str) -> None:
        """Record cache miss."""
        self.cache_misses.labels(cache_type=cache_type).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')
