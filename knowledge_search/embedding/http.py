"""HTTP client for an external embedding service.

Posts ``{"items": [{"text": ...}], "model": ...}`` to ``<url>/api/v1/embed``
and reads the first entry of ``vectors`` from the response. Calls are retried
with capped exponential backoff and guarded by a circuit breaker.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import httpx
import numpy as np
import structlog

from ..common.circuit_breaker import CircuitBreaker, CircuitBreakerError
from ..common.metrics import MetricsCollector
from .base import Embedder, as_query_vector

logger = structlog.get_logger("embedding.http")


class EmbeddingServiceError(Exception):
    """The embedding service returned an unusable response."""
    pass


class HttpEmbedder(Embedder):
    """Embedder backed by the embedding service's HTTP API."""

    def __init__(
        self,
        base_url: str,
        model: Optional[str] = None,
        timeout: float = 10.0,
        retry_attempts: int = 2,
        retry_base_delay: float = 0.25,
        retry_max_delay: float = 2.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Construct an HTTP embedder.

        Parameters
        - base_url: Embedding service root, e.g. ``http://localhost:9006``
        - model: Model name forwarded to the service (``default`` when unset)
        - timeout: Per-request timeout in seconds
        - retry_attempts: Total attempts per query, including the first
        - retry_base_delay / retry_max_delay: Backoff bounds in seconds
        - circuit_breaker: Shared breaker; a private one is created when omitted
        - client: Pre-built ``httpx.AsyncClient`` (tests inject a mock transport)
        - metrics: Optional metrics collector
        """
        self.base_url = base_url.rstrip("/")
        self.model = model or "default"
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name="embedding_service")
        self.metrics = metrics
        self._owns_client = client is None
        self.http_client = client or httpx.AsyncClient(timeout=timeout)

    async def embed(self, text: str) -> Optional[np.ndarray]:
        """Embed ``text`` via the service; ``None`` on any failure."""
        start_time = time.perf_counter()
        try:
            vector = await self._call_with_retry(
                lambda: self.circuit_breaker.call(self._request_embedding, text),
                operation_name="embedding_service_request",
            )
        except CircuitBreakerError as e:
            logger.warning("Embedding service unavailable", error=str(e))
            self._record("rejected", start_time)
            return None
        except (httpx.HTTPError, EmbeddingServiceError) as e:
            logger.warning("Embedding service call failed", error=str(e))
            self._record("error", start_time)
            return None

        self._record("ok", start_time)
        return vector

    async def _request_embedding(self, text: str) -> np.ndarray:
        """POST to the embedding service to obtain the query vector."""
        response = await self.http_client.post(
            f"{self.base_url}/api/v1/embed",
            json={
                "items": [{"text": text}],
                "model": self.model
            }
        )
        if response.status_code != 200:
            raise EmbeddingServiceError(f"Embedding service returned status {response.status_code}")

        try:
            payload = response.json()
            vectors = payload.get("vectors") if isinstance(payload, dict) else None
            vector = as_query_vector(vectors[0]) if isinstance(vectors, list) and vectors else None
        except (TypeError, ValueError) as e:
            raise EmbeddingServiceError(f"Embedding service returned a malformed payload: {e}")

        if vector is None:
            raise EmbeddingServiceError("Embedding service returned no usable vector")
        return vector

    async def _call_with_retry(
        self,
        func: Callable[[], Awaitable[Any]],
        operation_name: str,
    ) -> Any:
        """Execute a coroutine-returning callable with retry and backoff."""
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await func()
            except CircuitBreakerError:
                raise
            except (httpx.HTTPError, EmbeddingServiceError) as exc:
                if attempt == self.retry_attempts:
                    raise

                delay = min(self.retry_base_delay * (2 ** (attempt - 1)), self.retry_max_delay)
                logger.warning(
                    "Operation failed, retrying",
                    operation=operation_name,
                    attempt=attempt,
                    max_attempts=self.retry_attempts,
                    delay_seconds=delay,
                    error=str(exc)
                )
                await asyncio.sleep(delay)

        raise RuntimeError(f"Retry logic failed for {operation_name}")

    def _record(self, status: str, start_time: float) -> None:
        if self.metrics:
            self.metrics.record_embedding(status, time.perf_counter() - start_time)

    async def close(self) -> None:
        """Close the HTTP client if this embedder created it."""
        if self._owns_client:
            await self.http_client.aclose()
