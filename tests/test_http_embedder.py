"""Tests for the HTTP embedding client."""

import json

import httpx
import numpy as np
import pytest

from knowledge_search.common.circuit_breaker import CircuitBreaker, CircuitBreakerState
from knowledge_search.common.metrics import MetricsCollector
from knowledge_search.embedding.http import HttpEmbedder


class Recorder:
    """MockTransport handler replaying scripted responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, payload = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(status, json=payload)


def make_embedder(handler, **kwargs):
    kwargs.setdefault("retry_base_delay", 0.0)
    kwargs.setdefault("retry_max_delay", 0.0)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpEmbedder("http://embedding:9006/", client=client, **kwargs)


@pytest.mark.asyncio
async def test_embed_returns_first_vector():
    handler = Recorder((200, {"vectors": [[0.1, 0.2, 0.3]]}))
    embedder = make_embedder(handler, model="mini")

    vector = await embedder.embed("what is rrf?")

    np.testing.assert_allclose(vector, [0.1, 0.2, 0.3], rtol=1e-6)
    assert vector.dtype == np.float32
    request = handler.requests[0]
    assert request.url == "http://embedding:9006/api/v1/embed"
    assert json.loads(request.content) == {"items": [{"text": "what is rrf?"}], "model": "mini"}


@pytest.mark.asyncio
async def test_embed_retries_transient_failures():
    handler = Recorder((503, {"detail": "warming up"}), (200, {"vectors": [[1.0, 0.0]]}))
    embedder = make_embedder(handler, retry_attempts=2)

    vector = await embedder.embed("query")

    np.testing.assert_allclose(vector, [1.0, 0.0])
    assert len(handler.requests) == 2


@pytest.mark.asyncio
async def test_embed_returns_none_after_exhausting_retries():
    metrics = MetricsCollector("test")
    handler = Recorder((500, {"detail": "boom"}))
    embedder = make_embedder(handler, retry_attempts=3, metrics=metrics)

    assert await embedder.embed("query") is None
    assert len(handler.requests) == 3
    assert metrics.registry.get_sample_value("ks_embedding_requests_total", {"status": "error"}) == 1.0


@pytest.mark.asyncio
async def test_malformed_payload_returns_none():
    for payload in (
        {"vectors": []},
        {"unexpected": True},
        ["not", "a", "dict"],
        {"vectors": [["x"]]},
        {"vectors": {"a": [1.0]}},
        {"vectors": "1.0"},
    ):
        embedder = make_embedder(Recorder((200, payload)), retry_attempts=1)
        assert await embedder.embed("query") is None


@pytest.mark.asyncio
async def test_transport_errors_return_none():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    embedder = make_embedder(handler, retry_attempts=2)

    assert await embedder.embed("query") is None


@pytest.mark.asyncio
async def test_open_breaker_short_circuits_requests():
    metrics = MetricsCollector("test")
    handler = Recorder((500, {"detail": "down"}))
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60.0, name="test")
    embedder = make_embedder(handler, retry_attempts=1, circuit_breaker=breaker, metrics=metrics)

    assert await embedder.embed("first") is None
    assert breaker.get_state() == CircuitBreakerState.OPEN

    assert await embedder.embed("second") is None
    assert len(handler.requests) == 1
    assert metrics.registry.get_sample_value("ks_embedding_requests_total", {"status": "rejected"}) == 1.0


@pytest.mark.asyncio
async def test_close_leaves_injected_client_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(Recorder((200, {"vectors": [[1.0]]}))))
    embedder = HttpEmbedder("http://embedding:9006", client=client)

    await embedder.close()

    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_close_owned_client():
    embedder = HttpEmbedder("http://embedding:9006")

    await embedder.close()

    assert embedder.http_client.is_closed
