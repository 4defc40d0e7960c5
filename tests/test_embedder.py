import json

import httpx
import pytest

from notes_rag.core.errors import EmbeddingError
from notes_rag.embeddings.embedder import Embedder


def _embedder(handler, dimensions=3):
    return Embedder(
        api_key="sk-test",
        model="text-embedding-3-small",
        dimensions=dimensions,
        base_url="https://provider.test/v1/",
        transport=httpx.MockTransport(handler),
    )


def _vectors_for(inputs, dims=3):
    return [[float(len(text))] + [0.0] * (dims - 1) for text in inputs]


@pytest.mark.asyncio
async def test_embed_batches_and_preserves_order():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append(body)
        assert request.url == "https://provider.test/v1/embeddings"
        assert request.headers["Authorization"] == "Bearer sk-test"
        vectors = _vectors_for(body["input"])
        # Provider may return records out of order
        data = [{"index": i, "embedding": v} for i, v in enumerate(vectors)][::-1]
        return httpx.Response(200, json={"data": data})

    texts = ["a", "bb", "ccc", "dddd", "eeeee"]
    embeddings = await _embedder(handler).embed(texts, batch_size=2)

    assert [len(c["input"]) for c in calls] == [2, 2, 1]
    assert all(c["model"] == "text-embedding-3-small" for c in calls)
    assert [e[0] for e in embeddings] == [1.0, 2.0, 3.0, 4.0, 5.0]


@pytest.mark.asyncio
async def test_embed_empty_input_makes_no_request():
    def handler(request):
        raise AssertionError("no request expected")

    assert await _embedder(handler).embed([]) == []


@pytest.mark.asyncio
async def test_embed_query_returns_single_vector():
    def handler(request):
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [0.1, 0.2, 0.3]}]})

    assert await _embedder(handler).embed_query("hello") == [0.1, 0.2, 0.3]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(200, json={"nothing": []}),
        httpx.Response(200, json={"data": [{"index": 0, "embedding": [0.1, 0.2]}]}),
        httpx.Response(200, json={"data": [{"index": 0, "embedding": ["x", 0.2, 0.3]}]}),
        httpx.Response(200, json={"data": []}),
    ],
    ids=["http-error", "missing-data", "wrong-dimensions", "non-numeric", "count-mismatch"],
)
async def test_provider_failures_raise_embedding_error(response):
    def handler(request):
        return response

    with pytest.raises(EmbeddingError):
        await _embedder(handler).embed(["hello"])


@pytest.mark.asyncio
async def test_transport_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(EmbeddingError) as excinfo:
        await _embedder(handler).embed(["hello"])
    assert "ConnectError" in excinfo.value.message
