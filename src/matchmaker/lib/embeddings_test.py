"""Tests for the OpenAI embedder."""

import json

import httpx
import pytest

from ..errors import UpstreamFailure
from .embeddings import OpenAIEmbedder


def make_embedder(handler, **kwargs) -> OpenAIEmbedder:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIEmbedder(client, "sk-test", **kwargs)


@pytest.mark.asyncio
async def test_embed_returns_vector():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"embedding": [0.25, -1, 3]}]})

    embedder = make_embedder(handler, model="text-embedding-3-large")
    assert await embedder.embed("tea\njazz") == [0.25, -1.0, 3.0]
    assert seen["url"] == "https://api.openai.com/v1/embeddings"
    assert seen["body"] == {"model": "text-embedding-3-large", "input": "tea\njazz"}


@pytest.mark.asyncio
async def test_error_status_raises():
    embedder = make_embedder(lambda request: httpx.Response(400, json={"error": "bad input"}))
    with pytest.raises(UpstreamFailure):
        await embedder.embed("x")


@pytest.mark.asyncio
async def test_malformed_payload_raises():
    embedder = make_embedder(lambda request: httpx.Response(200, json={"data": []}))
    with pytest.raises(UpstreamFailure):
        await embedder.embed("x")
