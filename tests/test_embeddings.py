"""
Embedding client validation and providers.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from recipe_search.core.errors import InvalidInput, MalformedResponse, UpstreamUnavailable
from recipe_search.vector.embeddings import (
    DeterministicHashEmbedding,
    EmbeddingClient,
    OpenAIEmbeddingClient,
)


def _openai_client(embedding=None, error=None):
    client = MagicMock()
    if error is not None:
        client.embeddings.create = AsyncMock(side_effect=error)
    else:
        response = SimpleNamespace(data=[SimpleNamespace(embedding=embedding)])
        client.embeddings.create = AsyncMock(return_value=response)
    return client


def test_hash_embedding_interface():
    embedder = DeterministicHashEmbedding()

    assert isinstance(embedder, EmbeddingClient)
    assert embedder.get_dimension() == 1536


def test_hash_embedding_is_deterministic():
    embedder = DeterministicHashEmbedding()

    vector1 = asyncio.run(embedder.embed("Recipe: Soup"))
    vector2 = asyncio.run(DeterministicHashEmbedding().embed("Recipe: Soup"))

    assert vector1 == vector2
    assert len(vector1) == 1536
    assert all(-1.0 <= value <= 1.0 for value in vector1)


def test_hash_embedding_distinguishes_inputs():
    embedder = DeterministicHashEmbedding()

    assert asyncio.run(embedder.embed("Soup")) != asyncio.run(embedder.embed("Bread"))


def test_hash_embedding_custom_dimension():
    embedder = DeterministicHashEmbedding(dimension=10)

    assert len(asyncio.run(embedder.embed("Soup"))) == 10


@pytest.mark.parametrize("text", ["", "   ", "\n\t", None, 42])
def test_blank_or_non_string_input_is_rejected(text):
    client = _openai_client(embedding=[0.1] * 1536)
    embedder = OpenAIEmbeddingClient(client)

    with pytest.raises(InvalidInput):
        asyncio.run(embedder.embed(text))

    client.embeddings.create.assert_not_awaited()


def test_openai_client_sends_trimmed_text():
    client = _openai_client(embedding=[0.25] * 1536)
    embedder = OpenAIEmbeddingClient(client, model="text-embedding-ada-002")

    vector = asyncio.run(embedder.embed("  tomato soup  "))

    assert vector == [0.25] * 1536
    client.embeddings.create.assert_awaited_once_with(
        model="text-embedding-ada-002",
        input="tomato soup",
        encoding_format="float",
    )


def test_openai_client_rejects_wrong_length():
    embedder = OpenAIEmbeddingClient(_openai_client(embedding=[0.1] * 10))

    with pytest.raises(MalformedResponse) as exc_info:
        asyncio.run(embedder.embed("Soup"))

    assert exc_info.value.details == {"expected": 1536, "actual": 10}


def test_openai_client_rejects_non_numeric_components():
    embedder = OpenAIEmbeddingClient(_openai_client(embedding=["x"] * 1536))

    with pytest.raises(MalformedResponse):
        asyncio.run(embedder.embed("Soup"))


def test_openai_client_rejects_empty_data():
    client = MagicMock()
    client.embeddings.create = AsyncMock(return_value=SimpleNamespace(data=[]))

    with pytest.raises(MalformedResponse):
        asyncio.run(OpenAIEmbeddingClient(client).embed("Soup"))


def test_openai_errors_become_upstream_unavailable():
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    embedder = OpenAIEmbeddingClient(_openai_client(error=openai.APIConnectionError(request=request)))

    with pytest.raises(UpstreamUnavailable):
        asyncio.run(embedder.embed("Soup"))


def test_openai_client_does_not_retry():
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    client = _openai_client(error=openai.APIConnectionError(request=request))

    with pytest.raises(UpstreamUnavailable):
        asyncio.run(OpenAIEmbeddingClient(client).embed("Soup"))

    assert client.embeddings.create.await_count == 1
