"""
Embedding clients. Every provider goes through EmbeddingClient.embed, which
validates the input text and the shape of the returned vector.
"""

from abc import ABC, abstractmethod
import hashlib
from numbers import Real
from typing import Sequence

import openai
from openai import AsyncOpenAI

from ..core.errors import InvalidInput, MalformedResponse, UpstreamUnavailable


class EmbeddingClient(ABC):
    """Abstract interface for embedding providers."""

    def __init__(self, dimension: int = 1536):
        self.dimension = dimension

    async def embed(self, text: str) -> list[float]:
        """Generate an embedding vector for `text`.

        Raises:
            InvalidInput: text is not a string or is blank after trimming
            UpstreamUnavailable: the provider could not be reached or errored
            MalformedResponse: the provider returned a vector of the wrong shape
        """
        if not isinstance(text, str) or not text.strip():
            raise InvalidInput("Text to embed must be a non-empty string")

        vector = await self._generate(text.strip())
        return self._validate_vector(vector)

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension

    @abstractmethod
    async def _generate(self, text: str) -> Sequence[float]:
        """Call the provider. Implementations raise UpstreamUnavailable on transport errors."""
        pass

    def _validate_vector(self, vector) -> list[float]:
        if vector is None or isinstance(vector, (str, bytes)) or not hasattr(vector, "__len__"):
            raise MalformedResponse(f"Invalid embedding format: expected a sequence, got {type(vector).__name__}")

        if len(vector) != self.dimension:
            raise MalformedResponse(
                f"Invalid embedding format: expected {self.dimension} dimensions, got {len(vector)}",
                details={"expected": self.dimension, "actual": len(vector)},
            )

        if not all(isinstance(value, Real) and not isinstance(value, bool) for value in vector):
            raise MalformedResponse("Invalid embedding format: non-numeric component")

        return [float(value) for value in vector]


class OpenAIEmbeddingClient(EmbeddingClient):
    """Embedding client backed by the OpenAI embeddings endpoint."""

    def __init__(self, client: AsyncOpenAI, model: str = "text-embedding-ada-002", dimension: int = 1536):
        super().__init__(dimension)
        self.client = client
        self.model = model

    async def _generate(self, text: str) -> Sequence[float]:
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text,
                encoding_format="float",
            )
        except openai.OpenAIError as e:
            raise UpstreamUnavailable(f"Embedding request failed: {e}") from e

        if not getattr(response, "data", None):
            raise MalformedResponse("Embedding response contained no data")

        return response.data[0].embedding


class DeterministicHashEmbedding(EmbeddingClient):
    """Deterministic hash-based embedding provider for local development and tests.

    Expands SHA-256 digests of the text into a reproducible vector in [-1, 1],
    so the backfill and search paths can run without network access.
    """

    def __init__(self, dimension: int = 1536):
        super().__init__(dimension)

    async def _generate(self, text: str) -> Sequence[float]:
        vector = []
        counter = 0
        while len(vector) < self.dimension:
            digest = hashlib.sha256(f"{counter}:{text}".encode()).digest()
            for i in range(0, len(digest), 4):
                value = int.from_bytes(digest[i:i + 4], "big")
                vector.append((value / 2**32) * 2 - 1)
            counter += 1

        return vector[:self.dimension]
