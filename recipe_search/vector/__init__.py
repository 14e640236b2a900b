"""
Embedding clients, document stores and the shared data types.
"""

# Package initialization for vector module
from .index import DocumentStore, InMemoryDocumentStore
from .types import (
    BackfillStats,
    BatchOutcome,
    IndexResult,
    IndexStatus,
    Recipe,
    SearchHit,
    SearchOutcome,
)
from .embeddings import EmbeddingClient, DeterministicHashEmbedding, OpenAIEmbeddingClient

__all__ = [
    'DocumentStore',
    'InMemoryDocumentStore',
    'BackfillStats',
    'BatchOutcome',
    'IndexResult',
    'IndexStatus',
    'Recipe',
    'SearchHit',
    'SearchOutcome',
    'EmbeddingClient',
    'DeterministicHashEmbedding',
    'OpenAIEmbeddingClient',
]
