"""
Service configuration read from the environment (and an optional .env file).
Factories below build the store, embedding client and chat client once at startup.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Document store configuration
STORE_PROVIDER = os.getenv("STORE_PROVIDER", "atlas")  # atlas|memory
MONGODB_URI = os.getenv("MONGODB_URI")
MONGODB_DB = os.getenv("MONGODB_DB", "test")
MONGODB_COLLECTION = os.getenv("MONGODB_COLLECTION", "recipes")

# OpenAI configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MAX_RETRIES = int(os.getenv("OPENAI_MAX_RETRIES", "0"))  # callers decide on retries

# Embedding configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "openai")  # openai|hash
EMBED_MODEL = os.getenv("EMBED_MODEL", "text-embedding-ada-002")
EMBED_DIMENSIONS = int(os.getenv("EMBED_DIMENSIONS", "1536"))

# Chat relay configuration
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-3.5-turbo")
CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.7"))
CHAT_MAX_TOKENS = int(os.getenv("CHAT_MAX_TOKENS", "1000"))

# Vector index configuration
VECTOR_FIELD = os.getenv("VECTOR_FIELD", "plot_embedding")
VECTOR_INDEX_NAME = os.getenv("VECTOR_INDEX_NAME", "vector_index")
VECTOR_SIMILARITY = os.getenv("VECTOR_SIMILARITY", "cosine")  # cosine|euclidean|dotProduct
VECTOR_CANDIDATE_FLOOR = int(os.getenv("VECTOR_CANDIDATE_FLOOR", "100"))
VECTOR_CANDIDATE_MULTIPLIER = int(os.getenv("VECTOR_CANDIDATE_MULTIPLIER", "10"))

# Backfill and search policy
BACKFILL_BATCH_SIZE = int(os.getenv("BACKFILL_BATCH_SIZE", "50"))
SEARCH_DEFAULT_LIMIT = int(os.getenv("SEARCH_DEFAULT_LIMIT", "10"))
SEARCH_MAX_LIMIT = int(os.getenv("SEARCH_MAX_LIMIT", "50"))

# HTTP surface
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

# Version string
VERSION = "1.0.0"

VALID_STORE_PROVIDERS = ["atlas", "memory"]
VALID_EMBED_PROVIDERS = ["openai", "hash"]
VALID_SIMILARITIES = ["cosine", "euclidean", "dotProduct"]


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def candidate_pool_size(limit: int) -> int:
    """Number of ANN candidates to request for a search returning `limit` results."""
    return max(VECTOR_CANDIDATE_FLOOR, limit * VECTOR_CANDIDATE_MULTIPLIER)


def get_document_store():
    """Get configured document store implementation."""
    if STORE_PROVIDER == "memory":
        from ..vector.index import InMemoryDocumentStore
        return InMemoryDocumentStore(vector_field=VECTOR_FIELD)

    from ..vector.atlas_store import AtlasDocumentStore
    return AtlasDocumentStore(
        uri=MONGODB_URI,
        database=MONGODB_DB,
        collection=MONGODB_COLLECTION,
        vector_field=VECTOR_FIELD,
    )


def get_openai_client():
    """Build the shared async OpenAI client."""
    from openai import AsyncOpenAI
    return AsyncOpenAI(api_key=OPENAI_API_KEY, max_retries=OPENAI_MAX_RETRIES)


def get_embedding_client(openai_client=None):
    """Get configured embedding client implementation."""
    if EMBED_PROVIDER == "hash":
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=EMBED_DIMENSIONS)

    from ..vector.embeddings import OpenAIEmbeddingClient
    return OpenAIEmbeddingClient(
        client=openai_client or get_openai_client(),
        model=EMBED_MODEL,
        dimension=EMBED_DIMENSIONS,
    )


def get_chat_client(openai_client=None):
    """Get the chat-completion client used by the chat relay."""
    return openai_client or get_openai_client()


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if STORE_PROVIDER not in VALID_STORE_PROVIDERS:
        issues.append(f"Invalid STORE_PROVIDER: {STORE_PROVIDER}")

    if STORE_PROVIDER == "atlas" and not MONGODB_URI:
        issues.append("MONGODB_URI environment variable is not set")

    if EMBED_PROVIDER not in VALID_EMBED_PROVIDERS:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if EMBED_PROVIDER == "openai" and not OPENAI_API_KEY:
        issues.append("OPENAI_API_KEY environment variable is not set")

    if VECTOR_SIMILARITY not in VALID_SIMILARITIES:
        issues.append(f"Invalid VECTOR_SIMILARITY: {VECTOR_SIMILARITY}")

    if EMBED_DIMENSIONS < 1:
        issues.append("EMBED_DIMENSIONS must be >= 1")

    if BACKFILL_BATCH_SIZE < 1:
        issues.append("BACKFILL_BATCH_SIZE must be >= 1")

    if not 1 <= SEARCH_DEFAULT_LIMIT <= SEARCH_MAX_LIMIT:
        issues.append(f"SEARCH_DEFAULT_LIMIT must be between 1 and {SEARCH_MAX_LIMIT}")

    if VECTOR_CANDIDATE_MULTIPLIER < 2:
        issues.append("VECTOR_CANDIDATE_MULTIPLIER must be >= 2")

    return issues
