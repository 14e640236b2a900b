"""
Semantic recipe search over the managed vector index.
"""

from .config import candidate_pool_size
from .errors import EmbeddingError, IndexNotFound, RecipeSearchError
from .validation import MAX_SEARCH_LIMIT, validate_search_request
from ..util.logging import logger
from ..vector.embeddings import EmbeddingClient
from ..vector.index import DocumentStore
from ..vector.types import SearchOutcome


class SearchHandler:
    """Validates a query, embeds it and runs a similarity query against the vector index."""

    def __init__(
        self,
        store: DocumentStore,
        embedder: EmbeddingClient,
        index_name: str = "vector_index",
        vector_path: str = "plot_embedding",
        max_limit: int = MAX_SEARCH_LIMIT,
    ):
        self.store = store
        self.embedder = embedder
        self.index_name = index_name
        self.vector_path = vector_path
        self.max_limit = max_limit

    async def search(self, query, limit=10) -> SearchOutcome:
        """
        Search recipes semantically similar to `query`.

        Raises:
            InvalidRequest: blank query or limit outside [1, max_limit]; no upstream calls made
            IndexNotFound: the vector index has not been provisioned; embedder not called
            EmbeddingError: the query could not be embedded
            StoreUnavailable: the store could not be reached

        An empty result set is returned as an outcome with no results, not an error.
        """
        query, limit = validate_search_request(query, limit, self.max_limit)

        if not await self.store.has_vector_index(self.index_name):
            raise IndexNotFound(
                f"Search index '{self.index_name}' not found. "
                "Please create the search index first using /createSearchIndex"
            )

        try:
            query_vector = await self.embedder.embed(query)
        except RecipeSearchError as e:
            logger.error(f"Failed to embed search query: {e.message}")
            raise EmbeddingError(
                f"Error processing search query: {e.message}", cause_kind=e.error
            ) from e

        num_candidates = candidate_pool_size(limit)
        results = await self.store.vector_search(
            query_vector,
            path=self.vector_path,
            index_name=self.index_name,
            num_candidates=num_candidates,
            limit=limit,
        )

        logger.log_search(query, limit, num_candidates, len(results))
        return SearchOutcome(query=query, limit=limit, results=results)
