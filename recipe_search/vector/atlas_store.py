"""
MongoDB Atlas implementation of DocumentStore.
Vector storage, ANN indexing and similarity scoring are delegated to Atlas Vector Search.
"""

from typing import Any, Dict, List, Optional, Sequence

from pymongo import AsyncMongoClient, UpdateOne
from pymongo.errors import BulkWriteError, ConnectionFailure, PyMongoError
from pymongo.operations import SearchIndexModel

from ..core.errors import IndexCreationError, StoreUnavailable
from ..util.logging import logger, summarize_errors
from .index import DocumentStore, VectorUpdate
from .types import IndexResult, IndexStatus, Recipe, SearchHit

SEARCH_PROJECTION = {
    "_id": 1,
    "name": 1,
    "ingredients": 1,
    "steps": 1,
    "score": {"$meta": "vectorSearchScore"},
}


class AtlasDocumentStore(DocumentStore):
    """Recipe collection stored in MongoDB Atlas, accessed through the async pymongo client."""

    def __init__(
        self,
        uri: Optional[str],
        database: str = "test",
        collection: str = "recipes",
        vector_field: str = "plot_embedding",
        server_selection_timeout_ms: int = 10000,
        client: Optional[AsyncMongoClient] = None,
    ):
        self.uri = uri
        self.database_name = database
        self.collection_name = collection
        self.vector_field = vector_field
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self._client = client
        self._collection = client[database][collection] if client is not None else None

    async def connect(self) -> None:
        if self._collection is not None:
            return

        if not self.uri:
            raise StoreUnavailable("MONGODB_URI environment variable is not set")

        try:
            client = AsyncMongoClient(self.uri, serverSelectionTimeoutMS=self.server_selection_timeout_ms)
            await client.admin.command("ping")
        except PyMongoError as e:
            logger.error(f"Error connecting to MongoDB: {e}")
            raise StoreUnavailable(f"Could not connect to MongoDB: {e}") from e

        self._client = client
        self._collection = client[self.database_name][self.collection_name]
        logger.log_operation("store.connect", "success", {
            "database": self.database_name,
            "collection": self.collection_name,
        })

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
        self._client = None
        self._collection = None

    @property
    def collection(self):
        if self._collection is None:
            raise StoreUnavailable("Document store is not connected")
        return self._collection

    async def clear_vectors(self) -> int:
        try:
            result = await self.collection.update_many(
                {self.vector_field: {"$exists": True}},
                {"$unset": {self.vector_field: ""}},
            )
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to remove embeddings: {e}") from e
        return result.modified_count

    async def find_eligible(self) -> List[Recipe]:
        try:
            cursor = self.collection.find({"name": {"$type": "string", "$regex": r"\S"}})
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to fetch recipes: {e}") from e
        return [Recipe.from_document(doc, self.vector_field) for doc in documents]

    async def bulk_set_vectors(self, updates: Sequence[VectorUpdate]) -> int:
        if not updates:
            return 0

        operations = [
            UpdateOne({"_id": doc_id}, {"$set": {self.vector_field: list(vector)}})
            for doc_id, vector in updates
        ]
        try:
            result = await self.collection.bulk_write(operations, ordered=False)
        except BulkWriteError as e:
            # Unordered: failed updates do not block the others
            write_errors = e.details.get("writeErrors", [])
            logger.log_operation("store.bulk_set_vectors", "partial", {
                "submitted": len(operations),
                "write_errors": len(write_errors),
                "errors": summarize_errors([err.get("errmsg", err) for err in write_errors]),
            })
            return e.details.get("nModified", 0)
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to persist embeddings: {e}") from e
        return result.modified_count

    async def count_with_vectors(self) -> int:
        try:
            return await self.collection.count_documents({self.vector_field: {"$exists": True}})
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to count embeddings: {e}") from e

    async def count_documents(self) -> int:
        try:
            return await self.collection.count_documents({})
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to count recipes: {e}") from e

    async def sample_with_vector(self) -> Optional[Recipe]:
        try:
            doc = await self.collection.find_one({self.vector_field: {"$exists": True}})
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to fetch sample recipe: {e}") from e
        return Recipe.from_document(doc, self.vector_field) if doc else None

    async def ensure_vector_index(self, name: str, dimensions: int, similarity: str) -> IndexResult:
        existing = await self._find_index(name)
        if existing is not None:
            return IndexResult(name=name, status=IndexStatus.ALREADY_EXISTED, details=existing)

        model = SearchIndexModel(
            definition={
                "fields": [{
                    "type": "vector",
                    "path": self.vector_field,
                    "numDimensions": dimensions,
                    "similarity": similarity,
                }]
            },
            name=name,
            type="vectorSearch",
        )
        try:
            await self.collection.create_search_index(model)
        except ConnectionFailure as e:
            raise StoreUnavailable(f"Failed to create search index: {e}") from e
        except PyMongoError as e:
            raise IndexCreationError(f"Failed to create search index {name}: {e}") from e

        created = await self._find_index(name)
        if created is None:
            raise IndexCreationError("Index was not created successfully")
        return IndexResult(name=name, status=IndexStatus.CREATED, details=created)

    async def drop_vector_index(self, name: str) -> bool:
        if await self._find_index(name) is None:
            return False
        try:
            await self.collection.drop_search_index(name)
        except ConnectionFailure as e:
            raise StoreUnavailable(f"Failed to drop search index {name}: {e}") from e
        except PyMongoError as e:
            raise IndexCreationError(f"Failed to drop search index {name}: {e}") from e
        return True

    async def list_vector_indexes(self) -> List[Dict[str, Any]]:
        try:
            cursor = await self.collection.list_search_indexes()
            return await cursor.to_list(length=None)
        except ConnectionFailure as e:
            raise StoreUnavailable(f"Failed to list search indexes: {e}") from e
        except PyMongoError as e:
            # Clusters without Atlas Search reject the listing stage
            raise IndexCreationError(f"Failed to list search indexes: {e}") from e

    async def _find_index(self, name: str) -> Optional[Dict[str, Any]]:
        for index in await self.list_vector_indexes():
            if index.get("name") == name:
                return index
        return None

    async def _vector_search(
        self,
        query_vector: List[float],
        path: str,
        index_name: str,
        num_candidates: int,
        limit: int,
    ) -> List[SearchHit]:
        pipeline = [
            {
                "$vectorSearch": {
                    "queryVector": query_vector,
                    "path": path,
                    "numCandidates": num_candidates,
                    "index": index_name,
                    "limit": limit,
                }
            },
            {"$project": SEARCH_PROJECTION},
        ]
        try:
            cursor = await self.collection.aggregate(pipeline)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise StoreUnavailable(f"Vector search failed: {e}") from e

        return [
            SearchHit(
                id=doc.get("_id"),
                score=float(doc.get("score", 0.0)),
                name=doc.get("name"),
                ingredients=doc.get("ingredients"),
                steps=doc.get("steps"),
            )
            for doc in documents
        ]
