"""
Document store interface plus an in-memory implementation.
The in-memory store stands in for the managed vector index during local development and tests.
"""

from abc import ABC, abstractmethod
import copy
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..core.errors import InvalidRequest
from .types import IndexResult, IndexStatus, Recipe, SearchHit

VectorUpdate = Tuple[Any, Sequence[float]]


class DocumentStore(ABC):
    """Abstract interface for the recipe collection and its vector index."""

    vector_field = "plot_embedding"

    @abstractmethod
    async def connect(self) -> None:
        """Establish the shared connection. Safe to call more than once."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def clear_vectors(self) -> int:
        """Unset the vector field on every document that has one. Returns the modified count."""
        pass

    @abstractmethod
    async def find_eligible(self) -> List[Recipe]:
        """Return documents whose name exists and is non-empty."""
        pass

    @abstractmethod
    async def bulk_set_vectors(self, updates: Sequence[VectorUpdate]) -> int:
        """Apply (id, vector) updates unordered. Returns the modified count."""
        pass

    @abstractmethod
    async def count_with_vectors(self) -> int:
        pass

    @abstractmethod
    async def count_documents(self) -> int:
        pass

    @abstractmethod
    async def sample_with_vector(self) -> Optional[Recipe]:
        pass

    @abstractmethod
    async def ensure_vector_index(self, name: str, dimensions: int, similarity: str) -> IndexResult:
        """Create the named vector index unless it already exists."""
        pass

    @abstractmethod
    async def drop_vector_index(self, name: str) -> bool:
        """Drop the named vector index. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_vector_indexes(self) -> List[Dict[str, Any]]:
        pass

    async def has_vector_index(self, name: str) -> bool:
        indexes = await self.list_vector_indexes()
        return any(index.get("name") == name for index in indexes)

    async def vector_search(
        self,
        query_vector: Sequence[float],
        path: str,
        index_name: str,
        num_candidates: int,
        limit: int,
    ) -> List[SearchHit]:
        """Run a similarity query against the named index.

        Ranking is delegated to the index; results come back in descending
        score order and never exceed `limit`.
        """
        if limit < 1:
            raise InvalidRequest("Search limit must be at least 1")
        if num_candidates <= limit:
            raise InvalidRequest(
                f"Candidate pool size ({num_candidates}) must exceed the result limit ({limit})"
            )

        hits = await self._vector_search(list(query_vector), path, index_name, num_candidates, limit)
        return sorted(hits, key=lambda hit: hit.score, reverse=True)[:limit]

    @abstractmethod
    async def _vector_search(
        self,
        query_vector: List[float],
        path: str,
        index_name: str,
        num_candidates: int,
        limit: int,
    ) -> List[SearchHit]:
        pass


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed implementation of DocumentStore using numpy similarity."""

    def __init__(self, documents: Iterable[Dict[str, Any]] = (), vector_field: str = "plot_embedding"):
        self.vector_field = vector_field
        self._documents: Dict[Any, Dict[str, Any]] = {}  # _id -> document
        self._indexes: Dict[str, Dict[str, Any]] = {}    # index name -> definition
        self.connected = False
        self.add_documents(documents)

    def add_documents(self, documents: Iterable[Dict[str, Any]]) -> None:
        for doc in documents:
            self._documents[doc["_id"]] = copy.deepcopy(doc)

    def get_document(self, doc_id: Any) -> Optional[Dict[str, Any]]:
        doc = self._documents.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def clear_vectors(self) -> int:
        modified = 0
        for doc in self._documents.values():
            if self.vector_field in doc:
                del doc[self.vector_field]
                modified += 1
        return modified

    async def find_eligible(self) -> List[Recipe]:
        return [
            Recipe.from_document(doc, self.vector_field)
            for doc in self._documents.values()
            if isinstance(doc.get("name"), str) and doc["name"].strip()
        ]

    async def bulk_set_vectors(self, updates: Sequence[VectorUpdate]) -> int:
        modified = 0
        for doc_id, vector in updates:
            doc = self._documents.get(doc_id)
            if doc is None:
                # Unordered semantics: skip and keep applying the rest
                continue
            new_vector = list(vector)
            if doc.get(self.vector_field) != new_vector:
                doc[self.vector_field] = new_vector
                modified += 1
        return modified

    async def count_with_vectors(self) -> int:
        return sum(1 for doc in self._documents.values() if self.vector_field in doc)

    async def count_documents(self) -> int:
        return len(self._documents)

    async def sample_with_vector(self) -> Optional[Recipe]:
        for doc in self._documents.values():
            if self.vector_field in doc:
                return Recipe.from_document(doc, self.vector_field)
        return None

    async def ensure_vector_index(self, name: str, dimensions: int, similarity: str) -> IndexResult:
        if name in self._indexes:
            return IndexResult(name=name, status=IndexStatus.ALREADY_EXISTED, details=dict(self._indexes[name]))

        self._indexes[name] = {
            "name": name,
            "type": "vectorSearch",
            "status": "READY",
            "latestDefinition": {
                "fields": [{
                    "type": "vector",
                    "path": self.vector_field,
                    "numDimensions": dimensions,
                    "similarity": similarity,
                }]
            },
        }
        return IndexResult(name=name, status=IndexStatus.CREATED, details=dict(self._indexes[name]))

    async def drop_vector_index(self, name: str) -> bool:
        return self._indexes.pop(name, None) is not None

    async def list_vector_indexes(self) -> List[Dict[str, Any]]:
        return [dict(index) for index in self._indexes.values()]

    async def _vector_search(
        self,
        query_vector: List[float],
        path: str,
        index_name: str,
        num_candidates: int,
        limit: int,
    ) -> List[SearchHit]:
        index = self._indexes.get(index_name)
        if index is None:
            # A missing index yields no matches, as the managed service does
            return []

        similarity = index["latestDefinition"]["fields"][0]["similarity"]
        query = np.asarray(query_vector, dtype=float)

        scored = []
        for doc in self._documents.values():
            stored = doc.get(path)
            if stored is None or len(stored) != len(query):
                continue
            scored.append((self._score(query, np.asarray(stored, dtype=float), similarity), doc))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            SearchHit(
                id=doc["_id"],
                score=score,
                name=doc.get("name"),
                ingredients=doc.get("ingredients"),
                steps=doc.get("steps"),
            )
            for score, doc in scored[:num_candidates][:limit]
        ]

    @staticmethod
    def _score(query: np.ndarray, stored: np.ndarray, similarity: str) -> float:
        """Similarity normalized the way the managed index reports vectorSearchScore."""
        if similarity == "euclidean":
            return float(1 / (1 + np.linalg.norm(query - stored)))

        if similarity == "dotProduct":
            return float((1 + np.dot(query, stored)) / 2)

        norm = np.linalg.norm(query) * np.linalg.norm(stored)
        if norm == 0:
            return 0.0
        return float((1 + np.dot(query, stored) / norm) / 2)
