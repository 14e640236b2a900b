"""
Data types shared by the embedding client, document stores, backfill job and search handler.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

TextField = Union[str, Sequence[str], None]


def _join(value: TextField, separator: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return separator.join(str(item) for item in value)


@dataclass
class Recipe:
    """A recipe document owned by the external store."""

    id: Any
    """Opaque identifier assigned by the store"""

    name: Optional[str] = None
    ingredients: TextField = None
    steps: TextField = None

    vector: Optional[List[float]] = None
    """Stored embedding, absent until backfilled"""

    @classmethod
    def from_document(cls, doc: Dict[str, Any], vector_field: str = "plot_embedding") -> "Recipe":
        return cls(
            id=doc.get("_id"),
            name=doc.get("name"),
            ingredients=doc.get("ingredients"),
            steps=doc.get("steps"),
            vector=doc.get(vector_field),
        )

    def embedding_text(self) -> str:
        """Text sent to the embedding service for this recipe."""
        return "\n".join([
            f"Recipe: {self.name or ''}",
            f"Ingredients: {_join(self.ingredients, ', ')}",
            f"Steps: {_join(self.steps, ' ')}",
        ])


@dataclass
class BatchOutcome:
    """Result of embedding a single recipe during backfill."""

    doc_id: Any
    vector: Optional[List[float]] = None
    reason: Optional[str] = None

    @classmethod
    def succeeded(cls, doc_id: Any, vector: List[float]) -> "BatchOutcome":
        return cls(doc_id=doc_id, vector=vector)

    @classmethod
    def failed(cls, doc_id: Any, reason: str) -> "BatchOutcome":
        return cls(doc_id=doc_id, reason=reason)

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass
class BackfillStats:
    """Aggregate counters reported by a backfill run."""

    total: int = 0
    processed: int = 0
    errored: int = 0
    persisted: int = 0
    modified: int = 0
    final_count: int = 0
    cleared: int = 0
    batches: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_recipes": self.total,
            "processed_count": self.processed,
            "error_count": self.errored,
            "persisted_count": self.persisted,
            "modified_count": self.modified,
            "final_count": self.final_count,
            "cleared_count": self.cleared,
            "batch_count": self.batches,
        }


@dataclass
class SearchHit:
    """A ranked match returned by the vector index."""

    id: Any
    score: float
    name: Optional[str] = None
    ingredients: TextField = None
    steps: TextField = None


@dataclass
class SearchOutcome:
    query: str
    limit: int
    results: List[SearchHit] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.results)


class IndexStatus(str, Enum):
    CREATED = "created"
    ALREADY_EXISTED = "already_existed"
    RECREATED = "recreated"


@dataclass
class IndexResult:
    """Outcome of provisioning a vector index."""

    name: str
    status: IndexStatus
    details: Dict[str, Any] = field(default_factory=dict)
