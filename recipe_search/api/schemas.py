"""
Request/response models for the HTTP surface.
Every response is an envelope with `success` and `message` plus an operation payload.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any, Union

from ..core.config import SEARCH_DEFAULT_LIMIT

TextField = Union[str, List[str], None]


# Request fields are checked in core.validation so the same rules apply
# outside HTTP.
class SearchRequest(BaseModel):
    query: Any = None
    limit: Any = SEARCH_DEFAULT_LIMIT


class ReplyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation: Any = Field(default=None, alias="conversationArr")


class Envelope(BaseModel):
    success: bool = True
    message: str = ""


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    store_health: bool
    documents: Optional[int] = None


class BackfillStatsModel(BaseModel):
    total_recipes: int
    processed_count: int
    error_count: int
    persisted_count: int
    modified_count: int
    final_count: int
    cleared_count: int
    batch_count: int


class BackfillResponse(Envelope):
    stats: BackfillStatsModel


class IndexResponse(Envelope):
    index_name: str
    status: str  # created, already_existed, recreated
    details: Dict[str, Any] = {}


class RemoveEmbeddingsResponse(Envelope):
    modified_count: int


class SearchHitModel(BaseModel):
    id: str
    name: Optional[str] = None
    ingredients: TextField = None
    steps: TextField = None
    score: float


class SearchResponse(Envelope):
    results: List[SearchHitModel]
    count: int
    query: str
    limit: int


class ReplyResponse(Envelope):
    pass


class SampleDocument(BaseModel):
    id: str
    name: Optional[str] = None
    has_embedding: bool
    embedding_length: int


class DatabaseState(BaseModel):
    total_documents: int
    documents_with_embeddings: int
    sample_document: Optional[SampleDocument] = None
    indexes: List[Dict[str, Any]]


class DebugResponse(Envelope):
    database_state: DatabaseState
