"""
HTTP surface: embedding backfill, vector index provisioning, semantic search and chat relay.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .schemas import (
    BackfillResponse,
    BackfillStatsModel,
    DatabaseState,
    DebugResponse,
    ErrorResponse,
    HealthResponse,
    IndexResponse,
    RemoveEmbeddingsResponse,
    ReplyRequest,
    ReplyResponse,
    SampleDocument,
    SearchHitModel,
    SearchRequest,
    SearchResponse,
)
from ..core import config
from ..core.backfill import BackfillJob
from ..core.chat_relay import ChatRelay
from ..core.errors import RecipeSearchError, StoreUnavailable, UpstreamUnavailable
from ..core.search_service import SearchHandler
from ..core.validation import validate_search_request
from ..util.logging import logger
from ..vector.embeddings import EmbeddingClient
from ..vector.index import DocumentStore
from ..vector.types import IndexStatus


@dataclass
class Services:
    """Collaborators shared by every request, built once per process."""

    store: DocumentStore
    embedder: Optional[EmbeddingClient] = None
    chat_client: Any = None


def build_services() -> Services:
    """Build the store and upstream clients from configuration."""
    for issue in config.validate_config():
        logger.warning(f"Configuration issue: {issue}")

    openai_client = config.get_openai_client() if config.OPENAI_API_KEY else None
    embedder = None
    if config.EMBED_PROVIDER == "hash" or openai_client is not None:
        embedder = config.get_embedding_client(openai_client)

    return Services(
        store=config.get_document_store(),
        embedder=embedder,
        chat_client=config.get_chat_client(openai_client) if openai_client is not None else None,
    )


def _json_safe(value: Any) -> Any:
    """Render store-native values (ObjectId, datetimes) as JSON-compatible data."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _error_response(status_code: int, **fields) -> JSONResponse:
    """Render the failure envelope."""
    body = ErrorResponse(**fields)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Create the FastAPI application. `services` overrides configuration-built collaborators."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services()

        store = app.state.services.store
        try:
            await store.connect()
        except StoreUnavailable as e:
            # Requests retry the (idempotent) connect and surface 503 until it succeeds
            logger.error(f"Document store unavailable at startup: {e.message}")

        yield

        await store.close()

    app = FastAPI(
        title="Recipe Search API",
        version=config.VERSION,
        description="Embedding backfill, vector search and chat relay over a recipe collection",
        docs_url="/docs" if config.debug_enabled() else None,
        redoc_url="/redoc" if config.debug_enabled() else None,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RecipeSearchError)
    async def service_error_handler(request: Request, exc: RecipeSearchError):
        logger.log_operation(f"api{request.url.path}", "failed", {"error": exc.error, "message": exc.message})
        return _error_response(exc.status_code, **_json_safe(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()]
        return _error_response(400, error="invalid_request", message="; ".join(errors) or "Invalid request")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, error="http_error", message=str(exc.detail))

    def get_services(request: Request) -> Services:
        services = getattr(request.app.state, "services", None)
        if services is None:
            services = request.app.state.services = build_services()
        return services

    async def get_store(services: Services = Depends(get_services)) -> DocumentStore:
        await services.store.connect()
        return services.store

    def get_embedder(services: Services = Depends(get_services)) -> EmbeddingClient:
        if services.embedder is None:
            raise UpstreamUnavailable("OPENAI_API_KEY environment variable is not set")
        return services.embedder

    def get_chat_relay(services: Services = Depends(get_services)) -> ChatRelay:
        if services.chat_client is None:
            raise UpstreamUnavailable("OPENAI_API_KEY environment variable is not set")
        return ChatRelay(
            services.chat_client,
            model=config.CHAT_MODEL,
            temperature=config.CHAT_TEMPERATURE,
            max_tokens=config.CHAT_MAX_TOKENS,
        )

    @app.get("/health", response_model=HealthResponse)
    async def health_check_endpoint(services: Services = Depends(get_services)):
        """Check service and document store health."""
        try:
            await services.store.connect()
            documents = await services.store.count_documents()
        except StoreUnavailable as e:
            logger.warning(f"Health check: {e.message}")
            return HealthResponse(status="unhealthy", version=config.VERSION, store_health=False)

        return HealthResponse(status="healthy", version=config.VERSION, store_health=True, documents=documents)

    @app.api_route("/createEmbedding", methods=["GET", "POST"], response_model=BackfillResponse)
    async def create_embeddings_endpoint(
        store: DocumentStore = Depends(get_store),
        embedder: EmbeddingClient = Depends(get_embedder),
    ):
        """Rebuild embeddings for every recipe with a name."""
        job = BackfillJob(store, embedder, batch_size=config.BACKFILL_BATCH_SIZE, dimensions=config.EMBED_DIMENSIONS)
        stats = await job.run()

        return BackfillResponse(
            message="Embeddings created successfully",
            stats=BackfillStatsModel(**stats.to_dict()),
        )

    @app.api_route("/createSearchIndex", methods=["GET", "POST"], response_model=IndexResponse)
    async def create_search_index_endpoint(
        recreate: bool = Query(False, description="Drop an existing index before creating it"),
        store: DocumentStore = Depends(get_store),
    ):
        """Provision the vector search index (idempotent unless recreate=true)."""
        name = config.VECTOR_INDEX_NAME
        dropped = False
        if recreate:
            dropped = await store.drop_vector_index(name)
            logger.log_index_operation("drop", name, "dropped" if dropped else "absent")

        result = await store.ensure_vector_index(name, config.EMBED_DIMENSIONS, config.VECTOR_SIMILARITY)
        status = IndexStatus.RECREATED if dropped and result.status == IndexStatus.CREATED else result.status
        logger.log_index_operation("ensure", name, status.value)

        message = (
            "Search index already exists"
            if status == IndexStatus.ALREADY_EXISTED
            else "Search index created successfully"
        )
        return IndexResponse(
            message=message,
            index_name=name,
            status=status.value,
            details=_json_safe(result.details),
        )

    @app.api_route("/removeEmbeddings", methods=["GET", "POST"], response_model=RemoveEmbeddingsResponse)
    async def remove_embeddings_endpoint(store: DocumentStore = Depends(get_store)):
        """Remove the embedding field from every recipe."""
        modified = await store.clear_vectors()
        logger.log_operation("embeddings.remove", "success", {"modified_count": modified})

        return RemoveEmbeddingsResponse(message="Embeddings removed successfully", modified_count=modified)

    @app.get("/debug", response_model=DebugResponse)
    async def debug_endpoint(store: DocumentStore = Depends(get_store)):
        """Database state overview (only available in DEBUG mode)."""
        if not config.debug_enabled():
            raise HTTPException(status_code=403, detail="Debug endpoint disabled")

        sample = await store.sample_with_vector()
        sample_document = None
        if sample is not None:
            sample_document = SampleDocument(
                id=str(sample.id),
                name=sample.name,
                has_embedding=bool(sample.vector),
                embedding_length=len(sample.vector or []),
            )

        return DebugResponse(
            message="Debug endpoint active",
            database_state=DatabaseState(
                total_documents=await store.count_documents(),
                documents_with_embeddings=await store.count_with_vectors(),
                sample_document=sample_document,
                indexes=_json_safe(await store.list_vector_indexes()),
            ),
        )

    @app.post("/search", response_model=SearchResponse)
    async def search_endpoint(
        req: SearchRequest,
        services: Services = Depends(get_services),
    ):
        """Semantic recipe search."""
        # Invalid requests fail before the store or embedder are touched
        validate_search_request(req.query, req.limit, config.SEARCH_MAX_LIMIT)
        handler = SearchHandler(
            await get_store(services),
            get_embedder(services),
            index_name=config.VECTOR_INDEX_NAME,
            vector_path=config.VECTOR_FIELD,
            max_limit=config.SEARCH_MAX_LIMIT,
        )
        outcome = await handler.search(req.query, req.limit)

        return SearchResponse(
            message="Search completed successfully" if outcome.count else "No results found",
            results=[
                SearchHitModel(
                    id=str(hit.id),
                    name=hit.name,
                    ingredients=hit.ingredients,
                    steps=hit.steps,
                    score=hit.score,
                )
                for hit in outcome.results
            ],
            count=outcome.count,
            query=outcome.query,
            limit=outcome.limit,
        )

    @app.post("/reply", response_model=ReplyResponse)
    async def reply_endpoint(req: ReplyRequest, relay: ChatRelay = Depends(get_chat_relay)):
        """Relay a conversation to the chat-completion service."""
        content = await relay.reply(req.conversation)
        return ReplyResponse(message=content)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
