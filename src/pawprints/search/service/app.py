"""FastAPI application for the search service.

Endpoints:
- GET /search - Search with q, limit, mode query parameters
- GET /health - Corpus and embedding provider status

Environment variables are read by SearchSettings.from_env (see
pawprints.search.config); the important ones are CORPUS_PATH and
GOOGLE_GENERATIVE_AI_API_KEY.

Usage:
    pawprints serve --port 8000
    uvicorn pawprints.search.service.app:app --port 8000
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from pawprints.search.components.embedder import EmbeddingProvider, create_embedding_provider
from pawprints.search.config import SearchSettings
from pawprints.search.errors import (
    ConfigurationError,
    EmbeddingProviderError,
    InternalConsistencyError,
)
from pawprints.search.retriever import HybridRetriever
from pawprints.search.storage.corpus import EmbeddingStore
from pawprints.search.types import SearchMode, SearchResult

logger = logging.getLogger(__name__)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

VALID_MODES = [mode.value for mode in SearchMode]


class SearchHit(BaseModel):
    """Single search result, serialized with camelCase field names."""
    model_config = ConfigDict(populate_by_name=True)

    post_index: int = Field(..., alias="postIndex")
    media_index: int = Field(..., alias="mediaIndex")
    title: str
    uri: str
    is_video: bool = Field(..., alias="isVideo")
    creation_timestamp: int = Field(..., alias="creationTimestamp")
    similarity: float

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchHit":
        return cls(
            post_index=result.post_index,
            media_index=result.media_index,
            title=result.title,
            uri=result.uri,
            is_video=result.is_video,
            creation_timestamp=result.creation_timestamp,
            similarity=result.similarity,
        )


class SearchResponse(BaseModel):
    """Response body for /search endpoint."""
    query: str
    mode: str
    results: list[SearchHit]
    count: int


class HealthResponse(BaseModel):
    """Response body for /health endpoint."""
    status: str = Field(..., description="'ready' or 'empty'")
    document_count: int = Field(..., description="Number of indexed media items")
    dimension: int = Field(..., description="Embedding dimensionality of the corpus")
    embedding_configured: bool = Field(..., description="Whether query embeddings are available")


def _parse_limit(raw: str | None, settings: SearchSettings) -> int:
    if raw is None or raw == "":
        return settings.default_limit
    try:
        limit = int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Limit must be a positive number")
    if limit < 1:
        raise HTTPException(status_code=400, detail="Limit must be a positive number")
    return min(limit, settings.max_limit)


def _parse_mode(raw: str | None) -> SearchMode:
    if not raw:
        return SearchMode.HYBRID
    try:
        return SearchMode(raw.lower())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid mode. Must be one of: {', '.join(VALID_MODES)}",
        )


def create_app(
    settings: SearchSettings | None = None,
    store: EmbeddingStore | None = None,
    provider: EmbeddingProvider | None = None,
) -> FastAPI:
    """Build the search application.

    Anything not passed in is created at startup: settings from the
    environment, the store from ``settings.corpus_path`` and the provider
    from ``settings.embedding_provider``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan: startup and shutdown."""
        app_settings = settings or SearchSettings.from_env()
        logger.info(
            f"[Service] Starting with CORPUS_PATH={app_settings.corpus_path}, "
            f"EMBEDDING_PROVIDER={app_settings.embedding_provider}"
        )

        app_store = store if store is not None else EmbeddingStore.load(app_settings.corpus_path)
        app_provider = provider if provider is not None else create_embedding_provider(app_settings)
        if not app_provider.is_configured():
            logger.warning(
                "[Service] Embedding provider is not configured; semantic and hybrid "
                "searches will fail until GOOGLE_GENERATIVE_AI_API_KEY is set"
            )

        app.state.settings = app_settings
        app.state.store = app_store
        app.state.provider = app_provider
        app.state.retriever = HybridRetriever.from_settings(app_settings, app_store, app_provider)
        logger.info(f"[Service] Startup complete, {len(app_store)} documents loaded")
        yield

        logger.info("[Service] Shutting down...")
        # Only close what this app created
        if provider is None and hasattr(app_provider, "aclose"):
            await app_provider.aclose()
        logger.info("[Service] Shutdown complete")

    app = FastAPI(
        title="Pawprints Search Service",
        description="Hybrid keyword and semantic search over media titles",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/search", response_model=SearchResponse, response_model_by_alias=True)
    async def search(
        request: Request,
        q: str | None = None,
        limit: str | None = None,
        mode: str | None = None,
    ) -> SearchResponse:
        """Execute a search query.

        Args:
            q: Search query text (required, non-blank).
            limit: Number of results (default 10, capped at SEARCH_MAX_LIMIT).
            mode: 'keyword', 'semantic' or 'hybrid' (default).

        Returns:
            SearchResponse with the query, resolved mode and ranked results.
        """
        if not q or not q.strip():
            raise HTTPException(status_code=400, detail='Query parameter "q" is required')

        state = request.app.state
        top_k = _parse_limit(limit, state.settings)
        search_mode = _parse_mode(mode)

        start_time = time.time()
        retriever: HybridRetriever = state.retriever
        try:
            results = await retriever.search(q, top_k=top_k, mode=search_mode)
        except ConfigurationError as e:
            logger.error(f"[Service] Search misconfigured: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        except EmbeddingProviderError as e:
            logger.error(f"[Service] Embedding provider failed: {e}")
            raise HTTPException(status_code=502, detail=str(e))
        except InternalConsistencyError as e:
            logger.error(f"[Service] Search failed: {e}")
            raise HTTPException(status_code=500, detail=str(e))

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            f"[Service] {search_mode.value} search for {q[:50]!r} returned "
            f"{len(results)} results in {elapsed_ms:.1f}ms"
        )

        return SearchResponse(
            query=q,
            mode=search_mode.value,
            results=[SearchHit.from_result(r) for r in results],
            count=len(results),
        )

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        """Get service health status.

        Returns 'ready' if the corpus has documents, 'empty' otherwise.
        """
        state = request.app.state
        store: EmbeddingStore = state.store
        return HealthResponse(
            status="ready" if len(store) > 0 else "empty",
            document_count=len(store),
            dimension=store.dimension,
            embedding_configured=state.provider.is_configured(),
        )

    return app


app = create_app()
