"""Embedding providers that turn query and title text into dense vectors.

Two providers satisfy the EmbeddingProvider protocol:

- GoogleEmbeddingProvider: calls the Google Generative Language REST API
  (``text-embedding-004`` by default) over httpx. Gated by the
  ``GOOGLE_GENERATIVE_AI_API_KEY`` credential.
- SentenceTransformerProvider: runs a sentence-transformers model locally.
  The model is loaded lazily on first use; it needs no credential.

Query vectors must come from the same model that embedded the corpus, so
pick the provider that matches the corpus file's ``model`` field.

Example:
    >>> provider = GoogleEmbeddingProvider(api_key='...')
    >>> vector = await provider.embed('Lilly digs the garden')
    >>> len(vector)
    768
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

import httpx

from pawprints.search.errors import ConfigurationError, EmbeddingProviderError

if TYPE_CHECKING:
    from pawprints.search.config import SearchSettings

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for text embedding backends.

    Implementations must be safe to call concurrently from several queries.
    """

    name: str
    model: str

    def is_configured(self) -> bool:
        """Return True if the provider has the credentials it needs."""
        ...

    async def embed(self, text: str) -> tuple[float, ...]:
        """Embed one text.

        Raises:
            EmbeddingProviderError: If the call fails or the response is malformed.
        """
        ...

    async def embed_many(self, texts: Sequence[str]) -> list[tuple[float, ...]]:
        """Embed several texts, preserving order."""
        ...


def _parse_vector(values: Any) -> tuple[float, ...]:
    if not isinstance(values, list) or not values:
        raise EmbeddingProviderError("Embedding response has no 'values' list")
    try:
        vector = tuple(float(x) for x in values)
    except (TypeError, ValueError) as e:
        raise EmbeddingProviderError(f"Embedding values must be numeric: {e}") from e
    if not all(math.isfinite(x) for x in vector):
        raise EmbeddingProviderError("Embedding values must be finite")
    return vector


class GoogleEmbeddingProvider:
    """Google Generative Language embedding client.

    Uses ``models/{model}:embedContent`` for single texts and
    ``models/{model}:batchEmbedContents`` for batches. The API key goes in
    the ``x-goog-api-key`` header. No retries: a failed call raises
    EmbeddingProviderError and the caller decides what to do.

    Attributes:
        model: Model name without the ``models/`` prefix.
        base_url: REST API root.
        timeout: Client timeout in seconds (ignored for an injected client).
    """

    name = "google"

    DEFAULT_MODEL = "text-embedding-004"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    MAX_BATCH_SIZE = 100

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key or None
        self.model = model.removeprefix("models/")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def is_configured(self) -> bool:
        return self._api_key is not None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _content(self, text: str) -> dict[str, Any]:
        return {"model": f"models/{self.model}", "content": {"parts": [{"text": text}]}}

    async def _post(self, method: str, body: dict[str, Any]) -> Any:
        if self._api_key is None:
            raise ConfigurationError(
                "GOOGLE_GENERATIVE_AI_API_KEY environment variable is not set"
            )

        url = f"{self.base_url}/models/{self.model}:{method}"
        try:
            response = await self._get_client().post(
                url,
                json=body,
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.HTTPError as e:
            raise EmbeddingProviderError(f"Embedding request failed: {e}") from e

        if not response.is_success:
            raise EmbeddingProviderError(
                f"Embedding provider returned {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise EmbeddingProviderError(f"Embedding response is not valid JSON: {e}") from e

    async def embed(self, text: str) -> tuple[float, ...]:
        logger.debug(f"[GoogleEmbeddingProvider] Embedding text of length {len(text)}")
        payload = await self._post("embedContent", self._content(text))
        try:
            values = payload["embedding"]["values"]
        except (KeyError, TypeError) as e:
            raise EmbeddingProviderError(f"Embedding response missing field {e}") from e
        return _parse_vector(values)

    async def embed_many(self, texts: Sequence[str]) -> list[tuple[float, ...]]:
        vectors: list[tuple[float, ...]] = []
        for start in range(0, len(texts), self.MAX_BATCH_SIZE):
            batch = list(texts[start:start + self.MAX_BATCH_SIZE])
            payload = await self._post(
                "batchEmbedContents",
                {"requests": [self._content(text) for text in batch]},
            )
            try:
                embeddings = payload["embeddings"]
            except (KeyError, TypeError) as e:
                raise EmbeddingProviderError(f"Batch response missing field {e}") from e
            if not isinstance(embeddings, list) or len(embeddings) != len(batch):
                raise EmbeddingProviderError(
                    f"Batch response has {len(embeddings) if isinstance(embeddings, list) else 0} "
                    f"embeddings for {len(batch)} texts"
                )
            for item in embeddings:
                values = item.get("values") if isinstance(item, dict) else None
                vectors.append(_parse_vector(values))

        logger.debug(f"[GoogleEmbeddingProvider] Batch embedded {len(vectors)} texts")
        return vectors

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GoogleEmbeddingProvider":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()


class SentenceTransformerProvider:
    """Local embedding provider backed by sentence-transformers.

    The model is NOT loaded in __init__; it is loaded on the first embed
    call. Encoding runs in a worker thread so it does not block the event
    loop.

    Attributes:
        model: HuggingFace model name.
        batch_size: Batch size passed to SentenceTransformer.encode.
        _embedder: Lazy-loaded model (None until first use).
    """

    name = "local"

    DEFAULT_MODEL = "BAAI/bge-base-en-v1.5"

    def __init__(self, model: str = DEFAULT_MODEL, batch_size: int = 32) -> None:
        self.model = model
        self.batch_size = batch_size
        self._embedder: Optional[Any] = None
        logger.debug(
            f"[SentenceTransformerProvider] Initialized with model={self.model}, batch_size={batch_size}"
        )

    def is_configured(self) -> bool:
        return True

    def _load_model(self) -> None:
        if self._embedder is not None:
            return

        try:
            from sentence_transformers import SentenceTransformer
        except ImportError:
            raise ConfigurationError(
                "sentence-transformers is required for the local embedding provider. "
                "Install with: pip install 'pawprints[local]'"
            )

        try:
            logger.debug(f"[SentenceTransformerProvider] Loading model {self.model}...")
            self._embedder = SentenceTransformer(self.model)
        except Exception as e:
            # Network errors, OOM, corrupted cache
            raise EmbeddingProviderError(f"model loading failed for {self.model}: {e}") from e

    def _encode(self, texts: list[str]) -> list[tuple[float, ...]]:
        self._load_model()
        try:
            embeddings = self._embedder.encode(
                texts,
                normalize_embeddings=True,
                show_progress_bar=False,
                batch_size=self.batch_size,
            )
        except Exception as e:
            raise EmbeddingProviderError(f"encoding failed for {self.model}: {e}") from e
        return [tuple(float(x) for x in embedding) for embedding in embeddings]

    async def embed(self, text: str) -> tuple[float, ...]:
        vectors = await asyncio.to_thread(self._encode, [text])
        return vectors[0]

    async def embed_many(self, texts: Sequence[str]) -> list[tuple[float, ...]]:
        if not texts:
            return []
        return await asyncio.to_thread(self._encode, list(texts))


def create_embedding_provider(settings: "SearchSettings") -> EmbeddingProvider:
    """Create the embedding provider selected by ``settings.embedding_provider``.

    Raises:
        ConfigurationError: If the provider name is unknown.
    """
    if settings.embedding_provider == "google":
        logger.debug(f"[Embedder] Using Google provider, model={settings.embedding_model}")
        return GoogleEmbeddingProvider(
            api_key=settings.google_api_key,
            model=settings.embedding_model or GoogleEmbeddingProvider.DEFAULT_MODEL,
            base_url=settings.embedding_base_url,
            timeout=settings.embedding_timeout,
        )
    if settings.embedding_provider == "local":
        logger.debug(f"[Embedder] Using local provider, model={settings.embedding_model}")
        return SentenceTransformerProvider(
            model=settings.embedding_model or SentenceTransformerProvider.DEFAULT_MODEL,
        )
    raise ConfigurationError(
        f"Unknown EMBEDDING_PROVIDER '{settings.embedding_provider}', expected 'google' or 'local'"
    )
