"""Semantic scorer using cosine similarity between title embeddings.

This module implements SemanticScorer for dense vector ranking. It embeds the
query once through an EmbeddingProvider and computes the cosine similarity
against every precomputed title embedding in the store, ranking the whole
corpus (no similarity threshold).

SemanticScorer is the dense half of hybrid search (BM25 + semantic).

Example:
    >>> scorer = SemanticScorer(store, provider)
    >>> results = await scorer.arank('sleepy dog on the couch')
    >>> results[0].source
    'semantic'
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from pawprints.search.components.embedder import EmbeddingProvider
from pawprints.search.errors import ConfigurationError, EmbeddingProviderError
from pawprints.search.storage.corpus import EmbeddingStore
from pawprints.search.types import RankedResult

logger = logging.getLogger(__name__)


def cosine_similarities(query_embedding: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity between one vector and every row of ``matrix``.

    The cosine metric:
    - Ranges from -1 to 1
    - 1.0 = identical direction
    - 0.0 = orthogonal, or either vector has zero magnitude
    - -1.0 = opposite direction

    Args:
        query_embedding: 1-dimensional vector.
        matrix: 2-dimensional array, one row per document.

    Returns:
        float32 array of similarities, one per row, clipped into [-1, 1].

    Raises:
        ValueError: If the shapes are incompatible.
    """
    query_emb = np.asarray(query_embedding, dtype=np.float32)
    if query_emb.ndim != 1:
        raise ValueError(f"Query embedding must be 1-dimensional, got shape {query_emb.shape}")
    if matrix.ndim != 2:
        raise ValueError(f"Document embeddings must be 2-dimensional, got shape {matrix.shape}")
    if matrix.shape[0] == 0:
        return np.zeros(0, dtype=np.float32)
    if query_emb.shape[0] != matrix.shape[1]:
        raise ValueError(
            f"Dimension mismatch: query embedding has {query_emb.shape[0]} dimensions, "
            f"but document embeddings have {matrix.shape[1]} dimensions"
        )

    query_norm = np.linalg.norm(query_emb)
    if query_norm == 0:
        return np.zeros(matrix.shape[0], dtype=np.float32)

    doc_norms = np.linalg.norm(matrix, axis=1)
    dots = matrix @ query_emb
    # Zero-magnitude documents keep similarity 0
    similarities = np.divide(
        dots,
        doc_norms * query_norm,
        where=doc_norms != 0,
        out=np.zeros_like(dots),
    )
    return np.clip(similarities, -1.0, 1.0)


class SemanticScorer:
    """Ranks the corpus by embedding similarity to the query.

    Stateless apart from the shared store and provider: every call embeds
    the query exactly once and scores every stored vector.

    Attributes:
        store: The corpus snapshot being ranked.
        provider: EmbeddingProvider used to embed queries.
    """

    def __init__(self, store: EmbeddingStore, provider: EmbeddingProvider) -> None:
        self.store = store
        self.provider = provider

    async def arank(self, query: str) -> list[RankedResult]:
        """Rank every document by cosine similarity to the query.

        Args:
            query: Raw query text.

        Returns:
            RankedResult objects with source "semantic" covering the whole
            corpus, sorted by similarity descending (ties keep corpus order)
            and ranked from 1. A blank query returns an empty list without
            calling the provider.

        Raises:
            ConfigurationError: If the provider has no credential configured.
            EmbeddingProviderError: If the provider call fails or returns a
                vector whose dimensionality differs from the store's.
        """
        if not query or not query.strip():
            return []

        if not self.provider.is_configured():
            raise ConfigurationError(
                f"Embedding provider '{self.provider.name}' is not configured"
            )

        query_embedding = await self.provider.embed(query)
        logger.debug(f"[SemanticScorer] Embedded query of length {len(query)}")

        if len(self.store) == 0:
            return []

        if len(query_embedding) != self.store.dimension:
            raise EmbeddingProviderError(
                f"Dimension mismatch: provider returned {len(query_embedding)} dimensions, "
                f"corpus embeddings have {self.store.dimension}"
            )

        similarities = cosine_similarities(query_embedding, self.store.embeddings)

        # Stable sort on negated similarities keeps corpus order among ties
        order = np.argsort(-similarities, kind="stable")
        keys = self.store.keys
        results = [
            RankedResult(key=keys[idx], score=float(similarities[idx]), source="semantic", rank=rank)
            for rank, idx in enumerate(order, start=1)
        ]

        logger.debug(f"[SemanticScorer] Completed scoring: {len(results)} documents ranked")
        return results
