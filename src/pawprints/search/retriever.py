"""HybridRetriever orchestrator combining BM25 and semantic search with RRF.

This module provides the search entry point that ties the components
together: the read-only EmbeddingStore, the BM25 LexicalScorer, the
embedding-based SemanticScorer and the RRFFuser.

The retriever implements three modes:
- keyword: BM25 only, similarity = BM25 score
- semantic: cosine similarity only, similarity = cosine
- hybrid (default): both scorers run concurrently, fused with RRF (k=60),
  similarity = RRF score

Hybrid mode never falls back to keyword-only: if the semantic signal fails
(missing credential, provider error) the error propagates.

Example:
    >>> from pawprints.search.retriever import HybridRetriever
    >>> retriever = HybridRetriever(store, provider)
    >>> results = await retriever.search('lilly in the garden', top_k=5)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from pawprints.search.components.bm25 import LexicalScorer
from pawprints.search.components.embedder import EmbeddingProvider
from pawprints.search.components.protocol import Scorer
from pawprints.search.components.rrf import RRFFuser
from pawprints.search.components.semantic import SemanticScorer
from pawprints.search.config import SearchSettings
from pawprints.search.storage.corpus import EmbeddingStore
from pawprints.search.types import FusionConfig, RankedResult, SearchMode, SearchResult

logger = logging.getLogger(__name__)


class HybridRetriever:
    """Hybrid search orchestrator with BM25 + semantic ranking and RRF fusion.

    The store is shared by reference and never mutated, so one retriever can
    serve concurrent queries. Each query triggers at most one fan-out: the
    BM25 pass runs in a worker thread while the query embedding request is
    in flight.

    Attributes:
        store: EmbeddingStore snapshot that every scorer ranks
        provider: EmbeddingProvider used for query embeddings
        lexical: LexicalScorer over the store's titles
        semantic: SemanticScorer over the store's embeddings
        scorers: Scorers fused in hybrid mode, semantic first
        fuser: RRFFuser merging the ranked lists
    """

    DEFAULT_TOP_K = 10

    def __init__(
        self,
        store: EmbeddingStore,
        provider: EmbeddingProvider,
        fusion: FusionConfig | None = None,
        k1: float = LexicalScorer.DEFAULT_K1,
        b: float = LexicalScorer.DEFAULT_B,
    ) -> None:
        self.store = store
        self.provider = provider
        self.lexical = LexicalScorer(store, k1=k1, b=b)
        self.semantic = SemanticScorer(store, provider)
        self.scorers: tuple[Scorer, ...] = (self.semantic, self.lexical)
        self.fuser = RRFFuser(fusion or FusionConfig())

        logger.debug(
            f"[HybridRetriever] Initialized with {len(store)} documents, "
            f"provider={provider.name}, rrf_k={self.fuser.config.k}"
        )

    @classmethod
    def from_settings(
        cls, settings: SearchSettings, store: EmbeddingStore, provider: EmbeddingProvider
    ) -> "HybridRetriever":
        return cls(
            store,
            provider,
            fusion=FusionConfig(k=settings.rrf_k),
            k1=settings.bm25_k1,
            b=settings.bm25_b,
        )

    async def search(
        self,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        mode: SearchMode | str = SearchMode.HYBRID,
    ) -> list[SearchResult]:
        """Search the corpus.

        Args:
            query: Free-text query.
            top_k: Maximum number of results (positive integer).
            mode: SearchMode or its string value.

        Returns:
            Up to ``top_k`` SearchResult objects, best first. A blank query
            returns an empty list without invoking any scorer.

        Raises:
            ValueError: If ``top_k`` is not a positive integer or ``mode`` is
                not a known mode.
            ConfigurationError: Semantic or hybrid mode without a configured
                embedding credential.
            EmbeddingProviderError: The query embedding call failed.
            InternalConsistencyError: A scorer ranked a key the store does
                not contain.
        """
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k < 1:
            raise ValueError(f"top_k must be a positive integer, got {top_k!r}")
        mode = SearchMode(mode)

        if not query or not query.strip():
            return []

        if mode is SearchMode.KEYWORD:
            ranked = self.lexical.rank(query)
        elif mode is SearchMode.SEMANTIC:
            ranked = await self.semantic.arank(query)
        else:
            ranked = await self._hybrid_rank(query)

        results = self._resolve(ranked[:top_k])
        logger.debug(
            f"[HybridRetriever] {mode.value} search returned {len(results)} results "
            f"for query: {query[:50]}"
        )
        return results

    async def _hybrid_rank(self, query: str) -> list[RankedResult]:
        ranked_lists = await asyncio.gather(*(scorer.arank(query) for scorer in self.scorers))
        logger.debug(
            f"[HybridRetriever] Fusing list sizes {[len(ranked) for ranked in ranked_lists]}"
        )
        # An empty list contributes nothing, so a query with no keyword match
        # fuses on the semantic ranking alone
        return self.fuser.process(ranked_lists, order=self.store.position)

    def _resolve(self, ranked: Sequence[RankedResult]) -> list[SearchResult]:
        return [
            SearchResult.from_record(self.store.resolve(result.key), result.score)
            for result in ranked
        ]
