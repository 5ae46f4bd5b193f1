"""Hybrid ranking engine: BM25 + embedding similarity fused with RRF."""

from pawprints.search.config import SearchSettings
from pawprints.search.errors import (
    ConfigurationError,
    CorpusError,
    EmbeddingProviderError,
    InternalConsistencyError,
    SearchError,
)
from pawprints.search.retriever import HybridRetriever
from pawprints.search.storage.corpus import EmbeddingStore
from pawprints.search.types import (
    DocumentKey,
    DocumentRecord,
    FusedResult,
    FusionConfig,
    RankedResult,
    SearchMode,
    SearchResult,
)

__all__ = [
    "ConfigurationError",
    "CorpusError",
    "DocumentKey",
    "DocumentRecord",
    "EmbeddingProviderError",
    "EmbeddingStore",
    "FusedResult",
    "FusionConfig",
    "HybridRetriever",
    "InternalConsistencyError",
    "RankedResult",
    "SearchError",
    "SearchMode",
    "SearchResult",
    "SearchSettings",
]
