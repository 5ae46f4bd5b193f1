"""Immutable type system for the hybrid ranking engine.

This module defines the frozen dataclasses that flow through the search
pipeline. Records come out of the embedding store, each scorer turns the
corpus into a list of RankedResult objects, the fuser merges those lists, and
the orchestrator resolves the surviving keys back into SearchResult objects.

Transformation chain:
    DocumentRecord → RankedResult (bm25 | semantic) → RankedResult (rrf) → SearchResult
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, NamedTuple, Optional


class DocumentKey(NamedTuple):
    """Composite identifier of one indexed media item.

    ``post_index`` alone is not unique (a post can carry several media
    items); the pair is.
    """

    post_index: int
    media_index: int

    def __str__(self) -> str:
        return f"{self.post_index}-{self.media_index}"


@dataclass(frozen=True)
class DocumentRecord:
    """One indexed media item with its precomputed title embedding.

    Only ``title`` takes part in ranking. ``uri``, ``is_video`` and
    ``creation_timestamp`` are carried through to the search results.
    """

    post_index: int
    media_index: int
    title: str
    uri: str
    is_video: bool
    creation_timestamp: int
    embedding: tuple[float, ...] = field(default_factory=tuple, repr=False)

    @property
    def key(self) -> DocumentKey:
        return DocumentKey(self.post_index, self.media_index)


@dataclass(frozen=True)
class RankedResult:
    """A document key ranked by one retrieval signal.

    ``score`` is the raw signal value (BM25 score, cosine similarity or
    summed RRF score) and ``rank`` is the 1-based position after sorting by
    that score, ties broken by corpus order.
    """

    key: DocumentKey
    score: float
    source: Literal["bm25", "semantic", "rrf"]  # Which signal produced this score
    rank: int


# A fused result is a RankedResult whose source is "rrf".
FusedResult = RankedResult


@dataclass(frozen=True)
class SearchResult:
    """A resolved search hit.

    ``similarity`` holds the ranking score of the mode that produced the
    result: cosine similarity (semantic), BM25 score (keyword) or RRF score
    (hybrid). Values from different modes are not comparable.
    """

    post_index: int
    media_index: int
    title: str
    uri: str
    is_video: bool
    creation_timestamp: int
    similarity: float

    @classmethod
    def from_record(cls, record: DocumentRecord, similarity: float) -> "SearchResult":
        return cls(
            post_index=record.post_index,
            media_index=record.media_index,
            title=record.title,
            uri=record.uri,
            is_video=record.is_video,
            creation_timestamp=record.creation_timestamp,
            similarity=float(similarity),
        )

    @property
    def key(self) -> DocumentKey:
        return DocumentKey(self.post_index, self.media_index)


class SearchMode(str, Enum):
    """Ranking strategy used by HybridRetriever.search."""

    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


@dataclass(frozen=True)
class FusionConfig:
    """Configuration for Reciprocal Rank Fusion (RRF).

    With ``weights`` left as None every ranked list contributes
    ``1 / (k + rank)``, which is plain RRF.
    """

    k: int = 60  # RRF parameter k
    weights: Optional[tuple[float, ...]] = None  # One weight per fused list
