"""Search components for the ranking engine."""

from .bm25 import LexicalScorer
from .embedder import (
    EmbeddingProvider,
    GoogleEmbeddingProvider,
    SentenceTransformerProvider,
    create_embedding_provider,
)
from .protocol import Scorer
from .rrf import RRFFuser, reciprocal_rank_fusion
from .semantic import SemanticScorer, cosine_similarities
from .tokenizer import tokenize

__all__ = [
    "EmbeddingProvider",
    "GoogleEmbeddingProvider",
    "LexicalScorer",
    "RRFFuser",
    "Scorer",
    "SemanticScorer",
    "SentenceTransformerProvider",
    "cosine_similarities",
    "create_embedding_provider",
    "reciprocal_rank_fusion",
    "tokenize",
]
