"""Corpus storage: the read-only embedding store and the offline builder."""

from .corpus import EmbeddingStore

__all__ = ["EmbeddingStore"]
