"""BM25 lexical scorer over corpus titles.

Wraps the bm25s library to rank every title in an EmbeddingStore against a
keyword query. Titles and queries go through the same tokenizer, term
statistics (IDF, average title length) cover the whole corpus, and
documents whose score is not strictly positive are dropped.

The scorer computes Okapi BM25 with the always-positive IDF:

    idf(t)    = ln(1 + (N - n(t) + 0.5) / (n(t) + 0.5))
    score(d)  = Σ idf(t) · tf(t, d) · (k1 + 1) / (tf(t, d) + k1 · (1 - b + b · |d| / avgdl))

bm25s's Lucene variant has this IDF but drops the (k1 + 1) factor from the
numerator, so its scores are multiplied back by (k1 + 1).

Example:
    >>> scorer = LexicalScorer(store)
    >>> results = scorer.rank('garden')
    >>> results[0].source
    'bm25'
"""

from __future__ import annotations

import asyncio
import logging

import bm25s
import numpy as np

from pawprints.search.components.tokenizer import tokenize
from pawprints.search.storage.corpus import EmbeddingStore
from pawprints.search.types import RankedResult

logger = logging.getLogger(__name__)


class LexicalScorer:
    """BM25 scorer wrapping bm25s.BM25 for keyword ranking of titles.

    The term statistics are built once from the store's titles. Because the
    store is immutable they never go stale, and they are kept in memory only.

    Attributes:
        store: The corpus snapshot being ranked.
        k1: Term-frequency saturation parameter.
        b: Length-normalisation parameter.
        _bm25: The underlying bm25s.BM25 instance (None when no title yields
            a token, the empty corpus included).
    """

    DEFAULT_K1 = 1.3
    DEFAULT_B = 0.9

    def __init__(self, store: EmbeddingStore, k1: float = DEFAULT_K1, b: float = DEFAULT_B) -> None:
        self.store = store
        self.k1 = k1
        self.b = b
        self._bm25: bm25s.BM25 | None = None

        tokenized = [tokenize(title) for title in store.titles]
        # bm25s cannot index a vocabulary with no terms
        if any(tokenized):
            self._bm25 = bm25s.BM25(k1=k1, b=b, method="lucene")
            self._bm25.index(tokenized, show_progress=False)

        logger.debug(
            f"[LexicalScorer] Indexed {len(store)} titles with k1={k1}, b={b}"
        )

    def scores(self, query: str) -> np.ndarray:
        """Return the raw BM25 score of every document, in corpus order.

        Query tokens that appear in no title contribute nothing. A query with
        no known tokens scores every document 0.
        """
        n_docs = len(self.store)
        if self._bm25 is None:
            return np.zeros(n_docs, dtype=np.float32)

        tokens = tokenize(query)
        if not self._bm25.get_tokens_ids(tokens):
            return np.zeros(n_docs, dtype=np.float32)
        scores = np.asarray(self._bm25.get_scores(tokens), dtype=np.float32)
        return scores * np.float32(1.0 + self.k1)

    def rank(self, query: str) -> list[RankedResult]:
        """Rank the corpus against a keyword query.

        Args:
            query: Raw query text.

        Returns:
            RankedResult objects with source "bm25", holding every document
            whose BM25 score is strictly positive, sorted by score descending
            (ties keep corpus order) and ranked from 1. An empty or
            untokenizable query returns an empty list.
        """
        if not tokenize(query):
            return []

        scores = self.scores(query)
        relevant = np.flatnonzero(scores > 0)
        if relevant.size == 0:
            logger.debug(f"[LexicalScorer] No keyword matches for query: {query[:50]}")
            return []

        # Stable sort on negated scores keeps corpus order among ties
        order = relevant[np.argsort(-scores[relevant], kind="stable")]
        keys = self.store.keys
        results = [
            RankedResult(key=keys[idx], score=float(scores[idx]), source="bm25", rank=rank)
            for rank, idx in enumerate(order, start=1)
        ]

        logger.debug(f"[LexicalScorer] Ranked {len(results)} of {len(keys)} titles")
        return results

    async def arank(self, query: str) -> list[RankedResult]:
        """Rank in a worker thread so BM25 overlaps the query embedding call."""
        return await asyncio.to_thread(self.rank, query)
