"""Reciprocal Rank Fusion (RRF) component for combining ranked lists.

This module implements RRFFuser for merging the ranked lists produced by
independent scorers (BM25, semantic) using Reciprocal Rank Fusion. RRF only
looks at ranks, so it can combine BM25's unbounded scores with cosine
similarity's [-1, 1] range without any calibration.

The RRF formula: score(d) = Σ (weight_i / (k + rank_i(d)))

Where:
- weight_i: Weight for list i (default 1.0 for plain RRF)
- k: RRF constant damping the influence of top ranks (default 60)
- rank_i(d): 1-based rank of document d in list i; lists that do not
  contain d contribute nothing

Example:
    >>> from pawprints.search.types import DocumentKey, FusionConfig, RankedResult
    >>> from pawprints.search.components.rrf import RRFFuser
    >>> a, b, c = DocumentKey(0, 0), DocumentKey(1, 0), DocumentKey(2, 0)
    >>> list1 = [RankedResult(a, 3.2, 'bm25', 1), RankedResult(b, 1.1, 'bm25', 2)]
    >>> list2 = [RankedResult(b, 0.9, 'semantic', 1), RankedResult(c, 0.7, 'semantic', 2)]
    >>> fused = RRFFuser(FusionConfig(k=60)).process([list1, list2])
    >>> [str(r.key) for r in fused]
    ['1-0', '0-0', '2-0']
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from pawprints.search.types import DocumentKey, FusionConfig, RankedResult

logger = logging.getLogger(__name__)


class RRFFuser:
    """Reciprocal Rank Fusion component for combining retrieval signals.

    Stateless: accepts any number of RankedResult lists (one per scorer) and
    returns a single fused list sorted by RRF score with source="rrf".

    The RRF algorithm:
    1. For each list, read every result's 1-based rank
    2. Accumulate weight / (k + rank) per document key
    3. Sort keys by accumulated score (descending), ties by corpus order
    4. Assign fused ranks from 1

    The output does not depend on the order of the input lists, and
    improving a document's rank in any list never lowers its fused score.

    Attributes:
        config: FusionConfig with the k constant and optional weights
    """

    def __init__(self, config: FusionConfig | None = None):
        self.config = config or FusionConfig()
        if self.config.k <= 0:
            raise ValueError(f"RRF k must be positive, got {self.config.k}")

    def process(
        self,
        data: Sequence[Sequence[RankedResult]],
        order: Callable[[DocumentKey], int] | None = None,
    ) -> list[RankedResult]:
        """Fuse ranked result lists using Reciprocal Rank Fusion.

        Args:
            data: Ranked lists, one per scorer. Each result's ``rank`` is its
                1-based position in that list. Empty lists are allowed and
                contribute nothing.
            order: Maps a document key to its corpus position; used to break
                score ties. Without it ties are broken by the key itself.

        Returns:
            RankedResult objects sorted by RRF score (descending). Each has:
            - key: Original document key
            - score: RRF score (sum of weighted reciprocal ranks)
            - source: "rrf"
            - rank: Position in fused results (1-based)

        Raises:
            ValueError: If the configured weights do not match the number of
                lists, or a weight or rank is not positive.

        Example:
            >>> fuser = RRFFuser(FusionConfig(k=60))
            >>> a = DocumentKey(0, 0)
            >>> fused = fuser.process([[RankedResult(a, 9.0, 'bm25', 1)],
            ...                        [RankedResult(a, 0.8, 'semantic', 1)]])
            >>> round(fused[0].score, 6) == round(2 / 61, 6)
            True
        """
        weights = self._extract_weights(len(data))

        rrf_scores: dict[DocumentKey, float] = {}  # key -> accumulated RRF score
        for list_idx, result_list in enumerate(data):
            weight = weights[list_idx]
            for result in result_list:
                if result.rank < 1:
                    raise ValueError(f"Ranks are 1-based, got {result.rank} for {result.key}")
                rrf_score = weight / (self.config.k + result.rank)
                rrf_scores[result.key] = rrf_scores.get(result.key, 0.0) + rrf_score

        tie_break = order or (lambda key: key)
        sorted_keys = sorted(
            rrf_scores, key=lambda key: (-rrf_scores[key], tie_break(key))
        )

        fused = [
            RankedResult(key=key, score=rrf_scores[key], source="rrf", rank=rank)
            for rank, key in enumerate(sorted_keys, start=1)
        ]
        logger.debug(f"[RRFFuser] Fused {len(data)} lists into {len(fused)} results")
        return fused

    def _extract_weights(self, num_lists: int) -> list[float]:
        """Return one weight per ranked list.

        Without configured weights every list weighs 1.0.

        Raises:
            ValueError: If the weight count differs from ``num_lists`` or a
                weight is not positive.
        """
        if self.config.weights is None:
            return [1.0] * num_lists

        weights = list(self.config.weights)
        if len(weights) != num_lists:
            raise ValueError(
                f"Got {len(weights)} weights for {num_lists} ranked lists"
            )
        for i, weight in enumerate(weights):
            if weight <= 0:
                raise ValueError(f"Weight {i} must be positive, got {weight}")
        return weights


def reciprocal_rank_fusion(
    *ranked_lists: Sequence[RankedResult],
    k: int = 60,
    order: Callable[[DocumentKey], int] | None = None,
) -> list[RankedResult]:
    """Fuse ranked lists with plain (unweighted) RRF."""
    return RRFFuser(FusionConfig(k=k)).process(list(ranked_lists), order=order)
