"""Scorer Protocol shared by the retrieval signals.

A scorer is a pure function from a query (plus the corpus snapshot it was
built over) to a ranked list. The orchestrator runs every scorer
concurrently and hands their lists to the fuser, which does not care how
many scorers there are or which kind.
"""

from typing import Protocol, runtime_checkable

from pawprints.search.types import RankedResult


@runtime_checkable
class Scorer(Protocol):
    """Protocol for ranking signals (BM25, semantic)."""

    async def arank(self, query: str) -> list[RankedResult]:
        """Rank the corpus against a query.

        Args:
            query: Raw query text.

        Returns:
            RankedResult objects sorted best first and ranked from 1. A blank
            query returns an empty list.
        """
        ...
