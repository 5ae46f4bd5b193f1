"""Title and query tokenizer shared by the lexical scorer and its index."""

from __future__ import annotations

import re

_SPLIT = re.compile(r"[^a-z0-9]+")


def tokenize(text: str) -> list[str]:
    """Split text into lowercase alphanumeric tokens.

    The text is lower-cased and split on every run of characters outside
    ``[a-z0-9]``; empty pieces are dropped. No stemming or stopword removal.

    Example:
        >>> tokenize("Lilly digs the garden!")
        ['lilly', 'digs', 'the', 'garden']
        >>> tokenize("  ...  ")
        []
    """
    if not text:
        return []
    return [token for token in _SPLIT.split(text.lower()) if token]
