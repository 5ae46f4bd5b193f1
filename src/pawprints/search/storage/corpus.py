"""Read-only embedding store holding the searchable corpus.

The store is built once (from a corpus JSON file or from in-memory records)
and never mutated afterwards, so any number of concurrent queries can share
it without locking. It enforces the corpus invariants at construction time:

- every record has a non-empty title
- the composite key (post_index, media_index) is unique
- every embedding is non-empty, finite, and all share one dimensionality

Corpus file format::

    {
        "posts": [
            {"postIndex": 0, "mediaIndex": 0, "title": "...", "uri": "...",
             "isVideo": false, "creationTimestamp": 1625097600,
             "embedding": [0.01, ...]}
        ],
        "model": "google/text-embedding-004",
        "generatedAt": "2024-01-01T00:00:00+00:00"
    }
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any

import numpy as np

from pawprints.search.errors import CorpusError, InternalConsistencyError
from pawprints.search.types import DocumentKey, DocumentRecord

logger = logging.getLogger(__name__)


class EmbeddingStore:
    """Immutable corpus snapshot with a dense embedding matrix.

    Attributes:
        model: Name of the embedding model that produced the vectors, if known.
        records: Records in corpus order.
        embeddings: Read-only float32 matrix of shape (len(records), dimension).
    """

    def __init__(self, records: Sequence[DocumentRecord], model: str | None = None) -> None:
        self.model = model
        self.records: tuple[DocumentRecord, ...] = tuple(records)
        self._positions: dict[DocumentKey, int] = {}

        dimension = 0
        for position, record in enumerate(self.records):
            if not record.title or not record.title.strip():
                raise CorpusError(f"Record {record.key} has an empty title")
            if record.key in self._positions:
                raise CorpusError(f"Duplicate document key {record.key}")
            if not record.embedding:
                raise CorpusError(f"Record {record.key} has an empty embedding")
            if position == 0:
                dimension = len(record.embedding)
            elif len(record.embedding) != dimension:
                raise CorpusError(
                    f"Dimension mismatch: record {record.key} has {len(record.embedding)} "
                    f"dimensions, expected {dimension}"
                )
            self._positions[record.key] = position

        self.dimension = dimension
        if self.records:
            try:
                matrix = np.array([r.embedding for r in self.records], dtype=np.float32)
            except (TypeError, ValueError) as e:
                raise CorpusError(f"Embeddings must be numeric: {e}") from e
            if not np.isfinite(matrix).all():
                raise CorpusError("Embeddings must be finite")
        else:
            matrix = np.zeros((0, 0), dtype=np.float32)
        matrix.flags.writeable = False
        self.embeddings = matrix

        logger.debug(
            f"[EmbeddingStore] Loaded {len(self.records)} records, dimension={self.dimension}"
        )

    @classmethod
    def from_records(
        cls, records: Iterable[DocumentRecord], model: str | None = None
    ) -> "EmbeddingStore":
        """Build a store from in-memory records."""
        return cls(list(records), model=model)

    @classmethod
    def load(cls, path: str | Path) -> "EmbeddingStore":
        """Load a store from a corpus JSON file.

        Args:
            path: Path to the corpus file written by ``write_corpus``.

        Returns:
            A validated EmbeddingStore.

        Raises:
            CorpusError: If the file is missing, is not valid JSON, or any
                record is malformed or violates a store invariant.
        """
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                payload = json.load(f)
        except OSError as e:
            raise CorpusError(
                f"Failed to load corpus from {path}: {e}. "
                "Run 'pawprints build-corpus' to generate it first."
            ) from e
        except json.JSONDecodeError as e:
            raise CorpusError(f"Corpus file {path} is not valid JSON: {e}") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("posts"), list):
            raise CorpusError(f"Corpus file {path} must contain a 'posts' list")

        records = [_record_from_dict(item, i) for i, item in enumerate(payload["posts"])]
        store = cls(records, model=payload.get("model"))
        logger.info(f"[EmbeddingStore] Loaded {len(store)} records from {path}")
        return store

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[DocumentRecord]:
        return iter(self.records)

    def __contains__(self, key: object) -> bool:
        return key in self._positions

    @property
    def titles(self) -> list[str]:
        return [record.title for record in self.records]

    @property
    def keys(self) -> list[DocumentKey]:
        return [record.key for record in self.records]

    def position(self, key: DocumentKey) -> int:
        """Return the corpus position of ``key``.

        Raises:
            InternalConsistencyError: If the key is not in the store.
        """
        try:
            return self._positions[key]
        except KeyError:
            raise InternalConsistencyError(f"Document not found in store: {key}") from None

    def resolve(self, key: DocumentKey) -> DocumentRecord:
        """Return the record stored under ``key``.

        Raises:
            InternalConsistencyError: If the key is not in the store.
        """
        return self.records[self.position(key)]


def record_to_dict(record: DocumentRecord) -> dict[str, Any]:
    """Serialise a record using the corpus file's camelCase field names."""
    return {
        "postIndex": record.post_index,
        "mediaIndex": record.media_index,
        "title": record.title,
        "uri": record.uri,
        "isVideo": record.is_video,
        "creationTimestamp": record.creation_timestamp,
        "embedding": list(record.embedding),
    }


def _record_from_dict(item: Any, index: int) -> DocumentRecord:
    if not isinstance(item, dict):
        raise CorpusError(f"Post at index {index} must be an object, got {type(item).__name__}")
    try:
        embedding = tuple(float(x) for x in item["embedding"])
        if not all(math.isfinite(x) for x in embedding):
            raise CorpusError(f"Post at index {index} has a non-finite embedding value")
        return DocumentRecord(
            post_index=int(item["postIndex"]),
            media_index=int(item["mediaIndex"]),
            title=str(item["title"]),
            uri=str(item["uri"]),
            is_video=bool(item.get("isVideo", False)),
            creation_timestamp=int(item["creationTimestamp"]),
            embedding=embedding,
        )
    except KeyError as e:
        raise CorpusError(f"Post at index {index} missing field {e}") from e
    except (TypeError, ValueError) as e:
        raise CorpusError(f"Post at index {index} is malformed: {e}") from e
