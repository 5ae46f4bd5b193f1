"""Offline corpus builder: media export → embedded corpus file.

Walks a posts export (``[{"media": [{"uri", "title", "creation_timestamp"}]}]``),
selects the media items that can be indexed, embeds their titles in batches
and writes the corpus JSON that EmbeddingStore.load reads.

Selection rules:
- media without a title (or with a blank one) is skipped silently
- media whose file is missing under ``media_root`` is skipped and counted
- media without a creation timestamp is skipped and counted
- ``is_video`` is true for ``.mp4`` URIs
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pawprints.search.components.embedder import EmbeddingProvider
from pawprints.search.errors import ConfigurationError, CorpusError
from pawprints.search.storage.corpus import record_to_dict
from pawprints.search.types import DocumentRecord

logger = logging.getLogger(__name__)

# UTF-8 text decoded as Windows-1252, mapped back to the intended characters
ENCODING_FIXES: list[tuple[re.Pattern[str], str]] = [
    (re.compile("â\u0080\u0099"), "'"),
    (re.compile("â\u0080\u0098"), "'"),
    (re.compile("â\u0080\u009c"), '"'),
    (re.compile("â\u0080\u009d"), '"'),
    (re.compile("â\u0080\u0093"), "-"),
    (re.compile("â\u0080\u0094"), "--"),
    (re.compile("â\u0080¦"), "..."),
    (re.compile("Â "), " "),
    (re.compile("â\u0080\u0082"), " "),
    (re.compile("â\u0080\u0083"), " "),
    (re.compile("â€ "), "'"),
    (re.compile("â€™"), "'"),
    (re.compile("â€œ"), '"'),
    (re.compile("â€\u009d"), '"'),
]

DEFAULT_BATCH_SIZE = 100


def clean_text(text: str) -> str:
    """Repair common mojibake in exported captions.

    Example:
        >>> clean_text("thereâ\u0080\u0099s cheese")
        "there's cheese"
    """
    for pattern, replacement in ENCODING_FIXES:
        text = pattern.sub(replacement, text)
    return text


@dataclass(frozen=True)
class MediaItem:
    """A media item selected for embedding (a DocumentRecord minus its vector)."""

    post_index: int
    media_index: int
    title: str
    uri: str
    is_video: bool
    creation_timestamp: int


def collect_media(
    posts: Sequence[dict[str, Any]],
    media_root: str | Path | None = None,
) -> tuple[list[MediaItem], int]:
    """Select the indexable media items of a posts export.

    Args:
        posts: Parsed posts export.
        media_root: Directory the media URIs are relative to. When given,
            items whose file does not exist are skipped.

    Returns:
        Tuple of (selected items, number of skipped items). Items without a
        title are not counted as skipped.
    """
    root = Path(media_root) if media_root is not None else None
    items: list[MediaItem] = []
    skipped = 0

    for post_index, post in enumerate(posts):
        media = post.get("media") or []
        for media_index, entry in enumerate(media):
            title = clean_text(entry.get("title") or "")
            if not title.strip():
                continue

            uri = entry.get("uri", "")
            if root is not None and not (root / uri.lstrip("/")).exists():
                skipped += 1
                logger.info(f"[CorpusBuilder] Skipping: {uri} (file not found)")
                continue

            timestamp = entry.get("creation_timestamp")
            if not timestamp:
                skipped += 1
                logger.info(f"[CorpusBuilder] Skipping: {uri} (missing creation_timestamp)")
                continue

            items.append(MediaItem(
                post_index=post_index,
                media_index=media_index,
                title=title,
                uri=uri,
                is_video=uri.endswith(".mp4"),
                creation_timestamp=int(timestamp),
            ))

    return items, skipped


async def build_corpus(
    items: Sequence[MediaItem],
    provider: EmbeddingProvider,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: Callable[[int, int, str], None] | None = None,
    batch_delay: float = 0.1,
) -> list[DocumentRecord]:
    """Embed item titles in batches and return the corpus records.

    Args:
        items: Items selected by collect_media.
        provider: Embedding provider; must be the one queries will use.
        batch_size: Titles per provider call.
        on_progress: Optional callable(batch, total_batches, message).
        batch_delay: Pause between batches, in seconds, to stay under rate limits.

    Raises:
        CorpusError: If there is nothing to embed.
        ConfigurationError: If the provider is not configured.
        EmbeddingProviderError: If a batch fails; no partial corpus is returned.
    """
    if not items:
        raise CorpusError("No titles found to embed")
    if not provider.is_configured():
        raise ConfigurationError(f"Embedding provider '{provider.name}' is not configured")
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    total_batches = (len(items) + batch_size - 1) // batch_size
    records: list[DocumentRecord] = []

    for batch_number, start in enumerate(range(0, len(items), batch_size), start=1):
        batch = items[start:start + batch_size]
        vectors = await provider.embed_many([item.title for item in batch])
        if len(vectors) != len(batch):
            raise CorpusError(
                f"Provider returned {len(vectors)} embeddings for {len(batch)} titles"
            )

        for item, vector in zip(batch, vectors):
            records.append(DocumentRecord(
                post_index=item.post_index,
                media_index=item.media_index,
                title=item.title,
                uri=item.uri,
                is_video=item.is_video,
                creation_timestamp=item.creation_timestamp,
                embedding=tuple(vector),
            ))

        if on_progress:
            on_progress(batch_number, total_batches, f"Embedded {len(batch)} titles")
        if batch_delay and batch_number < total_batches:
            await asyncio.sleep(batch_delay)

    return records


def write_corpus(path: str | Path, records: Sequence[DocumentRecord], model: str) -> Path:
    """Write records to a corpus JSON file and return its path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "posts": [record_to_dict(record) for record in records],
        "model": model,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    logger.info(f"[CorpusBuilder] Wrote {len(records)} records to {path}")
    return path


def load_posts(path: str | Path) -> list[dict[str, Any]]:
    """Read a posts export file.

    Raises:
        CorpusError: If the file cannot be read or is not a JSON list.
    """
    try:
        with open(path, encoding="utf-8") as f:
            posts = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CorpusError(f"Failed to read posts from {path}: {e}") from e
    if not isinstance(posts, list):
        raise CorpusError(f"Posts file {path} must contain a JSON list")
    return posts
