"""Command line interface for pawprints search.

Usage:
    pawprints search "lilly in the garden" --corpus public/embeddings.json --k 5
    pawprints search "garden" --mode keyword --json
    pawprints query "sleepy dog" --url http://localhost:8000 --limit 5
    pawprints serve --port 8000
    pawprints build-corpus posts_1.json --media-root public --output public/embeddings.json
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, NoReturn

import click
import httpx

from pawprints.search.components.embedder import create_embedding_provider
from pawprints.search.config import SearchSettings
from pawprints.search.errors import SearchError
from pawprints.search.retriever import HybridRetriever
from pawprints.search.storage.builder import (
    DEFAULT_BATCH_SIZE,
    build_corpus,
    collect_media,
    load_posts,
    write_corpus,
)
from pawprints.search.storage.corpus import EmbeddingStore
from pawprints.search.types import SearchMode
from pawprints.shared.logger import RunLogger

MODE_CHOICE = click.Choice([mode.value for mode in SearchMode], case_sensitive=False)


def _format_table(results: list[dict[str, Any]]) -> str:
    """Format results as a terminal table."""
    if not results:
        return "No results found."

    lines = [
        "Rank  Score     Media     Title",
        "----  -----     -----     -----",
    ]

    for i, result in enumerate(results, 1):
        score = f"{result['similarity']:.4f}"
        media = f"{result['postIndex']}-{result['mediaIndex']}"
        title = result["title"].replace("\n", " ")

        if len(title) > 60:
            title = title[:57] + "..."

        lines.append(f"{i:<6}{score:<10}{media:<10}{title}")

    return "\n".join(lines)


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(package_name="pawprints")
def main() -> None:
    """Hybrid keyword and semantic search over media titles."""


@main.command()
@click.argument("query")
@click.option(
    "--corpus",
    default=None,
    help="Corpus JSON file (default: CORPUS_PATH or public/embeddings.json)",
)
@click.option("--k", default=10, type=int, help="Number of results (default: 10)")
@click.option("--mode", default="hybrid", type=MODE_CHOICE, help="Search mode (default: hybrid)")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output raw JSON instead of formatted text",
)
def search(query: str, corpus: str | None, k: int, mode: str, json_output: bool) -> None:
    """Search a local corpus file.

    QUERY: The search query text.
    """
    try:
        settings = SearchSettings.from_env()
        store = EmbeddingStore.load(corpus or settings.corpus_path)
        provider = create_embedding_provider(settings)
        retriever = HybridRetriever.from_settings(settings, store, provider)

        async def _run():
            try:
                return await retriever.search(query, top_k=k, mode=mode.lower())
            finally:
                if hasattr(provider, "aclose"):
                    await provider.aclose()

        results = asyncio.run(_run())
    except (SearchError, ValueError) as e:
        _fail(str(e))

    rows = [
        {
            "postIndex": r.post_index,
            "mediaIndex": r.media_index,
            "title": r.title,
            "uri": r.uri,
            "isVideo": r.is_video,
            "creationTimestamp": r.creation_timestamp,
            "similarity": r.similarity,
        }
        for r in results
    ]

    if json_output:
        click.echo(json.dumps(
            {"query": query, "mode": mode.lower(), "results": rows, "count": len(rows)},
            indent=2,
        ))
    else:
        click.echo(_format_table(rows))


@main.command()
@click.argument("query")
@click.option(
    "--url",
    default="http://localhost:8000",
    help="Service URL (default: http://localhost:8000)",
)
@click.option("--limit", default=10, type=int, help="Number of results (default: 10)")
@click.option("--mode", default="hybrid", type=MODE_CHOICE, help="Search mode (default: hybrid)")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output raw JSON instead of formatted text",
)
def query(query: str, url: str, limit: int, mode: str, json_output: bool) -> None:
    """Query a running search service.

    QUERY: The search query text.
    """
    try:
        response = httpx.get(
            f"{url.rstrip('/')}/search",
            params={"q": query, "limit": limit, "mode": mode.lower()},
            timeout=30,
        )
        response.raise_for_status()
        data = response.json()
    except httpx.ConnectError:
        _fail(f"Could not connect to service at {url}")
    except httpx.TimeoutException:
        _fail(f"Request to {url} timed out")
    except httpx.HTTPStatusError as e:
        _fail(f"Service returned {e.response.status_code}: {e.response.text}")
    except json.JSONDecodeError:
        _fail("Invalid JSON response from service")
    except httpx.HTTPError as e:
        _fail(str(e))

    if json_output:
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(_format_table(data.get("results", [])))


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str, port: int, reload: bool) -> None:
    """Start the search service."""
    import uvicorn

    click.echo(f"Search service starting on http://{host}:{port}")
    uvicorn.run(
        "pawprints.search.service.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@main.command("build-corpus")
@click.argument("posts_json", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--media-root",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory media URIs are relative to; items whose file is missing are skipped",
)
@click.option(
    "--output",
    default=None,
    help="Corpus JSON to write (default: CORPUS_PATH or public/embeddings.json)",
)
@click.option(
    "--batch-size",
    default=DEFAULT_BATCH_SIZE,
    type=click.IntRange(min=1),
    help=f"Titles per embedding request (default: {DEFAULT_BATCH_SIZE})",
)
@click.option("--log-file", default=None, help="Also write the run log to this file")
def build_corpus_command(
    posts_json: str,
    media_root: str | None,
    output: str | None,
    batch_size: int,
    log_file: str | None,
) -> None:
    """Embed every media title of a posts export into a corpus file.

    POSTS_JSON: Posts export to read.
    """
    with RunLogger(log_file=log_file) as log:
        log.install_stdlib_bridge()
        log.section("BUILD CORPUS")

        try:
            settings = SearchSettings.from_env()
            provider = create_embedding_provider(settings)
            posts = load_posts(posts_json)

            items, skipped = collect_media(posts, media_root=media_root)
            log.info(f"Found {len(items)} media items with titles")
            log.metric("items", len(items))
            log.metric("skipped", skipped)

            async def _run():
                try:
                    return await build_corpus(
                        items,
                        provider,
                        batch_size=batch_size,
                        on_progress=lambda current, total, label: log.progress(current, total, label),
                    )
                finally:
                    if hasattr(provider, "aclose"):
                        await provider.aclose()

            with log.timer("embedding"):
                records = asyncio.run(_run())

            path = write_corpus(
                output or settings.corpus_path,
                records,
                model=f"{provider.name}/{provider.model}",
            )
        except (SearchError, ValueError) as e:
            log.error(str(e))
            _fail(str(e))

        log.info(f"Saved {len(records)} embeddings to {path}")
        log.summary()


if __name__ == "__main__":
    main()
