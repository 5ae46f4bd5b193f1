"""Tests for the pawprints CLI."""

import json

import httpx
import pytest
from click.testing import CliRunner


@pytest.fixture
def corpus_path(tmp_path, records):
    from pawprints.search.storage.builder import write_corpus

    return write_corpus(tmp_path / "embeddings.json", records, model="fake/fake-embedding")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GOOGLE_GENERATIVE_AI_API_KEY", "EMBEDDING_PROVIDER", "CORPUS_PATH"):
        monkeypatch.delenv(name, raising=False)


class TestSearchCommand:
    """Tests for `pawprints search`."""

    def test_keyword_json(self, corpus_path):
        """Keyword search runs locally without credentials."""
        from pawprints.search.service.cli import main

        result = CliRunner().invoke(
            main, ["search", "garden", "--corpus", str(corpus_path), "--mode", "keyword", "--json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["count"] == 2
        assert data["results"][0]["title"] == "Lilly in the garden"

    def test_table_output(self, corpus_path):
        """Without --json results are printed as a table."""
        from pawprints.search.service.cli import main

        result = CliRunner().invoke(
            main, ["search", "garden", "--corpus", str(corpus_path), "--mode", "keyword", "--k", "1"]
        )

        assert result.exit_code == 0, result.output
        assert "Rank" in result.output
        assert "0-0" in result.output
        assert "Digging" not in result.output

    def test_hybrid_without_credentials_fails(self, corpus_path):
        """Hybrid search without an API key exits with an error."""
        from pawprints.search.service.cli import main

        result = CliRunner().invoke(main, ["search", "garden", "--corpus", str(corpus_path)])

        assert result.exit_code == 1
        assert "not configured" in result.output

    def test_missing_corpus(self, tmp_path):
        """A missing corpus file exits with an error."""
        from pawprints.search.service.cli import main

        result = CliRunner().invoke(
            main, ["search", "garden", "--corpus", str(tmp_path / "nope.json"), "--mode", "keyword"]
        )

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestQueryCommand:
    """Tests for `pawprints query`."""

    def test_query_service(self, monkeypatch):
        """The query command calls GET /search and prints the results."""
        from pawprints.search.service.cli import main

        seen = {}

        def fake_get(url, params=None, timeout=None):
            seen["url"] = url
            seen["params"] = params
            return httpx.Response(
                200,
                json={"query": "garden", "mode": "hybrid", "count": 1, "results": [{
                    "postIndex": 3, "mediaIndex": 1, "title": "Lilly digs the garden",
                    "uri": "media/3.jpg", "isVideo": False, "creationTimestamp": 1,
                    "similarity": 0.0325,
                }]},
                request=httpx.Request("GET", url),
            )

        monkeypatch.setattr(httpx, "get", fake_get)
        result = CliRunner().invoke(main, ["query", "garden", "--url", "http://search:8000/", "--limit", "5"])

        assert result.exit_code == 0, result.output
        assert seen["url"] == "http://search:8000/search"
        assert seen["params"] == {"q": "garden", "limit": 5, "mode": "hybrid"}
        assert "3-1" in result.output
        assert "Lilly digs the garden" in result.output

    def test_connection_error(self, monkeypatch):
        """An unreachable service exits with an error."""
        from pawprints.search.service.cli import main

        def fake_get(url, params=None, timeout=None):
            raise httpx.ConnectError("refused", request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx, "get", fake_get)
        result = CliRunner().invoke(main, ["query", "garden"])

        assert result.exit_code == 1
        assert "Could not connect" in result.output

    def test_error_status(self, monkeypatch):
        """Service error responses exit with the status code."""
        from pawprints.search.service.cli import main

        def fake_get(url, params=None, timeout=None):
            return httpx.Response(400, json={"detail": "bad"}, request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx, "get", fake_get)
        result = CliRunner().invoke(main, ["query", "garden"])

        assert result.exit_code == 1
        assert "400" in result.output


class TestServeCommand:
    """Tests for `pawprints serve`."""

    def test_runs_uvicorn(self, monkeypatch):
        """serve hands the service app and bind options to uvicorn."""
        import uvicorn

        from pawprints.search.service.cli import main

        seen = {}

        def fake_run(app, **kwargs):
            seen["app"] = app
            seen.update(kwargs)

        monkeypatch.setattr(uvicorn, "run", fake_run)
        result = CliRunner().invoke(main, ["serve", "--host", "0.0.0.0", "--port", "9000"])

        assert result.exit_code == 0, result.output
        assert seen["app"] == "pawprints.search.service.app:app"
        assert (seen["host"], seen["port"], seen["reload"]) == ("0.0.0.0", 9000, False)


class TestBuildCorpusCommand:
    """Tests for `pawprints build-corpus`."""

    def test_builds_corpus(self, tmp_path, monkeypatch, fake_provider_cls):
        """Titled, timestamped media is embedded and written as a loadable corpus."""
        from pawprints.search.service import cli
        from pawprints.search.storage.corpus import EmbeddingStore

        posts = tmp_path / "posts_1.json"
        posts.write_text(json.dumps([
            {"media": [{"uri": "media/a.jpg", "title": "Lilly digs", "creation_timestamp": 10}]},
            {"media": [{"uri": "media/b.mp4", "title": "Zoomies", "creation_timestamp": 20}]},
            {"media": [{"uri": "media/c.jpg", "title": "No time"}]},
        ]), encoding="utf-8")
        output = tmp_path / "out" / "embeddings.json"
        log_file = tmp_path / "build.log"

        provider = fake_provider_cls()
        monkeypatch.setattr(cli, "create_embedding_provider", lambda settings: provider)

        result = CliRunner().invoke(cli.main, [
            "build-corpus", str(posts), "--output", str(output),
            "--batch-size", "1", "--log-file", str(log_file),
        ])

        assert result.exit_code == 0, result.output
        store = EmbeddingStore.load(output)
        assert store.titles == ["Lilly digs", "Zoomies"]
        assert store.model == "fake/fake-embedding"
        assert provider.calls == ["Lilly digs", "Zoomies"]
        assert "skipped = 1" in log_file.read_text(encoding="utf-8")

    def test_unconfigured_provider(self, tmp_path):
        """Building without an API key exits with an error."""
        from pawprints.search.service.cli import main

        posts = tmp_path / "posts_1.json"
        posts.write_text(json.dumps([
            {"media": [{"uri": "media/a.jpg", "title": "Lilly digs", "creation_timestamp": 10}]},
        ]), encoding="utf-8")

        result = CliRunner().invoke(main, ["build-corpus", str(posts), "--output", str(tmp_path / "e.json")])

        assert result.exit_code == 1
        assert not (tmp_path / "e.json").exists()
