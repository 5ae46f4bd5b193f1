"""Tests for HybridRetriever orchestration."""

import asyncio

import pytest


def _search(retriever, query, **kwargs):
    return asyncio.run(retriever.search(query, **kwargs))


class TestSearchModes:
    """Tests for keyword, semantic and hybrid modes."""

    def test_keyword_mode(self, store, provider):
        """Keyword mode returns BM25 matches only and never embeds."""
        from pawprints.search.retriever import HybridRetriever

        retriever = HybridRetriever(store, provider)
        results = _search(retriever, "garden", mode="keyword")

        assert [str(r.key) for r in results] == ["0-0", "1-0"]
        assert all(r.similarity > 0 for r in results)
        assert provider.calls == []

    def test_keyword_mode_without_credentials(self, store, fake_provider_cls):
        """Keyword mode works when no embedding credential is configured."""
        from pawprints.search.retriever import HybridRetriever

        retriever = HybridRetriever(store, fake_provider_cls(configured=False))
        assert len(_search(retriever, "garden", mode="keyword")) == 2

    def test_semantic_mode(self, store, provider):
        """Semantic mode ranks the whole corpus by cosine similarity."""
        from pawprints.search.retriever import HybridRetriever
        from pawprints.search.types import SearchMode

        retriever = HybridRetriever(store, provider)
        results = _search(retriever, "beach", mode=SearchMode.SEMANTIC)

        assert len(results) == 4
        assert str(results[0].key) == "2-0"
        assert results[0].similarity == pytest.approx(1.0)
        assert results[0].is_video is True
        assert provider.calls == ["beach"]

    def test_hybrid_mode_fuses_both_signals(self, store, fake_provider_cls):
        """Hybrid similarity is the summed reciprocal rank of both lists."""
        from pawprints.search.retriever import HybridRetriever

        provider = fake_provider_cls(vectors={"sunny garden": (0.9, 0.1, 0.0)})
        results = _search(HybridRetriever(store, provider), "sunny garden")

        assert [str(r.key) for r in results] == ["0-0", "1-0", "0-1", "2-0"]
        assert results[0].similarity == pytest.approx(2 / 61)
        assert results[1].similarity == pytest.approx(2 / 62)
        assert results[2].similarity == pytest.approx(1 / 63)
        assert results[3].similarity == pytest.approx(1 / 64)
        assert provider.calls == ["sunny garden"]

    def test_hybrid_without_keyword_matches(self, store, fake_provider_cls):
        """An empty keyword list does not fail hybrid mode."""
        from pawprints.search.retriever import HybridRetriever

        provider = fake_provider_cls(default=(0.0, 1.0, 0.0))
        results = _search(HybridRetriever(store, provider), "sofa nap")

        assert str(results[0].key) == "0-1"
        assert results[0].similarity == pytest.approx(1 / 61)

    def test_top_k_truncates(self, store, provider):
        """At most top_k results are returned."""
        from pawprints.search.retriever import HybridRetriever

        retriever = HybridRetriever(store, provider)
        assert len(_search(retriever, "beach", top_k=2, mode="semantic")) == 2
        assert len(_search(retriever, "garden", top_k=1, mode="keyword")) == 1

    def test_repeated_queries_are_identical(self, store, provider):
        """The same query against the same store yields the same results."""
        from pawprints.search.retriever import HybridRetriever

        retriever = HybridRetriever(store, provider)
        assert _search(retriever, "sunny garden") == _search(retriever, "sunny garden")

    def test_from_settings(self, store, provider):
        """Settings carry the fusion constant and BM25 parameters."""
        from pawprints.search.config import SearchSettings
        from pawprints.search.retriever import HybridRetriever

        retriever = HybridRetriever.from_settings(
            SearchSettings(rrf_k=10, bm25_k1=1.2, bm25_b=0.75), store, provider
        )
        assert retriever.fuser.config.k == 10
        assert retriever.lexical.k1 == 1.2
        assert retriever.lexical.b == 0.75


class TestSearchEdgeCases:
    """Tests for empty queries, validation and error propagation."""

    @pytest.mark.parametrize("mode", ["keyword", "semantic", "hybrid"])
    def test_empty_query(self, store, provider, mode):
        """Blank queries return [] in every mode without embedding."""
        from pawprints.search.retriever import HybridRetriever

        retriever = HybridRetriever(store, provider)
        assert _search(retriever, "", mode=mode) == []
        assert _search(retriever, "   ", mode=mode) == []
        assert provider.calls == []

    @pytest.mark.parametrize("top_k", [0, -1, True, 2.5])
    def test_invalid_top_k(self, store, provider, top_k):
        """top_k must be a positive integer."""
        from pawprints.search.retriever import HybridRetriever

        with pytest.raises(ValueError, match="top_k"):
            _search(HybridRetriever(store, provider), "garden", top_k=top_k)

    def test_invalid_mode(self, store, provider):
        """Unknown modes raise ValueError."""
        from pawprints.search.retriever import HybridRetriever

        with pytest.raises(ValueError):
            _search(HybridRetriever(store, provider), "garden", mode="fuzzy")

    @pytest.mark.parametrize("mode", ["semantic", "hybrid"])
    def test_missing_credential(self, store, fake_provider_cls, mode):
        """Semantic and hybrid modes fail without a credential."""
        from pawprints.search.errors import ConfigurationError
        from pawprints.search.retriever import HybridRetriever

        retriever = HybridRetriever(store, fake_provider_cls(configured=False))
        with pytest.raises(ConfigurationError):
            _search(retriever, "garden", mode=mode)

    def test_hybrid_does_not_degrade_to_keyword(self, store, fake_provider_cls):
        """A provider failure in hybrid mode propagates even when keywords match."""
        from pawprints.search.errors import EmbeddingProviderError
        from pawprints.search.retriever import HybridRetriever

        provider = fake_provider_cls(error=EmbeddingProviderError("quota exceeded"))
        with pytest.raises(EmbeddingProviderError, match="quota exceeded"):
            _search(HybridRetriever(store, provider), "garden")

    def test_unresolvable_key(self, store, provider):
        """A ranked key missing from the store fails loudly."""
        from pawprints.search.errors import InternalConsistencyError
        from pawprints.search.retriever import HybridRetriever
        from pawprints.search.types import DocumentKey, RankedResult

        retriever = HybridRetriever(store, provider)
        retriever.lexical.rank = lambda query: [RankedResult(DocumentKey(42, 0), 1.0, "bm25", 1)]

        with pytest.raises(InternalConsistencyError):
            _search(retriever, "garden", mode="keyword")

    def test_corpus_without_keyword_tokens(self, make_record, fake_provider_cls):
        """Emoji and punctuation titles still serve semantic and hybrid search."""
        from pawprints.search.retriever import HybridRetriever
        from pawprints.search.storage.corpus import EmbeddingStore

        store = EmbeddingStore.from_records([
            make_record(0, 0, "🐶🐶", (1.0, 0.0)),
            make_record(1, 0, "!!!", (0.0, 1.0)),
        ])
        retriever = HybridRetriever(store, fake_provider_cls(default=(0.0, 1.0)))

        assert _search(retriever, "garden", mode="keyword") == []
        assert [str(r.key) for r in _search(retriever, "garden", mode="semantic")] == ["1-0", "0-0"]
        hybrid = _search(retriever, "garden")
        assert [str(r.key) for r in hybrid] == ["1-0", "0-0"]
        assert hybrid[0].similarity == pytest.approx(1 / 61)

    def test_empty_store(self, provider):
        """An empty corpus returns no results in every mode."""
        from pawprints.search.retriever import HybridRetriever
        from pawprints.search.storage.corpus import EmbeddingStore

        retriever = HybridRetriever(EmbeddingStore.from_records([]), provider)
        for mode in ("keyword", "semantic", "hybrid"):
            assert _search(retriever, "garden", mode=mode) == []


class TestHybridConcurrency:
    """Tests for the hybrid fan-out."""

    def test_scorers_run_concurrently(self, store, fake_provider_cls):
        """The query embedding is still pending while BM25 ranks."""
        import threading

        from pawprints.search.retriever import HybridRetriever

        bm25_ran = threading.Event()

        class WaitingProvider(fake_provider_cls):
            async def embed(self, text):
                # Only completes if the lexical pass starts before the embed returns
                while not bm25_ran.is_set():
                    await asyncio.sleep(0.01)
                return await super().embed(text)

        retriever = HybridRetriever(store, WaitingProvider())
        rank = retriever.lexical.rank

        def signalling_rank(query):
            bm25_ran.set()
            return rank(query)

        retriever.lexical.rank = signalling_rank

        results = asyncio.run(asyncio.wait_for(retriever.search("garden"), timeout=5))
        assert [str(r.key) for r in results][:2] == ["0-0", "1-0"]

    def test_cancel_cancels_embedding(self, store, fake_provider_cls):
        """Cancelling a hybrid search cancels the in-flight embedding call."""
        from pawprints.search.retriever import HybridRetriever

        state = {"cancelled": False}

        class SlowProvider(fake_provider_cls):
            async def embed(self, text):
                state["started"].set()
                try:
                    await asyncio.sleep(30)
                except asyncio.CancelledError:
                    state["cancelled"] = True
                    raise
                return await super().embed(text)

        retriever = HybridRetriever(store, SlowProvider())

        async def run():
            state["started"] = asyncio.Event()
            task = asyncio.create_task(retriever.search("garden"))
            await state["started"].wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        assert state["cancelled"] is True
