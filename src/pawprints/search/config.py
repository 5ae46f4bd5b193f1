"""Search settings read from environment variables.

Environment variables:
    CORPUS_PATH: Corpus JSON file (default: public/embeddings.json)
    EMBEDDING_PROVIDER: "google" (default) or "local"
    GOOGLE_GENERATIVE_AI_API_KEY: Credential for the google provider
    EMBEDDING_MODEL: Model name (default depends on the provider)
    EMBEDDING_BASE_URL: Google REST root (default: https://generativelanguage.googleapis.com/v1beta)
    EMBEDDING_TIMEOUT: HTTP timeout in seconds (default: 30)
    RRF_K: Reciprocal Rank Fusion constant (default: 60)
    BM25_K1, BM25_B: BM25 parameters (default: 1.3, 0.9)
    SEARCH_DEFAULT_LIMIT, SEARCH_MAX_LIMIT: Service result bounds (default: 10, 50)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from pawprints.search.errors import ConfigurationError


@dataclass(frozen=True)
class SearchSettings:
    corpus_path: str = "public/embeddings.json"

    embedding_provider: str = "google"
    google_api_key: str | None = None
    embedding_model: str | None = None
    embedding_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    embedding_timeout: float = 30.0

    rrf_k: int = 60
    bm25_k1: float = 1.3
    bm25_b: float = 0.9

    default_limit: int = 10
    max_limit: int = 50

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SearchSettings":
        """Build settings from ``environ`` (defaults to ``os.environ``).

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed or is
                out of range.
        """
        env = os.environ if environ is None else environ

        settings = cls(
            corpus_path=env.get("CORPUS_PATH", cls.corpus_path),
            embedding_provider=env.get("EMBEDDING_PROVIDER", cls.embedding_provider).strip().lower(),
            google_api_key=env.get("GOOGLE_GENERATIVE_AI_API_KEY", "").strip() or None,
            embedding_model=env.get("EMBEDDING_MODEL", "").strip() or None,
            embedding_base_url=env.get("EMBEDDING_BASE_URL", cls.embedding_base_url),
            embedding_timeout=_number(env, "EMBEDDING_TIMEOUT", cls.embedding_timeout, float),
            rrf_k=_number(env, "RRF_K", cls.rrf_k, int),
            bm25_k1=_number(env, "BM25_K1", cls.bm25_k1, float),
            bm25_b=_number(env, "BM25_B", cls.bm25_b, float),
            default_limit=_number(env, "SEARCH_DEFAULT_LIMIT", cls.default_limit, int),
            max_limit=_number(env, "SEARCH_MAX_LIMIT", cls.max_limit, int),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.rrf_k <= 0:
            raise ConfigurationError(f"RRF_K must be positive, got {self.rrf_k}")
        if self.bm25_k1 < 0:
            raise ConfigurationError(f"BM25_K1 must be non-negative, got {self.bm25_k1}")
        if not 0 <= self.bm25_b <= 1:
            raise ConfigurationError(f"BM25_B must be within [0, 1], got {self.bm25_b}")
        if self.embedding_timeout <= 0:
            raise ConfigurationError(
                f"EMBEDDING_TIMEOUT must be positive, got {self.embedding_timeout}"
            )
        if not 1 <= self.default_limit <= self.max_limit:
            raise ConfigurationError(
                f"SEARCH_DEFAULT_LIMIT must be within [1, SEARCH_MAX_LIMIT], got {self.default_limit}"
            )


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
