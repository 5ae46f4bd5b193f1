"""Exceptions raised by the search core.

Every error propagates unchanged to the caller of HybridRetriever.search.
An empty query is not an error: scorers and the orchestrator return an
empty list for it.
"""


class SearchError(Exception):
    """Base class for search failures."""


class ConfigurationError(SearchError):
    """The embedding provider is not usable (missing credential, bad setting)."""


class EmbeddingProviderError(SearchError):
    """The embedding provider call failed or returned a malformed vector."""


class InternalConsistencyError(SearchError):
    """A scorer ranked a document key that is absent from the embedding store."""


class CorpusError(SearchError):
    """The corpus could not be loaded or violates a store invariant."""
