"""Shared test fixtures."""
import pytest


class FakeEmbeddingProvider:
    """In-memory EmbeddingProvider: fixed vectors per text, records every call."""

    name = "fake"
    model = "fake-embedding"

    def __init__(self, vectors=None, default=(1.0, 0.0, 0.0), configured=True, error=None):
        self.vectors = dict(vectors or {})
        self.default = tuple(default)
        self.configured = configured
        self.error = error
        self.calls = []

    def is_configured(self):
        return self.configured

    async def embed(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return tuple(self.vectors.get(text, self.default))

    async def embed_many(self, texts):
        return [await self.embed(text) for text in texts]


def _record(post_index, media_index, title, embedding, uri=None, is_video=False, timestamp=1625097600):
    from pawprints.search.types import DocumentRecord

    return DocumentRecord(
        post_index=post_index,
        media_index=media_index,
        title=title,
        uri=uri or f"media/posts/{post_index}_{media_index}.jpg",
        is_video=is_video,
        creation_timestamp=timestamp,
        embedding=tuple(embedding),
    )


@pytest.fixture
def make_record():
    return _record


@pytest.fixture
def fake_provider_cls():
    return FakeEmbeddingProvider


@pytest.fixture
def records():
    return [
        _record(0, 0, "Lilly in the garden", (1.0, 0.0, 0.0)),
        _record(0, 1, "Lilly on the couch", (0.0, 1.0, 0.0)),
        _record(1, 0, "Digging in the garden again", (0.8, 0.6, 0.0)),
        _record(2, 0, "Beach day with friends", (0.0, 0.0, 1.0), uri="media/posts/2_0.mp4", is_video=True),
    ]


@pytest.fixture
def store(records):
    from pawprints.search.storage.corpus import EmbeddingStore

    return EmbeddingStore.from_records(records, model="fake/fake-embedding")


@pytest.fixture
def provider():
    # "sunny garden" points between the two garden titles, "beach" at the beach title
    return FakeEmbeddingProvider(vectors={
        "sunny garden": (0.9, 0.3, 0.0),
        "beach": (0.0, 0.0, 1.0),
        "couch": (0.0, 1.0, 0.0),
    })
