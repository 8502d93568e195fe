"""Tests for the embedding coordinator."""

import pytest

from fakes import HashEmbedding
from repo_indexer.embeddings import EmbeddingCoordinator
from repo_indexer.errors import EmbeddingError


class BrokenEmbedding(HashEmbedding):
    def _vector(self, text: str) -> list[float]:
        raise AssertionError("provider should not be called")


class ShortEmbedding(HashEmbedding):
    """Drops the last vector of every batch."""

    async def _aget_text_embeddings(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(t) for t in texts][:-1]


@pytest.mark.asyncio
async def test_one_vector_per_text_in_order():
    model = HashEmbedding(dim=4)
    coordinator = EmbeddingCoordinator(model)

    vectors = await coordinator.embed(["alpha", "beta", "gamma"])

    assert vectors == [model._vector("alpha"), model._vector("beta"), model._vector("gamma")]
    assert all(len(v) == 4 for v in vectors)


@pytest.mark.asyncio
async def test_empty_batch_does_not_call_provider():
    coordinator = EmbeddingCoordinator(BrokenEmbedding())
    assert await coordinator.embed([]) == []


@pytest.mark.asyncio
async def test_query_embedding_matches_text_embedding(embedder):
    assert await embedder.embed_query("register user") == (await embedder.embed(["register user"]))[0]


@pytest.mark.asyncio
async def test_provider_failure_raises_embedding_error():
    coordinator = EmbeddingCoordinator(HashEmbedding(fail_on="boom"))
    with pytest.raises(EmbeddingError, match="unavailable"):
        await coordinator.embed(["fine", "boom"])


@pytest.mark.asyncio
async def test_vector_count_mismatch_raises_embedding_error():
    coordinator = EmbeddingCoordinator(ShortEmbedding())
    with pytest.raises(EmbeddingError, match="2 vectors for 3 texts"):
        await coordinator.embed(["a", "b", "c"])
