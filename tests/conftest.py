import pytest
import pytest_asyncio
from qdrant_client import AsyncQdrantClient

from fakes import HashEmbedding
from repo_indexer.embeddings import EmbeddingCoordinator
from repo_indexer.store import VectorIndex


@pytest.fixture
def embedder() -> EmbeddingCoordinator:
    return EmbeddingCoordinator(HashEmbedding())


@pytest_asyncio.fixture
async def vector_index():
    client = AsyncQdrantClient(location=":memory:")
    yield VectorIndex(client, batch_size=2)
    await client.close()
