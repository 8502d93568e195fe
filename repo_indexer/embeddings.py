import logging

from llama_index.core.base.embeddings.base import BaseEmbedding

from .errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingCoordinator:
    """Turns ordered batches of text into vectors with a llama_index embedding model."""

    def __init__(self, embed_model: BaseEmbedding):
        self.embed_model = embed_model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts, returning one vector per text in input order.

        Raises:
            EmbeddingError: If the provider fails, or returns the wrong number of
                vectors or vectors of differing dimensionality.
        """
        if not texts:
            return []
        logger.debug("Embedding %d texts", len(texts))
        try:
            vectors = await self.embed_model.aget_text_embedding_batch(texts)
        except Exception as e:
            raise EmbeddingError(f"Embedding provider failed: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} texts"
            )
        dimensions = {len(v) for v in vectors}
        if len(dimensions) != 1 or 0 in dimensions:
            raise EmbeddingError(f"Embedding provider returned vectors of dimensions {sorted(dimensions)}")
        return [list(v) for v in vectors]

    async def embed_query(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]
