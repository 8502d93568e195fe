import logging

from .embeddings import EmbeddingCoordinator
from .errors import EmbeddingError, QueryError
from .models import QueryMatch
from .store import VectorIndex

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 3


class QueryPath:
    """Free-text similarity search over one namespace."""

    def __init__(self, embedder: EmbeddingCoordinator, index: VectorIndex):
        self.embedder = embedder
        self.index = index

    async def search(self, query: str, namespace: str, top_k: int = DEFAULT_TOP_K) -> list[QueryMatch]:
        """Return the top_k chunks most similar to the query, best first.

        Args:
            query: Natural language or code search query.
            namespace: Namespace to search, as written by the ingestion run.
            top_k: Number of results to return.

        Raises:
            QueryError: If the query cannot be embedded or the lookup fails.
        """
        if top_k < 1:
            raise ValueError("top_k must be at least 1")
        try:
            vector = await self.embedder.embed_query(query)
        except EmbeddingError as e:
            raise QueryError(f"Failed to embed query: {e}") from e

        matches = await self.index.query(namespace, vector, top_k=top_k)
        logger.debug("Query %r against %s returned %d matches", query, namespace, len(matches))
        # sorted() is stable, ties keep the provider's order
        return sorted(matches, key=lambda m: m.score, reverse=True)
