import logging
import re

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import Distance, PointStruct, VectorParams

from .errors import DimensionMismatchError, IndexWriteError, QueryError
from .models import ChunkMetadata, IndexRecord, NamespaceStats, QueryMatch

logger = logging.getLogger(__name__)

# Local mode raises ValueError for unknown collections and bad vectors.
PROVIDER_ERRORS = (UnexpectedResponse, ResponseHandlingException, ValueError)


def sanitize_namespace(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", name).strip("_")


class VectorIndex:
    """Namespaced vector index on Qdrant: one collection per namespace."""

    def __init__(self, client: AsyncQdrantClient, batch_size: int = 100):
        self.client = client
        self.batch_size = batch_size

    async def namespaces(self) -> list[str]:
        try:
            response = await self.client.get_collections()
        except PROVIDER_ERRORS as e:
            raise QueryError(f"Failed to list namespaces: {e}") from e
        return [c.name for c in response.collections]

    async def stats(self, namespace: str) -> NamespaceStats:
        """Record count and dimension of a namespace; a missing one reports zero records.

        Raises:
            QueryError: If the provider cannot be reached.
        """
        try:
            return await self._stats(namespace)
        except PROVIDER_ERRORS as e:
            raise QueryError(f"Failed to read stats of '{namespace}': {e}") from e

    async def _stats(self, namespace: str) -> NamespaceStats:
        if not await self.client.collection_exists(namespace):
            return NamespaceStats(namespace=namespace, record_count=0, dimension=None)
        info = await self.client.get_collection(namespace)
        count = await self.client.count(collection_name=namespace, exact=True)
        return NamespaceStats(
            namespace=namespace,
            record_count=count.count,
            dimension=_dimension(info.config.params.vectors),
        )

    async def write(self, records: list[IndexRecord], namespace: str) -> NamespaceStats:
        """Upsert records into a namespace, creating it on first write.

        Records with an id already in the namespace are overwritten. Any failure
        fails the whole call; batches upserted before the failure stay in place.

        Raises:
            IndexWriteError: On provider failure.
            DimensionMismatchError: If vector dimensions differ from each other
                or from the namespace. Nothing is upserted.
        """
        try:
            if records:
                dimension = len(records[0].vector)
                mismatched = [r.id for r in records if len(r.vector) != dimension]
                if mismatched:
                    raise DimensionMismatchError(
                        f"{len(mismatched)} records do not have dimension {dimension}, e.g. {mismatched[0]}"
                    )
                await self._ensure_namespace(namespace, dimension)

                for start in range(0, len(records), self.batch_size):
                    batch = records[start:start + self.batch_size]
                    await self.client.upsert(
                        collection_name=namespace,
                        points=[
                            PointStruct(id=r.id, vector=r.vector, payload=r.metadata.to_payload())
                            for r in batch
                        ],
                        wait=True,
                    )
                    logger.debug("Upserted %d records into %s", len(batch), namespace)

            stats = await self._stats(namespace)
        except PROVIDER_ERRORS as e:
            raise IndexWriteError(f"Failed to write {len(records)} records to '{namespace}': {e}") from e

        logger.info(
            "Namespace %s now holds %d records of dimension %s",
            namespace, stats.record_count, stats.dimension,
        )
        return stats

    async def _ensure_namespace(self, namespace: str, dimension: int) -> None:
        if not await self.client.collection_exists(namespace):
            logger.info("Creating namespace %s (dimension %d)", namespace, dimension)
            await self.client.create_collection(
                collection_name=namespace,
                vectors_config=VectorParams(size=dimension, distance=Distance.COSINE),
            )
            return
        info = await self.client.get_collection(namespace)
        existing = _dimension(info.config.params.vectors)
        if existing is not None and existing != dimension:
            raise DimensionMismatchError(
                f"Namespace '{namespace}' holds vectors of dimension {existing}, got {dimension}"
            )

    async def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int = 3,
        include_values: bool = True,
        include_metadata: bool = True,
    ) -> list[QueryMatch]:
        """Return the top_k records closest to vector, best first.

        Raises:
            QueryError: If the namespace does not exist or the provider fails.
        """
        try:
            if not await self.client.collection_exists(namespace):
                raise QueryError(f"Namespace '{namespace}' not found")
            response = await self.client.query_points(
                collection_name=namespace,
                query=vector,
                limit=top_k,
                with_payload=include_metadata,
                with_vectors=include_values,
            )
        except PROVIDER_ERRORS as e:
            raise QueryError(f"Query against '{namespace}' failed: {e}") from e

        return [
            QueryMatch(
                id=str(point.id),
                score=point.score,
                vector=point.vector if include_values else None,
                metadata=ChunkMetadata.from_payload(point.payload) if include_metadata and point.payload else None,
            )
            for point in response.points
        ]


def _dimension(vectors) -> int | None:
    if isinstance(vectors, VectorParams):
        return vectors.size
    return None
