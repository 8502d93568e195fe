import asyncio
import logging
import uuid
from pathlib import PurePosixPath

from .embeddings import EmbeddingCoordinator
from .errors import ContentRetrievalError, EmbeddingError
from .filters import is_indexable
from .github import GitHubClient, fetch_tree, read_file
from .models import (
    ChunkMetadata,
    IndexRecord,
    IndexResult,
    IngestionResult,
    RepositoryReference,
    TreeEntry,
)
from .splitter import ChunkingStrategySelector, file_extension, split_text
from .store import VectorIndex, sanitize_namespace
from .symbols import RegexSymbolExtractor, SymbolExtractor

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Builds the index records for a full snapshot of a repository branch."""

    def __init__(
        self,
        client: GitHubClient,
        embedder: EmbeddingCoordinator,
        selector: ChunkingStrategySelector | None = None,
        extractor: SymbolExtractor | None = None,
        max_concurrency: int = 1,
        allow_truncated: bool = False,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.client = client
        self.embedder = embedder
        self.selector = selector or ChunkingStrategySelector()
        self.extractor = extractor or RegexSymbolExtractor()
        self.max_concurrency = max_concurrency
        self.allow_truncated = allow_truncated

    async def run(self, ref: RepositoryReference) -> IngestionResult:
        """Fetch, chunk and embed every indexable file of the branch head.

        Tree resolution errors propagate. Files that cannot be read or embedded,
        or that have no text, are logged and skipped.
        """
        commit_sha, entries = await fetch_tree(self.client, ref, allow_truncated=self.allow_truncated)
        files = [e for e in entries if is_indexable(e.path, e.kind)]
        logger.info(
            "Ingesting %d of %d entries from %s@%s",
            len(files), len(entries), ref.full_name, commit_sha,
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process(entry: TreeEntry) -> list[IndexRecord] | None:
            async with semaphore:
                return await self._process_file(ref, commit_sha, entry)

        # gather keeps input order, so records stay in tree order per file
        results = await asyncio.gather(*(process(e) for e in files))

        records: list[IndexRecord] = []
        files_indexed = 0
        for file_records in results:
            if file_records:
                records.extend(file_records)
                files_indexed += 1

        files_skipped = len(files) - files_indexed
        logger.info(
            "Built %d records from %d files of %s (%d skipped)",
            len(records), files_indexed, ref.full_name, files_skipped,
        )
        return IngestionResult(
            commit_sha=commit_sha,
            records=records,
            files_indexed=files_indexed,
            files_skipped=files_skipped,
        )

    async def _process_file(
        self, ref: RepositoryReference, commit_sha: str, entry: TreeEntry
    ) -> list[IndexRecord] | None:
        try:
            content = await read_file(self.client, ref, commit_sha, entry)
        except ContentRetrievalError as e:
            logger.warning("Skipping %s: %s", entry.path, e)
            return None
        if content is None or not content.text.strip():
            logger.warning("Skipping %s: no text content", entry.path)
            return None

        try:
            records = await self.build_records(content.path, content.text)
        except EmbeddingError as e:
            logger.warning("Skipping %s: %s", entry.path, e)
            return None
        if not records:
            logger.warning("Skipping %s: no chunks", entry.path)
        return records

    async def build_records(self, path: str, text: str) -> list[IndexRecord]:
        """Chunk, tag and embed one file, returning one record per chunk.

        Raises:
            EmbeddingError: If the file's chunks cannot be embedded.
        """
        ext = file_extension(path)
        strategy = self.selector.select(ext)
        chunks = split_text(text, strategy)
        if not chunks:
            return []

        # symbols come from the whole file so every chunk carries the same set
        function_names = self.extractor.extract(text)
        file_name = PurePosixPath(path).name
        recorded_extension = self.selector.metadata_extension(ext)

        try:
            vectors = await self.embedder.embed(chunks)
        except EmbeddingError as e:
            e.path = path
            raise

        logger.debug("%s: %d chunks (%s)", path, len(chunks), strategy.mode.value)
        return [
            IndexRecord(
                id=str(uuid.uuid4()),
                vector=vector,
                metadata=ChunkMetadata(
                    file_name=file_name,
                    file_path=path,
                    file_extension=recorded_extension,
                    function_names=set(function_names),
                    content=chunk,
                ),
            )
            for chunk, vector in zip(chunks, vectors)
        ]


async def index_repo(
    pipeline: IngestionPipeline,
    index: VectorIndex,
    ref: RepositoryReference,
    namespace: str | None = None,
) -> IndexResult:
    """Ingest a full branch snapshot and upsert it into a namespace.

    The namespace defaults to the sanitized owner/name of the repository.
    """
    namespace = namespace or sanitize_namespace(ref.full_name)
    ingestion = await pipeline.run(ref)
    stats = await index.write(ingestion.records, namespace)
    return IndexResult(
        namespace=namespace,
        commit_sha=ingestion.commit_sha,
        files_indexed=ingestion.files_indexed,
        files_skipped=ingestion.files_skipped,
        records_upserted=len(ingestion.records),
        record_count=stats.record_count,
        dimension=stats.dimension,
    )
