"""Errors raised by the indexer.

Run-level errors (ResolutionError, TreeRetrievalError, IndexWriteError,
QueryError) propagate to the caller. File-level errors (ContentRetrievalError,
EmbeddingError) are logged and the file is skipped by the ingestion pipeline.
"""


class IndexerError(Exception):
    """Base exception for indexer errors."""
    pass


class ResolutionError(IndexerError):
    """Raised when a branch cannot be resolved to a commit.

    status_code is the hosting API's HTTP status, or None for transport failures.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TreeRetrievalError(IndexerError):
    """Raised when the tree listing fails or comes back truncated."""

    def __init__(self, message: str, status_code: int | None = None, truncated: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.truncated = truncated


class ContentRetrievalError(IndexerError):
    """Raised when a file's content cannot be fetched."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class EmbeddingError(IndexerError):
    """Raised when the embedding provider fails or returns malformed vectors."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class IndexWriteError(IndexerError):
    """Raised when records cannot be upserted into the vector index."""
    pass


class DimensionMismatchError(IndexWriteError):
    """Raised when vectors do not match each other or the namespace's dimension."""
    pass


class QueryError(IndexerError):
    """Raised when a similarity query fails."""
    pass
