import asyncio
import logging
import os

import restate
from hypercorn.asyncio import serve
from hypercorn.config import Config
from qdrant_client import AsyncQdrantClient

from .config import build_embed_model, load_settings
from .embeddings import EmbeddingCoordinator
from .errors import DimensionMismatchError, ResolutionError, TreeRetrievalError
from .github import GitHubClient
from .indexing import IngestionPipeline, index_repo
from .models import IndexRequest, IndexResult, RepositoryReference
from .store import VectorIndex

logger = logging.getLogger(__name__)

# GitHub answers 403 for rate limits, which clear on their own.
RETRYABLE_STATUSES = {403, 429}

indexer_service = restate.Service("Indexer")


@indexer_service.handler("IndexRepo")
async def index_repo_handler(ctx: restate.Context, req: IndexRequest) -> IndexResult:
    settings = load_settings()
    ref = RepositoryReference(owner=req.owner, name=req.repo, branch=req.branch)
    try:
        embedder = EmbeddingCoordinator(build_embed_model(settings, title="repo-indexer-service"))
    except ValueError as e:
        # misconfiguration, not recoverable by retrying
        raise restate.TerminalError(str(e), status_code=500) from e
    qdrant_client = AsyncQdrantClient(url=settings.qdrant_url)

    try:
        async with GitHubClient(settings.github_token, base_url=settings.github_api_url) as github:
            pipeline = IngestionPipeline(github, embedder, allow_truncated=req.allow_truncated)
            return await index_repo(pipeline, VectorIndex(qdrant_client), ref, req.namespace)
    except (ResolutionError, TreeRetrievalError, DimensionMismatchError) as e:
        terminal = terminal_error(e)
        if terminal is None:
            raise
        raise terminal from e
    finally:
        await qdrant_client.close()


def terminal_error(e: Exception) -> restate.TerminalError | None:
    """Return the terminal error for a failure that retrying cannot fix, or None to retry.

    4xx answers from GitHub are terminal except rate limits. A truncated tree or
    a dimension mismatch will come back the same on every attempt.
    """
    if isinstance(e, DimensionMismatchError):
        return restate.TerminalError(str(e), status_code=409)
    if isinstance(e, TreeRetrievalError) and e.truncated:
        return restate.TerminalError(str(e), status_code=422)
    status_code = getattr(e, "status_code", None)
    if status_code is not None and 400 <= status_code < 500 and status_code not in RETRYABLE_STATUSES:
        return restate.TerminalError(str(e), status_code=status_code)
    return None


app = restate.app([indexer_service])


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    host = os.environ.get("INDEXER_HOST", "0.0.0.0")
    port = os.environ.get("INDEXER_PORT", "9091")

    config = Config()
    config.bind = [f"{host}:{port}"]

    asyncio.run(serve(app, config))
