import os
from functools import lru_cache

from fastmcp import FastMCP
from qdrant_client import AsyncQdrantClient

from .config import build_embed_model, load_settings
from .embeddings import EmbeddingCoordinator
from .search import QueryPath
from .store import VectorIndex

MAX_TOP_K = 20

mcp = FastMCP(
    name="repo-indexer-search",
    instructions=(
        "Semantic search over indexed source repositories. "
        "Use list_namespaces to see available repositories, "
        "then search to find relevant code chunks by natural language query."
    ),
)


@lru_cache
def _query_path() -> QueryPath:
    settings = load_settings()
    embedder = EmbeddingCoordinator(build_embed_model(settings, title="repo-indexer-search"))
    return QueryPath(embedder, VectorIndex(AsyncQdrantClient(url=settings.qdrant_url)))


@mcp.tool()
async def list_namespaces() -> list[str]:
    """List all indexed repositories available for search."""
    return await _query_path().index.namespaces()


@mcp.tool()
async def search(query: str, namespace: str, top_k: int = 3) -> list[dict]:
    """Search for code chunks semantically similar to the query.

    Args:
        query: Natural language search query.
        namespace: Repository namespace (from list_namespaces).
        top_k: Number of results to return (max 20).
    """
    matches = await _query_path().search(query, namespace, min(top_k, MAX_TOP_K))

    results = []
    for match in matches:
        metadata = match.metadata
        results.append({
            "file_path": metadata.file_path if metadata else "",
            "score": round(match.score, 4),
            "function_names": sorted(metadata.function_names) if metadata else [],
            "content": metadata.content if metadata else "",
        })
    return results


def main() -> None:
    transport = os.environ.get("MCP_TRANSPORT", "stdio")
    kwargs = {}
    if transport != "stdio":
        kwargs["host"] = os.environ.get("MCP_HOST", "0.0.0.0")
        kwargs["port"] = int(os.environ.get("MCP_PORT", "8080"))
    mcp.run(transport=transport, **kwargs)


if __name__ == "__main__":
    main()
