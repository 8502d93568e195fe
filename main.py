import asyncio
import logging

import click
from qdrant_client import AsyncQdrantClient

from repo_indexer.config import Settings, build_embed_model, load_settings
from repo_indexer.embeddings import EmbeddingCoordinator
from repo_indexer.errors import IndexerError
from repo_indexer.github import GitHubClient
from repo_indexer.indexing import IngestionPipeline, index_repo
from repo_indexer.models import IndexResult, QueryMatch, RepositoryReference
from repo_indexer.search import QueryPath
from repo_indexer.store import VectorIndex


def _embedder(settings: Settings, model: str | None) -> EmbeddingCoordinator:
    if model:
        settings = settings.model_copy(update={"embedding_model": model})
    try:
        return EmbeddingCoordinator(build_embed_model(settings, title="repo-indexer-cli"))
    except ValueError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log per-file progress.")
def cli(verbose: bool) -> None:
    """Index GitHub repositories into Qdrant and search them."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.argument("branch", default="main")
@click.option("--namespace", default=None, help="Target namespace (default: sanitized owner/repo).")
@click.option("--model", default=None)
@click.option("--qdrant-url", default=None)
@click.option("--concurrency", default=1, show_default=True, type=click.IntRange(min=1),
              help="Number of files processed at once.")
@click.option("--allow-truncated", is_flag=True, default=False,
              help="Index a partial tree when GitHub truncates the listing.")
def index(
    owner: str,
    repo: str,
    branch: str,
    namespace: str | None,
    model: str | None,
    qdrant_url: str | None,
    concurrency: int,
    allow_truncated: bool,
) -> None:
    """Index a branch of a GitHub repository for semantic search."""
    settings = load_settings()
    embedder = _embedder(settings, model)
    ref = RepositoryReference(owner=owner, name=repo, branch=branch)

    async def run() -> IndexResult:
        qdrant_client = AsyncQdrantClient(url=qdrant_url or settings.qdrant_url)
        try:
            async with GitHubClient(settings.github_token, base_url=settings.github_api_url) as github:
                pipeline = IngestionPipeline(
                    github, embedder, max_concurrency=concurrency, allow_truncated=allow_truncated
                )
                return await index_repo(pipeline, VectorIndex(qdrant_client), ref, namespace)
        finally:
            await qdrant_client.close()

    try:
        result = asyncio.run(run())
    except IndexerError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"Done. Indexed {result.files_indexed} files of {ref.full_name}@{result.commit_sha[:12]}, "
        f"{result.records_upserted} chunks upserted, {result.files_skipped} files skipped."
    )
    click.echo(
        f"Namespace '{result.namespace}': {result.record_count} records, dimension {result.dimension}."
    )


@cli.command()
@click.argument("namespace")
@click.argument("query")
@click.option("--top-k", default=3, show_default=True, type=click.IntRange(min=1), metavar="N")
@click.option("--model", default=None)
@click.option("--qdrant-url", default=None)
def search(namespace: str, query: str, top_k: int, model: str | None, qdrant_url: str | None) -> None:
    """Search a namespace for chunks similar to QUERY."""
    settings = load_settings()
    embedder = _embedder(settings, model)

    async def run() -> list[QueryMatch]:
        qdrant_client = AsyncQdrantClient(url=qdrant_url or settings.qdrant_url)
        try:
            return await QueryPath(embedder, VectorIndex(qdrant_client)).search(query, namespace, top_k)
        finally:
            await qdrant_client.close()

    try:
        matches = asyncio.run(run())
    except IndexerError as e:
        raise click.ClickException(str(e))

    if not matches:
        click.echo("No matches.")
    for match in matches:
        path = match.metadata.file_path if match.metadata else match.id
        click.echo(f"[{match.score:.4f}] {path}")
        if match.metadata:
            if match.metadata.function_names:
                click.echo(f"  functions: {', '.join(sorted(match.metadata.function_names))}")
            click.echo(f"  {match.metadata.content[:120].strip()}")
        click.echo()


@cli.command()
@click.argument("namespace", required=False)
@click.option("--qdrant-url", default=None)
def stats(namespace: str | None, qdrant_url: str | None) -> None:
    """Show record counts for one namespace, or for all of them."""
    settings = load_settings()

    async def run() -> list:
        index = VectorIndex(AsyncQdrantClient(url=qdrant_url or settings.qdrant_url))
        try:
            names = [namespace] if namespace else await index.namespaces()
            return [await index.stats(n) for n in names]
        finally:
            await index.client.close()

    try:
        results = asyncio.run(run())
    except IndexerError as e:
        raise click.ClickException(str(e))

    if not results:
        click.echo("No namespaces found. Index a repo first.")
    for s in results:
        click.echo(f"{s.namespace}: {s.record_count} records, dimension {s.dimension}")


if __name__ == "__main__":
    cli()
