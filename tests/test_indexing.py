"""Tests for the ingestion pipeline, end to end against the fakes."""

import logging

import pytest

from fakes import BRANCH, COMMIT_SHA, OWNER, REPO, FakeGitHub, HashEmbedding
from repo_indexer.embeddings import EmbeddingCoordinator
from repo_indexer.errors import ResolutionError
from repo_indexer.indexing import IngestionPipeline, index_repo
from repo_indexer.models import RepositoryReference

REF = RepositoryReference(owner=OWNER, name=REPO, branch=BRANCH)

APP_JS = """\
function register() {}
const login = () => {}
"""

REPO_FILES = {
    "app.js": APP_JS,
    "src/models.ts": "export const toUser = (row) => ({ id: row.id });\n",
    "config/deploy.yaml": "replicas: 2\nimage: indexer:latest\n",
    "lib/node_modules/pkg/index.js": "function hidden() {}\n",
    "node_modules/left-pad/index.js": "module.exports = leftPad;\n",
    "package-lock.json": "{}\n",
    "web/yarn.lock": "# yarn lockfile v1\n",
}


@pytest.mark.asyncio
async def test_excluded_paths_are_never_fetched(embedder):
    github = FakeGitHub(REPO_FILES)
    async with github.client() as client:
        result = await IngestionPipeline(client, embedder).run(REF)

    assert sorted(github.content_requests) == ["app.js", "config/deploy.yaml", "src/models.ts"]
    paths = {r.metadata.file_path for r in result.records}
    assert paths == {"app.js", "config/deploy.yaml", "src/models.ts"}
    assert result.commit_sha == COMMIT_SHA
    assert result.files_indexed == 3
    assert result.files_skipped == 0


@pytest.mark.asyncio
async def test_record_metadata(embedder):
    async with FakeGitHub(REPO_FILES).client() as client:
        result = await IngestionPipeline(client, embedder).run(REF)

    by_path = {r.metadata.file_path: r.metadata for r in result.records}

    app = by_path["app.js"]
    assert app.file_name == "app.js"
    assert app.file_extension == "js"
    assert {"register", "login"} <= app.function_names
    assert app.content == APP_JS

    assert by_path["src/models.ts"].file_extension == "js"
    assert by_path["src/models.ts"].file_name == "models.ts"
    assert by_path["config/deploy.yaml"].file_extension == "text"


@pytest.mark.asyncio
async def test_one_record_per_chunk_with_shared_symbols(embedder):
    body = "\n\n".join(
        f"def step_{i}(state):\n    state.append({i})\n    return state\n" for i in range(120)
    )
    async with FakeGitHub({"pipeline.py": body}).client() as client:
        pipeline = IngestionPipeline(client, embedder)
        result = await pipeline.run(REF)

    chunks = [r.metadata.content for r in result.records]
    assert len(chunks) > 1
    assert len({r.id for r in result.records}) == len(result.records)
    assert {len(r.vector) for r in result.records} == {8}

    # symbols come from the whole file, not the chunk
    names = {f"step_{i}" for i in range(120)}
    for record in result.records:
        assert names <= record.metadata.function_names

    # vectors belong to their own chunk
    model = embedder.embed_model
    for record in result.records:
        assert record.vector == model._vector(record.metadata.content)


@pytest.mark.asyncio
async def test_ids_are_unique_across_runs(embedder):
    async with FakeGitHub(REPO_FILES).client() as client:
        pipeline = IngestionPipeline(client, embedder)
        first = await pipeline.run(REF)
        second = await pipeline.run(REF)

    ids = [r.id for r in first.records + second.records]
    assert len(ids) == len(set(ids))


@pytest.mark.asyncio
async def test_unreadable_and_empty_files_are_skipped(embedder, caplog):
    github = FakeGitHub(
        {
            "app.js": APP_JS,
            "broken.py": "print('x')\n",
            "empty.md": "   \n",
            "logo.png": b"\x89PNG\r\n\x1a\n\xff",
            "huge.sql": "select 1;\n",
        },
        failing={"broken.py"},
        empty_payload={"huge.sql"},
    )
    with caplog.at_level(logging.WARNING, logger="repo_indexer.indexing"):
        async with github.client() as client:
            result = await IngestionPipeline(client, embedder).run(REF)

    assert {r.metadata.file_path for r in result.records} == {"app.js"}
    assert result.files_indexed == 1
    assert result.files_skipped == 4
    assert "broken.py" in caplog.text


@pytest.mark.asyncio
async def test_embedding_failure_skips_only_that_file():
    embedder = EmbeddingCoordinator(HashEmbedding(fail_on="EXPLODE"))
    files = {"app.js": APP_JS, "bad.js": "// EXPLODE\nfunction bad() {}\n"}
    async with FakeGitHub(files).client() as client:
        result = await IngestionPipeline(client, embedder).run(REF)

    assert {r.metadata.file_path for r in result.records} == {"app.js"}
    assert result.files_skipped == 1


@pytest.mark.asyncio
async def test_unknown_branch_fails_the_run(embedder):
    ref = RepositoryReference(owner=OWNER, name=REPO, branch="gone")
    async with FakeGitHub(REPO_FILES).client() as client:
        with pytest.raises(ResolutionError):
            await IngestionPipeline(client, embedder).run(ref)


@pytest.mark.asyncio
async def test_concurrent_processing_matches_sequential(embedder):
    files = {f"src/mod_{i}.py": f"def f_{i}():\n    return {i}\n" for i in range(12)}
    async with FakeGitHub(files).client() as client:
        sequential = await IngestionPipeline(client, embedder).run(REF)
        concurrent = await IngestionPipeline(client, embedder, max_concurrency=4).run(REF)

    def summary(result):
        return [(r.metadata.file_path, r.metadata.content, sorted(r.metadata.function_names))
                for r in result.records]

    assert summary(concurrent) == summary(sequential)
    assert [r.metadata.file_path for r in sequential.records] == list(files)


def test_concurrency_must_be_positive(embedder):
    with pytest.raises(ValueError):
        IngestionPipeline(client=None, embedder=embedder, max_concurrency=0)


@pytest.mark.asyncio
async def test_index_repo_writes_every_record(embedder, vector_index):
    async with FakeGitHub(REPO_FILES).client() as client:
        result = await index_repo(IngestionPipeline(client, embedder), vector_index, REF)

    assert result.namespace == "octocat_hello_world"
    assert result.commit_sha == COMMIT_SHA
    assert result.records_upserted == result.record_count == 3
    assert result.dimension == 8


@pytest.mark.asyncio
async def test_index_repo_explicit_namespace(embedder, vector_index):
    async with FakeGitHub({"app.js": APP_JS}).client() as client:
        result = await index_repo(IngestionPipeline(client, embedder), vector_index, REF, "repo1")

    assert result.namespace == "repo1"
    assert await vector_index.namespaces() == ["repo1"]
