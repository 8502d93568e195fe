"""Tests for the click CLI error handling and settings loading."""

import pytest
from click.testing import CliRunner
from qdrant_client import AsyncQdrantClient

import main
from fakes import HashEmbedding, UnreachableClient
from repo_indexer.config import Settings


@pytest.fixture
def settings_loads(monkeypatch):
    calls = []

    def load_settings():
        calls.append(1)
        return Settings(openrouter_api_key="test-key")

    monkeypatch.setattr(main, "load_settings", load_settings)
    monkeypatch.setattr(main, "build_embed_model", lambda settings, title: HashEmbedding())
    return calls


def test_stats_reports_unreachable_qdrant(monkeypatch, settings_loads):
    monkeypatch.setattr(main, "AsyncQdrantClient", UnreachableClient)

    result = CliRunner().invoke(main.cli, ["stats"])

    assert result.exit_code == 1
    assert "Failed to list namespaces" in result.output
    assert "Traceback" not in result.output


def test_search_loads_settings_once(monkeypatch, settings_loads):
    monkeypatch.setattr(main, "AsyncQdrantClient", lambda url: AsyncQdrantClient(location=":memory:"))

    result = CliRunner().invoke(main.cli, ["search", "missing", "login handler"])

    assert result.exit_code == 1
    assert "not found" in result.output
    assert len(settings_loads) == 1
