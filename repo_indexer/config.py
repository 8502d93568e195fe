import os

from dotenv import load_dotenv
from llama_index.embeddings.openai import OpenAIEmbedding
from pydantic import BaseModel

from .github import DEFAULT_API_URL

MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "openai/text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "openai/text-embedding-3-large": 3072,
}

OPENROUTER_API_BASE = "https://openrouter.ai/api/v1"


class Settings(BaseModel):
    github_token: str | None = None
    github_api_url: str = DEFAULT_API_URL
    openrouter_api_key: str = ""
    embedding_model: str = "text-embedding-3-small"
    qdrant_url: str = "http://localhost:6333"


def load_settings() -> Settings:
    """Read settings from the environment, after loading a .env file if present."""
    load_dotenv()
    return Settings(
        github_token=os.environ.get("GITHUB_TOKEN") or None,
        github_api_url=os.environ.get("GITHUB_API_URL", DEFAULT_API_URL),
        openrouter_api_key=os.environ.get("OPENROUTER_API_KEY", ""),
        embedding_model=os.environ.get("EMBEDDING_MODEL", "text-embedding-3-small"),
        qdrant_url=os.environ.get("QDRANT_URL", "http://localhost:6333"),
    )


def build_embed_model(settings: Settings, title: str = "repo-indexer") -> OpenAIEmbedding:
    if not settings.openrouter_api_key:
        raise ValueError("OPENROUTER_API_KEY environment variable is not set")
    if settings.embedding_model not in MODEL_DIMENSIONS:
        raise ValueError(
            f"Unknown model '{settings.embedding_model}'. Supported: {', '.join(MODEL_DIMENSIONS)}"
        )
    return OpenAIEmbedding(
        model=settings.embedding_model,
        dimensions=MODEL_DIMENSIONS[settings.embedding_model],
        api_base=OPENROUTER_API_BASE,
        api_key=settings.openrouter_api_key,
        default_headers={
            "HTTP-Referer": "https://github.com/repo-indexer",
            "X-Title": title,
        },
    )
