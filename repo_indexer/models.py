from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RepositoryReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    owner: str
    name: str
    branch: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class EntryKind(str, Enum):
    BLOB = "blob"
    TREE = "tree"
    OTHER = "other"                   # submodules, symlinks


class TreeEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str                         # slash-separated, relative to the repo root
    kind: EntryKind
    sha: str


class FileContent(BaseModel):
    path: str
    text: str


class SplitMode(str, Enum):
    LANGUAGE = "language"
    TOKEN = "token"


class ChunkingStrategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(gt=0)
    chunk_overlap: int = Field(ge=0)
    mode: SplitMode
    language: str | None = None       # splitter language, only for SplitMode.LANGUAGE

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingStrategy":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        if self.mode is SplitMode.LANGUAGE and not self.language:
            raise ValueError("language-aware splitting requires a language")
        return self


class ChunkMetadata(BaseModel):
    file_name: str
    file_path: str
    file_extension: str
    function_names: set[str] = Field(default_factory=set)
    content: str

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump()
        payload["function_names"] = sorted(self.function_names)
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ChunkMetadata":
        return cls(
            file_name=payload.get("file_name", ""),
            file_path=payload.get("file_path", ""),
            file_extension=payload.get("file_extension", ""),
            function_names=set(payload.get("function_names") or []),
            content=payload.get("content", ""),
        )


class IndexRecord(BaseModel):
    id: str
    vector: list[float] = Field(min_length=1)
    metadata: ChunkMetadata


class NamespaceStats(BaseModel):
    namespace: str
    record_count: int
    dimension: int | None             # None until the namespace holds a vector


class QueryMatch(BaseModel):
    id: str
    score: float
    vector: list[float] | None = None
    metadata: ChunkMetadata | None = None


class IngestionResult(BaseModel):
    commit_sha: str
    records: list[IndexRecord]
    files_indexed: int
    files_skipped: int


class IndexRequest(BaseModel):
    owner: str
    repo: str
    branch: str
    namespace: str | None = None      # None = derived from owner/repo
    allow_truncated: bool = False     # index a partial tree instead of failing


class IndexResult(BaseModel):
    namespace: str
    commit_sha: str
    files_indexed: int
    files_skipped: int
    records_upserted: int
    record_count: int
    dimension: int | None
