from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from types import MappingProxyType

from langchain_text_splitters import Language, RecursiveCharacterTextSplitter
from llama_index.core.node_parser import TokenTextSplitter

from .models import ChunkingStrategy, SplitMode

GENERIC_EXTENSION = "text"

EXTENSION_TO_LANGUAGE: dict[str, Language] = {
    "html": Language.HTML,
    "htm": Language.HTML,
    "cpp": Language.CPP,
    "cc": Language.CPP,
    "cxx": Language.CPP,
    "hpp": Language.CPP,
    "go": Language.GO,
    "java": Language.JAVA,
    "js": Language.JS,
    "jsx": Language.JS,
    "mjs": Language.JS,
    "cjs": Language.JS,
    "php": Language.PHP,
    "proto": Language.PROTO,
    "py": Language.PYTHON,
    "rst": Language.RST,
    "rb": Language.RUBY,
    "rs": Language.RUST,
    "scala": Language.SCALA,
    "swift": Language.SWIFT,
    "md": Language.MARKDOWN,
    "markdown": Language.MARKDOWN,
    "tex": Language.LATEX,
    "sol": Language.SOL,
}


def _frozen(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ChunkingTables:
    """Static data the strategy selector works from. Sizes are (chunk_size, chunk_overlap)."""

    aliases: Mapping[str, str] = field(default_factory=lambda: {"ts": "js"})
    sizes: Mapping[str, tuple[int, int]] = field(
        default_factory=lambda: {"js": (3000, 80), "py": (3000, 80)}
    )
    default_size: tuple[int, int] = (3000, 80)
    languages: Mapping[str, Language] = field(
        default_factory=lambda: dict(EXTENSION_TO_LANGUAGE)
    )
    generic_size: tuple[int, int] = (2000, 80)

    def __post_init__(self):
        for name in ("aliases", "sizes", "languages"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))


DEFAULT_TABLES = ChunkingTables()


class ChunkingStrategySelector:
    def __init__(self, tables: ChunkingTables = DEFAULT_TABLES):
        self.tables = tables

    def normalize(self, extension: str) -> str:
        ext = extension.lower().lstrip(".")
        return self.tables.aliases.get(ext, ext)

    def select(self, extension: str) -> ChunkingStrategy:
        ext = self.normalize(extension)
        language = self.tables.languages.get(ext)
        if language is None:
            size, overlap = self.tables.generic_size
            return ChunkingStrategy(chunk_size=size, chunk_overlap=overlap, mode=SplitMode.TOKEN)
        size, overlap = self.tables.sizes.get(ext, self.tables.default_size)
        return ChunkingStrategy(
            chunk_size=size,
            chunk_overlap=overlap,
            mode=SplitMode.LANGUAGE,
            language=language.value,
        )

    def metadata_extension(self, extension: str) -> str:
        """Extension recorded in chunk metadata: generic files are all marked as text."""
        ext = self.normalize(extension)
        if ext in self.tables.languages:
            return ext
        return GENERIC_EXTENSION


def file_extension(path: str) -> str:
    return PurePosixPath(path).suffix.lstrip(".")


def split_text(text: str, strategy: ChunkingStrategy) -> list[str]:
    """Split a file into ordered chunks according to the strategy.

    Chunks are exact substrings of text: concatenated without their overlap
    they give back the original file, whitespace included.
    """
    if strategy.mode is SplitMode.LANGUAGE:
        splitter = RecursiveCharacterTextSplitter.from_language(
            language=Language(strategy.language),
            chunk_size=strategy.chunk_size,
            chunk_overlap=strategy.chunk_overlap,
            strip_whitespace=False,
        )
        chunks = splitter.split_text(text)
    else:
        splitter = TokenTextSplitter(
            chunk_size=strategy.chunk_size,
            chunk_overlap=strategy.chunk_overlap,
        )
        chunks = _exact_spans(text, [c for c in splitter.split_text(text) if c])
    return [c for c in chunks if c.strip()]


def _exact_spans(text: str, chunks: list[str]) -> list[str]:
    """Map stripped chunks back onto text, giving boundary whitespace to the preceding chunk.

    TokenTextSplitter keeps inner text intact but strips each merged chunk, which
    drops whitespace at the start and end of the file and between chunks that do
    not overlap.
    """
    starts: list[int] = []
    pos = 0
    for chunk in chunks:
        start = text.find(chunk, pos)
        if start == -1:
            return chunks
        starts.append(start)
        pos = start + 1
    if not starts:
        return chunks

    ends = [start + len(chunk) for start, chunk in zip(starts, chunks)]
    starts[0] = 0
    ends[-1] = len(text)
    for i in range(len(starts) - 1):
        ends[i] = max(ends[i], starts[i + 1])
    return [text[s:e] for s, e in zip(starts, ends)]
