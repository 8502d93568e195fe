import re
from typing import Protocol

IDENTIFIER = r"[a-zA-Z_$][0-9a-zA-Z_$]*"


class SymbolExtractor(Protocol):
    def extract(self, text: str) -> set[str]:
        """Return names that look like function or method definitions in text."""
        ...


class RegexSymbolExtractor:
    """Best-effort, language-agnostic function name extraction.

    Each pattern is scanned independently over the raw text and the matches are
    unioned. There is no parsing: the shorthand-method pattern also picks up
    plain function calls, and methods of classes with nested braces may be
    missed. The result is search metadata, not a symbol table.
    """

    patterns: tuple[re.Pattern[str], ...] = (
        # function register(
        re.compile(rf"function\s+({IDENTIFIER})\s*\("),
        # login: function(
        re.compile(r"(\b\w+)\s*:\s*function\s*\("),
        # render( -- shorthand methods, and calls
        re.compile(r"(\b\w+)\s*(?=\()"),
        # login = (user) =>
        re.compile(rf"({IDENTIFIER})\s*=\s*\([^)]*\)\s*=>"),
        # class Foo { ... bar(x) {
        re.compile(rf"class\s+{IDENTIFIER}\s*\{{[^}}]*?(\b\w+)\s*\([^)]*\)\s*\{{"),
    )

    def extract(self, text: str) -> set[str]:
        names: set[str] = set()
        for pattern in self.patterns:
            names.update(m.group(1) for m in pattern.finditer(text))
        return names
