"""
SymJump Pattern Catalog

The static table of symbol-extraction rules.  Each :class:`PatternRule`
bundles an ordered list of ripgrep-compatible regexes, the file globs they
apply to, the :class:`SymbolKind` they produce, and an optional ignore-list
of identifiers that match structurally but are almost always noise.

Patterns are written with the identifier as the rightmost meaningful
capture group; modifier groups (``export``, ``async``, ``const``) come
earlier.  The extractor scans groups from last to first and keeps the
first valid, non-reserved identifier.

New languages plug in through :meth:`PatternCatalog.register` without
touching ranking or caching.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple


class SymbolKind(str, Enum):
    """Tag attached to every extracted symbol."""
    CLASS = "class"
    FUNCTION = "function"
    METHOD = "method"
    VARIABLE = "variable"
    TYPE = "type"
    INTERFACE = "interface"
    SCHEMA = "schema"
    COMPONENT = "component"
    UNKNOWN = "unknown"


# Dedup tie-breaking only: when two rules hit the same (file, line, name),
# the kind with the higher value survives.
PRECEDENCE: Dict[SymbolKind, int] = {
    SymbolKind.SCHEMA: 100,
    SymbolKind.CLASS: 90,
    SymbolKind.INTERFACE: 80,
    SymbolKind.TYPE: 70,
    SymbolKind.COMPONENT: 60,
    SymbolKind.FUNCTION: 50,
    SymbolKind.METHOD: 40,
    SymbolKind.VARIABLE: 10,
    SymbolKind.UNKNOWN: 0,
}

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Words a capture group may legally hold that are never the symbol itself.
RESERVED_KEYWORDS: FrozenSet[str] = frozenset({
    "const", "let", "var", "function", "class", "type", "interface",
    "export", "async", "default", "def", "func", "struct",
})

_JS_TS = ("*.ts", "*.tsx", "*.js", "*.jsx")
_TS = ("*.ts", "*.tsx")

# Test-framework hooks and constructors look exactly like method
# declarations to a regex.
_METHOD_IGNORE = frozenset({
    "expect", "describe", "it", "beforeAll", "beforeEach",
    "afterEach", "afterAll", "constructor",
})


@dataclass(frozen=True)
class PatternRule:
    """One extraction rule: patterns + globs + kind (+ ignore-list)."""
    name: str
    patterns: Tuple[str, ...]
    globs: Tuple[str, ...]
    kind: SymbolKind
    ignore: FrozenSet[str] = field(default_factory=frozenset)
    language: str = "javascript"

    @property
    def precedence(self) -> int:
        return PRECEDENCE.get(self.kind, 0)

    def ignores(self, symbol: str) -> bool:
        return symbol in self.ignore

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "language": self.language,
            "precedence": self.precedence,
            "patterns": list(self.patterns),
            "globs": list(self.globs),
            "ignore": sorted(self.ignore),
        }


DEFAULT_RULES: List[PatternRule] = [
    # ── JavaScript / TypeScript ──────────────────────────────────
    PatternRule(
        name="class",
        patterns=(r"\bclass\s+([A-Z][a-zA-Z0-9_]*)",),
        globs=_JS_TS,
        kind=SymbolKind.CLASS,
    ),
    PatternRule(
        name="function",
        patterns=(
            r"\bfunction\s+([a-zA-Z0-9_]+)\s*\(",
            r"\b(const|let|var)\s+([a-zA-Z0-9_]+)\s*=\s*(async\s*)?\(?\s*.*=>",
        ),
        globs=_JS_TS,
        kind=SymbolKind.FUNCTION,
    ),
    PatternRule(
        name="method",
        patterns=(
            r"^\s*(public|private|protected|static|async|\s)*\s*([a-zA-Z0-9_]+)\(",
        ),
        globs=_JS_TS,
        kind=SymbolKind.METHOD,
        ignore=_METHOD_IGNORE,
    ),
    PatternRule(
        name="variable",
        patterns=(r"\b(const|let|var)\s+([a-zA-Z0-9_]+)\s*=",),
        globs=_JS_TS,
        kind=SymbolKind.VARIABLE,
    ),
    PatternRule(
        name="type",
        patterns=(r"\btype\s+([A-Za-z0-9_]+)\s*=",),
        globs=_TS,
        kind=SymbolKind.TYPE,
        language="typescript",
    ),
    PatternRule(
        name="interface",
        patterns=(r"\binterface\s+([A-Za-z0-9_]+)\s*\{",),
        globs=_TS,
        kind=SymbolKind.INTERFACE,
        language="typescript",
    ),
    PatternRule(
        name="schema",
        patterns=(
            r"(?:^|\b)(?:export\s+)?(const|let|var)\s+([a-zA-Z0-9_]+)\s*=\s*z\.",
        ),
        globs=_JS_TS,
        kind=SymbolKind.SCHEMA,
    ),
    PatternRule(
        name="component",
        patterns=(
            r"\b(export\s+)?(const|let|var|function|class)\s+([A-Z][a-zA-Z0-9]*)\s*"
            r"(=\s*(function\s*\(|(React\.)?memo\(|(React\.)?forwardRef(?:<[^>]+>)?\(|\()"
            r"|extends\s+React\.Component|\(|:)",
            r"\b(export\s+)?function\s+([A-Z][a-zA-Z0-9]*)\s*<[^>]+>",
            r"\b(export\s+)?const\s+([A-Z][a-zA-Z0-9]*)\s*=\s*<[^>]+>",
        ),
        globs=_JS_TS,
        kind=SymbolKind.COMPONENT,
    ),
    # ── Go ────────────────────────────────────────────────────────
    PatternRule(
        name="go_func",
        patterns=(
            r"\bfunc\s+([A-Za-z0-9_]+)\s*\(",
            r"\bfunc\s+\([^)]+\)\s+([A-Za-z0-9_]+)\s*\(",
        ),
        globs=("*.go",),
        kind=SymbolKind.FUNCTION,
        language="go",
    ),
    PatternRule(
        name="go_type",
        patterns=(
            r"\btype\s+([A-Za-z0-9_]+)\s+struct",
            r"\btype\s+([A-Za-z0-9_]+)\s+interface",
            r"\btype\s+([A-Za-z0-9_]+)\s+",
        ),
        globs=("*.go",),
        kind=SymbolKind.TYPE,
        language="go",
    ),
    # ── Python ────────────────────────────────────────────────────
    PatternRule(
        name="py_class",
        patterns=(r"^\s*class\s+([A-Za-z_][A-Za-z0-9_]*)\s*[(:]",),
        globs=("*.py",),
        kind=SymbolKind.CLASS,
        language="python",
    ),
    PatternRule(
        name="py_function",
        patterns=(r"^\s*(async\s+)?def\s+([A-Za-z_][A-Za-z0-9_]*)\s*\(",),
        globs=("*.py",),
        kind=SymbolKind.FUNCTION,
        language="python",
    ),
]


# Extension → language id, used for previews and JSON output.
EXTENSION_LANGUAGE_IDS: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".go": "go",
    ".py": "python",
    ".html": "html",
    ".css": "css",
    ".json": "json",
    ".md": "markdown",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".sh": "shellscript",
    ".bash": "shellscript",
    ".php": "php",
    ".rb": "ruby",
    ".java": "java",
    ".c": "c",
    ".cpp": "cpp",
    ".h": "cpp",
    ".cs": "csharp",
    ".fs": "fsharp",
    ".rs": "rust",
    ".swift": "swift",
    ".sql": "sql",
}


def language_id(file_path: str) -> str:
    """Return the language id for *file_path*, ``plaintext`` when unknown."""
    return EXTENSION_LANGUAGE_IDS.get(Path(file_path).suffix.lower(), "plaintext")


def precedence_of(kind: SymbolKind) -> int:
    return PRECEDENCE.get(kind, 0)


class PatternCatalog:
    """
    Ordered, name-addressable collection of :class:`PatternRule` objects.

    A selector passed to :meth:`rules_for` may be ``"all"``, a rule name
    (``"go_func"``), or a :class:`SymbolKind` value (``"function"`` picks
    every rule producing functions, across languages).  Unknown selectors
    resolve to no rules at all, so extraction yields nothing.
    """

    def __init__(self, rules: Optional[Iterable[PatternRule]] = None):
        self._rules: Dict[str, PatternRule] = {}
        for rule in (DEFAULT_RULES if rules is None else rules):
            self.register(rule)

    def register(self, rule: PatternRule) -> None:
        """Add or replace a rule.  Insertion order is scan order."""
        self._rules[rule.name] = rule

    def rule(self, name: str) -> Optional[PatternRule]:
        return self._rules.get(name)

    @property
    def rules(self) -> List[PatternRule]:
        return list(self._rules.values())

    def names(self) -> List[str]:
        return list(self._rules.keys())

    def selectors(self) -> List[str]:
        """Every selector :meth:`rules_for` understands, ``all`` first."""
        kinds = [k.value for k in SymbolKind if any(r.kind is k for r in self._rules.values())]
        extra = [n for n in self._rules if n not in kinds]
        return ["all"] + kinds + extra

    def rules_for(self, selector: str) -> List[PatternRule]:
        if selector == "all":
            return self.rules
        by_kind = [r for r in self._rules.values() if r.kind.value == selector]
        if by_kind:
            return by_kind
        rule = self._rules.get(selector)
        return [rule] if rule else []

    def describe(self) -> dict:
        """Return the catalog as a JSON-serializable dict."""
        return {
            "precedence": {k.value: v for k, v in PRECEDENCE.items()},
            "reserved_keywords": sorted(RESERVED_KEYWORDS),
            "rules": [r.to_dict() for r in self._rules.values()],
        }
