"""
SymJump Core Engine

Regex-driven symbol extraction on top of ripgrep:

1. every pattern of every selected :class:`PatternRule` becomes one
   independent ``rg`` invocation (concurrent, isolated from each other);
2. each ``path:line:col:text`` record is split into four fields;
3. the originating regex is re-applied to the text and its capture groups
   are scanned from last to first for the identifier;
4. overlapping hits are collapsed by kind precedence.

Extraction never raises for tool problems: a failing invocation is logged
and contributes nothing, the rest of the scan carries on.
"""

import logging
import re
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from tqdm import tqdm

from symjump.core.catalog import (
    IDENTIFIER_RE,
    RESERVED_KEYWORDS,
    PatternCatalog,
    PatternRule,
    SymbolKind,
    precedence_of,
)
from symjump.core.config import SymJumpConfig
from symjump.exceptions import ExtractionError

# Application code (CLI, MCP server) is responsible for configuring logging.
logger = logging.getLogger(__name__)

RG_NO_MATCHES = 1

# path:line:col:text; the lazy path group stops at the first ":<digits>:<digits>:"
_RG_LINE_RE = re.compile(r"^(.+?):(\d+):(\d+):(.*)$")
_ESCAPE_RE = re.compile(r"\\.")


# =============================================================================
# Data Models
# =============================================================================

@dataclass(frozen=True)
class SymbolOccurrence:
    """One detection of a symbol at a specific line.

    ``file`` is relative to the search root. Lines and columns are 1-based;
    ``end_column`` is inclusive.
    """
    symbol: str
    file: str
    line: int
    start_column: int
    end_column: int
    kind: SymbolKind

    @property
    def key(self) -> Tuple[str, int, str]:
        return (self.file, self.line, self.symbol)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass(frozen=True)
class TextMatch:
    """A plain word-search hit. Line and column are 0-based."""
    file_path: str
    line: int
    column: int
    text: str

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# ripgrep invocation
# =============================================================================

class RipgrepRunner:
    """
    Thin wrapper around the ``rg`` binary.

    :meth:`run` raises :class:`ExtractionError` on any failure;
    :meth:`search` is the forgiving variant the extractor uses, turning
    every failure into an empty result for that invocation only.
    """

    def __init__(
        self,
        binary: str = "rg",
        timeout: float = 10.0,
        max_output_bytes: int = 10 * 1024 * 1024,
        max_filesize: str = "1M",
    ):
        self.binary = binary
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes
        self.max_filesize = max_filesize

    @classmethod
    def from_config(cls, config: SymJumpConfig) -> "RipgrepRunner":
        return cls(
            binary=config.rg_binary,
            timeout=config.rg_timeout_seconds,
            max_output_bytes=config.rg_max_output_bytes,
            max_filesize=config.rg_max_filesize,
        )

    def build_args(self, patterns: Sequence[str], globs: Sequence[str]) -> List[str]:
        args = [
            self.binary,
            "--with-filename",
            "--line-number",
            "--column",
            "--no-heading",
            "--color", "never",
            "--smart-case",
            f"--max-filesize={self.max_filesize}",
        ]
        for glob in globs:
            args.extend(["-g", glob])
        for pattern in patterns:
            args.extend(["-e", pattern])
        args.append(".")
        return args

    def run(self, patterns: Sequence[str], globs: Sequence[str], cwd: str) -> List[str]:
        """Run ripgrep and return its output lines (empty when nothing matched)."""
        cmd = self.build_args(patterns, globs)
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise ExtractionError(f"ripgrep binary not found: {self.binary}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ExtractionError(f"ripgrep timed out after {self.timeout}s") from exc
        except (OSError, subprocess.SubprocessError) as exc:
            raise ExtractionError(f"ripgrep could not be started: {exc}") from exc

        if len(result.stdout) > self.max_output_bytes:
            raise ExtractionError(
                f"ripgrep output exceeded {self.max_output_bytes} bytes"
            )

        lines = result.stdout.decode("utf-8", errors="replace").splitlines()
        if result.returncode == 0 or result.returncode == RG_NO_MATCHES:
            return [line for line in lines if line]

        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        if lines:
            # Exit 2 with output: some files were unreadable, the rest matched.
            logger.warning(f"ripgrep reported errors, keeping partial output: {stderr}")
            return [line for line in lines if line]
        raise ExtractionError(f"ripgrep exited with status {result.returncode}: {stderr}")

    def search(self, patterns: Sequence[str], globs: Sequence[str], cwd: str) -> List[str]:
        """Like :meth:`run`, but any failure yields ``[]``."""
        try:
            return self.run(patterns, globs, cwd)
        except ExtractionError as exc:
            logger.warning(f"Pattern {list(patterns)} skipped: {exc}")
            return []


# =============================================================================
# Parsing helpers
# =============================================================================

def parse_rg_line(line: str) -> Optional[Tuple[str, int, int, str]]:
    """Split ``path:line:col:text`` into its four fields.

    Colons inside *text* are preserved. Returns ``None`` for lines that do
    not have the shape.
    """
    match = _RG_LINE_RE.match(line)
    if not match:
        return None
    file_path, line_no, col_no, text = match.groups()
    return file_path, int(line_no), int(col_no), text


def normalize_rg_path(file_path: str) -> str:
    """Strip the ``./`` prefix ripgrep adds when searching ``.``."""
    if file_path.startswith("./") or file_path.startswith(".\\"):
        return file_path[2:]
    return file_path


def compile_smart_case(pattern: str) -> re.Pattern:
    """Compile *pattern* with the case rule ripgrep's ``--smart-case`` applies.

    Case-insensitive unless the pattern holds an uppercase literal; escape
    sequences such as ``\\S`` or ``\\W`` do not count.
    """
    literal = _ESCAPE_RE.sub("", pattern)
    flags = 0 if any(ch.isupper() for ch in literal) else re.IGNORECASE
    return re.compile(pattern, flags)


def is_candidate_identifier(value: Optional[str]) -> bool:
    return bool(value) and IDENTIFIER_RE.match(value) is not None and value not in RESERVED_KEYWORDS


def extract_symbol(text: str, regex: re.Pattern) -> Optional[Tuple[str, int, int]]:
    """
    Re-apply *regex* to *text* and pick the identifier.

    Capture groups are scanned from the last to the first; the first one
    that is a valid identifier and not a reserved keyword wins.

    Returns ``(name, start, end)`` with a 0-based, end-exclusive span into
    *text*, or ``None``.
    """
    match = regex.search(text)
    if not match:
        return None
    for index in range(len(match.groups()), 0, -1):
        value = match.group(index)
        if is_candidate_identifier(value):
            start, end = match.span(index)
            return value, start, end
    return None


def first_identifier(text: str) -> Optional[str]:
    """First identifier in *text* that is not a reserved keyword."""
    for token in re.findall(r"[A-Za-z_][A-Za-z0-9_]*", text):
        if token not in RESERVED_KEYWORDS:
            return token
    return None


# =============================================================================
# Deduplication
# =============================================================================

def deduplicate(occurrences: Sequence[SymbolOccurrence]) -> List[SymbolOccurrence]:
    """
    Keep one occurrence per ``(file, line, symbol)``.

    The kind with strictly higher catalog precedence replaces an earlier
    one; on equal precedence the first seen stays. Output keeps the order
    in which each key was first seen.
    """
    kept: Dict[Tuple[str, int, str], SymbolOccurrence] = {}
    for occ in occurrences:
        existing = kept.get(occ.key)
        if existing is None or precedence_of(occ.kind) > precedence_of(existing.kind):
            kept[occ.key] = occ
    return list(kept.values())


# =============================================================================
# Symbol extraction
# =============================================================================

class SymbolExtractor:
    """
    Runs the pattern catalog against a root directory.

    Every (rule, pattern) pair is one independent ripgrep call, submitted
    to a thread pool. Results are merged back in catalog order, not
    completion order, so dedup ties always resolve the same way.
    """

    def __init__(
        self,
        runner: RipgrepRunner | None = None,
        catalog: PatternCatalog | None = None,
        max_workers: int = 4,
        show_progress: bool = False,
    ):
        self.runner = runner or RipgrepRunner()
        self.catalog = catalog or PatternCatalog()
        self.max_workers = max_workers
        self.show_progress = show_progress

    def extract(self, selector: str, root: str | Path) -> List[SymbolOccurrence]:
        """Extract and deduplicate symbols for *selector* under *root*."""
        rules = self.catalog.rules_for(selector)
        if not rules:
            logger.info(f"No pattern rules for selector '{selector}'")
            return []

        jobs = [(rule, pattern) for rule in rules for pattern in rule.patterns]
        slots: List[List[SymbolOccurrence]] = [[] for _ in jobs]
        cwd = str(root)

        with tqdm(total=len(jobs), desc="Scanning patterns", unit="pattern",
                  disable=not self.show_progress) as pbar:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    executor.submit(self.scan_pattern, rule, pattern, cwd): index
                    for index, (rule, pattern) in enumerate(jobs)
                }
                for future in as_completed(futures):
                    index = futures[future]
                    try:
                        slots[index] = future.result()
                    except Exception as e:
                        rule, pattern = jobs[index]
                        logger.error(f"Error scanning rule '{rule.name}' pattern {pattern!r}: {e}")
                    finally:
                        pbar.update(1)

        raw = [occ for slot in slots for occ in slot]
        result = deduplicate(raw)
        logger.info(
            f"Extracted {len(result)} symbols ({len(raw)} raw matches) "
            f"for '{selector}' in {cwd}"
        )
        return result

    def scan_pattern(self, rule: PatternRule, pattern: str, cwd: str) -> List[SymbolOccurrence]:
        """Run one pattern of *rule* and turn its output into occurrences."""
        lines = self.runner.search([pattern], rule.globs, cwd)
        regex = compile_smart_case(pattern)
        found: List[SymbolOccurrence] = []
        for line in lines:
            occ = self.parse_occurrence(line, regex, rule)
            if occ is not None:
                found.append(occ)
        return found

    @staticmethod
    def parse_occurrence(line: str, regex: re.Pattern, rule: PatternRule) -> Optional[SymbolOccurrence]:
        parsed = parse_rg_line(line)
        if parsed is None:
            logger.debug(f"Skipping malformed ripgrep line: {line!r}")
            return None
        file_path, line_no, _col, text = parsed
        picked = extract_symbol(text, regex)
        if picked is None:
            return None
        name, start, end = picked
        if rule.ignores(name):
            return None
        return SymbolOccurrence(
            symbol=name,
            file=normalize_rg_path(file_path),
            line=line_no,
            start_column=start + 1,
            end_column=end,
            kind=rule.kind,
        )


# =============================================================================
# Plain text search
# =============================================================================

def search_text(term: str, root: str | Path, runner: RipgrepRunner | None = None) -> List[TextMatch]:
    """
    Word search for *term* under *root*.

    Returns absolute paths with 0-based line/column, sorted by path then
    line; the column points at the case-insensitive position of *term* in
    the line when it is found there, else at ripgrep's column.
    """
    runner = runner or RipgrepRunner()
    root_path = Path(root)
    lines = runner.search([term], (), str(root_path))
    lowered_term = term.lower()
    matches: List[TextMatch] = []
    for line in lines:
        parsed = parse_rg_line(line)
        if parsed is None:
            logger.debug(f"Skipping malformed ripgrep line: {line!r}")
            continue
        file_path, line_no, col_no, text = parsed
        column = col_no - 1
        index = text.lower().find(lowered_term)
        if index >= 0:
            column = index
        matches.append(TextMatch(
            file_path=str(root_path / normalize_rg_path(file_path)),
            line=line_no - 1,
            column=column,
            text=text,
        ))
    # ripgrep output order varies between runs
    matches.sort(key=lambda m: (m.file_path, m.line, m.column))
    return matches
