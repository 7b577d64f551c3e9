"""
SymJump Search Cache & Ranker

Stale-while-revalidate symbol search:

- a :class:`SymbolCache` holds the last full ranked list per
  ``"<kind>::<root>"`` key;
- a :class:`SearchSession` serves that list immediately (rescored against
  the *current* recency scores), refreshes it in a background task, and
  swaps the fresh list in when it lands;
- :func:`rank_items` merges fuzzy-match quality with recency into one
  combined score.

Every list handed to a caller is freshly sorted; callers re-render from it
rather than relying on any previous order.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from rapidfuzz import fuzz, process as rfprocess

from symjump.core.catalog import SymbolKind, language_id
from symjump.core.config import SymJumpConfig
from symjump.core.engine import SymbolExtractor, SymbolOccurrence, TextMatch
from symjump.core.recency import RecencyTracker, recency_key
from symjump.exceptions import SymJumpError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Data Models
# =============================================================================

@dataclass(frozen=True)
class RankedItem:
    """A symbol occurrence with a score attached.

    ``score`` is the recency score in an unfiltered list and the combined
    fuzzy+recency score in a filtered one.
    """
    symbol: str
    file: str
    line: int
    start_column: int
    end_column: int
    kind: SymbolKind
    score: float = 0.0
    root: str = ""

    @classmethod
    def from_occurrence(cls, occ: SymbolOccurrence, root: str, score: float = 0.0) -> "RankedItem":
        return cls(
            symbol=occ.symbol,
            file=occ.file,
            line=occ.line,
            start_column=occ.start_column,
            end_column=occ.end_column,
            kind=occ.kind,
            score=score,
            root=root,
        )

    @property
    def path(self) -> str:
        """Absolute path of the file (``root`` joined with ``file``)."""
        return os.path.join(self.root, self.file) if self.root else self.file

    @property
    def location(self) -> str:
        """``path:line:col`` as terminals and editors understand it."""
        return f"{self.path}:{self.line}:{self.start_column}"

    @property
    def recency_key(self) -> str:
        return recency_key(self.path, self.symbol)

    def with_score(self, score: float) -> "RankedItem":
        return replace(self, score=score)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["path"] = self.path
        data["language"] = language_id(self.file)
        return data


def sort_key(item: RankedItem):
    """Score descending, then symbol, file and line ascending."""
    return (-item.score, item.symbol, item.file, item.line)


def sort_items(items: Sequence[RankedItem]) -> List[RankedItem]:
    return sorted(items, key=sort_key)


# =============================================================================
# Cache service
# =============================================================================

def cache_key(kind: str, root: str) -> str:
    return f"{kind}::{root}"


class SymbolCache:
    """
    In-memory cache of ranked lists, one per ``(kind, root)`` key.

    Entries are replaced wholesale; :meth:`get` returns a copy so callers
    cannot mutate what another session will read.
    """

    def __init__(self):
        self._entries: Dict[str, List[RankedItem]] = {}

    def get(self, key: str) -> Optional[List[RankedItem]]:
        items = self._entries.get(key)
        return list(items) if items is not None else None

    def set(self, key: str, items: Sequence[RankedItem]) -> None:
        self._entries[key] = list(items)

    def invalidate(self, key: str | None = None) -> None:
        """Drop one entry, or every entry when *key* is ``None``."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# Fuzzy matching
# =============================================================================

@dataclass(frozen=True)
class FuzzyMatch(Generic[T]):
    item: T
    score: float


def is_subsequence(needle: str, haystack: str) -> bool:
    """True when every character of *needle* appears in *haystack* in order."""
    it = iter(haystack)
    return all(ch in it for ch in needle)


class FuzzyMatcher(Generic[T]):
    """
    Smart-case fuzzy matcher over an arbitrary corpus.

    Only candidates containing the query as a subsequence are returned
    (fzf semantics); their quality comes from ``rapidfuzz.fuzz.WRatio``.
    Matching is case-sensitive only when the query has an uppercase letter.
    """

    def __init__(self, corpus: Sequence[T], selector: Callable[[T], str] = str):
        self._corpus = list(corpus)
        self._selector = selector

    def find(self, query: str) -> List[FuzzyMatch[T]]:
        if not query:
            return []
        case_sensitive = any(ch.isupper() for ch in query)
        needle = query if case_sensitive else query.lower()

        choices: Dict[int, str] = {}
        for index, item in enumerate(self._corpus):
            text = self._selector(item)
            if not case_sensitive:
                text = text.lower()
            if is_subsequence(needle, text):
                choices[index] = text
        if not choices:
            return []

        scored = rfprocess.extract(
            needle, choices, scorer=fuzz.WRatio, processor=None, limit=None,
        )
        return [FuzzyMatch(item=self._corpus[index], score=float(score))
                for _choice, score, index in scored]


# =============================================================================
# Ranking
# =============================================================================

def build_ranked_items(
    occurrences: Sequence[SymbolOccurrence],
    root: str,
    tracker: RecencyTracker,
) -> List[RankedItem]:
    """Attach current recency scores to *occurrences* and sort."""
    items = [RankedItem.from_occurrence(occ, root) for occ in occurrences]
    return rescore(items, tracker)


def rescore(items: Sequence[RankedItem], tracker: RecencyTracker) -> List[RankedItem]:
    """Replace every item's score with its current recency score and re-sort.

    Recency decays continuously, so a cached list is never trusted in its
    cached order.
    """
    scores = tracker.get_scores(item.recency_key for item in items)
    return sort_items([item.with_score(scores[item.recency_key].score) for item in items])


def rank_items(
    items: Sequence[RankedItem],
    query: str,
    config: SymJumpConfig | None = None,
) -> List[RankedItem]:
    """
    Filter *items* by *query* and order by combined score.

    ``combined = fuzzy_weight * normalized + recency_rank_weight * recency``
    where ``normalized`` is the fuzzy score scaled so the best match in
    this result set is 100. An empty query returns the input re-sorted;
    no matches return ``[]``.
    """
    cfg = config or SymJumpConfig()
    if not query:
        return sort_items(items)

    matches = FuzzyMatcher(items, lambda item: item.symbol).find(query)
    if not matches:
        return []

    top = max(m.score for m in matches)
    ranked = [
        m.item.with_score(combined_score(m.score, top, m.item.score, cfg))
        for m in matches
    ]
    return sort_items(ranked)


def filter_text_matches(
    matches: Sequence[TextMatch],
    query: str,
    limit: int | None = 50,
) -> List[TextMatch]:
    """
    Fuzzy-filter word-search hits by file name, line text and path.

    Best matches first; an empty query returns *matches* unchanged.
    """
    if not query:
        return list(matches)
    found = FuzzyMatcher(
        matches,
        lambda m: f"{os.path.basename(m.file_path)} {m.text.strip()} {m.file_path}",
    ).find(query)
    ordered = [f.item for f in found]
    return ordered[:limit] if limit else ordered


def combined_score(fuzzy: float, top_fuzzy: float, recency: float,
                   config: SymJumpConfig | None = None) -> float:
    """Blend a fuzzy score (normalized against *top_fuzzy*) with a recency score."""
    cfg = config or SymJumpConfig()
    normalized = (fuzzy / top_fuzzy) * cfg.max_score if top_fuzzy > 0 else 0.0
    return round(cfg.fuzzy_weight * normalized + cfg.recency_rank_weight * recency, 2)


# =============================================================================
# Search session
# =============================================================================

class SessionState(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"            # no stale list, fresh scan pending
    READY = "ready"
    REVALIDATING = "revalidating"  # stale list served, fresh scan pending
    CLOSED = "closed"


class SearchSession:
    """
    One query session against a ``(kind, root)`` pair.

    Lifecycle::

        session = SearchSession(...)
        await session.open()        # stale list (or [] while LOADING)
        session.filter("usr")       # fuzzy + recency ranked view
        await session.wait_fresh()  # optional: block until the rescan lands
        session.accept(item)        # records the access
        session.close()

    :meth:`open` always starts one background rescan. When it completes
    the cache is refreshed; the session's own list is swapped only while
    the session is still open, and an active filter is recomputed against
    the fresh list. ``on_update`` is called with the session after a swap.
    """

    def __init__(
        self,
        kind: str,
        root: str,
        extractor: SymbolExtractor,
        tracker: RecencyTracker,
        cache: SymbolCache,
        config: SymJumpConfig | None = None,
        on_update: Callable[["SearchSession"], None] | None = None,
    ):
        self.kind = kind
        self.root = root
        self.key = cache_key(kind, root)
        self.on_update = on_update
        self._extractor = extractor
        self._tracker = tracker
        self._cache = cache
        self._config = config or SymJumpConfig()
        self._state = SessionState.EMPTY
        self._base: List[RankedItem] = []
        self._items: List[RankedItem] = []
        self._filter = ""
        self._task: Optional[asyncio.Task] = None

    # ── State ─────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state in (SessionState.LOADING, SessionState.REVALIDATING)

    @property
    def is_open(self) -> bool:
        return self._state is not SessionState.CLOSED

    @property
    def filter_value(self) -> str:
        return self._filter

    @property
    def items(self) -> List[RankedItem]:
        """The current view, already sorted."""
        return list(self._items)

    @property
    def visible_items(self) -> List[RankedItem]:
        return self._items[:self._config.max_visible_items]

    @property
    def task(self) -> Optional[asyncio.Task]:
        """The background rescan started by :meth:`open`."""
        return self._task

    # ── Operations ────────────────────────────────────────────────

    async def open(self) -> List[RankedItem]:
        """Serve the cached list (if any) and start the background rescan."""
        if self._state is not SessionState.EMPTY:
            raise SymJumpError(f"Session for {self.key} was already opened")

        cached = self._cache.get(self.key)
        if cached is not None:
            self._base = rescore(cached, self._tracker)
            self._state = SessionState.REVALIDATING
            logger.debug(f"Serving {len(self._base)} cached symbols for {self.key}")
        else:
            self._base = []
            self._state = SessionState.LOADING
        self._items = list(self._base)

        self._task = asyncio.create_task(self._revalidate())
        return self.items

    async def wait_fresh(self) -> List[RankedItem]:
        """Wait for the background rescan, then return the current view."""
        if self._task is not None:
            await self._task
        return self.items

    def filter(self, value: str) -> List[RankedItem]:
        """Apply a filter string; empty reverts to the recency-sorted list."""
        self._ensure_open()
        self._filter = value or ""
        self._items = self._apply_filter(self._base)
        return self.items

    def accept(self, item: RankedItem) -> RankedItem:
        """Record the access for *item*, then hand it back for navigation."""
        self._tracker.record_access(item.path, item.symbol)
        return item

    def close(self) -> None:
        """Stop publishing to this session. A pending rescan still refreshes the cache."""
        self._state = SessionState.CLOSED

    # ── Internals ─────────────────────────────────────────────────

    def _ensure_open(self) -> None:
        if self._state is SessionState.CLOSED:
            raise SymJumpError(f"Session for {self.key} is closed")

    def _apply_filter(self, base: List[RankedItem]) -> List[RankedItem]:
        if not self._filter:
            return list(base)
        return rank_items(base, self._filter, self._config)

    async def _revalidate(self) -> Optional[List[RankedItem]]:
        try:
            occurrences = await asyncio.to_thread(self._extractor.extract, self.kind, self.root)
        except Exception as e:
            logger.error(f"Background rescan failed for {self.key}: {e}")
            if self.is_open:
                self._state = SessionState.READY
            return None

        fresh = build_ranked_items(occurrences, self.root, self._tracker)
        self._cache.set(self.key, fresh)

        if not self.is_open:
            logger.debug(f"Session for {self.key} closed; fresh list only cached")
            return fresh

        self._base = fresh
        self._items = self._apply_filter(fresh)
        self._state = SessionState.READY
        logger.debug(f"Swapped in {len(fresh)} fresh symbols for {self.key}")
        if self.on_update is not None:
            self.on_update(self)
        return fresh


# =============================================================================
# Result Formatting
# =============================================================================

class ResultFormatter:
    """Format ranked symbols and text matches for different output modes."""

    EMPTY_MESSAGE = "No symbols found."

    # ── Helpers ───────────────────────────────────────────────────

    @staticmethod
    def source_line(path: str, line: int) -> str:
        """Return line *line* (1-based) of *path*, or "" when unreadable."""
        try:
            with open(path, encoding="utf-8", errors="replace") as fh:
                for number, text in enumerate(fh, start=1):
                    if number == line:
                        return text.rstrip("\n")
        except OSError as e:
            logger.debug(f"Could not read preview from {path}: {e}")
        return ""

    @staticmethod
    def _sanitize_for_json(s: str) -> str:
        """Normalise path separators and strip control characters."""
        if not s:
            return s
        s = s.replace("\\", "/")
        return "".join(c for c in s if (ord(c) >= 32 and ord(c) != 127) or c in "\n\r\t")

    # ── Console (human-friendly) ──────────────────────────────────

    @staticmethod
    def format_console(results: List[RankedItem], show_preview: bool = True,
                       start_index: int = 1, total_count: int | None = None,
                       busy: bool = False) -> str:
        """
        Numbered listing with kind, location, score and the source line.

        Args:
            results: The (page of) results to render.
            show_preview: Include the matching source line.
            start_index: 1-based number of the first result.
            total_count: Total result count; defaults to ``len(results)``.
            busy: Mark the header while a background rescan is pending.
        """
        if not results:
            return f"\n  {ResultFormatter.EMPTY_MESSAGE}\n"

        import shutil
        width = min(shutil.get_terminal_size().columns, 78)
        thin = "─" * width

        display_total = total_count if total_count is not None else len(results)
        header = f"  SYMJUMP — {display_total} symbol{'s' if display_total != 1 else ''}"
        if busy:
            header += " (refreshing…)"

        out: List[str] = [f"\n{thin}", header, thin]
        for offset, r in enumerate(results):
            idx = start_index + offset
            out.append(f"  {idx:>3}. {r.symbol:<32} {r.kind.value:<10} {r.score:>6.1f}")
            out.append(f"       {r.location}")
            if show_preview:
                preview = ResultFormatter.source_line(r.path, r.line).strip()
                if preview:
                    out.append(f"       │ {preview}")
        out.append(thin)
        return "\n".join(out)

    # ── JSON ──────────────────────────────────────────────────────

    @staticmethod
    def format_json(results: List[RankedItem]) -> str:
        """Format results as a JSON array (paths normalised to forward slashes)."""
        objs = []
        for r in results:
            obj = r.to_dict()
            obj["score"] = round(r.score, 2)
            obj["path"] = ResultFormatter._sanitize_for_json(obj["path"])
            obj["file"] = ResultFormatter._sanitize_for_json(obj["file"])
            obj["root"] = ResultFormatter._sanitize_for_json(obj["root"])
            objs.append(obj)
        return json.dumps(objs, indent=2, allow_nan=False)

    # ── Compact (grep-like, one line per result) ──────────────────

    @staticmethod
    def format_compact(results: List[RankedItem]) -> str:
        """``path:line:col  symbol  [kind]`` per result."""
        if not results:
            return ResultFormatter.EMPTY_MESSAGE
        return "\n".join(
            f"{r.location}  {r.symbol}  [{r.kind.value}]" for r in results
        )

    # ── IDE (clickable file(line,col) format) ─────────────────────

    @staticmethod
    def format_ide(results: List[RankedItem]) -> str:
        """``file(line,col): symbol [kind]`` for click-to-jump navigation."""
        if not results:
            return ResultFormatter.EMPTY_MESSAGE
        return "\n".join(
            f"{r.path}({r.line},{r.start_column}): {r.symbol} [{r.kind.value}]"
            for r in results
        )

    # ── Text matches ──────────────────────────────────────────────

    @staticmethod
    def format_text_matches(matches: List[TextMatch], fmt: str = "console") -> str:
        """Render plain word-search hits; lines/columns shown 1-based."""
        if fmt == "json":
            return json.dumps([
                {**m.to_dict(), "file_path": ResultFormatter._sanitize_for_json(m.file_path)}
                for m in matches
            ], indent=2, allow_nan=False)
        if not matches:
            return "No matches found."
        if fmt == "ide":
            return "\n".join(f"{m.file_path}({m.line + 1},{m.column + 1}): {m.text.strip()}"
                             for m in matches)
        return "\n".join(f"{m.file_path}:{m.line + 1}:{m.column + 1}: {m.text.strip()}"
                         for m in matches)
