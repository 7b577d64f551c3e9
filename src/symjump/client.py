"""
SymJump Client Facade

Single entry point for programmatic use of SymJump.  Wraps extraction,
ranked search, recency tracking and plain text search behind an
instance-based API with async variants.

Usage::

    from symjump import SymJump

    # From environment variables, state in ~/.symjump/state.db
    client = SymJump()

    # With explicit configuration and an in-memory store
    from symjump import SymJumpConfig, MemoryStore
    client = SymJump(config=SymJumpConfig(max_workers=8), store=MemoryStore())

    # One-shot ranked search
    for item in client.search("usrSvc", kind="class", root="./web"):
        print(item.location, item.symbol)

    # Remember a navigation so it ranks higher next time
    client.record_access("./web/src/user.ts", "UserService")

    # Stale-while-revalidate (inside an event loop)
    session = client.open_session("all", "./web")
    stale = await session.open()
    fresh = await session.wait_fresh()
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Set, Tuple

from symjump.core.catalog import PatternCatalog
from symjump.core.config import SymJumpConfig
from symjump.core.engine import (
    RipgrepRunner,
    SymbolExtractor,
    SymbolOccurrence,
    TextMatch,
    search_text,
)
from symjump.core.history import CommandRecord, LastCommandTracker
from symjump.core.recency import RecencyEntry, RecencyTracker, SymbolScore
from symjump.core.search import (
    RankedItem,
    SearchSession,
    SessionState,
    SymbolCache,
    build_ranked_items,
    cache_key,
    filter_text_matches,
    rank_items,
    rescore,
)
from symjump.core.siblings import find_sibling
from symjump.core.store import KeyValueStore, SqliteStore
from symjump.exceptions import NoWorkspaceError

logger = logging.getLogger(__name__)


class SymJump:
    """
    High-level SymJump client.

    Each instance carries its own :class:`SymJumpConfig`, symbol cache and
    recency tracker, so several clients (different roots, different
    stores) can live in one process.

    Args:
        config: Explicit configuration object.  When *None*, a config
            is built from environment variables or keyword overrides.
        store: Key/value store for recency and command history.  Defaults
            to a :class:`SqliteStore` at :meth:`SymJumpConfig.get_state_path`,
            opened on first use.
        cache: Symbol cache; one in-memory cache per client by default.
        runner: ripgrep wrapper (tests inject a fake).
        catalog: Pattern catalog; the built-in rules by default.
        clock: Millisecond clock for the recency tracker.
        validate_on_init: Call :meth:`SymJumpConfig.validate` immediately.
        **kwargs: Forwarded to :class:`SymJumpConfig` when *config* is
            ``None`` (e.g. ``max_workers=8``).
    """

    def __init__(
        self,
        config: SymJumpConfig | None = None,
        *,
        store: KeyValueStore | None = None,
        cache: SymbolCache | None = None,
        runner: RipgrepRunner | None = None,
        catalog: PatternCatalog | None = None,
        clock=None,
        validate_on_init: bool = False,
        **kwargs,
    ):
        if config is not None:
            self._config = config
        elif kwargs:
            base = SymJumpConfig.from_env()
            merged = {
                f.name: kwargs.get(f.name, getattr(base, f.name))
                for f in base.__dataclass_fields__.values()
            }
            self._config = SymJumpConfig(**merged)
        else:
            self._config = SymJumpConfig.from_env()

        if validate_on_init:
            self._config.validate()

        self._store = store
        self.cache = cache or SymbolCache()
        self.catalog = catalog or PatternCatalog()
        self._runner = runner or RipgrepRunner.from_config(self._config)
        self._clock = clock
        self._tracker: RecencyTracker | None = None
        self._history: LastCommandTracker | None = None
        # Background rescans outlive the sessions that started them.
        self._background: Set[asyncio.Task] = set()

    # ── Configuration & collaborators ─────────────────────────────

    @property
    def config(self) -> SymJumpConfig:
        """The active configuration for this client."""
        return self._config

    @property
    def store(self) -> KeyValueStore:
        if self._store is None:
            self._store = SqliteStore(self._config.get_state_path())
        return self._store

    @property
    def tracker(self) -> RecencyTracker:
        if self._tracker is None:
            self._tracker = RecencyTracker(self.store, self._config, clock=self._clock)
        return self._tracker

    @property
    def history(self) -> LastCommandTracker:
        if self._history is None:
            self._history = LastCommandTracker(self.store, self._config.last_command_store_key)
        return self._history

    def extractor(self, show_progress: bool = False) -> SymbolExtractor:
        return SymbolExtractor(
            runner=self._runner,
            catalog=self.catalog,
            max_workers=self._config.max_workers,
            show_progress=show_progress,
        )

    # ── Extraction ────────────────────────────────────────────────

    def extract(
        self,
        kind: str = "all",
        root: str | Path = ".",
        *,
        show_progress: bool = False,
    ) -> List[SymbolOccurrence]:
        """
        Extract deduplicated symbols of *kind* under *root*.

        Raises:
            NoWorkspaceError: If *root* is missing or not a directory.
        """
        resolved = self._resolve_root(root)
        return self.extractor(show_progress).extract(kind, resolved)

    # ── Search ────────────────────────────────────────────────────

    def search(
        self,
        query: str = "",
        *,
        kind: str = "all",
        root: str | Path = ".",
        max_results: int | None = None,
        refresh: bool = False,
        show_progress: bool = False,
    ) -> List[RankedItem]:
        """
        One-shot ranked search.

        Ranks against the cached list for ``(kind, root)`` when there is
        one, otherwise (or with ``refresh=True``) runs a fresh extraction
        and caches it.

        Args:
            query: Fuzzy filter; empty returns the recency-sorted list.
            kind: ``"all"``, a symbol kind, or a rule name.
            root: Directory to search.
            max_results: Truncate the ranked list.
            refresh: Ignore the cache and rescan.
            show_progress: Show a tqdm progress bar while scanning.

        Raises:
            NoWorkspaceError: If *root* is missing or not a directory.
        """
        resolved = self._resolve_root(root)
        key = cache_key(kind, resolved)
        cached = None if refresh else self.cache.get(key)
        if cached is not None:
            items = rescore(cached, self.tracker)
        else:
            occurrences = self.extractor(show_progress).extract(kind, resolved)
            items = build_ranked_items(occurrences, resolved, self.tracker)
            self.cache.set(key, items)

        ranked = rank_items(items, query, self._config)
        return ranked[:max_results] if max_results else ranked

    def open_session(
        self,
        kind: str = "all",
        root: str | Path = ".",
        on_update=None,
    ) -> SearchSession:
        """Create a stale-while-revalidate :class:`SearchSession`; call ``await session.open()``."""
        resolved = self._resolve_root(root)
        return SearchSession(
            kind=kind,
            root=resolved,
            extractor=self.extractor(),
            tracker=self.tracker,
            cache=self.cache,
            config=self._config,
            on_update=on_update,
        )

    # ── Recency ───────────────────────────────────────────────────

    def record_access(self, file_path: str | Path, symbol: str | None = None) -> RecencyEntry:
        """Record a navigation to *symbol* in *file_path* (resolved to absolute)."""
        return self.tracker.record_access(self._resolve_file(file_path), symbol)

    def recency_score(self, file_path: str | Path, symbol: str | None = None) -> SymbolScore:
        return self.tracker.get_score(self._resolve_file(file_path), symbol)

    def recent(self, limit: int = 10) -> List[Tuple[str, SymbolScore]]:
        """Most recently accessed keys, newest first."""
        return self.tracker.most_recent(limit)

    def clear_recency(self) -> None:
        self.tracker.clear()

    # ── Command history ───────────────────────────────────────────

    def remember_command(self, command: str, args: dict | None = None) -> CommandRecord:
        return self.history.set(command, args)

    def last_command(self) -> Optional[CommandRecord]:
        return self.history.get()

    # ── Text search ───────────────────────────────────────────────

    def search_text(self, term: str, root: str | Path = ".", query: str = "") -> List[TextMatch]:
        """Plain ripgrep word search, sorted by path then line.

        A non-empty *query* fuzzy-filters the hits by file name, line text
        and path, best first.

        Raises:
            NoWorkspaceError: If *root* is missing or not a directory.
        """
        resolved = self._resolve_root(root)
        matches = search_text(term, resolved, runner=self._runner)
        return filter_text_matches(matches, query) if query else matches

    # ── Sibling files ─────────────────────────────────────────────

    def sibling(self, file_path: str | Path) -> Optional[Path]:
        """The test file for a source file, or the source file for a test."""
        return find_sibling(Path(self._resolve_file(file_path)))

    # ── Async variants ────────────────────────────────────────────
    # Blocking work runs in asyncio.to_thread(); these raise the same
    # exceptions as the sync methods.

    async def aextract(self, kind: str = "all", root: str | Path = ".") -> List[SymbolOccurrence]:
        """Async variant of :meth:`extract`."""
        return await asyncio.to_thread(self.extract, kind, root)

    async def asearch(
        self,
        query: str = "",
        *,
        kind: str = "all",
        root: str | Path = ".",
        max_results: int | None = None,
        wait_fresh: bool = False,
    ) -> List[RankedItem]:
        """
        Stale-while-revalidate search.

        Returns the cached list ranked against *query* immediately when one
        exists; the rescan keeps running and refreshes the cache for the
        next call.  Waits for the rescan when nothing is cached yet or
        when *wait_fresh* is true.
        """
        session = self.open_session(kind, root)
        await session.open()
        if wait_fresh or session.state is SessionState.LOADING:
            await session.wait_fresh()
        else:
            self._track_background(session.task)
        items = session.filter(query) if query else session.items
        session.close()
        return items[:max_results] if max_results else items

    async def asearch_text(self, term: str, root: str | Path = ".", query: str = "") -> List[TextMatch]:
        """Async variant of :meth:`search_text`."""
        return await asyncio.to_thread(self.search_text, term, root, query)

    async def drain(self) -> None:
        """Wait for every background rescan started by :meth:`asearch`."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ── Health (for agents / status endpoints) ─────────────────────

    def health(self) -> dict:
        """
        Return a small status dict for agents or health checks.

        Does not run ripgrep or touch the store.
        """
        import shutil

        return {
            "version": __import__("symjump", fromlist=["__version__"]).__version__,
            "rg_binary": self._config.rg_binary,
            "rg_available": shutil.which(self._config.rg_binary) is not None,
            "cached_keys": len(self.cache),
            "rules": len(self.catalog.rules),
        }

    def close(self) -> None:
        if self._store is not None:
            self._store.close()

    # ── Internal helpers ──────────────────────────────────────────

    def _track_background(self, task: asyncio.Task | None) -> None:
        if task is None or task.done():
            return
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @staticmethod
    def _resolve_root(root: str | Path) -> str:
        path = Path(root).expanduser().resolve()
        if not path.is_dir():
            raise NoWorkspaceError(
                f"No workspace folder at {path}. Pass an existing directory as the search root."
            )
        return str(path)

    @staticmethod
    def _resolve_file(file_path: str | Path) -> str:
        return str(Path(file_path).expanduser().resolve())
