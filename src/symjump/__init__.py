"""
SymJump — relevance-ranked "jump to symbol" search without a language server.

The ``symjump`` package extracts symbols from a source tree with a catalog
of per-language regexes run through ripgrep, remembers which symbols you
navigate to, and ranks fuzzy matches by a mix of match quality and
recency.

Quick start (programmatic API)::

    from symjump import SymJump

    client = SymJump()                                   # reads env vars
    hits = client.search("usrsvc", root="./web")         # fuzzy + recency
    client.record_access(hits[0].path, hits[0].symbol)   # rank it higher next time

Quick start (CLI)::

    symjump symbols usrsvc --root ./web
    symjump symbols --kind class -i          # interactive picker
    symjump grep "TODO" --root ./web

Configuration override::

    from symjump import SymJump, SymJumpConfig

    client = SymJump(config=SymJumpConfig(rg_binary="/opt/bin/rg"))
"""

__version__ = "1.0.0"

# Primary public API: the SymJump facade
from symjump.client import SymJump

# Configuration
from symjump.core.config import SymJumpConfig

# Core data types that callers interact with
from symjump.core.catalog import PatternCatalog, PatternRule, SymbolKind
from symjump.core.engine import SymbolOccurrence, TextMatch
from symjump.core.recency import RecencyEntry, SymbolScore
from symjump.core.search import RankedItem, SearchSession, SessionState, SymbolCache
from symjump.core.store import KeyValueStore, MemoryStore, SqliteStore

# Exception hierarchy
from symjump.exceptions import (
    ConfigError,
    ExtractionError,
    NoWorkspaceError,
    StoreError,
    SymJumpError,
)


def health(config: SymJumpConfig | None = None) -> dict:
    """
    Return a small status dict for agents or health checks (no scan, no store).

    When *config* is None, uses :meth:`SymJumpConfig.from_env()` for the snapshot.
    """
    import shutil

    cfg = config or SymJumpConfig.from_env()
    return {
        "version": __version__,
        "rg_binary": cfg.rg_binary,
        "rg_available": shutil.which(cfg.rg_binary) is not None,
    }


__all__ = [
    "__version__",
    # Facade
    "SymJump",
    # Config
    "SymJumpConfig",
    # Data types
    "PatternCatalog",
    "PatternRule",
    "SymbolKind",
    "SymbolOccurrence",
    "TextMatch",
    "RecencyEntry",
    "SymbolScore",
    "RankedItem",
    "SearchSession",
    "SessionState",
    "SymbolCache",
    # Stores
    "KeyValueStore",
    "MemoryStore",
    "SqliteStore",
    # Exceptions
    "SymJumpError",
    "ConfigError",
    "NoWorkspaceError",
    "ExtractionError",
    "StoreError",
    # Status
    "health",
]
