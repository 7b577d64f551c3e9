"""
SymJump Core — pattern catalog, extraction, recency, stores, and ranking.

Re-exports the primary classes for convenience::

    from symjump.core import PatternCatalog, SymbolExtractor, RecencyTracker
"""

from symjump.core.catalog import PatternCatalog, PatternRule, SymbolKind, language_id
from symjump.core.config import SymJumpConfig
from symjump.core.engine import (
    RipgrepRunner,
    SymbolExtractor,
    SymbolOccurrence,
    TextMatch,
    deduplicate,
    first_identifier,
    search_text,
)
from symjump.core.history import CommandRecord, LastCommandTracker
from symjump.core.recency import RecencyEntry, RecencyTracker, SymbolScore
from symjump.core.search import (
    FuzzyMatcher,
    RankedItem,
    ResultFormatter,
    SearchSession,
    SessionState,
    SymbolCache,
    filter_text_matches,
    rank_items,
)
from symjump.core.siblings import find_sibling, sibling_candidates
from symjump.core.store import KeyValueStore, MemoryStore, SqliteStore

__all__ = [
    "PatternCatalog",
    "PatternRule",
    "SymbolKind",
    "language_id",
    "SymJumpConfig",
    "RipgrepRunner",
    "SymbolExtractor",
    "SymbolOccurrence",
    "TextMatch",
    "deduplicate",
    "first_identifier",
    "search_text",
    "CommandRecord",
    "LastCommandTracker",
    "RecencyEntry",
    "RecencyTracker",
    "SymbolScore",
    "FuzzyMatcher",
    "RankedItem",
    "ResultFormatter",
    "SearchSession",
    "SessionState",
    "SymbolCache",
    "rank_items",
    "filter_text_matches",
    "find_sibling",
    "sibling_candidates",
    "KeyValueStore",
    "MemoryStore",
    "SqliteStore",
]
