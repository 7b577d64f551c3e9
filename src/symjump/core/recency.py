"""
SymJump Recency Engine

Tracks how recently and how often each (file, symbol) pair was navigated
to, and turns that history into a 0-100 score.

Scoring::

    age_hours  = (now - last_accessed) / 3_600_000
    recency    = decay_factor ** min(age_hours, max_age_hours) * max_score
    frequency  = min(access_count, frequency_cap) * (max_score / frequency_cap)
    score      = recency_weight * recency + (1 - recency_weight) * frequency

With the defaults (0.9 decay, 48 h, cap 50, weight 0.7) a symbol opened a
minute ago outranks one opened a week ago with the same count, and neither
factor can push the score past 100 on its own.

The whole map lives under a single key of an injected
:class:`~symjump.core.store.KeyValueStore`.  Entries that do not look like
``{"path": str, "last_accessed": number, "access_count": int >= 0}`` are
dropped on load instead of failing.
"""

import logging
import math
import time
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from symjump.core.config import SymJumpConfig
from symjump.core.store import KeyValueStore
from symjump.exceptions import StoreError

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000


def _now_ms() -> int:
    return int(time.time() * 1000)


def recency_key(file_path: str, symbol_name: Optional[str] = None) -> str:
    """Composite store key: ``<file>#<symbol>`` or just ``<file>``."""
    return f"{file_path}#{symbol_name}" if symbol_name else file_path


@dataclass
class RecencyEntry:
    """Persisted access history for one key."""
    path: str
    last_accessed: int
    access_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_raw(cls, raw) -> Optional["RecencyEntry"]:
        """Parse a stored value; ``None`` when it has the wrong shape."""
        if not isinstance(raw, dict):
            return None
        path = raw.get("path")
        last = raw.get("last_accessed")
        count = raw.get("access_count")
        if not isinstance(path, str):
            return None
        if isinstance(last, bool) or not isinstance(last, (int, float)):
            return None
        if not math.isfinite(last):
            return None
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            return None
        return cls(path=path, last_accessed=int(last), access_count=count)


@dataclass(frozen=True)
class SymbolScore:
    """Derived score for one key. Never persisted."""
    score: float
    last_accessed: int
    access_count: int

    def to_dict(self) -> dict:
        return asdict(self)


ZERO_SCORE = SymbolScore(score=0.0, last_accessed=0, access_count=0)


class RecencyTracker:
    """
    Records symbol accesses and scores them by recency and frequency.

    The persisted map is loaded lazily, once per instance; call
    :meth:`invalidate` to force a re-read (e.g. after another process
    wrote the store).

    Args:
        store: Key/value store holding the map.
        config: Scoring constants and the store key.
        clock: Callable returning "now" in epoch milliseconds. Tests
            inject a fixed clock.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: SymJumpConfig | None = None,
        clock: Callable[[], int] | None = None,
    ):
        self._store = store
        self._config = config or SymJumpConfig()
        self._clock = clock or _now_ms
        self._entries: Dict[str, RecencyEntry] = {}
        self._loaded = False

    @property
    def store_key(self) -> str:
        return self._config.recency_store_key

    # ── Persistence ───────────────────────────────────────────────

    def load(self) -> None:
        """Read the persisted map unless it is already loaded."""
        if self._loaded:
            return
        raw = self._store.get(self.store_key, {})
        entries: Dict[str, RecencyEntry] = {}
        if isinstance(raw, dict):
            dropped = 0
            for key, value in raw.items():
                entry = RecencyEntry.from_raw(value)
                if entry is None:
                    dropped += 1
                    continue
                entries[str(key)] = entry
            if dropped:
                logger.warning(f"Ignored {dropped} malformed recency entr{'y' if dropped == 1 else 'ies'}")
        elif raw is not None:
            logger.warning(
                f"Stored recency map has unexpected type {type(raw).__name__}; starting empty"
            )
        self._entries = entries
        self._loaded = True

    def invalidate(self) -> None:
        """Drop the in-memory copy; the next call reloads from the store."""
        self._entries = {}
        self._loaded = False

    def _save(self) -> None:
        if not self._loaded:
            return
        payload = {key: entry.to_dict() for key, entry in self._entries.items()}
        try:
            self._store.set(self.store_key, payload)
        except StoreError as exc:
            logger.warning(f"Could not persist recency map: {exc}")

    # ── Recording ─────────────────────────────────────────────────

    def record_access(self, file_path: str, symbol_name: Optional[str] = None) -> RecencyEntry:
        """Bump the entry for (file, symbol) and persist the map."""
        self.load()
        key = recency_key(file_path, symbol_name)
        entry = self._entries.get(key)
        if entry is None:
            entry = RecencyEntry(path=file_path, last_accessed=0, access_count=0)
            self._entries[key] = entry
        entry.last_accessed = self._clock()
        entry.access_count += 1

        if len(self._entries) > self._config.max_recency_entries:
            self._prune()

        self._save()
        logger.debug(f"Recorded access {key} (count={entry.access_count})")
        return entry

    def _prune(self) -> None:
        """Evict the least recently accessed entries down to the cap."""
        overflow = len(self._entries) - self._config.max_recency_entries
        if overflow <= 0:
            return
        oldest = sorted(self._entries.items(), key=lambda kv: kv[1].last_accessed)[:overflow]
        for key, _ in oldest:
            del self._entries[key]
        logger.debug(f"Pruned {overflow} recency entries")

    # ── Scoring ───────────────────────────────────────────────────

    def get_score(self, file_path: str, symbol_name: Optional[str] = None) -> SymbolScore:
        """Score one (file, symbol) pair. Unknown pairs score 0."""
        self.load()
        return self._score_key(recency_key(file_path, symbol_name))

    def get_scores(self, keys: Iterable[str]) -> Dict[str, SymbolScore]:
        """Score many composite keys (see :func:`recency_key`) with a single load."""
        self.load()
        now = self._clock()
        return {key: self._score_key(key, now) for key in keys}

    def _score_key(self, key: str, now: Optional[int] = None) -> SymbolScore:
        entry = self._entries.get(key)
        if entry is None:
            return ZERO_SCORE
        return SymbolScore(
            score=self.compute_score(entry, self._clock() if now is None else now),
            last_accessed=entry.last_accessed,
            access_count=entry.access_count,
        )

    def compute_score(self, entry: RecencyEntry, now: int) -> float:
        cfg = self._config
        age_hours = max(0.0, (now - entry.last_accessed) / MS_PER_HOUR)
        recency = (cfg.decay_factor ** min(age_hours, cfg.max_age_hours)) * cfg.max_score
        frequency = min(entry.access_count, cfg.frequency_cap) * (cfg.max_score / cfg.frequency_cap)
        score = cfg.recency_weight * recency + (1 - cfg.recency_weight) * frequency
        return round(score, 1)

    # ── Inspection ────────────────────────────────────────────────

    def entries(self) -> Dict[str, RecencyEntry]:
        """Snapshot copy of the loaded map."""
        self.load()
        return {
            key: RecencyEntry(e.path, e.last_accessed, e.access_count)
            for key, e in self._entries.items()
        }

    def most_recent(self, limit: int = 10) -> List[Tuple[str, SymbolScore]]:
        """Keys ordered by last access (newest first), with their scores."""
        self.load()
        now = self._clock()
        ordered = sorted(
            self._entries.items(),
            key=lambda kv: (-kv[1].last_accessed, kv[0]),
        )[:limit]
        return [(key, self._score_key(key, now)) for key, _ in ordered]

    def __len__(self) -> int:
        self.load()
        return len(self._entries)

    def clear(self) -> None:
        """Wipe both the in-memory and the persisted map."""
        self._entries = {}
        self._loaded = True
        try:
            self._store.set(self.store_key, {})
        except StoreError as exc:
            logger.warning(f"Could not clear persisted recency map: {exc}")
