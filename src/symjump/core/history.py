"""
Last-command tracking, so a host can offer "resume last search".
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

from symjump.core.store import KeyValueStore
from symjump.exceptions import StoreError

logger = logging.getLogger(__name__)

DEFAULT_KEY = "symjump.lastCommand"


@dataclass
class CommandRecord:
    command: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class LastCommandTracker:
    """Persists the most recent command and its arguments under one store key."""

    def __init__(self, store: KeyValueStore, key: str = DEFAULT_KEY):
        self._store = store
        self._key = key

    def set(self, command: str, args: Dict[str, Any] | None = None) -> CommandRecord:
        record = CommandRecord(command=command, args=dict(args or {}))
        try:
            self._store.set(self._key, record.to_dict())
        except StoreError as exc:
            logger.warning(f"Could not remember last command: {exc}")
        return record

    def get(self) -> Optional[CommandRecord]:
        """The stored record, or ``None`` when absent or malformed."""
        raw = self._store.get(self._key)
        if raw is None:
            return None
        if not isinstance(raw, dict) or not isinstance(raw.get("command"), str):
            logger.warning("Ignoring malformed last-command record")
            return None
        args = raw.get("args")
        return CommandRecord(command=raw["command"], args=args if isinstance(args, dict) else {})

    def clear(self) -> None:
        try:
            self._store.set(self._key, None)
        except StoreError as exc:
            logger.warning(f"Could not clear last command: {exc}")
