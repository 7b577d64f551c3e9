"""
Tests for symjump.core.history — last-command persistence.
"""

from symjump.core.history import CommandRecord, LastCommandTracker
from symjump.core.store import MemoryStore
from symjump.exceptions import StoreError


class BrokenStore(MemoryStore):
    def set(self, key, value):
        raise StoreError("disk full")


def test_absent_is_none():
    assert LastCommandTracker(MemoryStore()).get() is None


def test_set_then_get():
    store = MemoryStore()
    tracker = LastCommandTracker(store)
    tracker.set("symbols", {"query": "usr", "kind": "class"})
    assert LastCommandTracker(store).get() == CommandRecord("symbols", {"query": "usr", "kind": "class"})


def test_latest_wins():
    tracker = LastCommandTracker(MemoryStore())
    tracker.set("symbols", {"query": "a"})
    tracker.set("grep", {"term": "b"})
    assert tracker.get().command == "grep"


def test_custom_key():
    store = MemoryStore()
    LastCommandTracker(store, key="other").set("symbols")
    assert store.get("other") == {"command": "symbols", "args": {}}
    assert LastCommandTracker(store).get() is None


def test_malformed_record_is_none():
    store = MemoryStore({"symjump.lastCommand": {"args": {}}})
    assert LastCommandTracker(store).get() is None
    store.set("symjump.lastCommand", "symbols")
    assert LastCommandTracker(store).get() is None


def test_malformed_args_become_empty():
    store = MemoryStore({"symjump.lastCommand": {"command": "symbols", "args": [1, 2]}})
    assert LastCommandTracker(store).get().args == {}


def test_clear():
    tracker = LastCommandTracker(MemoryStore())
    tracker.set("symbols")
    tracker.clear()
    assert tracker.get() is None


def test_store_failure_is_logged_not_raised(caplog):
    tracker = LastCommandTracker(BrokenStore())
    record = tracker.set("symbols", {"query": "x"})
    assert record.command == "symbols"
    assert "Could not remember last command" in caplog.text
