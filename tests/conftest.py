"""
Shared fixtures for the SymJump test suite.
"""

import fnmatch
import re
import sys
import threading
import warnings
from pathlib import Path

import pytest

# Filter deprecation warnings from pytest-asyncio; we cannot fix the library.
warnings.filterwarnings(
    "ignore",
    category=DeprecationWarning,
    module="pytest_asyncio",
)

# Ensure the src/ directory is on the import path so that
# symjump.core.* can be imported without installing the package.
SRC_ROOT = Path(__file__).resolve().parent.parent / "src"
sys.path.insert(0, str(SRC_ROOT))

from symjump.core.config import SymJumpConfig  # noqa: E402
from symjump.core.engine import RipgrepRunner, compile_smart_case  # noqa: E402
from symjump.core.recency import MS_PER_HOUR, RecencyTracker  # noqa: E402
from symjump.core.store import MemoryStore  # noqa: E402
from symjump.exceptions import ExtractionError  # noqa: E402


# =============================================================================
# Test doubles
# =============================================================================

class FakeRipgrep(RipgrepRunner):
    """
    Pure-Python stand-in for ``rg``.

    Walks *cwd*, applies the globs to file names and the patterns line by
    line, and prints ``./path:line:col:text`` exactly like ripgrep.
    Patterns listed in *fail_patterns* raise :class:`ExtractionError`
    the way a crashed or timed-out invocation does.
    """

    def __init__(self, fail_patterns=()):
        super().__init__(binary="fake-rg")
        self.fail_patterns = set(fail_patterns)
        self.calls = []
        self._lock = threading.Lock()

    def run(self, patterns, globs, cwd):
        with self._lock:
            self.calls.append((tuple(patterns), tuple(globs), cwd))
        if any(p in self.fail_patterns for p in patterns):
            raise ExtractionError("simulated ripgrep failure")

        regexes = [compile_smart_case(p) for p in patterns]
        root = Path(cwd)
        out = []
        for path in sorted(root.rglob("*")):
            if not path.is_file():
                continue
            if globs and not any(fnmatch.fnmatch(path.name, g) for g in globs):
                continue
            rel = path.relative_to(root).as_posix()
            text = path.read_text(encoding="utf-8")
            for number, line in enumerate(text.splitlines(), start=1):
                for regex in regexes:
                    match = regex.search(line)
                    if match:
                        out.append(f"./{rel}:{number}:{match.start() + 1}:{line}")
                        break
        return out


class FixedClock:
    """Controllable millisecond clock."""

    def __init__(self, now_ms: int = 1_700_000_000_000):
        self.now = now_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, hours: float) -> None:
        self.now += int(hours * MS_PER_HOUR)


# =============================================================================
# Fixtures — source trees
# =============================================================================

USER_TS = (
    'import { z } from "zod";\n'
    "\n"
    "export const UserSchema = z.object({ name: z.string() });\n"
    "\n"
    "export interface UserProps {\n"
    "  name: string;\n"
    "}\n"
    "\n"
    "export type UserId = string;\n"
    "\n"
    "export function formatUser(user: UserProps): string {\n"
    "  return user.name;\n"
    "}\n"
    "\n"
    "export const fetchUser = async (id: UserId) => {\n"
    "  return null;\n"
    "};\n"
)

BUTTON_TSX = (
    'import React from "react";\n'
    "\n"
    "export const Button = (props: ButtonProps) => {\n"
    "  return <button>{props.label}</button>;\n"
    "};\n"
    "\n"
    "export function Card<T>(props: T) {\n"
    "  return null;\n"
    "}\n"
)

SERVER_GO = (
    "package pkg\n"
    "\n"
    "type Server struct {\n"
    "\taddr string\n"
    "}\n"
    "\n"
    "func NewServer(addr string) *Server {\n"
    "\treturn &Server{addr: addr}\n"
    "}\n"
    "\n"
    "func (s *Server) Start() error {\n"
    "\treturn nil\n"
    "}\n"
)

SERVICE_PY = (
    "class UserService:\n"
    "    def get_user(self, user_id):\n"
    "        return user_id\n"
    "\n"
    "\n"
    "async def load_users():\n"
    "    return []\n"
)

TWO_CLASSES_TS = (
    "export class TestClass {\n"
    "  public testMethod() {\n"
    "    return 1;\n"
    "  }\n"
    "}\n"
    "\n"
    "class PrivateClass {\n"
    "  render() {\n"
    "    return null;\n"
    "  }\n"
    "}\n"
)

# Every symbol the default catalog finds in ``source_tree``.
EXPECTED_SYMBOLS = {
    ("src/user.ts", 3, "UserSchema", "schema"),
    ("src/user.ts", 5, "UserProps", "interface"),
    ("src/user.ts", 9, "UserId", "type"),
    ("src/user.ts", 11, "formatUser", "function"),
    ("src/user.ts", 15, "fetchUser", "function"),
    ("src/Button.tsx", 3, "Button", "component"),
    ("src/Button.tsx", 7, "Card", "component"),
    ("pkg/server.go", 3, "Server", "type"),
    ("pkg/server.go", 7, "NewServer", "function"),
    ("pkg/server.go", 11, "Start", "function"),
    ("app/service.py", 1, "UserService", "class"),
    ("app/service.py", 2, "get_user", "function"),
    ("app/service.py", 6, "load_users", "function"),
}


def _write(root: Path, rel: str, content: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """A small multi-language project (TS, TSX, Go, Python)."""
    root = tmp_path / "project"
    _write(root, "src/user.ts", USER_TS)
    _write(root, "src/Button.tsx", BUTTON_TSX)
    _write(root, "pkg/server.go", SERVER_GO)
    _write(root, "app/service.py", SERVICE_PY)
    _write(root, "README.md", "class NotCode {}\n")
    return root.resolve()


@pytest.fixture
def two_class_tree(tmp_path: Path) -> Path:
    """Single TS file with one exported and one private class."""
    root = tmp_path / "classes"
    _write(root, "testClass.ts", TWO_CLASSES_TS)
    return root.resolve()


# =============================================================================
# Fixtures — collaborators
# =============================================================================

@pytest.fixture
def fake_rg() -> FakeRipgrep:
    return FakeRipgrep()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def config(tmp_path: Path) -> SymJumpConfig:
    """Config with state under tmp_path so nothing touches ~/.symjump."""
    return SymJumpConfig(state_dir=str(tmp_path / "state"), max_workers=2)


@pytest.fixture
def tracker(store, config, clock) -> RecencyTracker:
    return RecencyTracker(store, config, clock=clock)
