"""
Source/test sibling lookup.

``user.ts`` pairs with ``user.test.ts``, ``user-spec.ts``, ``user_test.ts``
and the other separator/suffix combinations; a test file pairs back with
its source.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

SEPARATORS = ("-", ".", "_")
SUFFIXES = ("test", "spec")

_TEST_STEM_RE = re.compile(r"[-._](?:test|spec)$")


def sibling_candidates(file_path: str | Path) -> List[Path]:
    """Paths that would be *file_path*'s sibling, in lookup order."""
    path = Path(file_path)
    stem, ext = path.stem, path.suffix
    if _TEST_STEM_RE.search(stem):
        return [path.with_name(_TEST_STEM_RE.sub("", stem) + ext)]
    return [
        path.with_name(f"{stem}{sep}{suffix}{ext}")
        for sep in SEPARATORS
        for suffix in SUFFIXES
    ]


def find_sibling(file_path: str | Path) -> Optional[Path]:
    """The first existing sibling of *file_path*, or ``None``."""
    for candidate in sibling_candidates(file_path):
        if candidate.is_file():
            return candidate
    logger.debug(f"No sibling file for {file_path}")
    return None
