"""File discovery by include/exclude globs, and file reading."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence, Set

from .config import glob_to_regex

logger = logging.getLogger(__name__)

SKIP_DIRS: Set[str] = {
    "node_modules", ".git", ".next", ".turbo", ".vercel", ".cache",
    "dist", "build", "out", "coverage", ".venv", "venv", "__pycache__",
}


class FileDiscovery:
    """Lists project-relative POSIX paths matching the include globs."""

    def __init__(self, include: Sequence[str], exclude: Optional[Sequence[str]] = None) -> None:
        self.include = [glob_to_regex(p) for p in include]
        self.exclude = [glob_to_regex(p) for p in (exclude or [])]

    def matches(self, rel_path: str) -> bool:
        if any(regex.match(rel_path) for regex in self.exclude):
            return False
        return any(regex.match(rel_path) for regex in self.include)

    def discover(self, root_dir: Path) -> List[str]:
        root_dir = Path(root_dir)
        found: List[str] = []
        for dirpath, dirnames, filenames in os.walk(root_dir):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
            for filename in filenames:
                rel = Path(dirpath, filename).relative_to(root_dir).as_posix()
                if self.matches(rel):
                    found.append(rel)
        found.sort()
        logger.debug("Discovered %d files under %s", len(found), root_dir)
        return found


def read_text(root_dir: Path, rel_path: str) -> str:
    """Read a project file as UTF-8; decoding errors propagate to the caller."""
    return (Path(root_dir) / rel_path).read_text(encoding="utf-8")
