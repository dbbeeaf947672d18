"""Tiered file classification.

Tiers run in a fixed order and the first match wins:

1. SQL migration directories (``table``; other SQL files are excluded)
2. framework convention filenames (``page.tsx``, ``route.ts`` ...)
3. reserved path segments (``api``)
4. nearest enclosing folder name (``components``, ``hooks`` ...)
5. user glob map, longest pattern first
6. legacy ``pages`` directory fallback (``route``)
7. filename naming conventions (``useX.ts``, ``*.service.ts`` ...)
8. heuristic pattern detection over the syntax tree

Steps 4 and 5 can be swapped with ``globs_before_folders``.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import Callable, List, Optional, Tuple

from .config import IndexerConfig, glob_to_regex
from .detector import detect
from .keywords import split_identifier
from .models import Classification, SourceUnit
from .parser import SCRIPT_EXTENSIONS, SQL_EXTENSIONS

logger = logging.getLogger(__name__)

# (regex over the file name, role, description)
NAME_PATTERN_RULES: List[Tuple[re.Pattern, str, str]] = [
    (re.compile(r"^use[A-Z][a-zA-Z0-9]*\.(ts|tsx|js|jsx)$"), "hook", "hook file (use*.ts)"),
    (re.compile(r"\.(service|Service)\.(ts|js)$"), "service", "service file (*.service.ts)"),
    (re.compile(r"[A-Z][a-zA-Z0-9]*Service\.(ts|js)$"), "service", "service class file (*Service.ts)"),
    (re.compile(r"\.(action|actions|api)\.(ts|js)$"), "api", "api/action file (*.action.ts, *.api.ts)"),
    (re.compile(r"\.(util|utils|helper|helpers)\.(ts|js)$"), "utility", "utility file (*.util.ts, *.helper.ts)"),
    (re.compile(r"\.component\.(tsx|jsx)$"), "component", "component file (*.component.tsx)"),
]

_LAST_WORD_ROLES = {
    "service": "service",
    "util": "utility",
    "utils": "utility",
    "helper": "utility",
    "helpers": "utility",
    "action": "api",
    "actions": "api",
    "api": "api",
    "component": "component",
}


def role_from_file_name(file_name: str) -> Optional[Tuple[str, str]]:
    """Role implied by naming conventions alone, with a description."""
    for pattern, role, description in NAME_PATTERN_RULES:
        if pattern.search(file_name):
            return role, description

    words = split_identifier(PurePosixPath(file_name).stem)
    if not words:
        return None
    if words[0] == "use" and len(words) > 1:
        return "hook", "name starts with 'use'"
    role = _LAST_WORD_ROLES.get(words[-1])
    if role:
        return role, f"name ends with '{words[-1]}'"
    return None


class FileClassifier:
    """Assigns a role to a file from its path and, failing that, its syntax."""

    def __init__(self, config: IndexerConfig) -> None:
        self.config = config
        # Longest pattern first so specific globs beat catch-alls.
        self._globs = [
            (pattern, glob_to_regex(pattern), role)
            for pattern, role in sorted(
                config.file_type_mapping.items(), key=lambda item: len(item[0]), reverse=True,
            )
        ]
        self._segment_roles = {k.strip("/").lower(): v for k, v in config.path_segment_roles.items()}
        self._folder_roles = {k.lower(): v for k, v in config.folder_roles.items()}
        self._migration_patterns = [p.strip("/") for p in config.migration_patterns]

    # ------------------------------------------------------------------
    # Path / name tiers
    # ------------------------------------------------------------------

    def is_excluded_sql(self, path: str) -> bool:
        """SQL files outside migration directories are never indexed."""
        return self._is_sql(path) and self._migration_tier(_normalize(path)) is None

    def classify_path(self, path: str) -> Optional[Classification]:
        """Tiers 1-7; None means the syntax tree has to decide."""
        normalized = _normalize(path)
        if self._is_sql(normalized):
            return self._migration_tier(normalized)

        folder_then_glob: List[Callable[[str], Optional[Classification]]] = [
            self._folder_tier, self._glob_tier,
        ]
        if self.config.globs_before_folders:
            folder_then_glob.reverse()

        tiers = [self._file_name_tier, self._segment_tier, *folder_then_glob, self._pages_tier]
        if self.config.use_name_conventions:
            tiers.append(self._name_convention_tier)

        for tier in tiers:
            result = tier(normalized)
            if result is not None:
                return result
        return None

    def _is_sql(self, path: str) -> bool:
        return PurePosixPath(path).suffix.lower() in SQL_EXTENSIONS

    def _migration_tier(self, path: str) -> Optional[Classification]:
        parent = str(PurePosixPath(path).parent)
        directory = "/" + ("" if parent == "." else parent) + "/"
        for pattern in self._migration_patterns:
            if f"/{pattern}/" in directory:
                return Classification("table", 1.0, [f"under migrations directory '{pattern}'"], "migration")
        return None

    def _file_name_tier(self, path: str) -> Optional[Classification]:
        file_name = PurePosixPath(path).name
        role = self.config.file_name_roles.get(file_name)
        if role:
            return Classification(role, 1.0, [f"convention filename '{file_name}'"], "filename")
        return None

    def _segment_tier(self, path: str) -> Optional[Classification]:
        for segment in PurePosixPath(path).parent.parts:
            role = self._segment_roles.get(segment.lower())
            if role:
                return Classification(role, 1.0, [f"path contains '{segment}/'"], "path_segment")
        return None

    def _folder_tier(self, path: str) -> Optional[Classification]:
        for segment in reversed(PurePosixPath(path).parent.parts):
            role = self._folder_roles.get(segment.lower())
            if role:
                return Classification(role, 1.0, [f"inside '{segment}' folder"], "folder")
        return None

    def _glob_tier(self, path: str) -> Optional[Classification]:
        for pattern, regex, role in self._globs:
            if regex.match(path):
                return Classification(role, 1.0, [f"matches glob '{pattern}'"], "glob")
        return None

    def _pages_tier(self, path: str) -> Optional[Classification]:
        pure = PurePosixPath(path)
        if "pages" in pure.parent.parts and pure.suffix.lower() in SCRIPT_EXTENSIONS:
            return Classification("route", 1.0, ["inside legacy 'pages' directory"], "pages")
        return None

    def _name_convention_tier(self, path: str) -> Optional[Classification]:
        found = role_from_file_name(PurePosixPath(path).name)
        if found:
            role, description = found
            return Classification(role, 1.0, [description], "name_convention")
        return None

    # ------------------------------------------------------------------
    # Full classification
    # ------------------------------------------------------------------

    def classify(self, unit: SourceUnit) -> Optional[Classification]:
        """Classify a parsed unit; None means the file is left out of the index."""
        result = self.classify_path(unit.path)
        if result is not None or unit.language == "sql":
            return result

        detection = detect(unit.tree, self.config.thresholds)
        if detection is None:
            logger.debug("No role for %s", unit.path)
            return None
        if detection.confidence < self.config.thresholds.accept:
            logger.debug(
                "Dropping %s: %s confidence %.2f below %.2f",
                unit.path, detection.role, detection.confidence, self.config.thresholds.accept,
            )
            return None

        logger.debug(
            "Detected %s as %s (%.0f%%): %s",
            unit.path, detection.role, detection.confidence * 100, "; ".join(detection.reasons),
        )
        return Classification(detection.role, detection.confidence, list(detection.reasons), "heuristic")


def _normalize(path: str) -> str:
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path
