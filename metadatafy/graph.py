"""Dependency graph between indexed files, built from resolved imports."""

from __future__ import annotations

import logging
import posixpath
from typing import Dict, Iterable, List, Optional

from .models import FileAnalysis, GraphEntry

logger = logging.getLogger(__name__)

RESOLVE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")


class DependencyGraph:
    """Resolves import specifiers against a fixed set of project paths.

    Every path is registered up front, so resolution is a dictionary lookup
    rather than a filesystem probe.
    """

    def __init__(self, paths: Iterable[str], aliases: Optional[Dict[str, List[str]]] = None) -> None:
        self._paths: Dict[str, str] = {}
        for path in paths:
            self._paths[_clean(path)] = path
        # Longest alias prefix first.
        self.aliases = sorted((aliases or {}).items(), key=lambda item: len(item[0]), reverse=True)

    def __contains__(self, path: str) -> bool:
        return _clean(path) in self._paths

    def _lookup(self, base: str) -> Optional[str]:
        base = _clean(base)
        if base in self._paths:
            return self._paths[base]
        for ext in RESOLVE_EXTENSIONS:
            hit = self._paths.get(base + ext)
            if hit is not None:
                return hit
        for ext in RESOLVE_EXTENSIONS:
            hit = self._paths.get(posixpath.join(base, "index" + ext))
            if hit is not None:
                return hit
        return None

    def resolve(self, importer: str, specifier: str) -> Optional[str]:
        """Project path an import points at, or None for external modules."""
        if specifier.startswith("./") or specifier.startswith("../") or specifier in (".", ".."):
            directory = posixpath.dirname(_clean(importer))
            return self._lookup(posixpath.join(directory, specifier))

        for prefix, targets in self.aliases:
            if not specifier.startswith(prefix):
                continue
            rest = specifier[len(prefix):]
            for target in targets:
                hit = self._lookup(posixpath.join(target, rest) if target else rest)
                if hit is not None:
                    return hit
        return None

    def build(self, analyses: List[FileAnalysis]) -> Dict[str, GraphEntry]:
        """Fill ``resolved_path`` on every import and return calls/calledBy per path.

        Both edge lists are deduplicated; self-imports and unresolved
        specifiers are dropped.
        """
        entries: Dict[str, GraphEntry] = {a.path: GraphEntry() for a in analyses}

        for analysis in analyses:
            for edge in analysis.imports:
                target = self.resolve(analysis.path, edge.source_specifier)
                if target is None or target not in entries:
                    continue
                edge.resolved_path = target
                if target == analysis.path:
                    continue
                caller = entries[analysis.path]
                if target not in caller.calls:
                    caller.calls.append(target)
                callee = entries[target]
                if analysis.path not in callee.called_by:
                    callee.called_by.append(analysis.path)

        edge_count = sum(len(e.calls) for e in entries.values())
        logger.debug("Resolved %d edges between %d files", edge_count, len(entries))
        return entries


def _clean(path: str) -> str:
    path = posixpath.normpath(path.replace("\\", "/"))
    return "" if path == "." else path
