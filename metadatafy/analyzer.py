"""Project analysis: parse, classify and link every file into an index report.

Per-file work (read, parse, extract, classify) fans out over a thread pool.
Once every file has finished, successfully or not, the dependency graph is
built over the survivors, keywords are computed and the records are assembled
by a single collector.
"""

from __future__ import annotations

import hashlib
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from functools import partial
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Optional, Sequence

from .classifier import FileClassifier
from .config import IndexerConfig
from .detector import HTTP_METHODS
from .discovery import FileDiscovery, read_text
from .errors import ParseError
from .extractors import extract_exports, extract_imports, extract_props
from .graph import DependencyGraph
from .keywords import KeywordNormalizer, build_search_text
from .models import (
    DEFAULT_BINDING,
    AnalysisReport,
    AnalysisStats,
    ExportDecl,
    FileAnalysis,
    GraphEntry,
    IndexRecord,
    TableDefinition,
)
from .parser import detect_language, parse_source

logger = logging.getLogger(__name__)

Reader = Callable[[str], str]

# Stems that are named after their directory instead of themselves.
CONVENTION_STEMS = ("index", "page", "layout", "route")


def generate_id(project_id: str, path: str) -> str:
    return hashlib.sha256(f"{project_id}:{path}".encode("utf-8")).hexdigest()[:16]


def display_name(path: str, exports: Sequence[ExportDecl], tables: Sequence[TableDefinition] = ()) -> str:
    """Named default export, else the file stem (parent folder for index/page/layout/route)."""
    if tables:
        return tables[0].name
    for export in exports:
        if export.is_default and export.name != DEFAULT_BINDING:
            return export.name

    pure = PurePosixPath(path)
    stem = pure.stem
    if stem in CONVENTION_STEMS:
        parent = pure.parent.name
        return parent or stem
    return stem


def route_path(path: str) -> Optional[str]:
    """URL path served by a Next.js app/pages router file, or None."""
    parts = list(PurePosixPath(path).parts)
    for root in ("app", "pages"):
        if root not in parts:
            continue
        segments = parts[parts.index(root) + 1:]
        if root == "app":
            segments = segments[:-1]
        else:
            last = PurePosixPath(segments[-1]).stem if segments else "index"
            segments = segments[:-1] + ([] if last == "index" else [last])
        kept = [
            s for s in segments
            if not (s.startswith("(") and s.endswith(")")) and not s.startswith("@")
        ]
        return "/" + "/".join(kept)
    return None


def _role_metadata(analysis: FileAnalysis, exports: Sequence[ExportDecl], tables: Sequence[TableDefinition]) -> Dict[str, Any]:
    role = analysis.role
    metadata: Dict[str, Any] = {}
    if role in ("route", "api"):
        url = route_path(analysis.path)
        if url is not None:
            metadata["routePath"] = url
    if role == "api":
        names = {e.name for e in exports}
        metadata["httpMethods"] = [m for m in HTTP_METHODS if m in names]
    if role == "table" and tables:
        metadata["tableName"] = tables[0].name
        metadata["columns"] = [c.to_dict() for c in tables[0].columns]
        if len(tables) > 1:
            metadata["tables"] = [t.name for t in tables]
    return metadata


class ProjectAnalyzer:
    """Runs the indexing pipeline over one project root."""

    def __init__(self, config: IndexerConfig, config_source: Optional[str] = None) -> None:
        self.config = config
        self.config_source = config_source
        self.classifier = FileClassifier(config)
        self.normalizer = KeywordNormalizer(config.keyword_synonyms)

    # ------------------------------------------------------------------
    # Per-file stage
    # ------------------------------------------------------------------

    def analyze_file(self, path: str, reader: Reader) -> Optional[FileAnalysis]:
        """Parse, extract and classify one file; None when it is not indexed.

        Raises:
            ParseError: The file could not be read or parsed.
        """
        if detect_language(path) is None:
            logger.debug("Skipping unsupported file %s", path)
            return None
        if self.classifier.is_excluded_sql(path):
            logger.debug("Skipping SQL outside migrations: %s", path)
            return None

        try:
            text = reader(path)
        except UnicodeDecodeError as exc:
            raise ParseError(path, f"not valid UTF-8: {exc.reason}") from exc
        except OSError as exc:
            raise ParseError(path, f"cannot read file: {exc.strerror or exc}") from exc

        unit = parse_source(path, text, strict=self.config.strict_syntax)
        classification = self.classifier.classify(unit)
        if classification is None:
            return None

        tables: List[TableDefinition] = []
        analysis = FileAnalysis(
            path=path, role=classification.role, name="", classification=classification,
        )
        if unit.language == "sql":
            tables = unit.tree
        else:
            analysis.imports = extract_imports(unit.tree)
            analysis.exports = extract_exports(unit.tree)
            if classification.role == "component":
                analysis.props = extract_props(unit.tree, analysis.exports)

        analysis.name = display_name(path, analysis.exports, tables)
        analysis.metadata = _role_metadata(analysis, analysis.exports, tables)
        return analysis

    # ------------------------------------------------------------------
    # Whole project
    # ------------------------------------------------------------------

    def analyze(
        self,
        root_dir: Path | str,
        files: Optional[Sequence[str]] = None,
        reader: Optional[Reader] = None,
    ) -> AnalysisReport:
        """Index ``files`` (or everything the include globs find) under ``root_dir``.

        Raises:
            ConfigurationError: Before any file is touched, if the config is invalid.
        """
        self.config.check(self.config_source)

        root = Path(root_dir)
        if files is None:
            files = FileDiscovery(self.config.include, self.config.exclude).discover(root)
        paths: List[str] = []
        outside: Dict[str, str] = {}
        for f in files:
            rel = _relative(root, f)
            if rel is None:
                logger.warning("Skipping %s: outside project root %s", f, root)
                outside[str(f)] = f"{f}: outside project root {root}"
            else:
                paths.append(rel)
        paths = _unique(paths)
        analyses, errors = self._run_workers(paths, reader or partial(read_text, root))
        errors.update(outside)

        # Barrier passed: every unit is known, edges can be resolved.
        analyses.sort(key=lambda a: a.path)
        graph = DependencyGraph((a.path for a in analyses), self.config.path_aliases)
        entries = graph.build(analyses)

        items = [self._record(a, entries.get(a.path, GraphEntry())) for a in analyses]
        stats = AnalysisStats(total_files=len(items))
        stats.parse_errors = [errors[p] for p in sorted(errors)]
        for item in items:
            stats.by_role[item.role] += 1

        logger.info(
            "Indexed %d of %d files for %s (%d parse errors)",
            len(items), len(paths), self.config.project_id, len(errors),
        )
        return AnalysisReport(
            project_id=self.config.project_id,
            items=items,
            stats=stats,
            generated_at=datetime.now(timezone.utc).isoformat(),
        )

    def _run_workers(self, paths: List[str], reader: Reader) -> tuple:
        analyses: List[FileAnalysis] = []
        errors: Dict[str, str] = {}

        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            futures = {executor.submit(self.analyze_file, path, reader): path for path in paths}
            for future in as_completed(futures):
                path = futures[future]
                try:
                    analysis = future.result()
                except ParseError as exc:
                    logger.warning("Failed to parse %s", exc)
                    errors[path] = str(exc)
                    continue
                except Exception as exc:
                    logger.warning("Failed to analyze %s: %s", path, exc)
                    errors[path] = f"{path}: {exc}"
                    continue
                if analysis is not None:
                    analyses.append(analysis)

        return analyses, errors

    def _record(self, analysis: FileAnalysis, entry: GraphEntry) -> IndexRecord:
        export_names = [e.name for e in analysis.exports]
        prop_names = [p.name for p in analysis.props] if analysis.props is not None else []
        keywords = self.normalizer.extract(analysis.name, analysis.path, export_names, prop_names)

        metadata: Dict[str, Any] = {
            "exports": export_names,
            "props": prop_names,
            "imports": [edge.to_dict() for edge in analysis.imports],
        }
        if analysis.props is not None:
            metadata["propDetails"] = [p.to_dict() for p in analysis.props]
        if analysis.classification.tier == "heuristic":
            metadata["detection"] = {
                "confidence": analysis.classification.confidence,
                "reasons": list(analysis.classification.reasons),
            }
        metadata.update(analysis.metadata)

        return IndexRecord(
            id=generate_id(self.config.project_id, analysis.path),
            project_id=self.config.project_id,
            role=analysis.role,
            name=analysis.name,
            path=analysis.path,
            keywords=keywords,
            search_text=build_search_text(analysis.name, analysis.path, keywords, export_names, prop_names),
            calls=list(entry.calls),
            called_by=list(entry.called_by),
            metadata=metadata,
        )


def _relative(root: Path, path: str) -> Optional[str]:
    """Project-relative POSIX path; None for an absolute path outside ``root``."""
    candidate = Path(path)
    if candidate.is_absolute():
        for base in (root, root.resolve()):
            try:
                return candidate.relative_to(base).as_posix()
            except ValueError:
                continue
        return None
    return PurePosixPath(str(path).replace("\\", "/")).as_posix()


def _unique(paths: List[str]) -> List[str]:
    seen = set()
    out = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            out.append(path)
    return out
