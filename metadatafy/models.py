"""Core data models shared by the parser, classifier, graph and assembler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

Role = Literal["route", "component", "hook", "service", "api", "table", "utility"]

ROLES: tuple = ("route", "component", "hook", "service", "api", "table", "utility")

Language = Literal["script", "markup", "sql"]

ExportKind = Literal["function", "class", "variable", "type", "interface"]

# Bound name used for the default import / an anonymous default export.
DEFAULT_BINDING = "default"


@dataclass
class SourceUnit:
    """One discovered file after parsing; ``tree`` is opaque to consumers."""
    path: str
    text: str
    language: str
    extension: str
    tree: Any = None


@dataclass
class ImportEdge:
    source_specifier: str
    imported_names: List[str] = field(default_factory=list)
    is_default_import: bool = False
    is_type_only: bool = False
    resolved_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "source": self.source_specifier,
            "specifiers": list(self.imported_names),
            "isDefault": self.is_default_import,
            "isTypeOnly": self.is_type_only,
        }
        if self.resolved_path is not None:
            payload["resolvedPath"] = self.resolved_path
        return payload


@dataclass
class ExportDecl:
    name: str
    kind: str = "variable"
    is_default: bool = False
    is_type_only: bool = False


@dataclass
class PropertyDecl:
    name: str
    type_text: str = "unknown"
    required: bool = True
    default_value_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "type": self.type_text,
            "required": self.required,
        }
        if self.default_value_text is not None:
            payload["defaultValue"] = self.default_value_text
        return payload


@dataclass
class TableColumn:
    name: str
    type: str
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    references_table: Optional[str] = None
    references_column: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "nullable": self.nullable,
            "isPrimaryKey": self.is_primary_key,
            "isForeignKey": self.is_foreign_key,
        }
        if self.references_table:
            payload["references"] = {
                "table": self.references_table,
                "column": self.references_column or "id",
            }
        return payload


@dataclass
class TableDefinition:
    name: str
    columns: List[TableColumn] = field(default_factory=list)


@dataclass
class Classification:
    """Role decision; ``confidence`` is 1.0 for every path/name tier."""
    role: str
    confidence: float = 1.0
    reasons: List[str] = field(default_factory=list)
    tier: str = ""


@dataclass
class GraphEntry:
    calls: List[str] = field(default_factory=list)
    called_by: List[str] = field(default_factory=list)


@dataclass
class FileAnalysis:
    """Per-file result of parse + extract + classify, before graph assembly."""
    path: str
    role: str
    name: str
    classification: Classification
    imports: List[ImportEdge] = field(default_factory=list)
    exports: List[ExportDecl] = field(default_factory=list)
    props: Optional[List[PropertyDecl]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class IndexRecord:
    id: str
    project_id: str
    role: str
    name: str
    path: str
    keywords: List[str] = field(default_factory=list)
    search_text: str = ""
    calls: List[str] = field(default_factory=list)
    called_by: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "type": self.role,
            "name": self.name,
            "path": self.path,
            "keywords": list(self.keywords),
            "searchText": self.search_text,
            "calls": list(self.calls),
            "calledBy": list(self.called_by),
            "metadata": self.metadata,
        }


@dataclass
class AnalysisStats:
    total_files: int = 0
    by_role: Dict[str, int] = field(default_factory=lambda: {role: 0 for role in ROLES})
    parse_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "byType": dict(self.by_role),
            "parseErrors": list(self.parse_errors),
        }


@dataclass
class AnalysisReport:
    project_id: str
    items: List[IndexRecord] = field(default_factory=list)
    stats: AnalysisStats = field(default_factory=AnalysisStats)
    generated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projectId": self.project_id,
            "items": [item.to_dict() for item in self.items],
            "stats": self.stats.to_dict(),
            "timestamp": self.generated_at,
        }

    def record(self, path: str) -> Optional[IndexRecord]:
        for item in self.items:
            if item.path == path:
                return item
        return None
