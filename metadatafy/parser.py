"""Source parsing for script/markup files (Tree-sitter) and SQL migrations.

Script files go through the Tree-sitter TypeScript/TSX/JavaScript grammars,
which give a concrete syntax tree the extractors and the heuristic detector
can walk (declarations, calls, JSX elements). SQL files get a lightweight
statement-level parser that only understands ``CREATE TABLE`` and
``ALTER TABLE ... ADD COLUMN``.
"""

from __future__ import annotations

import importlib
import logging
import re
import threading
from pathlib import PurePosixPath
from typing import Any, Dict, Iterator, List, Optional, Tuple

from tree_sitter import Language, Parser as TSParser

from .errors import ParseError
from .models import SourceUnit, TableColumn, TableDefinition

logger = logging.getLogger(__name__)

SCRIPT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
MARKUP_EXTENSIONS = (".tsx", ".jsx")
SQL_EXTENSIONS = (".sql",)

# ---------------------------------------------------------------------------
# Extension -> grammar (module, factory function)
# ---------------------------------------------------------------------------
_GRAMMARS: Dict[str, Tuple[str, str]] = {
    ".ts": ("tree_sitter_typescript", "language_typescript"),
    ".mts": ("tree_sitter_typescript", "language_typescript"),
    ".cts": ("tree_sitter_typescript", "language_typescript"),
    ".tsx": ("tree_sitter_typescript", "language_tsx"),
    ".js": ("tree_sitter_javascript", "language"),
    ".jsx": ("tree_sitter_javascript", "language"),
    ".mjs": ("tree_sitter_javascript", "language"),
    ".cjs": ("tree_sitter_javascript", "language"),
}

_languages: Dict[Tuple[str, str], Language] = {}
_languages_lock = threading.Lock()
_local = threading.local()


def _language_for(extension: str) -> Language:
    key = _GRAMMARS[extension]
    with _languages_lock:
        lang = _languages.get(key)
        if lang is None:
            module = importlib.import_module(key[0])
            lang = Language(getattr(module, key[1])())
            _languages[key] = lang
            logger.debug("Loaded tree-sitter grammar %s.%s", *key)
    return lang


def _parser_for(extension: str) -> TSParser:
    # Tree-sitter parsers are not thread-safe; keep one per thread and grammar.
    cache: Dict[Tuple[str, str], TSParser] = getattr(_local, "parsers", None)
    if cache is None:
        cache = {}
        _local.parsers = cache
    key = _GRAMMARS[extension]
    parser = cache.get(key)
    if parser is None:
        parser = TSParser(_language_for(extension))
        cache[key] = parser
    return parser


def detect_language(path: str) -> Optional[str]:
    """Return ``script``, ``markup``, ``sql`` or None for unsupported files."""
    ext = PurePosixPath(path).suffix.lower()
    if ext in SQL_EXTENSIONS:
        return "sql"
    if ext in MARKUP_EXTENSIONS:
        return "markup"
    if ext in SCRIPT_EXTENSIONS or ext in _GRAMMARS:
        return "script"
    return None


# ===================================================================
# Script syntax tree
# ===================================================================

class ScriptTree:
    """Thin wrapper over a Tree-sitter tree with text and traversal helpers."""

    def __init__(self, tree: Any, source: bytes, path: str) -> None:
        self.tree = tree
        self.source = source
        self.path = path

    @property
    def root(self) -> Any:
        return self.tree.root_node

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lower()

    def text(self, node: Any) -> str:
        if node is None:
            return ""
        return self.source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def walk(self, node: Any = None) -> Iterator[Any]:
        """Pre-order traversal over named and anonymous nodes."""
        stack = [node if node is not None else self.root]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def top_level(self) -> List[Any]:
        return list(self.root.named_children)

    def string_value(self, node: Any) -> str:
        """Unquote a string literal node."""
        raw = self.text(node)
        if len(raw) >= 2 and raw[0] in "'\"`" and raw[-1] == raw[0]:
            return raw[1:-1]
        return raw


def has_token(node: Any, token: str) -> bool:
    """True if ``node`` has a direct anonymous child token such as ``async``."""
    return any(child.type == token for child in node.children)


def _first_error(root: Any) -> Optional[Any]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_error or node.is_missing:
            return node
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


def parse_script(text: str, path: str, strict: bool = True) -> ScriptTree:
    """Parse a script/markup file; raise :class:`ParseError` on broken syntax."""
    ext = PurePosixPath(path).suffix.lower()
    if ext not in _GRAMMARS:
        raise ParseError(path, f"unsupported script extension '{ext}'")

    source = text.encode("utf-8")
    try:
        tree = _parser_for(ext).parse(source)
    except ValueError as exc:
        raise ParseError(path, f"parser failure: {exc}") from exc

    if strict and tree.root_node.has_error:
        bad = _first_error(tree.root_node)
        line = bad.start_point[0] + 1 if bad is not None else None
        kind = "missing token" if bad is not None and bad.is_missing else "syntax error"
        raise ParseError(path, kind, line=line)

    return ScriptTree(tree, source, path)


# ===================================================================
# SQL
# ===================================================================

_SQL_LINE_COMMENT = re.compile(r"--[^\n]*")
_SQL_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_CREATE_TABLE = re.compile(
    r"\bCREATE\s+(?:(?:GLOBAL|LOCAL)\s+)?(?:TEMP(?:ORARY)?\s+|UNLOGGED\s+)?TABLE\s+"
    r"(?:IF\s+NOT\s+EXISTS\s+)?([\w.\"`\[\]]+)\s*\(",
    re.IGNORECASE,
)
_ALTER_ADD_COLUMN = re.compile(
    r"\bALTER\s+TABLE\s+(?:IF\s+EXISTS\s+)?(?:ONLY\s+)?([\w.\"`\[\]]+)\s+"
    r"ADD\s+(?:COLUMN\s+)?(?:IF\s+NOT\s+EXISTS\s+)?(.+?);",
    re.IGNORECASE | re.DOTALL,
)
_REFERENCES = re.compile(r"\bREFERENCES\s+([\w.\"`\[\]]+)\s*(?:\(\s*([\w\"`\[\]]+)\s*\))?", re.IGNORECASE)
_TABLE_CONSTRAINT_START = ("CONSTRAINT", "PRIMARY", "FOREIGN", "UNIQUE", "CHECK", "EXCLUDE", "LIKE", "INDEX", "KEY")
_COLUMN_CONSTRAINT_WORDS = {
    "NOT", "NULL", "PRIMARY", "REFERENCES", "DEFAULT", "UNIQUE", "CHECK",
    "CONSTRAINT", "GENERATED", "COLLATE", "AUTO_INCREMENT", "AUTOINCREMENT", "IDENTITY",
}


def _unquote_ident(name: str) -> str:
    name = name.strip().strip('"`[]')
    return name.split(".")[-1].strip('"`[]')


def _split_top_level(body: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in body:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def _column_names(group: str) -> List[str]:
    return [_unquote_ident(c) for c in group.split(",") if c.strip()]


def _parse_column(definition: str) -> Optional[TableColumn]:
    tokens = definition.split()
    if len(tokens) < 2:
        return None
    name = _unquote_ident(tokens[0])
    type_tokens: List[str] = []
    for tok in tokens[1:]:
        if tok.upper() in _COLUMN_CONSTRAINT_WORDS:
            break
        type_tokens.append(tok)
    upper = " ".join(tokens).upper()
    is_pk = "PRIMARY KEY" in upper
    ref = _REFERENCES.search(definition)
    return TableColumn(
        name=name,
        type=" ".join(type_tokens) or "unknown",
        nullable=not ("NOT NULL" in upper or is_pk),
        is_primary_key=is_pk,
        is_foreign_key=ref is not None,
        references_table=_unquote_ident(ref.group(1)) if ref else None,
        references_column=_unquote_ident(ref.group(2)) if ref and ref.group(2) else ("id" if ref else None),
    )


def _apply_table_constraint(definition: str, columns: List[TableColumn]) -> None:
    upper = definition.upper()
    by_name = {c.name: c for c in columns}
    pk = re.search(r"PRIMARY\s+KEY\s*\(([^)]*)\)", definition, re.IGNORECASE)
    if pk:
        for col in _column_names(pk.group(1)):
            if col in by_name:
                by_name[col].is_primary_key = True
                by_name[col].nullable = False
    if "FOREIGN" in upper:
        fk = re.search(r"FOREIGN\s+KEY\s*\(([^)]*)\)", definition, re.IGNORECASE)
        ref = _REFERENCES.search(definition)
        if fk and ref:
            for col in _column_names(fk.group(1)):
                if col in by_name:
                    by_name[col].is_foreign_key = True
                    by_name[col].references_table = _unquote_ident(ref.group(1))
                    by_name[col].references_column = _unquote_ident(ref.group(2)) if ref.group(2) else "id"


def _balanced_body(sql: str, open_index: int, path: str) -> Tuple[str, int]:
    depth = 0
    for i in range(open_index, len(sql)):
        if sql[i] == "(":
            depth += 1
        elif sql[i] == ")":
            depth -= 1
            if depth == 0:
                return sql[open_index + 1:i], i
    line = sql.count("\n", 0, open_index) + 1
    raise ParseError(path, "unbalanced parentheses in CREATE TABLE", line=line)


def parse_sql(text: str, path: str) -> List[TableDefinition]:
    """Extract table definitions from a migration file."""
    sql = _SQL_BLOCK_COMMENT.sub(" ", text)
    sql = _SQL_LINE_COMMENT.sub("", sql)

    tables: Dict[str, TableDefinition] = {}
    for match in _CREATE_TABLE.finditer(sql):
        name = _unquote_ident(match.group(1))
        body, _ = _balanced_body(sql, match.end() - 1, path)
        columns: List[TableColumn] = []
        constraints: List[str] = []
        for item in _split_top_level(body):
            first = item.split()[0].upper()
            if first in _TABLE_CONSTRAINT_START:
                constraints.append(item)
                continue
            column = _parse_column(item)
            if column is not None:
                columns.append(column)
        for constraint in constraints:
            _apply_table_constraint(constraint, columns)
        tables[name] = TableDefinition(name=name, columns=columns)

    for match in _ALTER_ADD_COLUMN.finditer(sql):
        name = _unquote_ident(match.group(1))
        column = _parse_column(match.group(2).strip())
        if column is None:
            continue
        table = tables.setdefault(name, TableDefinition(name=name))
        table.columns.append(column)

    return list(tables.values())


# ===================================================================
# Entry point
# ===================================================================

def parse_source(path: str, text: str, strict: bool = True) -> SourceUnit:
    """Parse one file into a :class:`SourceUnit`.

    Raises:
        ParseError: Unsupported file type or malformed source.
    """
    language = detect_language(path)
    if language is None:
        raise ParseError(path, "unsupported file type")

    ext = PurePosixPath(path).suffix.lower()
    if language == "sql":
        tree: Any = parse_sql(text, path)
    else:
        tree = parse_script(text, path, strict=strict)

    return SourceUnit(path=path, text=text, language=language, extension=ext, tree=tree)
