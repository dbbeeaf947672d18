"""Structural extraction over a parsed script: imports, exports, props.

All three passes are pure functions of a :class:`~metadatafy.parser.ScriptTree`
and can run in any order.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from .models import DEFAULT_BINDING, ExportDecl, ImportEdge, PropertyDecl
from .parser import ScriptTree, has_token

logger = logging.getLogger(__name__)

_FUNCTION_NODES = {
    "function_declaration",
    "generator_function_declaration",
    "function_signature",
}
_FUNCTION_VALUES = {
    "arrow_function",
    "function_expression",
    "function",
    "generator_function",
}
_CLASS_NODES = {"class_declaration", "abstract_class_declaration"}
_CLASS_VALUES = {"class"}
_VARIABLE_NODES = {"lexical_declaration", "variable_declaration"}


# ===================================================================
# Shared helpers
# ===================================================================

def _unwrap_declaration(node: Any) -> Any:
    """Strip ``declare`` wrappers (``ambient_declaration``)."""
    while node is not None and node.type == "ambient_declaration":
        inner = [c for c in node.named_children]
        node = inner[0] if inner else None
    return node


def declaration_kind(node: Any) -> str:
    node = _unwrap_declaration(node)
    if node is None:
        return "variable"
    if node.type in _FUNCTION_NODES or node.type in _FUNCTION_VALUES:
        return "function"
    if node.type in _CLASS_NODES or node.type in _CLASS_VALUES:
        return "class"
    if node.type in ("type_alias_declaration", "enum_declaration"):
        return "type"
    if node.type == "interface_declaration":
        return "interface"
    return "variable"


def _declared_names(tree: ScriptTree, node: Any) -> List[Tuple[str, str, Any]]:
    """Return ``(name, kind, node)`` for every binding a declaration introduces."""
    node = _unwrap_declaration(node)
    if node is None:
        return []
    if node.type in _VARIABLE_NODES:
        out = []
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue
            value = declarator.child_by_field_name("value")
            kind = "function" if value is not None and value.type in _FUNCTION_VALUES else "variable"
            out.append((tree.text(name_node), kind, declarator))
        return out
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return []
    return [(tree.text(name_node), declaration_kind(node), node)]


def top_level_declarations(tree: ScriptTree) -> Dict[str, Tuple[str, Any]]:
    """Map each top-level binding name to ``(kind, node)``; exported or not."""
    table: Dict[str, Tuple[str, Any]] = {}
    for child in tree.top_level():
        target = child
        if child.type == "export_statement":
            target = child.child_by_field_name("declaration")
            if target is None:
                continue
        for name, kind, node in _declared_names(tree, target):
            table.setdefault(name, (kind, node))
    return table


# ===================================================================
# Import extractor
# ===================================================================

def extract_imports(tree: ScriptTree) -> List[ImportEdge]:
    """Collect import statements, re-export sources and literal require()/import()."""
    imports: List[ImportEdge] = []

    for child in tree.top_level():
        if child.type == "import_statement":
            imports.append(_import_statement(tree, child))
        elif child.type == "export_statement":
            source = child.child_by_field_name("source")
            if source is not None:
                names = [e.name for e in _export_clause(tree, child, {})]
                imports.append(ImportEdge(
                    source_specifier=tree.string_value(source),
                    imported_names=names,
                    is_default_import=False,
                    is_type_only=has_token(child, "type"),
                ))

    for node in tree.walk():
        if node.type != "call_expression":
            continue
        func = node.child_by_field_name("function")
        args = node.child_by_field_name("arguments")
        if func is None or args is None:
            continue
        is_require = func.type == "identifier" and tree.text(func) == "require"
        if not (is_require or func.type == "import"):
            continue
        literal = [a for a in args.named_children if a.type == "string"]
        if len(args.named_children) == 1 and literal:
            imports.append(ImportEdge(
                source_specifier=tree.string_value(literal[0]),
                imported_names=[DEFAULT_BINDING] if is_require else [],
                is_default_import=is_require,
            ))

    return imports


def _import_statement(tree: ScriptTree, node: Any) -> ImportEdge:
    source = node.child_by_field_name("source")
    names: List[str] = []
    is_default = False
    specifier_type_only: List[bool] = []

    clause = next((c for c in node.named_children if c.type == "import_clause"), None)
    if clause is not None:
        for part in clause.named_children:
            if part.type == "identifier":
                names.append(DEFAULT_BINDING)
                is_default = True
            elif part.type == "namespace_import":
                ident = next((c for c in part.named_children if c.type == "identifier"), None)
                if ident is not None:
                    names.append(tree.text(ident))
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name_node = spec.child_by_field_name("name")
                    names.append(tree.text(name_node))
                    specifier_type_only.append(has_token(spec, "type"))

    type_only = has_token(node, "type") or (
        bool(specifier_type_only) and all(specifier_type_only) and not is_default
    )
    return ImportEdge(
        source_specifier=tree.string_value(source) if source is not None else "",
        imported_names=names,
        is_default_import=is_default,
        is_type_only=type_only,
    )


# ===================================================================
# Export extractor
# ===================================================================

def extract_exports(tree: ScriptTree) -> List[ExportDecl]:
    """Collect top-level exports: named, default, and re-exports."""
    locals_ = top_level_declarations(tree)
    exports: List[ExportDecl] = []

    for child in tree.top_level():
        if child.type != "export_statement":
            continue
        is_default = has_token(child, "default")
        type_only = has_token(child, "type")
        declaration = child.child_by_field_name("declaration")
        value = child.child_by_field_name("value")

        if declaration is not None:
            declared = _declared_names(tree, declaration)
            if not declared and is_default:
                exports.append(ExportDecl(DEFAULT_BINDING, declaration_kind(declaration), True, False))
            for name, kind, _ in declared:
                exports.append(ExportDecl(
                    name=name,
                    kind=kind,
                    is_default=is_default,
                    is_type_only=type_only or kind in ("type", "interface"),
                ))
        elif value is not None and is_default:
            exports.append(_default_value_export(tree, value, locals_))
        else:
            exports.extend(_export_clause(tree, child, locals_))

    return exports


def _default_value_export(tree: ScriptTree, value: Any, locals_: Dict[str, Tuple[str, Any]]) -> ExportDecl:
    if value.type == "identifier":
        name = tree.text(value)
        kind = locals_.get(name, ("variable", None))[0]
        return ExportDecl(name=name, kind=kind, is_default=True)
    name_node = value.child_by_field_name("name") if value.type in _FUNCTION_VALUES | _CLASS_VALUES else None
    name = tree.text(name_node) if name_node is not None else DEFAULT_BINDING
    return ExportDecl(name=name, kind=declaration_kind(value), is_default=True)


def _export_clause(tree: ScriptTree, node: Any, locals_: Dict[str, Tuple[str, Any]]) -> List[ExportDecl]:
    statement_type_only = has_token(node, "type")
    out: List[ExportDecl] = []
    for part in node.named_children:
        if part.type == "export_clause":
            for spec in part.named_children:
                if spec.type != "export_specifier":
                    continue
                local = tree.text(spec.child_by_field_name("name"))
                alias_node = spec.child_by_field_name("alias")
                exported = tree.text(alias_node) if alias_node is not None else local
                kind = locals_.get(local, ("variable", None))[0]
                out.append(ExportDecl(
                    name=exported,
                    kind=kind,
                    is_default=exported == DEFAULT_BINDING,
                    is_type_only=statement_type_only or has_token(spec, "type") or kind in ("type", "interface"),
                ))
        elif part.type == "namespace_export":
            ident = next((c for c in part.named_children if c.type in ("identifier", "string")), None)
            if ident is not None:
                out.append(ExportDecl(name=tree.string_value(ident), kind="variable"))
    return out


# ===================================================================
# Property extractor
# ===================================================================

def extract_props(tree: ScriptTree, exports: Optional[List[ExportDecl]] = None) -> List[PropertyDecl]:
    """List the props of the file's exported component.

    Looks at the first parameter of the default export (or the first
    exported function) and merges destructuring defaults with the members
    of its type annotation, resolving local interfaces and type aliases.
    """
    exports = exports if exports is not None else extract_exports(tree)
    locals_ = top_level_declarations(tree)
    target = _component_target(tree, exports, locals_)
    if target is None:
        return []

    func, declared_type = target
    if func.type in _CLASS_NODES or func.type in _CLASS_VALUES:
        return _members_to_props(_class_props_type(tree, func, locals_), {}, tree, locals_)

    param = _first_parameter(func)
    if param is None:
        return []

    pattern, type_node = _parameter_parts(param)
    if type_node is None:
        type_node = _props_type_from_wrapper(declared_type)

    destructured: Dict[str, Optional[str]] = {}
    if pattern is not None and pattern.type == "object_pattern":
        destructured = _destructured(tree, pattern)
    elif pattern is None or (pattern.type == "identifier" and tree.text(pattern) != "props" and type_node is None):
        return []

    props = _members_to_props(type_node, destructured, tree, locals_)
    known = {p.name for p in props}
    for name, default in destructured.items():
        if name not in known:
            props.append(PropertyDecl(
                name=name,
                type_text="unknown",
                required=default is None,
                default_value_text=default,
            ))
    return props


def _component_target(
    tree: ScriptTree,
    exports: List[ExportDecl],
    locals_: Dict[str, Tuple[str, Any]],
) -> Optional[Tuple[Any, Any]]:
    """Return ``(function_or_class_node, declared_type_annotation)``."""
    for child in tree.top_level():
        if child.type == "export_statement" and has_token(child, "default"):
            declaration = _unwrap_declaration(child.child_by_field_name("declaration"))
            value = child.child_by_field_name("value")
            if declaration is not None and declaration.type in _FUNCTION_NODES | _CLASS_NODES:
                return declaration, None
            if value is not None:
                found = _resolve_callable(tree, value, locals_)
                if found is not None:
                    return found

    ordered = sorted(
        (e for e in exports if e.kind in ("function", "class", "variable") and e.name in locals_),
        key=lambda e: (not e.name[:1].isupper(), exports.index(e)),
    )
    for export in ordered:
        found = _resolve_callable(tree, None, locals_, name=export.name)
        if found is not None:
            return found
    return None


def _resolve_callable(
    tree: ScriptTree,
    node: Any,
    locals_: Dict[str, Tuple[str, Any]],
    name: Optional[str] = None,
    depth: int = 0,
) -> Optional[Tuple[Any, Any]]:
    if depth > 4:
        return None
    declared_type = None
    if node is None or node.type == "identifier":
        key = name or tree.text(node)
        entry = locals_.get(key)
        if entry is None:
            return None
        node = entry[1]
        if node.type == "variable_declarator":
            declared_type = node.child_by_field_name("type")
            node = node.child_by_field_name("value")
            if node is None:
                return None
    if node.type in _FUNCTION_NODES or node.type in _FUNCTION_VALUES:
        return node, declared_type
    if node.type in _CLASS_NODES or node.type in _CLASS_VALUES:
        return node, None
    if node.type == "call_expression":
        # memo(Component), forwardRef((props, ref) => ...)
        args = node.child_by_field_name("arguments")
        for arg in args.named_children if args is not None else []:
            found = _resolve_callable(tree, arg, locals_, depth=depth + 1)
            if found is not None:
                return found[0], found[1] if found[1] is not None else declared_type
    if node.type in ("parenthesized_expression", "as_expression", "satisfies_expression"):
        inner = node.named_children[0] if node.named_children else None
        if inner is not None:
            return _resolve_callable(tree, inner, locals_, depth=depth + 1)
    return None


def _first_parameter(func: Any) -> Optional[Any]:
    params = func.child_by_field_name("parameters")
    if params is None:
        single = func.child_by_field_name("parameter")
        return single
    for child in params.named_children:
        if child.type != "comment":
            return child
    return None


def _parameter_parts(param: Any) -> Tuple[Optional[Any], Optional[Any]]:
    """Return ``(pattern, type_node)`` for a TS or JS parameter node."""
    if param.type in ("required_parameter", "optional_parameter"):
        pattern = param.child_by_field_name("pattern")
        annotation = param.child_by_field_name("type")
        type_node = annotation.named_children[0] if annotation is not None and annotation.named_children else None
        return pattern, type_node
    if param.type == "assignment_pattern":
        return param.child_by_field_name("left"), None
    return param, None


def _props_type_from_wrapper(declared_type: Any) -> Optional[Any]:
    """``const X: React.FC<Props> = ...`` -> the ``Props`` type node."""
    if declared_type is None:
        return None
    inner = declared_type.named_children[0] if declared_type.named_children else None
    if inner is None or inner.type != "generic_type":
        return None
    args = next((c for c in inner.named_children if c.type == "type_arguments"), None)
    if args is None or not args.named_children:
        return None
    return args.named_children[0]


def _class_props_type(tree: ScriptTree, cls: Any, locals_: Dict[str, Tuple[str, Any]]) -> Optional[Any]:
    for heritage in cls.named_children:
        if heritage.type != "class_heritage":
            continue
        for clause in heritage.named_children:
            if clause.type != "extends_clause":
                continue
            args = clause.child_by_field_name("type_arguments")
            if args is None:
                args = next((c for c in clause.named_children if c.type == "type_arguments"), None)
            if args is not None and args.named_children:
                return args.named_children[0]
    return None


def _destructured(tree: ScriptTree, pattern: Any) -> Dict[str, Optional[str]]:
    names: Dict[str, Optional[str]] = {}
    for item in pattern.named_children:
        if item.type == "shorthand_property_identifier_pattern":
            names[tree.text(item)] = None
        elif item.type == "object_assignment_pattern":
            left = item.child_by_field_name("left")
            right = item.child_by_field_name("right")
            names[tree.text(left)] = tree.text(right) if right is not None else None
        elif item.type == "pair_pattern":
            key = item.child_by_field_name("key")
            value = item.child_by_field_name("value")
            default = None
            if value is not None and value.type == "assignment_pattern":
                right = value.child_by_field_name("right")
                default = tree.text(right) if right is not None else None
            names[tree.text(key)] = default
    return names


def _type_members(
    tree: ScriptTree,
    type_node: Any,
    locals_: Dict[str, Tuple[str, Any]],
    depth: int = 0,
) -> List[Tuple[str, str, bool]]:
    """Flatten a props type into ``(name, type_text, optional)`` triples."""
    if type_node is None or depth > 4:
        return []
    kind = type_node.type

    if kind in ("object_type", "interface_body"):
        members = []
        for member in type_node.named_children:
            if member.type not in ("property_signature", "method_signature"):
                continue
            name_node = member.child_by_field_name("name")
            if name_node is None:
                continue
            annotation = member.child_by_field_name("type")
            if member.type == "method_signature":
                type_text = tree.text(member)[len(tree.text(name_node)):].lstrip("?").strip()
            else:
                type_text = tree.text(annotation).lstrip(":").strip() if annotation is not None else "unknown"
            members.append((tree.string_value(name_node), type_text or "unknown", has_token(member, "?")))
        return members

    if kind == "intersection_type":
        out: List[Tuple[str, str, bool]] = []
        for part in type_node.named_children:
            out.extend(_type_members(tree, part, locals_, depth + 1))
        return out

    if kind == "parenthesized_type":
        inner = type_node.named_children[0] if type_node.named_children else None
        return _type_members(tree, inner, locals_, depth + 1)

    if kind in ("type_identifier", "generic_type", "nested_type_identifier"):
        if kind == "generic_type":
            base = type_node.child_by_field_name("name")
            if base is None:
                base = type_node.named_children[0]
            name = tree.text(base)
        else:
            name = tree.text(type_node)
        entry = locals_.get(name.split(".")[-1])
        if entry is None:
            return []
        decl = entry[1]
        if decl.type == "interface_declaration":
            out = []
            for child in decl.named_children:
                if child.type == "extends_type_clause":
                    for parent in child.named_children:
                        out.extend(_type_members(tree, parent, locals_, depth + 1))
            body = decl.child_by_field_name("body")
            out.extend(_type_members(tree, body, locals_, depth + 1))
            return out
        if decl.type == "type_alias_declaration":
            return _type_members(tree, decl.child_by_field_name("value"), locals_, depth + 1)
    return []


def _members_to_props(
    type_node: Any,
    destructured: Dict[str, Optional[str]],
    tree: ScriptTree,
    locals_: Dict[str, Tuple[str, Any]],
) -> List[PropertyDecl]:
    props: List[PropertyDecl] = []
    seen = set()
    for name, type_text, optional in _type_members(tree, type_node, locals_):
        if name in seen:
            continue
        seen.add(name)
        default = destructured.get(name)
        props.append(PropertyDecl(
            name=name,
            type_text=type_text,
            required=not optional and default is None,
            default_value_text=default,
        ))
    return props
