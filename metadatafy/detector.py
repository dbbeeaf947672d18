"""Heuristic pattern detection for files no path/name convention classifies.

Five independent scorers look at the syntax tree and each return an
optional :class:`Detection`. :func:`detect` keeps the accepted results and
picks the most confident one, breaking ties by scorer order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, NamedTuple, Optional, Set

from .parser import MARKUP_EXTENSIONS, ScriptTree, has_token

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scoring weights
# ---------------------------------------------------------------------------
HOOK_NAME_WEIGHT = 0.4
HOOK_PRIMITIVE_WEIGHT = 0.2
HOOK_PRIMITIVE_CAP = 3
HOOK_CUSTOM_CALL_WEIGHT = 0.1

COMPONENT_MARKUP_WEIGHT = 0.5
COMPONENT_MANY_MARKUP_WEIGHT = 0.2
COMPONENT_MANY_MARKUP_COUNT = 3
COMPONENT_PROPS_WEIGHT = 0.2
COMPONENT_EXTENSION_WEIGHT = 0.1

API_METHOD_EXPORT_WEIGHT = 0.6
API_FRAMEWORK_TYPES_WEIGHT = 0.3

SERVICE_CLASS_WEIGHT = 0.5
SERVICE_NETWORK_CALL_WEIGHT = 0.2
SERVICE_NETWORK_CALL_CAP = 3
SERVICE_ASYNC_WEIGHT = 0.15
SERVICE_ASYNC_MIN = 2

UTILITY_BASE_WEIGHT = 0.3
UTILITY_BASE_MIN_EXPORTS = 2
UTILITY_EXTRA_EXPORT_WEIGHT = 0.1
UTILITY_EXTRA_EXPORT_CAP = 5
UTILITY_VERB_WEIGHT = 0.2

# ---------------------------------------------------------------------------
# Acceptance thresholds (defaults; overridable through configuration)
# ---------------------------------------------------------------------------
HOOK_THRESHOLD = 0.3
COMPONENT_THRESHOLD = 0.4
API_THRESHOLD = 0.5
SERVICE_THRESHOLD = 0.3
UTILITY_THRESHOLD = 0.3
ACCEPT_THRESHOLD = 0.4

STATEFUL_PRIMITIVES = (
    "useState", "useEffect", "useCallback", "useMemo",
    "useRef", "useContext", "useReducer",
)
HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
FRAMEWORK_REQUEST_TYPES = {
    "next/server": ("NextRequest", "NextResponse"),
    "next": ("NextApiRequest", "NextApiResponse"),
}
SERVICE_CLASS_HINTS = ("service", "api", "client")
HTTP_CLIENTS = ("axios", "ky", "got", "superagent")
UI_FRAMEWORK_PACKAGES = ("react", "react-dom", "preact", "vue", "solid-js", "svelte")
UTILITY_VERB_PREFIXES = (
    "format", "parse", "convert", "validate", "is", "has", "get", "set",
    "create", "generate", "calculate", "transform",
)

_HOOK_NAME = re.compile(r"^use[A-Z]")
_MARKUP_NODES = {"jsx_element", "jsx_self_closing_element"}
_FUNCTION_NODES = {
    "function_declaration", "generator_function_declaration", "arrow_function",
    "function_expression", "function", "method_definition",
}


@dataclass
class Thresholds:
    """Minimum raw score each scorer needs, plus the classifier's cut-off."""

    hook: float = HOOK_THRESHOLD
    component: float = COMPONENT_THRESHOLD
    api: float = API_THRESHOLD
    service: float = SERVICE_THRESHOLD
    utility: float = UTILITY_THRESHOLD
    accept: float = ACCEPT_THRESHOLD


class Detection(NamedTuple):
    role: str
    confidence: float
    reasons: List[str]


def _result(role: str, score: float, threshold: float, reasons: List[str]) -> Optional[Detection]:
    if score < threshold or not reasons:
        return None
    return Detection(role, round(min(score, 1.0), 4), reasons)


def _exported_nodes(tree: ScriptTree) -> List[Any]:
    """Declaration nodes directly under ``export`` statements."""
    out = []
    for child in tree.top_level():
        if child.type != "export_statement":
            continue
        declaration = child.child_by_field_name("declaration")
        value = child.child_by_field_name("value")
        if declaration is not None:
            out.append(declaration)
        elif value is not None:
            out.append(value)
    return out


def _exported_functions(tree: ScriptTree) -> List[tuple]:
    """``(name, node)`` for exported function declarations and function-valued consts."""
    found = []
    for node in _exported_nodes(tree):
        if node.type in ("function_declaration", "generator_function_declaration"):
            name = node.child_by_field_name("name")
            if name is not None:
                found.append((tree.text(name), node))
        elif node.type in ("lexical_declaration", "variable_declaration"):
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name = declarator.child_by_field_name("name")
                value = declarator.child_by_field_name("value")
                if name is not None and value is not None and value.type in ("arrow_function", "function_expression", "function"):
                    found.append((tree.text(name), value))
    return found


def _exported_names(tree: ScriptTree) -> Set[str]:
    """Names of exported functions *and* constants, any value."""
    names: Set[str] = set()
    for node in _exported_nodes(tree):
        if node.type in ("lexical_declaration", "variable_declaration"):
            for declarator in node.named_children:
                name = declarator.child_by_field_name("name") if declarator.type == "variable_declarator" else None
                if name is not None:
                    names.add(tree.text(name))
        else:
            name = node.child_by_field_name("name")
            if name is not None:
                names.add(tree.text(name))
    return names


def _callee_name(tree: ScriptTree, call: Any) -> str:
    func = call.child_by_field_name("function")
    return tree.text(func) if func is not None else ""


def _import_sources(tree: ScriptTree) -> List[tuple]:
    """``(module, imported_names)`` for each import statement."""
    out = []
    for child in tree.top_level():
        if child.type != "import_statement":
            continue
        source = child.child_by_field_name("source")
        names = []
        for node in tree.walk(child):
            if node.type == "import_specifier":
                name = node.child_by_field_name("name")
                if name is not None:
                    names.append(tree.text(name))
        out.append((tree.string_value(source) if source is not None else "", names))
    return out


# ===================================================================
# Scorers
# ===================================================================

def score_hook(tree: ScriptTree, thresholds: Thresholds) -> Optional[Detection]:
    reasons: List[str] = []
    score = 0.0
    hook_calls: List[str] = []

    for node in tree.walk():
        name_node = None
        if node.type == "function_declaration" or node.type == "variable_declarator":
            name_node = node.child_by_field_name("name")
        if name_node is not None and name_node.type == "identifier":
            name = tree.text(name_node)
            if _HOOK_NAME.match(name):
                reasons.append(f"declares '{name}' (use* naming convention)")
                score += HOOK_NAME_WEIGHT
        elif node.type == "call_expression":
            callee = _callee_name(tree, node).split(".")[-1]
            if callee.startswith("use") and len(callee) > 3 and callee not in hook_calls:
                hook_calls.append(callee)

    primitives = [h for h in STATEFUL_PRIMITIVES if h in hook_calls]
    if primitives:
        reasons.append(f"calls stateful primitives: {', '.join(primitives)}")
        score += HOOK_PRIMITIVE_WEIGHT * min(len(primitives), HOOK_PRIMITIVE_CAP)

    custom = [h for h in hook_calls if h not in STATEFUL_PRIMITIVES]
    if custom:
        reasons.append(f"calls other hooks: {', '.join(custom[:3])}")
        score += HOOK_CUSTOM_CALL_WEIGHT

    return _result("hook", score, thresholds.hook, reasons)


def score_component(tree: ScriptTree, thresholds: Thresholds) -> Optional[Detection]:
    reasons: List[str] = []
    score = 0.0

    markup_count = sum(1 for node in tree.walk() if node.type in _MARKUP_NODES)
    if markup_count:
        reasons.append("contains JSX elements")
        score += COMPONENT_MARKUP_WEIGHT
        if markup_count > COMPONENT_MANY_MARKUP_COUNT:
            reasons.append(f"many JSX elements ({markup_count})")
            score += COMPONENT_MANY_MARKUP_WEIGHT

    for name, func in _exported_functions(tree) + _default_functions(tree):
        if _looks_like_props(tree, func):
            reasons.append(f"'{name}' takes a props parameter")
            score += COMPONENT_PROPS_WEIGHT
            break

    if tree.extension in MARKUP_EXTENSIONS:
        score += COMPONENT_EXTENSION_WEIGHT

    return _result("component", score, thresholds.component, reasons)


def _default_functions(tree: ScriptTree) -> List[tuple]:
    out = []
    for child in tree.top_level():
        if child.type != "export_statement" or not has_token(child, "default"):
            continue
        value = child.child_by_field_name("value")
        if value is None:
            value = child.child_by_field_name("declaration")
        if value is not None and value.type in _FUNCTION_NODES:
            out.append(("default", value))
    return out


def _looks_like_props(tree: ScriptTree, func: Any) -> bool:
    params = func.child_by_field_name("parameters")
    first = None
    if params is not None:
        first = next((c for c in params.named_children if c.type != "comment"), None)
    else:
        first = func.child_by_field_name("parameter")
    if first is None:
        return False
    pattern = first.child_by_field_name("pattern")
    if pattern is None:
        pattern = first
    if pattern.type == "assignment_pattern" and pattern.child_by_field_name("left") is not None:
        pattern = pattern.child_by_field_name("left")
    return pattern.type == "object_pattern" or tree.text(pattern) == "props"


def score_api_route(tree: ScriptTree, thresholds: Thresholds) -> Optional[Detection]:
    reasons: List[str] = []
    score = 0.0

    methods = sorted(
        (n for n in _exported_names(tree) if n in HTTP_METHODS),
        key=HTTP_METHODS.index,
    )
    if methods:
        reasons.append(f"exports HTTP method handlers: {', '.join(methods)}")
        score += API_METHOD_EXPORT_WEIGHT

    for module, names in _import_sources(tree):
        wanted = FRAMEWORK_REQUEST_TYPES.get(module, ())
        hits = [n for n in names if n in wanted]
        if hits:
            reasons.append(f"imports {', '.join(hits)} from '{module}'")
            score += API_FRAMEWORK_TYPES_WEIGHT
            break

    return _result("api", score, thresholds.api, reasons)


def score_service(tree: ScriptTree, thresholds: Thresholds) -> Optional[Detection]:
    reasons: List[str] = []
    score = 0.0
    fetch_count = 0
    client_count = 0
    async_count = 0

    for node in tree.walk():
        if node.type in ("class_declaration", "abstract_class_declaration", "class"):
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                class_name = tree.text(name_node)
                if any(hint in class_name.lower() for hint in SERVICE_CLASS_HINTS):
                    reasons.append(f"service-like class '{class_name}'")
                    score += SERVICE_CLASS_WEIGHT
        elif node.type == "call_expression":
            callee = _callee_name(tree, node)
            head = callee.split(".")[0]
            if callee == "fetch":
                fetch_count += 1
            elif head in HTTP_CLIENTS:
                client_count += 1
        elif node.type in _FUNCTION_NODES and has_token(node, "async"):
            async_count += 1

    if fetch_count:
        reasons.append(f"generic network calls (fetch): {fetch_count}")
        score += SERVICE_NETWORK_CALL_WEIGHT * min(fetch_count, SERVICE_NETWORK_CALL_CAP)
    if client_count:
        reasons.append(f"HTTP client network calls: {client_count}")
        score += SERVICE_NETWORK_CALL_WEIGHT * min(client_count, SERVICE_NETWORK_CALL_CAP)
    if async_count >= SERVICE_ASYNC_MIN:
        reasons.append(f"{async_count} async functions")
        score += SERVICE_ASYNC_WEIGHT

    return _result("service", score, thresholds.service, reasons)


def score_utility(tree: ScriptTree, thresholds: Thresholds) -> Optional[Detection]:
    if any(node.type in _MARKUP_NODES for node in tree.walk()):
        return None
    for module, _ in _import_sources(tree):
        if any(module == pkg or module.startswith(pkg + "/") for pkg in UI_FRAMEWORK_PACKAGES):
            return None

    reasons: List[str] = []
    score = 0.0
    exported = [name for name, _ in _exported_functions(tree)]

    if len(exported) >= UTILITY_BASE_MIN_EXPORTS:
        reasons.append(f"exports {len(exported)} functions")
        extra = min(len(exported) - UTILITY_BASE_MIN_EXPORTS, UTILITY_EXTRA_EXPORT_CAP)
        score += UTILITY_BASE_WEIGHT + UTILITY_EXTRA_EXPORT_WEIGHT * extra

    verbs = [n for n in exported if n.lower().startswith(UTILITY_VERB_PREFIXES)]
    if verbs:
        reasons.append(f"helper-style names: {', '.join(verbs[:3])}")
        score += UTILITY_VERB_WEIGHT

    return _result("utility", score, thresholds.utility, reasons)


# Evaluation order doubles as the tie-break order.
SCORERS: List[Callable[[ScriptTree, Thresholds], Optional[Detection]]] = [
    score_hook,
    score_component,
    score_api_route,
    score_service,
    score_utility,
]


def detect(tree: ScriptTree, thresholds: Optional[Thresholds] = None) -> Optional[Detection]:
    """Run every scorer and return the most confident accepted detection."""
    thresholds = thresholds or Thresholds()
    best: Optional[Detection] = None
    for scorer in SCORERS:
        found = scorer(tree, thresholds)
        if found is None:
            continue
        logger.debug("%s: %s scored %.2f", tree.path, found.role, found.confidence)
        if best is None or found.confidence > best.confidence:
            best = found
    return best
