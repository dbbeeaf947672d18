"""Keyword normalization for search indexing."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional

_SEPARATORS = re.compile(r"[-_\s./\\()\[\]{}@$:,+]+")
_CASE_TOKENS = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+|[^\W\d_A-Za-z]+")


def split_identifier(identifier: str) -> List[str]:
    """Split on separators, then on case boundaries; lowercase every token.

    ``attendance-modal``, ``attendance_modal`` and ``AttendanceModal`` all
    give ``["attendance", "modal"]``; acronyms stay together
    (``XMLParser`` -> ``["xml", "parser"]``).
    """
    tokens: List[str] = []
    for part in _SEPARATORS.split(identifier):
        if not part:
            continue
        for token in _CASE_TOKENS.findall(part):
            token = token.lower()
            if token:
                tokens.append(token)
    return tokens


def path_tokens(path: str) -> List[str]:
    """Tokens of a project-relative path with the file extension dropped."""
    pure = PurePosixPath(path.replace("\\", "/"))
    parts = list(pure.parent.parts) + [pure.stem]
    tokens: List[str] = []
    for part in parts:
        if part in (".", "/"):
            continue
        tokens.extend(split_identifier(part))
    return tokens


def _dedupe(tokens: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for token in tokens:
        if token and token not in seen:
            seen.add(token)
            out.append(token)
    return out


class KeywordNormalizer:
    """Tokenizes names, paths, exports and props into a keyword list.

    ``synonyms`` maps a lowercase token to extra tokens (for instance Korean
    terms for English identifiers) that are appended after the token.
    """

    def __init__(self, synonyms: Optional[Dict[str, List[str]]] = None) -> None:
        self.synonyms = {k.lower(): list(v) for k, v in (synonyms or {}).items()}

    def extract(
        self,
        name: str,
        path: str,
        exports: Optional[List[str]] = None,
        props: Optional[List[str]] = None,
    ) -> List[str]:
        raw: List[str] = []
        raw.extend(split_identifier(name))
        raw.extend(path_tokens(path))
        for identifier in exports or []:
            raw.extend(split_identifier(identifier))
        for identifier in props or []:
            raw.extend(split_identifier(identifier))

        expanded: List[str] = []
        for token in raw:
            expanded.append(token)
            for synonym in self.synonyms.get(token, []):
                expanded.append(synonym.strip().lower())
        return _dedupe(expanded)


def build_search_text(
    name: str,
    path: str,
    keywords: List[str],
    exports: Optional[List[str]] = None,
    props: Optional[List[str]] = None,
) -> str:
    parts = [name, path, *keywords, *(exports or []), *(props or [])]
    return " ".join(parts).lower()
