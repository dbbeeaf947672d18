"""Exception types raised by the indexing pipeline."""

from __future__ import annotations

from typing import List, Optional


class ParseError(Exception):
    """A single file could not be parsed; recovered per file."""

    def __init__(self, path: str, message: str, line: Optional[int] = None) -> None:
        super().__init__(message)
        self.path = path
        self.message = message
        self.line = line

    def __str__(self) -> str:
        if self.line:
            return f"{self.path}: {self.message} (line {self.line})"
        return f"{self.path}: {self.message}"


class ConfigurationError(Exception):
    """Invalid configuration; fatal before any per-file work starts."""

    def __init__(self, problems: List[str], source: Optional[str] = None) -> None:
        self.problems = list(problems)
        self.source = source
        message = "; ".join(self.problems) or "invalid configuration"
        if source:
            message = f"{message} (config: {source})"
        super().__init__(message)
