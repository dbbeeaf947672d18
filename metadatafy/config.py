"""Configuration tables and loading for the indexing pipeline.

Built-in convention tables (folder names, framework filenames, reserved path
segments, migration directories, legacy glob map) live here so every tier of
the classifier can be overridden from ``metadatafy.toml`` or the legacy
``metadata.config.json`` that the Node version of the tool reads.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from .detector import Thresholds
from .errors import ConfigurationError
from .models import ROLES

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "metadatafy.toml"
LEGACY_CONFIG_FILENAME = "metadata.config.json"
DEFAULT_OUTPUT_PATH = "project-metadata.json"

# Folder name -> role. Matched against the nearest enclosing folder first.
FOLDER_NAME_ROLES: Dict[str, str] = {
    "components": "component",
    "component": "component",
    "ui": "component",
    "widgets": "component",
    "widget": "component",
    "elements": "component",
    "hooks": "hook",
    "hook": "hook",
    "composables": "hook",
    "services": "service",
    "service": "service",
    "api": "service",
    "utils": "utility",
    "util": "utility",
    "utilities": "utility",
    "utility": "utility",
    "lib": "utility",
    "libs": "utility",
    "helpers": "utility",
    "helper": "utility",
    "common": "utility",
    "shared": "utility",
}

# Framework convention filenames (Next.js app router).
FILE_NAME_ROLES: Dict[str, str] = {
    "page.tsx": "route",
    "page.ts": "route",
    "page.jsx": "route",
    "page.js": "route",
    "layout.tsx": "route",
    "layout.ts": "route",
    "layout.jsx": "route",
    "layout.js": "route",
    "route.tsx": "api",
    "route.ts": "api",
    "route.js": "api",
}

# A directory segment with this name anywhere in the path forces the role.
PATH_SEGMENT_ROLES: Dict[str, str] = {
    "api": "api",
}

MIGRATION_PATTERNS: List[str] = [
    "supabase/migrations",
    "prisma/migrations",
    "migrations",
    "db/migrations",
    "database/migrations",
]

DEFAULT_FILE_TYPE_MAPPING: Dict[str, str] = {
    "app/**/page.tsx": "route",
    "app/**/page.ts": "route",
    "app/**/layout.tsx": "route",
    "app/**/layout.ts": "route",
    "app/**/route.tsx": "api",
    "app/**/route.ts": "api",
    "app/api/**/*.ts": "api",
    "app/api/**/*.tsx": "api",
    "src/app/**/page.tsx": "route",
    "src/app/**/page.ts": "route",
    "src/app/**/layout.tsx": "route",
    "src/app/**/layout.ts": "route",
    "src/app/**/route.tsx": "api",
    "src/app/**/route.ts": "api",
    "src/app/api/**/*.ts": "api",
    "src/app/api/**/*.tsx": "api",
    "pages/**/*.tsx": "route",
    "pages/**/*.ts": "route",
    "pages/api/**/*.ts": "api",
    "src/pages/**/*.tsx": "route",
    "src/pages/**/*.ts": "route",
    "src/pages/api/**/*.ts": "api",
    "supabase/migrations/*.sql": "table",
    "prisma/migrations/**/*.sql": "table",
}

DEFAULT_INCLUDE_PATTERNS: List[str] = [
    "app/**/*.{ts,tsx}",
    "pages/**/*.{ts,tsx}",
    "components/**/*.{ts,tsx}",
    "hooks/**/*.{ts,tsx}",
    "services/**/*.ts",
    "lib/**/*.ts",
    "utils/**/*.ts",
    "src/**/*.{ts,tsx}",
    "supabase/migrations/*.sql",
]

DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    "**/node_modules/**",
    "**/.next/**",
    "**/dist/**",
    "**/*.test.{ts,tsx}",
    "**/*.spec.{ts,tsx}",
    "**/__tests__/**",
    "**/*.d.ts",
    "**/coverage/**",
]

DEFAULT_PATH_ALIASES: Dict[str, List[str]] = {
    "@/": ["", "src/"],
}

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


@dataclass
class FileOutputConfig:
    enabled: bool = True
    path: str = DEFAULT_OUTPUT_PATH


@dataclass
class ApiOutputConfig:
    enabled: bool = False
    endpoint: str = ""
    method: str = "POST"
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class OutputConfig:
    file: FileOutputConfig = field(default_factory=FileOutputConfig)
    api: ApiOutputConfig = field(default_factory=ApiOutputConfig)


@dataclass
class IndexerConfig:
    """Complete pipeline configuration."""

    project_id: str = "default"
    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS))
    exclude: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    file_type_mapping: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_FILE_TYPE_MAPPING))
    folder_roles: Dict[str, str] = field(default_factory=lambda: dict(FOLDER_NAME_ROLES))
    file_name_roles: Dict[str, str] = field(default_factory=lambda: dict(FILE_NAME_ROLES))
    path_segment_roles: Dict[str, str] = field(default_factory=lambda: dict(PATH_SEGMENT_ROLES))
    migration_patterns: List[str] = field(default_factory=lambda: list(MIGRATION_PATTERNS))
    keyword_synonyms: Dict[str, List[str]] = field(default_factory=dict)
    path_aliases: Dict[str, List[str]] = field(default_factory=lambda: dict(DEFAULT_PATH_ALIASES))
    thresholds: Thresholds = field(default_factory=Thresholds)
    # Opt-in file-name tier (useX, x.service.ts, ...) ahead of the heuristics.
    use_name_conventions: bool = False
    # When True the user glob map is consulted before the folder-name tier.
    globs_before_folders: bool = False
    strict_syntax: bool = True
    workers: int = 4
    verbose: bool = False
    output: OutputConfig = field(default_factory=OutputConfig)

    def check(self, source: Optional[str] = None) -> None:
        """Raise :class:`ConfigurationError` if any precondition fails."""
        problems = validate_config(self)
        if problems:
            raise ConfigurationError(problems, source=source)


def validate_config(config: IndexerConfig) -> List[str]:
    """Return a list of human-readable configuration problems."""
    problems: List[str] = []

    if not config.project_id:
        problems.append("projectId is required")
    if not config.include:
        problems.append("At least one include pattern is required")
    if config.output.api.enabled and not config.output.api.endpoint:
        problems.append("API endpoint is required when api output is enabled")
    if config.workers < 1:
        problems.append("workers must be at least 1")

    tables = {
        "file_type_mapping": config.file_type_mapping,
        "folder_roles": config.folder_roles,
        "file_name_roles": config.file_name_roles,
        "path_segment_roles": config.path_segment_roles,
    }
    for table_name, table in tables.items():
        for key, role in table.items():
            if role not in ROLES:
                problems.append(f"{table_name}: unknown role '{role}' for '{key}'")

    for f in fields(config.thresholds):
        value = getattr(config.thresholds, f.name)
        if not 0.0 <= float(value) <= 1.0:
            problems.append(f"thresholds.{f.name} must be within [0, 1], got {value}")

    return problems


def glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a glob with ``**`` and ``{a,b}`` support into an anchored regex."""
    out: List[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif ch == "*":
            out.append("[^/]*")
            i += 1
        elif ch == "?":
            out.append("[^/]")
            i += 1
        elif ch == "{":
            end = pattern.find("}", i)
            if end == -1:
                out.append(re.escape(ch))
                i += 1
                continue
            options = [re.escape(opt.strip()) for opt in pattern[i + 1:end].split(",")]
            out.append("(?:" + "|".join(options) + ")")
            i = end + 1
        else:
            out.append(re.escape(ch))
            i += 1
    return re.compile("^" + "".join(out) + "$")


def resolve_env_value(value: str) -> str:
    """Replace ``${VAR}`` references with environment values, keeping unknowns."""

    def _sub(match: re.Match) -> str:
        name = match.group(1)
        env_value = os.environ.get(name)
        if env_value is None:
            logger.warning("Environment variable %s is not set", name)
            return match.group(0)
        return env_value

    return _ENV_PATTERN.sub(_sub, value)


def _as_thresholds(data: Any, problems: List[str]) -> Thresholds:
    defaults = Thresholds()
    if not isinstance(data, dict):
        problems.append(f"thresholds must be a table, got {type(data).__name__}")
        return defaults
    known = {f.name for f in fields(Thresholds)}
    values: Dict[str, float] = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown threshold '%s'", key)
        elif isinstance(value, bool) or not isinstance(value, (int, float)):
            problems.append(f"thresholds.{key} must be a number, got {value!r}")
        else:
            values[key] = float(value)
    return Thresholds(**{**defaults.__dict__, **values})


def _as_output(data: Dict[str, Any]) -> OutputConfig:
    file_data = data.get("file") or {}
    api_data = data.get("api") or {}
    headers = {
        str(k): resolve_env_value(str(v))
        for k, v in (api_data.get("headers") or {}).items()
    }
    return OutputConfig(
        file=FileOutputConfig(
            enabled=bool(file_data.get("enabled", True)),
            path=file_data.get("path", DEFAULT_OUTPUT_PATH),
        ),
        api=ApiOutputConfig(
            enabled=bool(api_data.get("enabled", False)),
            endpoint=resolve_env_value(api_data.get("endpoint", "") or ""),
            method=str(api_data.get("method", "POST")).upper(),
            headers=headers,
        ),
    )


def _lowered(table: Dict[str, Any]) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in table.items()}


def _string_list(key: str, value: Any, problems: List[str]) -> List[str]:
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    problems.append(f"{key} must be a list of strings, got {value!r}")
    return []


def _table(key: str, value: Any, problems: List[str]) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    problems.append(f"{key} must be a table, got {type(value).__name__}")
    return {}


def config_from_dict(data: Dict[str, Any], source: Optional[str] = None) -> IndexerConfig:
    """Build a config from snake_case (TOML) or camelCase (legacy JSON) keys.

    Raises:
        ConfigurationError: A value has the wrong type.
    """
    defaults = IndexerConfig()
    problems: List[str] = []

    def pick(*keys: str, default: Any = None) -> Any:
        for key in keys:
            if key in data:
                return data[key]
        return default

    user_globs = _table("file_type_mapping", pick("file_type_mapping", "fileTypeMapping", default={}) or {}, problems)
    folder_roles = pick("folder_roles", "folderRoles")
    synonyms = _table("keyword_synonyms", pick("keyword_synonyms", "koreanKeywords", default={}) or {}, problems)
    aliases = _table("path_aliases", pick("path_aliases", "pathAliases", default=defaults.path_aliases) or {}, problems)

    workers = pick("workers", default=defaults.workers)
    if isinstance(workers, bool) or not isinstance(workers, int):
        problems.append(f"workers must be an integer, got {workers!r}")
        workers = defaults.workers

    cfg = IndexerConfig(
        project_id=str(pick("project_id", "projectId", default=defaults.project_id)),
        include=_string_list("include", pick("include", default=defaults.include), problems),
        exclude=_string_list("exclude", pick("exclude", default=defaults.exclude), problems),
        file_type_mapping={**defaults.file_type_mapping, **user_globs},
        folder_roles=(
            _lowered(_table("folder_roles", folder_roles, problems))
            if folder_roles is not None else defaults.folder_roles
        ),
        file_name_roles=dict(_table(
            "file_name_roles",
            pick("file_name_roles", "fileNameRoles", default=defaults.file_name_roles),
            problems,
        )),
        path_segment_roles=dict(_table(
            "path_segment_roles",
            pick("path_segment_roles", "pathSegmentRoles", default=defaults.path_segment_roles),
            problems,
        )),
        migration_patterns=_string_list(
            "migration_patterns",
            pick("migration_patterns", "migrationPatterns", default=defaults.migration_patterns),
            problems,
        ),
        keyword_synonyms={
            str(k).lower(): [v] if isinstance(v, str) else _string_list(f"keyword_synonyms.{k}", v, problems)
            for k, v in synonyms.items()
        },
        path_aliases={
            str(k): [v] if isinstance(v, str) else _string_list(f"path_aliases.{k}", v, problems)
            for k, v in aliases.items()
        },
        thresholds=_as_thresholds(pick("thresholds", default={}) or {}, problems),
        use_name_conventions=bool(pick("use_name_conventions", "useNameConventions", default=False)),
        globs_before_folders=bool(pick("globs_before_folders", "globsBeforeFolders", default=False)),
        strict_syntax=bool(pick("strict_syntax", "strictSyntax", default=True)),
        workers=workers,
        verbose=bool(pick("verbose", default=False)),
        output=_as_output(_table("output", pick("output", default={}) or {}, problems)),
    )
    if problems:
        raise ConfigurationError(problems, source=source)
    return cfg


def load_config(config_path: Path | str) -> IndexerConfig:
    """Load configuration from a ``.toml`` or ``.json`` file.

    A missing file yields defaults. Malformed content is a
    :class:`ConfigurationError`.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        return IndexerConfig()

    content = config_path.read_text(encoding="utf-8")
    if not content.strip():
        return IndexerConfig()

    try:
        if config_path.suffix == ".json":
            data = json.loads(content)
        else:
            data = toml.loads(content)
    except (toml.TomlDecodeError, json.JSONDecodeError) as exc:
        raise ConfigurationError([f"cannot parse config: {exc}"], source=str(config_path)) from exc

    if not isinstance(data, dict):
        raise ConfigurationError(["top-level config must be a mapping"], source=str(config_path))

    return config_from_dict(data, source=str(config_path))


def find_config(root_dir: Path) -> Optional[Path]:
    """Return the project's config file, preferring TOML over legacy JSON."""
    for name in (CONFIG_FILENAME, LEGACY_CONFIG_FILENAME):
        candidate = root_dir / name
        if candidate.exists():
            return candidate
    return None


def render_default_config(project_id: str) -> str:
    """Starter ``metadatafy.toml`` contents written by ``metadatafy init``."""
    payload = {
        "project_id": project_id,
        "include": list(DEFAULT_INCLUDE_PATTERNS),
        "exclude": list(DEFAULT_EXCLUDE_PATTERNS),
        "keyword_synonyms": {},
        "output": {
            "file": {"enabled": True, "path": DEFAULT_OUTPUT_PATH},
            "api": {"enabled": False, "endpoint": ""},
        },
    }
    return toml.dumps(payload)
