"""Tests for configuration loading and validation."""

import json
from pathlib import Path

import pytest
import toml

from metadatafy.config import (
    IndexerConfig,
    config_from_dict,
    find_config,
    glob_to_regex,
    load_config,
    render_default_config,
    resolve_env_value,
    validate_config,
)
from metadatafy.discovery import FileDiscovery
from metadatafy.errors import ConfigurationError


@pytest.mark.parametrize(
    "pattern, path, expected",
    [
        ("src/**/*.ts", "src/a.ts", True),
        ("src/**/*.ts", "src/a/b/c.ts", True),
        ("src/**/*.ts", "lib/a.ts", False),
        ("**/node_modules/**", "node_modules/x/index.js", True),
        ("app/**/*.{ts,tsx}", "app/(group)/page.tsx", True),
        ("supabase/migrations/*.sql", "supabase/migrations/nested/001.sql", False),
        ("lib/?.ts", "lib/a.ts", True),
    ],
)
def test_glob_to_regex(pattern, path, expected):
    assert bool(glob_to_regex(pattern).match(path)) is expected


def test_defaults_are_valid():
    assert validate_config(IndexerConfig()) == []


def test_validation_collects_every_problem():
    cfg = IndexerConfig(project_id="", include=[], workers=0)
    cfg.folder_roles["screens"] = "screen"
    cfg.thresholds.accept = 1.5
    cfg.output.api.enabled = True

    problems = validate_config(cfg)
    assert len(problems) == 6
    with pytest.raises(ConfigurationError) as excinfo:
        cfg.check("metadatafy.toml")
    assert excinfo.value.problems == problems
    assert "metadatafy.toml" in str(excinfo.value)


def test_legacy_camel_case_keys():
    cfg = config_from_dict({
        "projectId": "legacy",
        "include": ["src/**/*.ts"],
        "fileTypeMapping": {"src/modules/**/*.ts": "service"},
        "koreanKeywords": {"Attendance": ["출석"]},
        "output": {"file": {"enabled": False}},
    })
    assert cfg.project_id == "legacy"
    assert cfg.include == ["src/**/*.ts"]
    assert cfg.file_type_mapping["src/modules/**/*.ts"] == "service"
    assert "app/**/page.tsx" in cfg.file_type_mapping
    assert cfg.keyword_synonyms == {"attendance": ["출석"]}
    assert cfg.output.file.enabled is False


def test_thresholds_and_aliases():
    cfg = config_from_dict({
        "thresholds": {"accept": 0.5, "service": 0.25},
        "path_aliases": {"~/": "src/"},
    })
    assert cfg.thresholds.accept == 0.5
    assert cfg.thresholds.service == 0.25
    assert cfg.thresholds.hook == 0.3
    assert cfg.path_aliases == {"~/": ["src/"]}


def test_env_expansion(monkeypatch):
    monkeypatch.setenv("METADATAFY_TOKEN", "secret")
    monkeypatch.delenv("METADATAFY_MISSING", raising=False)
    assert resolve_env_value("Bearer ${METADATAFY_TOKEN}") == "Bearer secret"
    assert resolve_env_value("${METADATAFY_MISSING}") == "${METADATAFY_MISSING}"

    cfg = config_from_dict({
        "output": {"api": {
            "enabled": True,
            "endpoint": "https://example.test/${METADATAFY_TOKEN}",
            "headers": {"Authorization": "Bearer ${METADATAFY_TOKEN}"},
        }},
    })
    assert cfg.output.api.endpoint == "https://example.test/secret"
    assert cfg.output.api.headers == {"Authorization": "Bearer secret"}


def test_load_toml(temp_dir: Path):
    path = temp_dir / "metadatafy.toml"
    path.write_text('project_id = "shop"\nworkers = 8\n[keyword_synonyms]\ncart = ["장바구니"]\n', encoding="utf-8")
    cfg = load_config(path)
    assert (cfg.project_id, cfg.workers) == ("shop", 8)
    assert cfg.keyword_synonyms == {"cart": ["장바구니"]}


def test_load_legacy_json(temp_dir: Path):
    path = temp_dir / "metadata.config.json"
    path.write_text(json.dumps({"projectId": "legacy"}), encoding="utf-8")
    assert find_config(temp_dir) == path
    assert load_config(path).project_id == "legacy"


def test_toml_preferred_over_json(temp_dir: Path):
    (temp_dir / "metadata.config.json").write_text("{}", encoding="utf-8")
    (temp_dir / "metadatafy.toml").write_text("", encoding="utf-8")
    assert find_config(temp_dir).name == "metadatafy.toml"


def test_missing_file_gives_defaults(temp_dir: Path):
    assert load_config(temp_dir / "absent.toml") == IndexerConfig()


def test_malformed_file(temp_dir: Path):
    path = temp_dir / "metadatafy.toml"
    path.write_text("project_id = [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="cannot parse config"):
        load_config(path)


def test_rendered_default_round_trips():
    data = toml.loads(render_default_config("demo"))
    cfg = config_from_dict(data)
    assert cfg.project_id == "demo"
    assert validate_config(cfg) == []


def test_discovery_honours_include_and_exclude(write_project):
    root = write_project({
        "components/button.tsx": "",
        "components/button.test.tsx": "",
        "lib/format.ts": "",
        "lib/types.d.ts": "",
        "node_modules/pkg/index.ts": "",
        "README.md": "",
        "supabase/migrations/001.sql": "",
    })
    cfg = IndexerConfig()
    found = FileDiscovery(cfg.include, cfg.exclude).discover(root)
    assert found == ["components/button.tsx", "lib/format.ts", "supabase/migrations/001.sql"]


@pytest.mark.parametrize(
    "data, problem",
    [
        ({"thresholds": {"hook": "high"}}, "thresholds.hook must be a number"),
        ({"thresholds": {"accept": True}}, "thresholds.accept must be a number"),
        ({"thresholds": 0.5}, "thresholds must be a table"),
        ({"workers": "x"}, "workers must be an integer"),
        ({"workers": 2.5}, "workers must be an integer"),
        ({"include": "src/**/*.ts"}, "include must be a list of strings"),
        ({"exclude": "**/*.test.ts"}, "exclude must be a list of strings"),
        ({"migration_patterns": "migrations"}, "migration_patterns must be a list of strings"),
        ({"folder_roles": ["hooks"]}, "folder_roles must be a table"),
    ],
)
def test_wrong_value_types_are_configuration_errors(data, problem):
    with pytest.raises(ConfigurationError) as excinfo:
        config_from_dict(data)
    assert any(p.startswith(problem) for p in excinfo.value.problems)


def test_wrong_value_type_in_file_names_source(temp_dir: Path):
    path = temp_dir / "metadatafy.toml"
    path.write_text('include = "src/**/*.ts"\n[thresholds]\nhook = "high"\n', encoding="utf-8")
    with pytest.raises(ConfigurationError) as excinfo:
        load_config(path)
    assert len(excinfo.value.problems) == 2
    assert str(path) in str(excinfo.value)
