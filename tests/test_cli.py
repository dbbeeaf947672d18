"""Integration tests for CLI commands."""

import json
import shutil
from pathlib import Path

from typer.testing import CliRunner

from metadatafy import __version__
from metadatafy.cli import app

runner = CliRunner()


def _copy_sample(sample_app_path: Path, temp_dir: Path) -> Path:
    target = temp_dir / "sample_app"
    shutil.copytree(sample_app_path, target)
    return target


class TestAnalyzeCommand:
    """Tests for 'metadatafy analyze'."""

    def test_analyze_writes_report(self, sample_app_path: Path, temp_dir: Path):
        root = _copy_sample(sample_app_path, temp_dir)
        result = runner.invoke(app, ["analyze", str(root), "--project-id", "demo"])

        assert result.exit_code == 0, result.stdout
        assert "Report written" in result.stdout
        data = json.loads((root / "project-metadata.json").read_text(encoding="utf-8"))
        assert data["projectId"] == "demo"
        assert data["stats"]["totalFiles"] == 10
        assert data["stats"]["byType"]["component"] == 1

    def test_output_option(self, sample_app_path: Path, temp_dir: Path):
        out = temp_dir / "out" / "index.json"
        result = runner.invoke(app, ["analyze", str(sample_app_path), "-o", str(out), "-w", "1"])

        assert result.exit_code == 0, result.stdout
        assert len(json.loads(out.read_text(encoding="utf-8"))["items"]) == 10

    def test_reports_parse_errors(self, write_project, temp_dir: Path):
        files = {f"lib/bad{i}.ts": "export function x( {\n" for i in range(7)}
        files["lib/good.ts"] = "export const ok = 1;\n"
        root = write_project(files)

        result = runner.invoke(app, ["analyze", str(root), "-o", str(temp_dir / "r.json")])

        assert result.exit_code == 0, result.stdout
        assert "7 file(s) could not be parsed" in result.stdout
        assert "and 2 more" in result.stdout

    def test_uses_project_config(self, write_project, temp_dir: Path):
        root = write_project({
            "metadatafy.toml": 'project_id = "from-config"\ninclude = ["lib/**/*.ts"]\n',
            "lib/format.ts": "export const formatDate = () => '';\n",
            "components/button.tsx": "export const Button = () => <button />;\n",
        })
        result = runner.invoke(app, ["analyze", str(root)])

        assert result.exit_code == 0, result.stdout
        data = json.loads((root / "project-metadata.json").read_text(encoding="utf-8"))
        assert data["projectId"] == "from-config"
        assert [i["path"] for i in data["items"]] == ["lib/format.ts"]

    def test_invalid_config_exits_with_error(self, write_project):
        root = write_project({"metadatafy.toml": "include = []\n"})
        result = runner.invoke(app, ["analyze", str(root)])

        assert result.exit_code == 1
        assert "Configuration error" in result.stdout
        assert not (root / "project-metadata.json").exists()

    def test_missing_config_file(self, temp_dir: Path):
        result = runner.invoke(app, ["analyze", str(temp_dir), "--config", str(temp_dir / "nope.toml")])
        assert result.exit_code != 0

    def test_nonexistent_root(self):
        result = runner.invoke(app, ["analyze", "/nonexistent/path"])
        assert result.exit_code != 0


class TestInitCommand:
    """Tests for 'metadatafy init'."""

    def test_init_creates_config(self, temp_dir: Path):
        result = runner.invoke(app, ["init", str(temp_dir), "--project-id", "shop"])

        assert result.exit_code == 0, result.stdout
        content = (temp_dir / "metadatafy.toml").read_text(encoding="utf-8")
        assert 'project_id = "shop"' in content

    def test_init_refuses_to_overwrite(self, temp_dir: Path):
        (temp_dir / "metadatafy.toml").write_text('project_id = "keep"\n', encoding="utf-8")
        result = runner.invoke(app, ["init", str(temp_dir)])

        assert result.exit_code == 1
        assert "already exists" in result.stdout
        assert (temp_dir / "metadatafy.toml").read_text(encoding="utf-8") == 'project_id = "keep"\n'


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout
