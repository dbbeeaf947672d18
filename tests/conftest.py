"""Pytest configuration and fixtures for metadatafy tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from metadatafy.config import IndexerConfig
from metadatafy.parser import ScriptTree, parse_script


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_app_path() -> Path:
    """Path to the sample Next.js project."""
    return Path(__file__).parent / "fixtures" / "sample_app"


@pytest.fixture
def write_project(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative_path: content}`` into the temp dir and return its root."""

    def _write(files: Dict[str, str]) -> Path:
        for rel, content in files.items():
            target = temp_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return temp_dir

    return _write


@pytest.fixture
def config() -> IndexerConfig:
    """Default config with a fixed project id."""
    return IndexerConfig(project_id="test-project", workers=2)


@pytest.fixture
def parse_ts() -> Callable[..., ScriptTree]:
    """Parse a snippet as if it lived at ``path`` (default ``sample.ts``)."""

    def _parse(source: str, path: str = "sample.ts") -> ScriptTree:
        return parse_script(source, path)

    return _parse
