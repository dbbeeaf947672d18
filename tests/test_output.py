"""Tests for the JSON writer and the API sender."""

import json
import urllib.error
from pathlib import Path
from unittest.mock import MagicMock, patch

from metadatafy.config import ApiOutputConfig
from metadatafy.models import AnalysisReport, IndexRecord
from metadatafy.output import ApiSender, FileWriter


def _report() -> AnalysisReport:
    report = AnalysisReport(project_id="demo", generated_at="2024-01-01T00:00:00+00:00")
    report.items.append(IndexRecord(
        id="abc", project_id="demo", role="utility", name="출석", path="lib/attendance.ts",
    ))
    report.stats.by_role["utility"] = 1
    return report


def test_file_writer_creates_parents(temp_dir: Path):
    target = temp_dir / "nested" / "report.json"
    FileWriter(target).write(_report())

    text = target.read_text(encoding="utf-8")
    assert "출석" in text
    data = json.loads(text)
    assert data["items"][0]["type"] == "utility"
    assert data["stats"]["byType"]["utility"] == 1


def test_api_sender_posts_json():
    config = ApiOutputConfig(enabled=True, endpoint="https://example.test/index", headers={"X-Key": "k"})
    response = MagicMock(status=201)
    response.read.return_value = b'{"ok": true}'
    response.__enter__.return_value = response

    with patch("metadatafy.output.urllib.request.urlopen", return_value=response) as urlopen:
        result = ApiSender(config).send(_report())

    assert result.success
    assert result.status == 201
    request = urlopen.call_args[0][0]
    assert request.get_method() == "POST"
    assert request.get_header("X-key") == "k"
    assert request.get_header("Content-type") == "application/json"
    assert json.loads(request.data)["projectId"] == "demo"


def test_api_sender_reports_failure():
    config = ApiOutputConfig(enabled=True, endpoint="https://example.test/index")
    with patch(
        "metadatafy.output.urllib.request.urlopen",
        side_effect=urllib.error.URLError("connection refused"),
    ):
        result = ApiSender(config).send(_report())

    assert not result.success
    assert result.status is None
    assert "connection refused" in result.message
