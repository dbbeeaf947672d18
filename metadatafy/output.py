"""Report writers: JSON file on disk and HTTP upload."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .config import ApiOutputConfig
from .models import AnalysisReport

logger = logging.getLogger(__name__)


def report_json(report: AnalysisReport) -> str:
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


class FileWriter:
    """Writes the report as UTF-8 JSON, creating parent directories."""

    def __init__(self, output_path: Path | str) -> None:
        self.output_path = Path(output_path)

    def write(self, report: AnalysisReport) -> Path:
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_path.write_text(report_json(report) + "\n", encoding="utf-8")
        logger.info("Wrote %d items to %s", len(report.items), self.output_path)
        return self.output_path


@dataclass
class UploadResult:
    success: bool
    status: Optional[int] = None
    message: str = ""


class ApiSender:
    """Sends the report to a configured HTTP endpoint."""

    def __init__(self, config: ApiOutputConfig, timeout: float = 30.0) -> None:
        self.config = config
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self.config.headers)
        return headers

    def send(self, report: AnalysisReport) -> UploadResult:
        req = urllib.request.Request(
            self.config.endpoint,
            data=report_json(report).encode("utf-8"),
            headers=self._headers(),
            method=self.config.method,
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read().decode("utf-8", errors="replace")
                logger.info("Uploaded %d items to %s (%s)", len(report.items), self.config.endpoint, resp.status)
                return UploadResult(True, resp.status, body)
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            logger.warning("Upload to %s failed with HTTP %s", self.config.endpoint, exc.code)
            return UploadResult(False, exc.code, detail or str(exc.reason))
        except (urllib.error.URLError, TimeoutError) as exc:
            logger.warning("Upload to %s failed: %s", self.config.endpoint, exc)
            return UploadResult(False, None, str(getattr(exc, "reason", exc)))
