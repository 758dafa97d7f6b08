"""tools/github/code_scanning.py

Push a SARIF report to GitHub code scanning
(``POST /repos/{owner}/{repo}/code-scanning/sarifs``).

The report is gzipped then base64 encoded. ``validate: true`` is only sent to
github.com; GitHub Enterprise Server rejects unknown fields on older versions.
"""

from __future__ import annotations

import base64
import gzip
import logging
from pathlib import Path
from typing import Any, Dict

from pipeline.constants import (
    GITHUB_API_VERSION,
    GITHUB_CLOUD_API_URL,
    SARIF_FILE_NOT_FOUND_FOR_UPLOAD_ERROR,
    SARIF_GAS_UPLOAD_FAILED_ERROR,
)
from pipeline.errors import PipelineError, RateLimitError
from tools.github.context import GitHubContext
from tools.http import HttpTransport

logger = logging.getLogger(__name__)

HTTP_ACCEPTED = 202


def github_headers(token: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
    }


def encode_sarif(content: bytes) -> str:
    return base64.b64encode(gzip.compress(content)).decode("ascii")


class CodeScanningClient:
    def __init__(self, transport: HttpTransport, context: GitHubContext, token: str) -> None:
        self.transport = transport
        self.context = context
        self.token = token

    @property
    def endpoint(self) -> str:
        return f"{self.context.api_url}/repos/{self.context.owner}/{self.context.repo_name}/code-scanning/sarifs"

    def build_payload(self, sarif_content: bytes) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "commit_sha": self.context.sha,
            "ref": self.context.ref,
            "sarif": encode_sarif(sarif_content),
        }
        if self.context.api_url == GITHUB_CLOUD_API_URL:
            data["validate"] = True
        return data

    def upload(self, sarif_path: Path) -> None:
        """Upload ``sarif_path``; raises :class:`PipelineError` on failure."""
        logger.info("Uploading SARIF results to GitHub")
        logger.info("SARIF file path: %s", sarif_path)
        if not sarif_path.is_file():
            raise PipelineError(SARIF_FILE_NOT_FOUND_FOR_UPLOAD_ERROR)

        payload = self.build_payload(sarif_path.read_bytes())
        try:
            response = self.transport.post(
                self.endpoint, payload, github_headers(self.token), ok_statuses=(HTTP_ACCEPTED,)
            )
        except RateLimitError as e:
            raise RateLimitError(SARIF_GAS_UPLOAD_FAILED_ERROR.format(e.message), wait_minutes=e.wait_minutes) from e
        except PipelineError as e:
            raise PipelineError(SARIF_GAS_UPLOAD_FAILED_ERROR.format(e.message), http_status=e.http_status) from e

        logger.debug("Code scanning upload HTTP status: %s", response.status)
        if response.status != HTTP_ACCEPTED:
            raise PipelineError(
                SARIF_GAS_UPLOAD_FAILED_ERROR.format(response.text or f"HTTP {response.status}"),
                http_status=response.status,
            )
        logger.info("SARIF result uploaded successfully to GitHub Advanced Security")
