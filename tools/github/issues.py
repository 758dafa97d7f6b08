"""tools/github/issues.py

Create one GitHub issue per distinct SARIF finding.

Open issues are listed once per run (100 per page, until a short page) and
cached; pull requests returned by the issues API are dropped. A finding is
skipped when an open issue already carries the same title, or when this run
already created one with that title.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from pipeline.constants import ISSUES_PER_PAGE
from pipeline.errors import PipelineError
from pipeline.models import IssueDraft
from tools.github.code_scanning import github_headers
from tools.github.context import GitHubContext
from tools.github.sarif import issue_from_result, iter_results, rules_by_id
from tools.http import HttpTransport
from tools.io import read_json

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_CREATED = 201


class GitHubIssuesService:
    def __init__(self, transport: HttpTransport, context: GitHubContext, token: str) -> None:
        self.transport = transport
        self.context = context
        self.token = token
        self._open_titles: Optional[Set[str]] = None
        self._processed: Set[str] = set()

    @property
    def issues_url(self) -> str:
        return f"{self.context.api_url}/repos/{self.context.owner}/{self.context.repo_name}/issues"

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def _fetch_page(self, page: int) -> List[Dict[str, Any]]:
        url = f"{self.issues_url}?state=open&per_page={ISSUES_PER_PAGE}&page={page}"
        response = self.transport.get(url, github_headers(self.token))
        logger.debug("Fetch issues page %d HTTP status: %s", page, response.status)
        if response.status != HTTP_OK:
            raise PipelineError(
                f"Failed to fetch issues page {page}: HTTP {response.status}", http_status=response.status
            )
        items = response.json() or []
        return items if isinstance(items, list) else []

    def open_issue_titles(self) -> Set[str]:
        if self._open_titles is not None:
            return self._open_titles

        logger.info("Fetching open issues with pagination (%d per page)", ISSUES_PER_PAGE)
        titles: Set[str] = set()
        page = 1
        total = 0
        while True:
            items = self._fetch_page(page)
            for item in items:
                if isinstance(item, dict) and not item.get("pull_request"):
                    titles.add(str(item.get("title") or ""))
                    total += 1
            if len(items) < ISSUES_PER_PAGE:
                break
            page += 1

        logger.info("Successfully fetched %d open issues across %d pages", total, page)
        self._open_titles = titles
        return titles

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_issue(self, draft: IssueDraft) -> None:
        response = self.transport.post(
            self.issues_url, {"title": draft.title, "body": draft.body}, github_headers(self.token)
        )
        if response.status != HTTP_CREATED:
            raise PipelineError(
                f"Failed to create GitHub issue: HTTP {response.status}: {response.text}",
                http_status=response.status,
            )
        created = response.json() or {}
        logger.info("Successfully created issue #%s: %s", created.get("number"), draft.title)
        self.open_issue_titles().add(draft.title)

    def create_issues_from_report(self, report: Dict[str, Any]) -> int:
        """Create issues for every unique result in ``report``; returns how many were posted."""
        existing = self.open_issue_titles()
        created = 0
        rule_cache: Dict[int, Dict[str, Dict[str, Any]]] = {}

        for run_obj, result in iter_results(report):
            rules = rule_cache.setdefault(id(run_obj), rules_by_id(run_obj))
            draft = issue_from_result(result, rules, run_obj)
            if draft.title in self._processed:
                continue
            self._processed.add(draft.title)

            if draft.title in existing:
                logger.info("Skipping duplicate issue: %s", draft.title)
                continue
            self.create_issue(draft)
            created += 1
        return created

    def create_issues_from_sarif(self, sarif_path: Path) -> int:
        logger.info("Creating GitHub Issues from SARIF report")
        logger.debug("SARIF file path: %s", sarif_path)
        if not sarif_path.is_file():
            raise PipelineError(f"SARIF file not found at path: {sarif_path}")
        try:
            report = read_json(sarif_path)
        except ValueError as e:
            raise PipelineError(
                f"Failed to create GitHub Issues from SARIF report: invalid JSON in {sarif_path}: {e}"
            ) from e
        try:
            return self.create_issues_from_report(report)
        except PipelineError as e:
            raise PipelineError(
                f"Failed to create GitHub Issues from SARIF report: {e.message}", http_status=e.http_status
            ) from e
