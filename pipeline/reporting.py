"""pipeline.reporting

Reporting Publisher: everything that happens after the engine ran.

Order within one run (Black Duck before Polaris inside each phase)::

    diagnostics -> SARIF artifacts -> code-scanning ingest -> issues

* Diagnostics need only ``include_diagnostics``.
* The SARIF phases need an engine exit code of 0 or 8 and a non pull request
  event; ingest and issues additionally need a GitHub token.
* Every SARIF phase is gated per product on the product being active and its
  own enablement flag.

Failures propagate; the caller decides how they end the run.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Union

from pipeline.constants import (
    BRIDGE_DIAGNOSTICS_FOLDER,
    DIAGNOSTICS_ARTIFACT_NAME,
    EXIT_CODE_POLICY_BREAK,
    EXIT_CODE_SUCCESS,
    INVALID_DIAGNOSTICS_RETENTION_DAYS,
    POLARIS,
)
from pipeline.models import ActionConfig, BlackDuckSCAConfig, PolarisConfig
from pipeline.products import PRODUCTS, SARIF_PRODUCTS
from pipeline.state_files import sarif_path_for
from tools.github.artifacts import ArtifactClient
from tools.github.code_scanning import CodeScanningClient
from tools.github.context import GitHubContext
from tools.github.issues import GitHubIssuesService
from tools.io import list_files_recursive

logger = logging.getLogger(__name__)

SARIF_UPLOAD_EXIT_CODES = frozenset({EXIT_CODE_SUCCESS, EXIT_CODE_POLICY_BREAK})


class ReportingPublisher:
    def __init__(
        self,
        config: ActionConfig,
        context: GitHubContext,
        *,
        artifacts: ArtifactClient,
        code_scanning: Optional[CodeScanningClient] = None,
        issues: Optional[GitHubIssuesService] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.context = context
        self.artifacts = artifacts
        self.code_scanning = code_scanning
        self.issues = issues
        self._clock = clock

    @property
    def workspace(self) -> Path:
        return self.context.workspace_path()

    def _settings(self, key: str) -> Union[PolarisConfig, BlackDuckSCAConfig]:
        return self.config.polaris if key == POLARIS else self.config.blackducksca

    def _product(self, key: str) -> Optional[Union[PolarisConfig, BlackDuckSCAConfig]]:
        cfg = self._settings(key)
        return cfg if cfg.active else None

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def sarif_file(self, key: str, engine_version: str) -> Path:
        """Absolute SARIF report path for ``key``; relative paths resolve against the workspace."""
        path = Path(sarif_path_for(key, engine_version, self._settings(key).sarif.file_path))
        return path if path.is_absolute() else self.workspace / path

    def retention_days(self) -> Optional[int]:
        raw = self.config.diagnostics_retention_days
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning(INVALID_DIAGNOSTICS_RETENTION_DAYS)
            return None

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def upload_diagnostics(self) -> None:
        root = self.workspace / BRIDGE_DIAGNOSTICS_FOLDER
        retention = self.retention_days()
        files = list_files_recursive(root)
        if not files:
            logger.info("No Bridge CLI diagnostics found under %s", root)
            return
        self.artifacts.upload_artifact(DIAGNOSTICS_ARTIFACT_NAME, files, root, retention)

    def upload_sarif_artifacts(self, engine_version: str) -> List[str]:
        uploaded: List[str] = []
        for key in SARIF_PRODUCTS:
            cfg = self._product(key)
            if cfg is None or not cfg.sarif.create:
                continue
            sarif = self.sarif_file(key, engine_version)
            name = f"{PRODUCTS[key].sarif_artifact_prefix}{int(self._clock() * 1000)}"
            logger.info("Preparing to upload SARIF report from path: %s", sarif)
            self.artifacts.upload_artifact(name, [sarif], sarif.parent)
            uploaded.append(name)
        return uploaded

    def ingest_sarif(self, engine_version: str) -> None:
        if self.code_scanning is None:
            return
        for key in SARIF_PRODUCTS:
            cfg = self._product(key)
            if cfg is None or not cfg.upload_sarif_report:
                continue
            self.code_scanning.upload(self.sarif_file(key, engine_version))

    def create_issues(self, engine_version: str) -> int:
        if self.issues is None:
            return 0
        created = 0
        for key in SARIF_PRODUCTS:
            cfg = self._product(key)
            if cfg is None or not cfg.create_github_issues:
                continue
            created += self.issues.create_issues_from_sarif(self.sarif_file(key, engine_version))
        return created

    def publish(self, exit_code: int, engine_version: str) -> None:
        """Run every enabled phase for an engine that exited with ``exit_code``."""
        if self.config.include_diagnostics:
            self.upload_diagnostics()

        if exit_code not in SARIF_UPLOAD_EXIT_CODES:
            logger.debug("SARIF reporting skipped for exit code %s", exit_code)
            return
        if self.context.is_pull_request:
            logger.debug("SARIF reporting skipped for pull request event")
            return

        self.upload_sarif_artifacts(engine_version)

        if not self.config.github_token:
            return
        self.ingest_sarif(engine_version)
        created = self.create_issues(engine_version)
        if created:
            logger.info("Created %d GitHub issue(s) from SARIF findings", created)
