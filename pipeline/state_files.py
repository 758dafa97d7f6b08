"""pipeline.state_files

Per-product JSON state files the engine reads through ``--input``.

Shape written for every product::

    {
      "data": {
        "<product>": {...},
        "project": {...},        # only when project inputs are set
        "github": {...},         # only when a PR comment or fix PR is active
        "network": {...},        # only when air-gap / SSL inputs are set
        "bridge": {"invoked": {"from": "Integrations-github-cloud"}}
      }
    }

Optional inputs are omitted rather than written as empty values, so the
engine's own defaults apply.

The SARIF output path is rewritten after provisioning
(:func:`update_sarif_file_paths`) because the default location depends on the
engine version, which is only known once the engine is on disk.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from packaging.version import InvalidVersion, Version

from pipeline.constants import (
    BLACKDUCKSCA,
    BRIDGE_DIAGNOSTICS_FOLDER,
    COVERITY,
    FIX_PR_IGNORED_FOR_PR_SCAN,
    INTEGRATIONS_GITHUB_CLOUD,
    INTEGRATIONS_GITHUB_EE,
    INTEGRATIONS_LOCAL_PARTS,
    INTEGRATIONS_SARIF_DIR,
    POLARIS,
    PR_COMMENT_IGNORED_FOR_NON_PR_SCAN,
    SARIF_DEFAULT_FILE_NAME,
    SARIF_REPORT_IGNORED_FOR_PR_SCAN,
    SRM,
    VERSION_SARIF_INTEGRATIONS_LAYOUT,
)
from pipeline.models import (
    ActionConfig,
    BlackDuckSCAConfig,
    CoverityConfig,
    PolarisConfig,
    PolicyBadges,
    SarifSettings,
    SRMConfig,
    StageParams,
)
from pipeline.products import PRODUCTS
from tools.github.context import GitHubContext
from tools.io import read_json, write_json

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Small builders
# ---------------------------------------------------------------------------


def _compact(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Drop ``None``/empty values (recursively) so only set inputs are written."""
    out: Dict[str, Any] = {}
    for key, value in obj.items():
        if isinstance(value, dict):
            value = _compact(value)
        if value is None or value == "" or value == [] or value == {}:
            continue
        out[key] = value
    return out


def _sarif_block(sarif: SarifSettings) -> Dict[str, Any]:
    return {
        "create": True,
        "severities": list(sarif.severities),
        "file": {"path": sarif.file_path},
        "groupSCAIssues": sarif.group_sca_issues,
        "issue": {"types": list(sarif.issue_types)},
    }


def _policy_block(badges: PolicyBadges) -> Dict[str, Any]:
    if not badges.create:
        return {}
    return {"badges": {"create": True, "maxCount": badges.max_count}}


def invoked_from(context: GitHubContext) -> str:
    return INTEGRATIONS_GITHUB_CLOUD if context.is_cloud else INTEGRATIONS_GITHUB_EE


class StateFileWriter:
    """Write one state file per active product into the run's temp directory."""

    def __init__(self, config: ActionConfig, context: GitHubContext, temp_dir: Path) -> None:
        self.config = config
        self.context = context
        self.temp_dir = temp_dir

    # ------------------------------------------------------------------
    # Shared blocks
    # ------------------------------------------------------------------

    def _project(self) -> Dict[str, Any]:
        p = self.config.project
        return _compact(
            {
                "directory": p.directory,
                "source": {
                    "archive": p.source_archive,
                    "preserveSymLinks": p.source_preserve_symlinks,
                    "excludes": list(p.source_excludes),
                },
            }
        )

    def _network(self) -> Dict[str, Any]:
        n = self.config.network
        return _compact(
            {
                "airGap": True if n.airgap else None,
                "ssl": {
                    "cert": {"file": n.ssl_cert_file},
                    "trustAll": True if n.ssl_trust_all else None,
                },
            }
        )

    def _github(self) -> Dict[str, Any]:
        ctx = self.context
        return _compact(
            {
                "token": self.config.github_token,
                "repository": {
                    "name": ctx.repo_name,
                    "owner": {"name": ctx.owner},
                    "branch": {"name": ctx.branch},
                    "pull": {"number": ctx.pull_number},
                },
                "host": {"url": "" if ctx.is_cloud else ctx.server_url},
            }
        )

    def _pr_comment_allowed(self, label: str) -> bool:
        if self.context.is_pull_request:
            return True
        logger.info(PR_COMMENT_IGNORED_FOR_NON_PR_SCAN.format(label))
        return False

    def _sarif_allowed(self) -> bool:
        if not self.context.is_pull_request:
            return True
        logger.info(SARIF_REPORT_IGNORED_FOR_PR_SCAN)
        return False

    def _write(
        self,
        product_key: str,
        product_data: Dict[str, Any],
        *,
        github: bool,
        workflow_version: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> StageParams:
        info = PRODUCTS[product_key]
        data: Dict[str, Any] = {product_key: _compact(product_data)}
        data.update(extra or {})
        project = self._project()
        if project:
            data["project"] = project
        if github:
            data["github"] = self._github()
        network = self._network()
        if network:
            data["network"] = network
        data["bridge"] = {"invoked": {"from": invoked_from(self.context)}}

        path = self.temp_dir / info.state_file
        write_json(path, {"data": data})
        logger.debug("%s state file written to %s", info.label, path)
        return StageParams(stage=info.stage, state_file_path=path, workflow_version=workflow_version or None)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def polaris(self) -> StageParams:
        cfg: PolarisConfig = self.config.polaris
        repo = self.context.repo_name
        data: Dict[str, Any] = {
            "accesstoken": cfg.access_token,
            "serverUrl": cfg.server_url,
            "application": {"name": cfg.application_name or repo},
            "project": {"name": cfg.project_name or repo},
            "assessment": {"types": list(cfg.assessment_types), "mode": cfg.assessment_mode},
            "branch": {"name": cfg.branch_name, "parent": {"name": cfg.branch_parent_name}},
            "test": {"sca": {"type": cfg.test_sca_type}, "sast": {"type": cfg.test_sast_type}},
            "waitForScan": cfg.wait_for_scan,
            "policy": _policy_block(cfg.policy_badges),
        }

        github = False
        if cfg.pr_comment_enabled and self._pr_comment_allowed("Polaris"):
            data["prComment"] = {"enabled": True, "severities": list(cfg.pr_comment_severities)}
            github = True
        if cfg.sarif.create and self._sarif_allowed():
            data["reports"] = {"sarif": _sarif_block(cfg.sarif)}

        return self._write(POLARIS, data, github=github, workflow_version=cfg.workflow_version)

    def coverity(self) -> StageParams:
        cfg: CoverityConfig = self.config.coverity
        repo = self.context.repo_name
        default_stream = f"{repo}-{self.context.branch}" if self.context.branch else repo
        data: Dict[str, Any] = {
            "connect": {
                "user": {"name": cfg.user, "password": cfg.passphrase},
                "url": cfg.url,
                "project": {"name": cfg.project_name or repo},
                "stream": {"name": cfg.stream_name or default_stream},
                "policy": {"view": cfg.policy_view},
            },
            "install": {"directory": cfg.install_directory},
            "build": {"command": cfg.build_command},
            "clean": {"command": cfg.clean_command},
            "config": {"path": cfg.config_path},
            "args": cfg.args,
            "execution": {"path": cfg.execution_path},
            "version": cfg.version,
            "local": True if cfg.local else None,
            "waitForScan": cfg.wait_for_scan,
        }

        github = False
        if cfg.pr_comment_enabled and self._pr_comment_allowed("Coverity"):
            data["automation"] = {"prcomment": True}
            github = True

        return self._write(COVERITY, data, github=github, workflow_version=cfg.workflow_version)

    def blackducksca(self) -> StageParams:
        cfg: BlackDuckSCAConfig = self.config.blackducksca
        data: Dict[str, Any] = {
            "url": cfg.url,
            "token": cfg.token,
            "scan": {
                "full": cfg.scan_full,
                "failure": {"severities": [s.upper() for s in cfg.scan_failure_severities]},
            },
            "waitForScan": cfg.wait_for_scan,
            "policy": _policy_block(cfg.policy_badges),
        }

        github = False
        if cfg.pr_comment_enabled and self._pr_comment_allowed("Black Duck"):
            data["prComment"] = {"enabled": True}
            github = True
        if cfg.fixpr.enabled:
            if self.context.is_pull_request:
                logger.info(FIX_PR_IGNORED_FOR_PR_SCAN)
            else:
                fixpr = cfg.fixpr
                data["fixpr"] = {
                    "enabled": True,
                    "maxCount": fixpr.max_count,
                    "createSinglePR": fixpr.create_single_pr,
                    "filter": {"severities": list(fixpr.filter_severities)},
                    "useUpgradeGuidance": list(fixpr.use_upgrade_guidance),
                }
                github = True
        if cfg.sarif.create and self._sarif_allowed():
            data["reports"] = {"sarif": _sarif_block(cfg.sarif)}

        detect = cfg.detect
        detect_block = _compact(
            {
                "install": {"directory": detect.install_directory},
                "execution": {"path": detect.execution_path},
                "search": {"depth": detect.search_depth},
                "config": {"path": detect.config_path},
                "args": detect.args,
            }
        )
        return self._write(
            BLACKDUCKSCA,
            data,
            github=github,
            workflow_version=cfg.workflow_version,
            extra={"detect": detect_block} if detect_block else None,
        )

    def srm(self) -> StageParams:
        cfg: SRMConfig = self.config.srm
        project_name = cfg.project_name
        if not project_name and not cfg.project_id:
            project_name = self.context.repo_name
        data: Dict[str, Any] = {
            "url": cfg.url,
            "apikey": cfg.apikey,
            "assessment": {"types": list(cfg.assessment_types)},
            "project": {"name": project_name, "id": cfg.project_id},
            "branch": {"name": cfg.branch_name, "parent": cfg.branch_parent},
            "waitForScan": cfg.wait_for_scan,
        }
        return self._write(SRM, data, github=False, workflow_version=cfg.workflow_version)


# ---------------------------------------------------------------------------
# SARIF output paths
# ---------------------------------------------------------------------------


def uses_integrations_layout(engine_version: Optional[str]) -> bool:
    """True for engines >= 3.5.0; unknown or unparsable versions count as current."""
    if not engine_version:
        return True
    try:
        return Version(engine_version) >= Version(VERSION_SARIF_INTEGRATIONS_LAYOUT)
    except InvalidVersion:
        logger.debug("Unparsable Bridge CLI version %r; assuming the integrations SARIF layout", engine_version)
        return True


def default_sarif_path(product_key: str, engine_version: Optional[str]) -> str:
    """Default SARIF report path relative to the working directory, with ``/`` separators."""
    if uses_integrations_layout(engine_version):
        return "/".join([*INTEGRATIONS_LOCAL_PARTS, product_key, INTEGRATIONS_SARIF_DIR, SARIF_DEFAULT_FILE_NAME])
    generator_dir = PRODUCTS[product_key].sarif_generator_dir or ""
    return "/".join([BRIDGE_DIAGNOSTICS_FOLDER, generator_dir, SARIF_DEFAULT_FILE_NAME])


def sarif_path_for(product_key: str, engine_version: Optional[str], user_path: str = "") -> str:
    """The user's path when set, otherwise the version-dependent default."""
    return user_path.strip() or default_sarif_path(product_key, engine_version)


def update_sarif_file_paths(
    state_file: Path, product_key: str, engine_version: Optional[str], user_path: str = ""
) -> str:
    """Set ``data.<product>.reports.sarif.file.path`` in ``state_file``; returns the value written."""
    sarif_path = sarif_path_for(product_key, engine_version, user_path)
    payload = read_json(state_file)
    data = payload.setdefault("data", {})
    section = data.setdefault(product_key, {})
    sarif = section.setdefault("reports", {}).setdefault("sarif", {})
    sarif.setdefault("file", {})["path"] = sarif_path
    write_json(state_file, payload)
    logger.info("Successfully updated %s SARIF file path: %s", PRODUCTS[product_key].label, sarif_path)
    return sarif_path
