"""pipeline.config

Input binding: turn environment / YAML / ``--input`` values into a typed,
immutable :class:`~pipeline.models.ActionConfig`.

Lookup order for every key
--------------------------
1. explicit overrides (``--config file.yml`` and ``--input key=value``)
2. ``INPUT_<KEY>`` environment variable (how GitHub Actions passes inputs)
3. ``<KEY>`` environment variable

Keys compare case-insensitively, so ``polaris_serverUrl`` and
``POLARIS_SERVERURL`` are the same input.

Deprecated keys are aliases. When both the canonical and a deprecated key are
set, the canonical key wins; reading a deprecated key logs a warning.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pipeline.constants import SSL_MUTUALLY_EXCLUSIVE_ERROR
from pipeline.errors import ConfigurationError
from pipeline.models import (
    ActionConfig,
    BlackDuckSCAConfig,
    BridgeSettings,
    CoverityConfig,
    DetectSettings,
    FixPrSettings,
    NetworkSettings,
    PolarisConfig,
    PolicyBadges,
    ProjectSettings,
    SarifSettings,
    SRMConfig,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def parse_to_boolean(value: Any) -> bool:
    """``true`` (any case) is truthy; everything else is false."""
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() == "true"


def is_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return True
    return str(value or "").strip().lower() in {"true", "false"}


def parse_list(value: str) -> Tuple[str, ...]:
    """Split a comma separated input into trimmed, non-empty items.

    ``["SAST", "SCA"]`` style values are accepted too.
    """
    text = (value or "").strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    items = (part.strip().strip("'\"").strip() for part in text.split(","))
    return tuple(item for item in items if item)


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(v) for v in value)
    return str(value)


# ---------------------------------------------------------------------------
# Input source
# ---------------------------------------------------------------------------


class InputSource:
    """Case-insensitive key/value lookup over overrides and the environment."""

    def __init__(
        self,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._overrides: Dict[str, str] = {
            str(k).strip().lower(): _stringify(v) for k, v in (overrides or {}).items()
        }
        env = os.environ if environ is None else environ
        self._env: Dict[str, str] = {str(k).upper(): str(v) for k, v in env.items()}

    @classmethod
    def from_yaml(
        cls,
        path: Path,
        *,
        extra: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "InputSource":
        import yaml

        with Path(path).open("r", encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Input file {path} is not valid YAML: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Input file {path} must contain a mapping of input names to values")

        merged: Dict[str, Any] = dict(loaded)
        merged.update(extra or {})
        return cls(merged, environ)

    def raw(self, key: str) -> str:
        lowered = key.lower()
        if lowered in self._overrides:
            return self._overrides[lowered].strip()
        upper = key.upper().replace(" ", "_")
        for env_key in (f"INPUT_{upper}", upper):
            if env_key in self._env:
                return self._env[env_key].strip()
        return ""

    def get(self, key: str, *deprecated: str) -> str:
        value = self.raw(key)
        if value:
            return value
        for old in deprecated:
            value = self.raw(old)
            if value:
                logger.warning("Input '%s' is deprecated; use '%s' instead.", old, key)
                return value
        return ""

    def environ(self, name: str) -> str:
        return self._env.get(name.upper(), "")


# ---------------------------------------------------------------------------
# Typed config
# ---------------------------------------------------------------------------


class _Reader:
    """Per-section reader that also collects invalid boolean inputs."""

    def __init__(self, source: InputSource) -> None:
        self.source = source
        self.invalid: List[str] = []

    def text(self, key: str, *deprecated: str) -> str:
        return self.source.get(key, *deprecated)

    def items(self, key: str, *deprecated: str) -> Tuple[str, ...]:
        return parse_list(self.source.get(key, *deprecated))

    def flag(self, key: str, *deprecated: str) -> bool:
        value = self.source.get(key, *deprecated)
        if value and not is_boolean(value):
            self.invalid.append(f"Invalid value for {key}")
        return parse_to_boolean(value)

    def optional_flag(self, key: str, *deprecated: str) -> Optional[bool]:
        value = self.source.get(key, *deprecated)
        if not value:
            return None
        if not is_boolean(value):
            self.invalid.append(f"Invalid value for {key}")
        return parse_to_boolean(value)

    def number(self, key: str, *deprecated: str) -> Optional[int]:
        value = self.source.get(key, *deprecated)
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            self.invalid.append(f"Invalid value for {key}")
            return None


def _polaris(source: InputSource) -> PolarisConfig:
    r = _Reader(source)
    cfg = PolarisConfig(
        server_url=r.text("polaris_server_url", "polaris_serverUrl"),
        access_token=r.text("polaris_access_token", "polaris_accessToken"),
        application_name=r.text("polaris_application_name"),
        project_name=r.text("polaris_project_name"),
        assessment_types=r.items("polaris_assessment_types"),
        assessment_mode=r.text("polaris_assessment_mode"),
        branch_name=r.text("polaris_branch_name"),
        branch_parent_name=r.text("polaris_branch_parent_name"),
        test_sca_type=r.text("polaris_test_sca_type"),
        test_sast_type=r.text("polaris_test_sast_type"),
        pr_comment_enabled=r.flag("polaris_prComment_enabled"),
        pr_comment_severities=r.items("polaris_prComment_severities"),
        sarif=SarifSettings(
            create=r.flag("polaris_reports_sarif_create"),
            file_path=r.text("polaris_reports_sarif_file_path"),
            severities=r.items("polaris_reports_sarif_severities"),
            group_sca_issues=r.optional_flag("polaris_reports_sarif_groupSCAIssues"),
            issue_types=r.items("polaris_reports_sarif_issue_types"),
        ),
        upload_sarif_report=r.flag("polaris_upload_sarif_report"),
        create_github_issues=r.flag("polaris_create_github_issues"),
        wait_for_scan=r.optional_flag("polaris_waitForScan"),
        policy_badges=PolicyBadges(
            create=r.flag("polaris_policy_badges_create"),
            max_count=r.number("polaris_policy_badges_maxCount"),
        ),
        workflow_version=r.text("polaris_workflow_version"),
    )
    return _with_invalid(cfg, r)


def _coverity(source: InputSource) -> CoverityConfig:
    r = _Reader(source)
    cfg = CoverityConfig(
        url=r.text("coverity_url"),
        user=r.text("coverity_user"),
        passphrase=r.text("coverity_passphrase"),
        project_name=r.text("coverity_project_name"),
        stream_name=r.text("coverity_stream_name"),
        install_directory=r.text("coverity_install_directory"),
        policy_view=r.text("coverity_policy_view"),
        wait_for_scan=r.optional_flag("coverity_waitForScan"),
        build_command=r.text("coverity_build_command"),
        clean_command=r.text("coverity_clean_command"),
        config_path=r.text("coverity_config_path"),
        args=r.text("coverity_args"),
        pr_comment_enabled=r.flag("coverity_prComment_enabled", "coverity_automation_prcomment"),
        local=r.flag("coverity_local"),
        version=r.text("coverity_version", "bridge_coverity_version"),
        execution_path=r.text("coverity_execution_path"),
        workflow_version=r.text("coverity_workflow_version"),
    )
    return _with_invalid(cfg, r)


def _blackducksca(source: InputSource) -> BlackDuckSCAConfig:
    r = _Reader(source)
    cfg = BlackDuckSCAConfig(
        url=r.text("blackducksca_url", "blackduck_url"),
        token=r.text("blackducksca_token", "blackduck_token"),
        scan_full=r.optional_flag("blackducksca_scan_full", "blackduck_scan_full"),
        scan_failure_severities=r.items(
            "blackducksca_scan_failure_severities", "blackduck_scan_failure_severities"
        ),
        fixpr=FixPrSettings(
            enabled=r.flag("blackducksca_fixpr_enabled", "blackduck_fixpr_enabled"),
            max_count=r.number("blackducksca_fixpr_maxCount", "blackduck_fixpr_maxCount"),
            create_single_pr=r.optional_flag(
                "blackducksca_fixpr_createSinglePR", "blackduck_fixpr_createSinglePR"
            ),
            filter_severities=r.items(
                "blackducksca_fixpr_filter_severities", "blackduck_fixpr_filter_severities"
            ),
            use_upgrade_guidance=r.items(
                "blackducksca_fixpr_useUpgradeGuidance", "blackduck_fixpr_useUpgradeGuidance"
            ),
        ),
        pr_comment_enabled=r.flag("blackducksca_prComment_enabled", "blackduck_prComment_enabled"),
        sarif=SarifSettings(
            create=r.flag("blackducksca_reports_sarif_create", "blackduck_reports_sarif_create"),
            file_path=r.text("blackducksca_reports_sarif_file_path", "blackduck_reports_sarif_file_path"),
            severities=r.items("blackducksca_reports_sarif_severities", "blackduck_reports_sarif_severities"),
            group_sca_issues=r.optional_flag(
                "blackducksca_reports_sarif_groupSCAIssues", "blackduck_reports_sarif_groupSCAIssues"
            ),
        ),
        upload_sarif_report=r.flag("blackducksca_upload_sarif_report", "blackduck_upload_sarif_report"),
        create_github_issues=r.flag("blackducksca_create_github_issues"),
        wait_for_scan=r.optional_flag("blackducksca_waitForScan", "blackduck_waitForScan"),
        policy_badges=PolicyBadges(
            create=r.flag("blackducksca_policy_badges_create", "blackduck_policy_badges_create"),
            max_count=r.number("blackducksca_policy_badges_maxCount", "blackduck_policy_badges_maxCount"),
        ),
        detect=DetectSettings(
            install_directory=r.text("detect_install_directory", "blackduck_install_directory"),
            execution_path=r.text("detect_execution_path", "blackduck_execution_path"),
            search_depth=r.number("detect_search_depth", "blackduck_search_depth"),
            config_path=r.text("detect_config_path", "blackduck_config_path"),
            args=r.text("detect_args", "blackduck_args"),
        ),
        workflow_version=r.text("blackducksca_workflow_version", "blackduck_workflow_version"),
    )
    return _with_invalid(cfg, r)


def _srm(source: InputSource) -> SRMConfig:
    r = _Reader(source)
    cfg = SRMConfig(
        url=r.text("srm_url"),
        apikey=r.text("srm_apikey"),
        assessment_types=r.items("srm_assessment_types"),
        project_name=r.text("srm_project_name"),
        project_id=r.text("srm_project_id"),
        branch_name=r.text("srm_branch_name"),
        branch_parent=r.text("srm_branch_parent"),
        wait_for_scan=r.optional_flag("srm_waitForScan"),
        workflow_version=r.text("srm_workflow_version"),
    )
    return _with_invalid(cfg, r)


def _with_invalid(cfg: Any, reader: _Reader) -> Any:
    if not reader.invalid:
        return cfg
    return replace(cfg, invalid_inputs=tuple(reader.invalid))


def load_config(source: InputSource) -> ActionConfig:
    """Build the immutable config once at entry.

    Raises :class:`ConfigurationError` when both SSL options are set.
    """
    network = NetworkSettings(
        airgap=parse_to_boolean(source.get("network_airgap", "bridge_network_airgap")),
        ssl_cert_file=source.get("network_ssl_cert_file"),
        ssl_trust_all=parse_to_boolean(source.get("network_ssl_trustAll")),
    )
    if network.ssl_cert_file and network.ssl_trust_all:
        raise ConfigurationError(SSL_MUTUALLY_EXCLUSIVE_ERROR)

    bridge = BridgeSettings(
        install_directory=source.get("bridgecli_install_directory", "synopsys_bridge_install_directory"),
        download_url=source.get("bridgecli_download_url", "synopsys_bridge_download_url"),
        download_version=source.get("bridgecli_download_version", "synopsys_bridge_download_version"),
        thin_client_enabled=parse_to_boolean(source.get("thin_client_enabled")),
        workflow_disable_update=parse_to_boolean(source.get("bridge_workflow_disable_update")),
        register_url=source.get("register_url"),
        artifactory_url=source.get("bridge_cli_custom_artifactory_url"),
    )

    project = ProjectSettings(
        directory=source.get("project_directory"),
        source_archive=source.get("project_source_archive"),
        source_preserve_symlinks=(
            parse_to_boolean(source.get("project_source_preserveSymLinks"))
            if source.get("project_source_preserveSymLinks")
            else None
        ),
        source_excludes=parse_list(source.get("project_source_excludes")),
    )

    return ActionConfig(
        bridge=bridge,
        network=network,
        project=project,
        polaris=_polaris(source),
        coverity=_coverity(source),
        blackducksca=_blackducksca(source),
        srm=_srm(source),
        github_token=source.get("github_token"),
        include_diagnostics=parse_to_boolean(source.get("include_diagnostics")),
        diagnostics_retention_days=source.get("diagnostics_retention_days"),
        return_status=parse_to_boolean(source.get("return_status")),
        mark_build_status=source.get("mark_build_status"),
    )
