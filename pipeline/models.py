"""pipeline.models

Data structures passed through the launcher.

Why this exists
---------------
Input binding, validation, state-file emission and reporting all talk about
the same things: which products are configured, what the engine looks like
on disk, what one command-line fragment carries. These dataclasses give that
a small explicit vocabulary instead of loose dicts.

All of them are frozen. Configuration is built once at entry
(:func:`pipeline.config.load_config`) and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

BUNDLE = "bundle"
THIN = "thin"


@dataclass(frozen=True)
class EngineDescriptor:
    """A provisioned engine.

    ``executable_path`` always lives under ``install_path``.
    """

    kind: str
    version: str
    install_path: Path
    executable_path: Path


@dataclass(frozen=True)
class StageParams:
    """One product's contribution to the engine command line."""

    stage: str
    state_file_path: Path
    workflow_version: Optional[str] = None


# ---------------------------------------------------------------------------
# Shared product settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SarifSettings:
    create: bool = False
    file_path: str = ""
    severities: Tuple[str, ...] = ()
    group_sca_issues: Optional[bool] = None
    issue_types: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PolicyBadges:
    create: bool = False
    max_count: Optional[int] = None


@dataclass(frozen=True)
class ProjectSettings:
    directory: str = ""
    source_archive: str = ""
    source_preserve_symlinks: Optional[bool] = None
    source_excludes: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PolarisConfig:
    server_url: str = ""
    access_token: str = ""
    application_name: str = ""
    project_name: str = ""
    assessment_types: Tuple[str, ...] = ()
    assessment_mode: str = ""
    branch_name: str = ""
    branch_parent_name: str = ""
    test_sca_type: str = ""
    test_sast_type: str = ""
    pr_comment_enabled: bool = False
    pr_comment_severities: Tuple[str, ...] = ()
    sarif: SarifSettings = field(default_factory=SarifSettings)
    upload_sarif_report: bool = False
    create_github_issues: bool = False
    wait_for_scan: Optional[bool] = None
    policy_badges: PolicyBadges = field(default_factory=PolicyBadges)
    workflow_version: str = ""
    invalid_inputs: Tuple[str, ...] = ()

    @property
    def active(self) -> bool:
        return bool(self.server_url)


@dataclass(frozen=True)
class CoverityConfig:
    url: str = ""
    user: str = ""
    passphrase: str = ""
    project_name: str = ""
    stream_name: str = ""
    install_directory: str = ""
    policy_view: str = ""
    wait_for_scan: Optional[bool] = None
    build_command: str = ""
    clean_command: str = ""
    config_path: str = ""
    args: str = ""
    pr_comment_enabled: bool = False
    local: bool = False
    version: str = ""
    execution_path: str = ""
    workflow_version: str = ""
    invalid_inputs: Tuple[str, ...] = ()

    @property
    def active(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class FixPrSettings:
    enabled: bool = False
    max_count: Optional[int] = None
    create_single_pr: Optional[bool] = None
    filter_severities: Tuple[str, ...] = ()
    use_upgrade_guidance: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DetectSettings:
    install_directory: str = ""
    execution_path: str = ""
    search_depth: Optional[int] = None
    config_path: str = ""
    args: str = ""


@dataclass(frozen=True)
class BlackDuckSCAConfig:
    url: str = ""
    token: str = ""
    scan_full: Optional[bool] = None
    scan_failure_severities: Tuple[str, ...] = ()
    fixpr: FixPrSettings = field(default_factory=FixPrSettings)
    pr_comment_enabled: bool = False
    sarif: SarifSettings = field(default_factory=SarifSettings)
    upload_sarif_report: bool = False
    create_github_issues: bool = False
    wait_for_scan: Optional[bool] = None
    policy_badges: PolicyBadges = field(default_factory=PolicyBadges)
    detect: DetectSettings = field(default_factory=DetectSettings)
    workflow_version: str = ""
    invalid_inputs: Tuple[str, ...] = ()

    @property
    def active(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class SRMConfig:
    url: str = ""
    apikey: str = ""
    assessment_types: Tuple[str, ...] = ()
    project_name: str = ""
    project_id: str = ""
    branch_name: str = ""
    branch_parent: str = ""
    wait_for_scan: Optional[bool] = None
    workflow_version: str = ""
    invalid_inputs: Tuple[str, ...] = ()

    @property
    def active(self) -> bool:
        return bool(self.url)


# ---------------------------------------------------------------------------
# Launcher settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BridgeSettings:
    install_directory: str = ""
    download_url: str = ""
    download_version: str = ""
    thin_client_enabled: bool = False
    workflow_disable_update: bool = False
    register_url: str = ""
    artifactory_url: str = ""


@dataclass(frozen=True)
class NetworkSettings:
    airgap: bool = False
    ssl_cert_file: str = ""
    ssl_trust_all: bool = False


@dataclass(frozen=True)
class ActionConfig:
    """Typed, immutable view of every input the launcher reads."""

    bridge: BridgeSettings = field(default_factory=BridgeSettings)
    network: NetworkSettings = field(default_factory=NetworkSettings)
    project: ProjectSettings = field(default_factory=ProjectSettings)
    polaris: PolarisConfig = field(default_factory=PolarisConfig)
    coverity: CoverityConfig = field(default_factory=CoverityConfig)
    blackducksca: BlackDuckSCAConfig = field(default_factory=BlackDuckSCAConfig)
    srm: SRMConfig = field(default_factory=SRMConfig)
    github_token: str = ""
    include_diagnostics: bool = False
    diagnostics_retention_days: str = ""
    return_status: bool = False
    mark_build_status: str = ""


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IssueDraft:
    title: str
    body: str
