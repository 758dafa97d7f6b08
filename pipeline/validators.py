"""pipeline.validators

Per-product input validation.

Every validator returns a list of error strings and never raises: the
argument builder decides whether the errors are fatal (no product could run)
or only worth a log line (another product still runs). An inactive product
always validates clean.
"""

from __future__ import annotations

from pathlib import Path
from typing import List

from pipeline.constants import MISSING_GITHUB_TOKEN_ERROR, SCAN_TYPE_REQUIRED_ERROR
from pipeline.models import ActionConfig, BlackDuckSCAConfig, CoverityConfig, PolarisConfig, SRMConfig
from pipeline.products import PRODUCT_URL_KEYS

BLACKDUCK_SEVERITIES = frozenset(
    {
        "ALL",
        "NONE",
        "BLOCKER",
        "CRITICAL",
        "MAJOR",
        "MINOR",
        "OK",
        "TRIVIAL",
        "UNSPECIFIED",
    }
)


def _missing(prefix: str, **fields: object) -> List[str]:
    names = [name for name, value in fields.items() if not value]
    if not names:
        return []
    keys = ",".join(f"{prefix}_{name}" for name in names)
    return [f"[{keys}] - required parameters for {prefix} is missing"]


def validate_scan_types(config: ActionConfig) -> List[str]:
    """Error when no product URL is configured at all."""
    if any(p.active for p in (config.polaris, config.coverity, config.blackducksca, config.srm)):
        return []
    return [SCAN_TYPE_REQUIRED_ERROR.format(*PRODUCT_URL_KEYS)]


def validate_polaris(cfg: PolarisConfig) -> List[str]:
    if not cfg.active:
        return []
    errors = _missing("polaris", access_token=cfg.access_token, assessment_types=cfg.assessment_types)
    return errors + list(cfg.invalid_inputs)


def validate_coverity(cfg: CoverityConfig) -> List[str]:
    if not cfg.active:
        return []
    errors = _missing("coverity", user=cfg.user, passphrase=cfg.passphrase)
    if cfg.install_directory and not Path(cfg.install_directory).is_dir():
        errors.append(f"Invalid Install Directory: {cfg.install_directory}")
    return errors + list(cfg.invalid_inputs)


def validate_blackducksca(cfg: BlackDuckSCAConfig) -> List[str]:
    if not cfg.active:
        return []
    errors = _missing("blackducksca", token=cfg.token)
    unknown = [s for s in cfg.scan_failure_severities if s.upper() not in BLACKDUCK_SEVERITIES]
    if unknown:
        errors.append(f"Invalid value for blackducksca_scan_failure_severities: {','.join(unknown)}")
    return errors + list(cfg.invalid_inputs)


def validate_srm(cfg: SRMConfig) -> List[str]:
    if not cfg.active:
        return []
    errors = _missing("srm", apikey=cfg.apikey, assessment_types=cfg.assessment_types)
    return errors + list(cfg.invalid_inputs)


def validate_github_token(config: ActionConfig, *, is_pull_request: bool) -> List[str]:
    """A token is required whenever a PR comment, fix PR or SARIF upload will happen."""
    if config.github_token:
        return []
    pr_comment = is_pull_request and (
        (config.polaris.active and config.polaris.pr_comment_enabled)
        or (config.coverity.active and config.coverity.pr_comment_enabled)
        or (config.blackducksca.active and config.blackducksca.pr_comment_enabled)
    )
    fix_pr = not is_pull_request and config.blackducksca.active and config.blackducksca.fixpr.enabled
    sarif_upload = not is_pull_request and (
        (config.polaris.active and config.polaris.upload_sarif_report)
        or (config.blackducksca.active and config.blackducksca.upload_sarif_report)
    )
    if pr_comment or fix_pr or sarif_upload:
        return [MISSING_GITHUB_TOKEN_ERROR]
    return []
