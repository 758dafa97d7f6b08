"""pipeline.constants

Constants shared by the launcher: repository layout, exit codes, retry
policy, input key names, SARIF path conventions and user-facing messages.

Everything that more than one module needs to agree on lives here so the
engine client, the argument builder and the reporting publisher never drift
apart on a string.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Tuple

# ---------------------------------------------------------------------------
# Engine repository layout
# ---------------------------------------------------------------------------

BRIDGE_CLI_ARTIFACTORY_URL = (
    "https://repo.blackduck.com/bds-integrations-release/com/blackduck/integration/bridge/binaries/"
)
BRIDGE_CLI_BUNDLE = "bridge-cli-bundle"
BRIDGE_CLI_THIN_CLIENT = "bridge-cli-thin-client"
BRIDGE_CLI_FILE = "bridge-cli"
BRIDGE_CLI_EXECUTABLE_WINDOWS = "bridge-cli.exe"
VERSIONS_TXT = "versions.txt"
LATEST = "latest"

# <home>/.blackduck/integrations
DEFAULT_INSTALL_PARTS: Tuple[str, ...] = (".blackduck", "integrations")

# Diagnostics written by the engine under the working directory.
BRIDGE_DIAGNOSTICS_FOLDER = ".bridge"

# Platform tokens used in asset names.
WINDOWS_PLATFORM = "win64"
LINUX_PLATFORM = "linux64"
LINUX_ARM_PLATFORM = "linux_arm"
MAC_PLATFORM = "macosx"
MAC_ARM_PLATFORM = "macos_arm"

# Minimum engine versions that ship native arm64 assets.
MIN_SUPPORTED_BRIDGE_CLI_MAC_ARM_VERSION = "2.1.0"
MIN_SUPPORTED_BRIDGE_CLI_LINUX_ARM_VERSION = "3.5.1"

# Engine versions >= this use the "integrations" SARIF layout.
VERSION_SARIF_INTEGRATIONS_LAYOUT = "3.5.0"

# ---------------------------------------------------------------------------
# HTTP retry policy
# ---------------------------------------------------------------------------

RETRY_DELAY_SECONDS = 15.0
RETRY_COUNT = 3
NON_RETRY_HTTP_CODES: FrozenSet[int] = frozenset({200, 201, 401, 403, 416})
RATE_LIMIT_BUDGET_SECONDS = 105
DOWNLOAD_TIMEOUT_SECONDS = 300
HTTP_TIMEOUT_SECONDS = 60

GITHUB_CLOUD_URL = "https://github.com"
GITHUB_CLOUD_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
ISSUES_PER_PAGE = 100

# ---------------------------------------------------------------------------
# Engine exit codes
# ---------------------------------------------------------------------------

EXIT_CODE_SUCCESS = 0
EXIT_CODE_POLICY_BREAK = 8
EXIT_CODE_NOT_EXECUTED = -1

EXIT_CODE_MAP: Dict[str, str] = {
    "0": "Bridge execution successfully completed",
    "1": "Undefined error, check error logs",
    "2": "Error from adapter end",
    "3": "Failed to shutdown the bridge",
    "8": "The config option bridge.break has been set to true",
    "9": "Bridge initialization failed",
}

BUILD_STATUS_SUCCESS = "success"
BUILD_STATUS_FAILURE = "failure"
TASK_RETURN_STATUS = "status"

# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

POLARIS = "polaris"
COVERITY = "coverity"
BLACKDUCKSCA = "blackducksca"
SRM = "srm"

# Legacy (< 3.5.0) SARIF generator folders under .bridge/
POLARIS_SARIF_GENERATOR_DIR = "Polaris SARIF Generator"
BLACKDUCK_SARIF_GENERATOR_DIR = "Blackduck SCA SARIF Generator"
SARIF_DEFAULT_FILE_NAME = "report.sarif.json"
INTEGRATIONS_SARIF_DIR = "sarif"
INTEGRATIONS_LOCAL_PARTS: Tuple[str, ...] = (".blackduck", "integrations")

POLARIS_SARIF_ARTIFACT_PREFIX = "polaris_sarif_report_"
BLACKDUCK_SARIF_ARTIFACT_PREFIX = "blackduck_sarif_report_"
DIAGNOSTICS_ARTIFACT_NAME = "bridge_diagnostics"

INTEGRATIONS_GITHUB_CLOUD = "Integrations-github-cloud"
INTEGRATIONS_GITHUB_EE = "Integrations-github-ee"

PULL_REQUEST_EVENTS: FrozenSet[str] = frozenset({"pull_request", "pull_request_target"})

# ---------------------------------------------------------------------------
# Input keys (canonical). Deprecated aliases live in pipeline.config.
# ---------------------------------------------------------------------------

POLARIS_SERVER_URL_KEY = "polaris_server_url"
COVERITY_URL_KEY = "coverity_url"
BLACKDUCKSCA_URL_KEY = "blackducksca_url"
SRM_URL_KEY = "srm_url"

NETWORK_SSL_CERT_FILE_KEY = "network_ssl_cert_file"
NETWORK_SSL_TRUST_ALL_KEY = "network_ssl_trustAll"

# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

SCAN_TYPE_REQUIRED_ERROR = "Provide at least one of the product URL ({0}, {1}, {2}, or {3}) to proceed."
BRIDGE_CLI_URL_NOT_VALID_OS_ERROR = "Provided Bridge CLI url is not valid for the configured {0} runner"
BRIDGE_CLI_URL_NOT_VALID_ERROR = "Invalid URL"
PROVIDED_BRIDGE_CLI_URL_EMPTY_ERROR = "Provided Bridge CLI URL cannot be empty"
BRIDGE_VERSION_NOT_FOUND_ERROR = "Provided Bridge CLI version not found in artifactory"
BRIDGE_EXECUTABLE_NOT_FOUND_ERROR = "Bridge executable could not be found at {0}"
BRIDGE_CLI_DOWNLOAD_FAILED = "Bridge CLI download has been failed"
BRIDGE_CLI_EMPTY_DOWNLOAD = "Downloaded Bridge CLI archive is empty: {0}"
BRIDGE_CLI_EXTRACTION_FAILED = "Bridge CLI archive extraction failed: {0}"
AIR_GAP_VERSION_ERROR = (
    "Unable to use the specified Bridge CLI version in air gap mode. "
    "Please provide a valid 'BRIDGE_CLI_DOWNLOAD_URL'."
)
SSL_MUTUALLY_EXCLUSIVE_ERROR = (
    'Both "network.ssl.cert.file" and "network.ssl.trustAll" are set. '
    "Only one of these resources should be set."
)
NETWORK_SSL_VALIDATION_ERROR_MESSAGE = (
    "Bridge CLI download has been failed. Please check the SSL configuration "
    "(network_ssl_cert_file / network_ssl_trustAll)."
)
REGISTER_FAILED_ERROR = "Register command failed, returning early"

SARIF_GAS_API_RATE_LIMIT_ERROR = "GitHub API rate limit has been exceeded, retry after {0} minutes."
SARIF_GAS_UPLOAD_FAILED_ERROR = "Uploading SARIF report to GitHub Advanced Security failed: {0}"
SARIF_FILE_NOT_FOUND_FOR_UPLOAD_ERROR = "No SARIF file found to upload"
SARIF_REPORT_IGNORED_FOR_PR_SCAN = "SARIF report create/upload is ignored for pull request scan"
PR_COMMENT_IGNORED_FOR_NON_PR_SCAN = "{0} PR comment is ignored for non pull request scan"
FIX_PR_IGNORED_FOR_PR_SCAN = "Black Duck Fix PR is ignored for pull request scan"
MISSING_GITHUB_TOKEN_ERROR = "Missing required github token for fix pull request/pull request comments/SARIF upload"
INVALID_DIAGNOSTICS_RETENTION_DAYS = "Invalid Diagnostics Retention Days, hence continuing with default 90 days"
WORKFLOW_VERSION_IGNORED_FOR_BUNDLE = "Workflow version pin for {0} is ignored for Bridge CLI Bundle"
WORKFLOW_FAILED = "Workflow failed! {0}"
MARK_BUILD_STATUS_MESSAGE = "Marking the build {0} as configured in the task."

ISSUE_TITLE_PREFIX = "[Black Duck: Automated Issue]"
ISSUE_FOOTER = "*This issue was automatically created by the Black Duck Security Action.*"
