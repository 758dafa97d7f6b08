"""tools/bridge/client.py

Engine client: resolve, provision and invoke the Bridge CLI.

Provisioning state machine
--------------------------
::

    idle -> resolving -> (cached) ------------------------------> ready
                      \\-> downloading -> extracting -> installed -> ready
    any step may end in: failed
    ready -> executing -> done

Resolution order
----------------
1. ``bridgecli_download_url``: the URL as given; version from the URL, or
   from the sibling ``versions.txt`` when the URL has none.
2. ``bridgecli_download_version``: reuse a matching install, otherwise the
   variant decides (validated repository URL, or ``--use`` in air-gap mode
   for the thin client).
3. latest: in air-gap mode the cached engine is used as-is; otherwise
   ``{base}/{kind}/latest/versions.txt`` names the version to fetch.

The install directory is only touched after the cache check says the
requested version is missing.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional
from urllib.parse import urlparse

from pipeline.constants import (
    BRIDGE_CLI_ARTIFACTORY_URL,
    BRIDGE_CLI_EXECUTABLE_WINDOWS,
    BRIDGE_CLI_FILE,
    BRIDGE_CLI_URL_NOT_VALID_OS_ERROR,
    BRIDGE_EXECUTABLE_NOT_FOUND_ERROR,
    LATEST,
    VERSIONS_TXT,
)
from pipeline.errors import (
    AirGapError,
    ExecutionError,
    IntegrityError,
    InvalidUrlError,
    NetworkError,
    NotFoundError,
    PipelineError,
)
from pipeline.models import ActionConfig, EngineDescriptor
from tools.bridge.executor import Executor
from tools.bridge.variants import Resolution, Variant, make_executable_if_present
from tools.bridge.versions import parse_version_listing, parse_versions_txt
from tools.core_cmd import CmdResult, run_cmd
from tools.http import HttpTransport
from tools.io import remove_path
from tools.platform_info import PlatformInfo, default_install_base, detect_platform

logger = logging.getLogger(__name__)

IDLE = "idle"
RESOLVING = "resolving"
DOWNLOADING = "downloading"
EXTRACTING = "extracting"
INSTALLED = "installed"
READY = "ready"
EXECUTING = "executing"
DONE = "done"
FAILED = "failed"


class EngineClient:
    def __init__(
        self,
        variant: Variant,
        config: ActionConfig,
        *,
        transport: HttpTransport,
        platform_info: Optional[PlatformInfo] = None,
        executor: Optional[Executor] = None,
        capture: Callable[..., CmdResult] = run_cmd,
        runner_os: str = "",
    ) -> None:
        self.variant = variant
        self.settings = config.bridge
        self.network = config.network
        self.transport = transport
        self.platform = platform_info or detect_platform()
        self.executor = executor or Executor()
        self._capture = capture
        self.runner_os = runner_os or self.platform.runner_os
        self.state = IDLE
        self._thin_version: Optional[str] = None

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        base = self.settings.artifactory_url or BRIDGE_CLI_ARTIFACTORY_URL
        return base if base.endswith("/") else base + "/"

    @property
    def kind_url(self) -> str:
        return f"{self.base_url}{self.variant.repo_kind}/"

    @property
    def install_base(self) -> Path:
        if self.settings.install_directory:
            return Path(self.settings.install_directory)
        return default_install_base(self.platform)

    @property
    def install_path(self) -> Path:
        folder = self.variant.install_folder(self.platform.token())
        return self.install_base / self.variant.repo_kind / folder

    @property
    def executable_path(self) -> Path:
        name = BRIDGE_CLI_EXECUTABLE_WINDOWS if self.platform.is_windows else BRIDGE_CLI_FILE
        return self.install_path / name

    def versioned_url(self, version: str) -> str:
        token = self.platform.token(version)
        if token != self.platform.token():
            logger.info(
                "Detected Bridge CLI version (%s) below the minimum ARM support requirement. "
                "Defaulting to %s platform.",
                version,
                token,
            )
        return f"{self.kind_url}{version}/{self.variant.asset_name(version, token)}"

    def latest_url(self) -> str:
        return f"{self.kind_url}{LATEST}/{self.variant.latest_asset_name(self.platform.token())}"

    def descriptor(self, version: str = "") -> EngineDescriptor:
        return EngineDescriptor(
            kind=self.variant.kind,
            version=version or self.variant.installed_version(self),
            install_path=self.install_path,
            executable_path=self.executable_path,
        )

    # ------------------------------------------------------------------
    # Repository queries
    # ------------------------------------------------------------------

    def latest_version(self, versions_url: str) -> str:
        """Version named in a ``versions.txt`` document, or "" when unavailable."""
        try:
            response = self.transport.get(versions_url, {"Accept": "text/html"}, fail_fast=(404,))
        except NetworkError as e:
            logger.warning("Unable to retrieve the most recent version from Artifactory URL: %s", e)
            return ""
        if response.status != 200:
            logger.warning("Unable to retrieve the most recent version from Artifactory URL")
            return ""

        versions = parse_versions_txt(response.text)
        if self.variant.repo_kind in versions:
            return versions[self.variant.repo_kind]
        for name, value in versions.items():
            if name.startswith(BRIDGE_CLI_FILE):
                return value
        logger.warning("Unable to retrieve the most recent version from Artifactory URL")
        return ""

    def available_versions(self) -> List[str]:
        try:
            response = self.transport.get(self.kind_url, {"Accept": "text/html"}, fail_fast=(404,))
        except NetworkError as e:
            logger.warning("Unable to retrieve the Bridge Versions from Artifactory: %s", e)
            return []
        if response.status != 200:
            logger.warning("Unable to retrieve the Bridge Versions from Artifactory")
            return []
        return parse_version_listing(response.text)

    def is_published(self, version: str) -> bool:
        return version.strip() in self.available_versions()

    # ------------------------------------------------------------------
    # Engine helpers used by the variants
    # ------------------------------------------------------------------

    def thin_version(self) -> str:
        """``bridge-cli --version`` output, cached for the life of the client."""
        if self._thin_version is not None:
            return self._thin_version
        result = self._capture([str(self.executable_path), "--version"])
        if result.exit_code != 0:
            raise ExecutionError(
                f"Failed to get bridge version: {result.stderr.strip() or result.stdout.strip()}",
                exit_code=result.exit_code,
            )
        self._thin_version = result.stdout.strip()
        return self._thin_version

    def run_engine(self, args: List[str], cwd: Optional[Path] = None) -> int:
        return self.executor.execute(self.executable_path, args, cwd=cwd, install_path=self.install_path)

    def use_version(self, version: str) -> None:
        self._require_local_executable()
        logger.info("Switching Bridge CLI to version %s", version)
        code = self.run_engine(["--use", f"{BRIDGE_CLI_FILE}@{version}"])
        if code != 0:
            raise ExecutionError.for_exit(str(self.executable_path), code)

    def _require_local_executable(self) -> None:
        if self.executable_path.is_file():
            return
        if self.settings.download_url:
            logger.debug(
                "Executable missing in air gap mode, will download from: %s", self.settings.download_url
            )
            return
        raise AirGapError(BRIDGE_EXECUTABLE_NOT_FOUND_ERROR.format(self.install_path))

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self) -> Resolution:
        if self.settings.download_url:
            logger.debug("Using provided Bridge CLI download URL")
            return self._from_url(self.settings.download_url)

        if self.settings.download_version:
            version = self.settings.download_version.strip()
            logger.debug("Using specified Bridge CLI version: %s", version)
            if self.variant.version_matches(self, version):
                logger.info("Bridge CLI already exists")
                return Resolution(url="", version=version)
            return self.variant.explicit_version(self, version)

        logger.debug("No specific URL or version provided, using latest version")
        return self._latest()

    def _from_url(self, url: str) -> Resolution:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidUrlError(f"Invalid URL: {url}")

        version = self.variant.url_version(url)
        if not version:
            sibling = url.rsplit("/", 1)[0] + "/" + VERSIONS_TXT
            version = self.latest_version(sibling)
        return Resolution(url=url, version=version)

    def _latest(self) -> Resolution:
        if self.network.airgap:
            self._require_local_executable()
            logger.info("Bridge CLI already exists")
            return Resolution(url="", version="")

        logger.info("Checking for latest version of Bridge to download and configure")
        version = self.latest_version(f"{self.kind_url}{LATEST}/{VERSIONS_TXT}")
        if version:
            return Resolution(url=self.versioned_url(version), version=version)
        logger.warning("Falling back to the latest Bridge CLI download URL")
        return Resolution(url=self.latest_url(), version="")

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def provision(self, temp_dir: Path) -> EngineDescriptor:
        """Make the engine executable available; returns its descriptor."""
        self.state = RESOLVING
        try:
            if self.network.airgap:
                logger.info("Network air gap is enabled.")
            resolution = self.resolve()
            logger.info("Bridge CLI version is - %s", resolution.version)

            if not resolution.url:
                self.state = READY
                return self.descriptor(resolution.version)

            if self.variant.version_matches(self, resolution.version):
                logger.info("Bridge CLI already exists")
                self.state = READY
                return self.descriptor(resolution.version)

            self._install(resolution, temp_dir)
            self.state = READY
            return self.descriptor(resolution.version)
        except (NotFoundError, InvalidUrlError) as e:
            self.state = FAILED
            logger.debug("Bridge CLI download failed: %s", e)
            raise NotFoundError(
                BRIDGE_CLI_URL_NOT_VALID_OS_ERROR.format(self.runner_os), http_status=e.http_status
            ) from e
        except PipelineError:
            self.state = FAILED
            raise

    def _install(self, resolution: Resolution, temp_dir: Path) -> None:
        self.state = DOWNLOADING
        logger.info("Downloading and configuring Bridge from URL - %s", resolution.url)
        archive_name = Path(urlparse(resolution.url).path).name or f"{self.variant.repo_kind}.zip"
        archive = self.transport.download(resolution.url, temp_dir / archive_name)

        if self.install_path.exists():
            logger.info("Clear the existing bridge folder, if available from %s", self.install_path)
            remove_path(self.install_path)
        self.install_path.parent.mkdir(parents=True, exist_ok=True)

        self.state = EXTRACTING
        self.variant.extract_layout(self, archive)
        self._thin_version = None

        self.state = INSTALLED
        if not self.executable_path.is_file():
            raise IntegrityError(BRIDGE_EXECUTABLE_NOT_FOUND_ERROR.format(self.install_path))
        make_executable_if_present(self.executable_path)
        logger.info("Download and configuration of Bridge CLI completed")

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def execute(self, args: List[str], cwd: Path) -> int:
        """Run the engine with ``args`` in ``cwd``; returns its exit code unchanged."""
        self.state = EXECUTING
        try:
            self.variant.invoke_extras(self)
            code = self.run_engine(args, cwd=cwd)
        except PipelineError:
            self.state = FAILED
            raise
        self.state = DONE
        return code
