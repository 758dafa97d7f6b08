"""tools/bridge/variants.py

The two engine packagings, expressed as method tables the
:class:`~tools.bridge.client.EngineClient` drives.

* :class:`BundleVariant` - self-contained archive; version lives in the
  ``versions.txt`` manifest shipped inside the install directory.
* :class:`ThinVariant` - small launcher that streams workflow modules; version
  is whatever ``bridge-cli --version`` prints.

A variant never owns state. Everything it needs (paths, transport, process
runners, settings) is reached through the client it is handed.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from pipeline.constants import (
    AIR_GAP_VERSION_ERROR,
    BRIDGE_CLI_BUNDLE,
    BRIDGE_CLI_FILE,
    BRIDGE_CLI_THIN_CLIENT,
    BRIDGE_VERSION_NOT_FOUND_ERROR,
    REGISTER_FAILED_ERROR,
    VERSIONS_TXT,
    WORKFLOW_VERSION_IGNORED_FOR_BUNDLE,
)
from pipeline.errors import AirGapError, ExecutionError, VersionNotFoundError
from pipeline.models import BUNDLE, THIN, StageParams
from tools.archive import extract_zip, make_executable
from tools.bridge.versions import manifest_declares, version_for
from tools.io import remove_path

if TYPE_CHECKING:
    from tools.bridge.client import EngineClient

logger = logging.getLogger(__name__)

_PLATFORM_TOKENS = "win64|linux64|linux_arm|macosx|macos_arm"


@dataclass(frozen=True)
class Resolution:
    """Where to fetch the engine from (``url`` empty means: no download)."""

    url: str
    version: str


def _promote_single_dir(root: Path, marker: str) -> None:
    """Move the contents of a lone top-level folder up into ``root``.

    Some archives wrap their payload in one directory; the install layout
    expects ``marker`` directly under ``root``.
    """
    if (root / marker).exists():
        return
    entries = list(root.iterdir())
    if len(entries) != 1 or not entries[0].is_dir():
        return
    inner = entries[0]
    for child in list(inner.iterdir()):
        child.rename(root / child.name)
    inner.rmdir()


class Variant:
    kind: str = ""
    repo_kind: str = ""
    label: str = ""

    def install_folder(self, token: str) -> str:
        raise NotImplementedError

    def asset_name(self, version: str, token: str) -> str:
        raise NotImplementedError

    def latest_asset_name(self, token: str) -> str:
        raise NotImplementedError

    def url_version(self, url: str) -> Optional[str]:
        """Version embedded in a download URL; ``None``/empty when absent."""
        raise NotImplementedError

    def version_matches(self, client: "EngineClient", version: str) -> bool:
        raise NotImplementedError

    def installed_version(self, client: "EngineClient") -> str:
        raise NotImplementedError

    def explicit_version(self, client: "EngineClient", version: str) -> Resolution:
        raise NotImplementedError

    def extract_layout(self, client: "EngineClient", archive: Path) -> None:
        raise NotImplementedError

    def invoke_extras(self, client: "EngineClient") -> None:
        """Extra invocations that precede every engine run."""

    def format_stage(self, params: StageParams) -> List[str]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------


class BundleVariant(Variant):
    kind = BUNDLE
    repo_kind = BRIDGE_CLI_BUNDLE
    label = "Bridge CLI Bundle"

    _URL_VERSION = re.compile(rf"{BRIDGE_CLI_BUNDLE}-([0-9.]*)")

    def install_folder(self, token: str) -> str:
        return f"{BRIDGE_CLI_BUNDLE}-{token}"

    def asset_name(self, version: str, token: str) -> str:
        return f"{BRIDGE_CLI_BUNDLE}-{version}-{token}.zip"

    def latest_asset_name(self, token: str) -> str:
        return f"{BRIDGE_CLI_BUNDLE}-{token}.zip"

    def url_version(self, url: str) -> Optional[str]:
        m = self._URL_VERSION.search(url)
        if not m:
            return None
        return m.group(1).strip(".")

    def _manifest(self, client: "EngineClient") -> Path:
        return client.install_path / VERSIONS_TXT

    def version_matches(self, client: "EngineClient", version: str) -> bool:
        manifest = self._manifest(client)
        if not manifest.is_file():
            logger.debug("Bridge CLI version file could not be found at %s", client.install_path)
            return False
        return manifest_declares(manifest.read_text(encoding="utf-8"), BRIDGE_CLI_BUNDLE, version)

    def installed_version(self, client: "EngineClient") -> str:
        manifest = self._manifest(client)
        if not manifest.is_file():
            return ""
        return version_for(manifest.read_text(encoding="utf-8"), BRIDGE_CLI_BUNDLE) or ""

    def explicit_version(self, client: "EngineClient", version: str) -> Resolution:
        if client.network.airgap and not client.settings.download_url:
            raise AirGapError(AIR_GAP_VERSION_ERROR)
        if not client.is_published(version):
            raise VersionNotFoundError(BRIDGE_VERSION_NOT_FOUND_ERROR)
        return Resolution(url=client.versioned_url(version), version=version)

    def extract_layout(self, client: "EngineClient", archive: Path) -> None:
        target = client.install_path
        staging = target.parent / f".extract-{archive.stem}"
        remove_path(staging)
        extract_zip(archive, staging)

        inner = staging / archive.stem
        source = inner if inner.is_dir() else staging
        if source is staging:
            _promote_single_dir(staging, VERSIONS_TXT)

        logger.debug("Rename folder from %s to %s", source, target)
        source.rename(target)
        remove_path(staging)

    def format_stage(self, params: StageParams) -> List[str]:
        if params.workflow_version:
            logger.info(WORKFLOW_VERSION_IGNORED_FOR_BUNDLE.format(params.stage))
        return ["--stage", params.stage, "--input", str(params.state_file_path)]


# ---------------------------------------------------------------------------
# Thin client
# ---------------------------------------------------------------------------


class ThinVariant(Variant):
    kind = THIN
    repo_kind = BRIDGE_CLI_THIN_CLIENT
    label = "Bridge Thin Client"

    _URL_VERSION = re.compile(
        rf"{BRIDGE_CLI_THIN_CLIENT}/([\d.]+)/.*{BRIDGE_CLI_FILE}-(?:{_PLATFORM_TOKENS})\.zip"
    )

    def __init__(self, *, disable_update: bool = False) -> None:
        self.disable_update = disable_update

    def install_folder(self, token: str) -> str:
        return f"{BRIDGE_CLI_FILE}-{token}"

    def asset_name(self, version: str, token: str) -> str:
        return f"{BRIDGE_CLI_FILE}-{token}.zip"

    def latest_asset_name(self, token: str) -> str:
        return f"{BRIDGE_CLI_FILE}-{token}.zip"

    def url_version(self, url: str) -> Optional[str]:
        if "/latest/" in url:
            return ""
        m = self._URL_VERSION.search(url)
        return m.group(1) if m else None

    def version_matches(self, client: "EngineClient", version: str) -> bool:
        if not version or not client.executable_path.is_file():
            logger.debug("Bridge executable does not exist")
            return False
        try:
            return client.thin_version() == version
        except (ExecutionError, OSError) as e:
            logger.debug("Failed to get bridge version: %s", e)
            return False

    def installed_version(self, client: "EngineClient") -> str:
        if not client.executable_path.is_file():
            return ""
        return client.thin_version()

    def explicit_version(self, client: "EngineClient", version: str) -> Resolution:
        if client.network.airgap:
            # The cached launcher switches versions itself; no download.
            client.use_version(version)
            return Resolution(url="", version=version)
        if not client.is_published(version):
            raise VersionNotFoundError(BRIDGE_VERSION_NOT_FOUND_ERROR)
        return Resolution(url=client.versioned_url(version), version=version)

    def extract_layout(self, client: "EngineClient", archive: Path) -> None:
        target = client.install_path
        extract_zip(archive, target)
        _promote_single_dir(target, client.executable_path.name)

    def invoke_extras(self, client: "EngineClient") -> None:
        register_url = client.settings.register_url
        if not register_url:
            return
        logger.debug("Registering Bridge CLI with %s", register_url)
        code = client.run_engine(["--register", register_url])
        if code != 0:
            raise ExecutionError(f"{REGISTER_FAILED_ERROR} (exit code {code})", exit_code=code)

    def format_stage(self, params: StageParams) -> List[str]:
        stage = f"{params.stage}@{params.workflow_version}" if params.workflow_version else params.stage
        tokens = ["--stage", stage, "--input", str(params.state_file_path)]
        if self.disable_update:
            logger.info("Bridge workflow update is disabled")
        else:
            tokens.append("--update")
        return tokens


def make_executable_if_present(path: Path) -> None:
    if path.is_file():
        make_executable(path)
