"""tools/platform_info.py

Platform detection and asset-name tokens for engine downloads.

The engine publishes one archive per platform token (``win64``, ``linux64``,
``linux_arm``, ``macosx``, ``macos_arm``). Native arm64 archives exist only
from a minimum engine version per OS; older versions fall back to x64 assets
(Rosetta / emulation).
"""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from packaging.version import InvalidVersion, Version

from pipeline.constants import (
    DEFAULT_INSTALL_PARTS,
    LINUX_ARM_PLATFORM,
    LINUX_PLATFORM,
    MAC_ARM_PLATFORM,
    MAC_PLATFORM,
    MIN_SUPPORTED_BRIDGE_CLI_LINUX_ARM_VERSION,
    MIN_SUPPORTED_BRIDGE_CLI_MAC_ARM_VERSION,
    WINDOWS_PLATFORM,
)

logger = logging.getLogger(__name__)

MAC = "mac"
LINUX = "linux"
WINDOWS = "windows"

X64 = "x64"
ARM64 = "arm64"

_RUNNER_OS_NAMES = {MAC: "macOS", LINUX: "Linux", WINDOWS: "Windows"}


@dataclass(frozen=True)
class PlatformInfo:
    os: str
    arch: str

    @property
    def is_windows(self) -> bool:
        return self.os == WINDOWS

    @property
    def runner_os(self) -> str:
        """Name used in user-facing messages (matches ``RUNNER_OS``)."""
        return _RUNNER_OS_NAMES.get(self.os, self.os)

    def token(self, version: Optional[str] = None) -> str:
        """Asset token for ``version`` (or the newest layout when unknown)."""
        if self.os == WINDOWS:
            return WINDOWS_PLATFORM
        if self.os == MAC:
            if self.arch == ARM64 and _at_least(version, MIN_SUPPORTED_BRIDGE_CLI_MAC_ARM_VERSION):
                return MAC_ARM_PLATFORM
            return MAC_PLATFORM
        if self.arch == ARM64 and _at_least(version, MIN_SUPPORTED_BRIDGE_CLI_LINUX_ARM_VERSION):
            return LINUX_ARM_PLATFORM
        return LINUX_PLATFORM


def _at_least(version: Optional[str], minimum: str) -> bool:
    # No version yet (latest) means the newest layout, which has arm assets.
    if not version:
        return True
    try:
        return Version(version) >= Version(minimum)
    except InvalidVersion:
        logger.debug("Unparsable engine version %r; assuming x64 assets", version)
        return False


def detect_platform(system: Optional[str] = None, machine: Optional[str] = None) -> PlatformInfo:
    """Detect the current OS/arch (overridable for tests)."""
    system = (system if system is not None else platform.system()).lower()
    machine = (machine if machine is not None else platform.machine()).lower()

    if system == "darwin":
        os_name = MAC
    elif system == "windows":
        os_name = WINDOWS
    else:
        os_name = LINUX

    arch = ARM64 if machine in {"arm64", "aarch64", "armv8", "armv8l"} else X64
    return PlatformInfo(os=os_name, arch=arch)


def default_install_base(info: PlatformInfo) -> Path:
    """``<home>/.blackduck/integrations`` using the per-OS home variable."""
    if info.is_windows:
        home = os.environ.get("USERPROFILE") or str(Path.home())
    else:
        home = os.environ.get("HOME") or str(Path.home())
    return Path(home).joinpath(*DEFAULT_INSTALL_PARTS)
