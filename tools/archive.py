"""tools/archive.py

Zip extraction for engine archives.

``zipfile.extractall`` drops POSIX permission bits, which leaves the engine
binary non-executable, and it trusts member names. This helper rejects
members that would land outside the target directory and restores the mode
bits recorded in the archive.
"""

from __future__ import annotations

import stat
import zipfile
from pathlib import Path

from pipeline.constants import BRIDGE_CLI_EXTRACTION_FAILED
from pipeline.errors import IntegrityError


def extract_zip(archive: Path, destination: Path) -> Path:
    """Extract ``archive`` into ``destination`` and return ``destination``."""
    destination.mkdir(parents=True, exist_ok=True)
    root = destination.resolve()

    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                target = (destination / info.filename).resolve()
                if target != root and root not in target.parents:
                    raise IntegrityError(
                        BRIDGE_CLI_EXTRACTION_FAILED.format(
                            f"archive member escapes extraction directory: {info.filename}"
                        )
                    )
                zf.extract(info, path=destination)

                mode = (info.external_attr >> 16) & 0o777
                if mode and not info.is_dir():
                    target.chmod(mode)
    except zipfile.BadZipFile as e:
        raise IntegrityError(BRIDGE_CLI_EXTRACTION_FAILED.format(e)) from e

    return destination


def make_executable(path: Path) -> None:
    path.chmod(path.stat().st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)
