"""tools/io.py

Tiny filesystem helpers shared by the launcher.

Keep the implementations here and import them elsewhere, so JSON formatting,
temp-dir naming and directory walks behave the same in every module.

This module contains ONLY filesystem IO. Policy (what to write, where) lives
in ``pipeline/``.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

TEMP_DIR_PREFIX = "blackduck-security-action-"


def write_json(path: Path, data: Any) -> None:
    """Write pretty JSON to disk (UTF-8, 2-space indent)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def read_json(path: Path) -> Any:
    """Read JSON from disk (UTF-8)."""
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Scoped temp directories
# ---------------------------------------------------------------------------


def create_temp_dir(base: Optional[Path] = None) -> Path:
    """Create the per-run temp directory.

    ``base`` defaults to ``$RUNNER_TEMP`` on hosted runners and the system temp
    directory elsewhere.
    """
    root = base
    if root is None:
        runner_temp = os.environ.get("RUNNER_TEMP")
        root = Path(runner_temp) if runner_temp else None
    if root is not None:
        root.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX, dir=str(root) if root else None))
    logger.debug("Created temp directory %s", path)
    return path


def cleanup_temp_dir(path: Optional[Path]) -> None:
    """Remove the per-run temp directory; missing directories are fine."""
    if path is None or not path.exists():
        return
    shutil.rmtree(path)
    logger.debug("Removed temp directory %s", path)


# ---------------------------------------------------------------------------
# Directory walks
# ---------------------------------------------------------------------------


def list_files_recursive(root: Path) -> List[Path]:
    """Return every regular file under ``root`` (sorted, depth-first)."""
    if not root.is_dir():
        return []
    out: List[Path] = []
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        if entry.is_dir():
            out.extend(list_files_recursive(entry))
        elif entry.is_file():
            out.append(entry)
    return out


def remove_path(path: Path) -> None:
    """Delete a file or directory tree if it exists."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
