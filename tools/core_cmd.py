"""tools/core_cmd.py

Process-execution helpers shared by the engine client.

This module deliberately avoids engine-specific knowledge. It provides:

* :func:`run_cmd` - run a subprocess (no ``shell=True``) and capture output.
* :func:`spawn` - run a subprocess that inherits stdio and return its exit code.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    exit_code: int
    elapsed_seconds: float
    command_str: str
    stdout: str
    stderr: str


def _merged_env(env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    if env is None:
        return None
    merged = os.environ.copy()
    merged.update(env)
    return merged


def run_cmd(
    cmd: List[str],
    *,
    cwd: Optional[Path] = None,
    timeout_seconds: int = 0,
    env: Optional[Dict[str, str]] = None,
) -> CmdResult:
    """Run a subprocess and capture stdout/stderr.

    Never raises on non-zero exit codes; only raises on execution errors
    (e.g. binary not found).
    """
    t0 = time.time()
    proc = subprocess.run(
        cmd,
        cwd=str(cwd) if cwd else None,
        text=True,
        capture_output=True,
        timeout=timeout_seconds if timeout_seconds and timeout_seconds > 0 else None,
        env=_merged_env(env),
    )
    return CmdResult(
        exit_code=proc.returncode,
        elapsed_seconds=time.time() - t0,
        command_str=" ".join(cmd),
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )


def spawn(cmd: List[str], *, cwd: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> int:
    """Run ``cmd`` with inherited stdio and return its exit code unchanged."""
    logger.debug("Executing: %s (cwd=%s)", " ".join(cmd), cwd or os.getcwd())
    proc = subprocess.run(cmd, cwd=str(cwd) if cwd else None, env=_merged_env(env))
    logger.debug("Command completed with exit code: %s", proc.returncode)
    return proc.returncode
