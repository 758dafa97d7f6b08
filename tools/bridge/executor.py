"""tools/bridge/executor.py

Spawn the engine with inherited stdio and hand back its exit code untouched.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

from pipeline.constants import BRIDGE_EXECUTABLE_NOT_FOUND_ERROR
from pipeline.errors import ExecutableNotFoundError
from tools.core_cmd import spawn

logger = logging.getLogger(__name__)


class Executor:
    def __init__(self, runner: Callable[..., int] = spawn) -> None:
        self._runner = runner

    def execute(
        self,
        executable: Path,
        args: List[str],
        *,
        cwd: Optional[Path] = None,
        install_path: Optional[Path] = None,
    ) -> int:
        logger.debug("Bridge executable path: %s", executable)
        if not executable.is_file():
            where = install_path or executable.parent
            raise ExecutableNotFoundError(
                BRIDGE_EXECUTABLE_NOT_FOUND_ERROR.format(where), install_path=str(where)
            )
        cmd = [str(executable)] + list(args)
        logger.debug("Executing bridge command: %s", " ".join(args))
        code = self._runner(cmd, cwd=cwd)
        logger.debug("Bridge command execution completed with exit code: %s", code)
        return code
