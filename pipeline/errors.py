"""pipeline.errors

Error taxonomy for the launcher.

Components raise these; only :func:`cli.dispatch.run_action` turns them into
the host's terminal failure (``set_failed``). Every error carries a
human-readable message and optionally the HTTP status that triggered it.
"""

from __future__ import annotations

import re
from typing import Optional


class PipelineError(Exception):
    """Base class for all launcher failures."""

    def __init__(self, message: str, *, http_status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.http_status = http_status


class ConfigurationError(PipelineError):
    """Invalid or mutually exclusive inputs, or no active product."""


class NetworkError(PipelineError):
    """Transport failure or retryable HTTP status after retries ran out."""


class NotFoundError(PipelineError):
    """HTTP 404 while provisioning."""


class InvalidUrlError(PipelineError):
    """A configured URL cannot be parsed."""


class RateLimitError(PipelineError):
    """Hosting API rate limit whose reset lies outside the retry budget."""

    def __init__(self, message: str, *, wait_minutes: int, http_status: Optional[int] = 403) -> None:
        super().__init__(message, http_status=http_status)
        self.wait_minutes = wait_minutes


class AirGapError(PipelineError):
    """Provisioning would need the network while air-gap mode is on."""


class IntegrityError(PipelineError):
    """Downloaded archive empty or missing, extraction failed, manifest incomplete."""


class VersionNotFoundError(PipelineError):
    """Requested engine version is not published in the repository."""


class ExecutionError(PipelineError):
    """The engine (or a helper invocation of it) exited non-zero."""

    def __init__(self, message: str, *, exit_code: int) -> None:
        super().__init__(message)
        self.exit_code = exit_code

    @classmethod
    def for_exit(cls, executable: str, exit_code: int) -> "ExecutionError":
        message = f"The process '{executable}' failed with exit code {exit_code}"
        if exit_code == 8:
            return PolicyBreakExit(message, exit_code=exit_code)
        return cls(message, exit_code=exit_code)


class PolicyBreakExit(ExecutionError):
    """Engine exited 8: the scan ran but findings violated policy."""


class ExecutableNotFoundError(ExecutionError):
    """The resolved engine executable does not exist on disk."""

    def __init__(self, message: str, *, install_path: str) -> None:
        super().__init__(message, exit_code=-1)
        self.install_path = install_path


_TRAILING_DIGIT = re.compile(r"(\d)$")


def exit_code_from_error(error: BaseException) -> int:
    """Numeric engine exit code carried by ``error``, or ``-1``."""
    if isinstance(error, ExecutionError):
        return error.exit_code if error.exit_code >= 0 else -1
    if isinstance(error, PipelineError):
        return -1
    m = _TRAILING_DIGIT.search(str(error).strip())
    return int(m.group(1)) if m else -1
