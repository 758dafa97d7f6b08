"""cli.ui

Host glue for GitHub Actions: log rendering, step outputs, terminal failure.

* :class:`GitHubActionsHandler` renders log records as workflow commands
  (``::debug::``, ``::warning::``, ``::error::``); INFO stays plain text.
* :func:`set_output` appends to the ``$GITHUB_OUTPUT`` file using the
  delimiter form, so values may span lines. Without ``$GITHUB_OUTPUT`` (local
  runs) the pair is printed.
* :func:`set_failed` prints ``::error::`` and records the failure; the
  entrypoint exits non-zero when a failure was recorded.
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Any, Mapping, Optional, TextIO

_state = {"failed": False}


class GitHubActionsHandler(logging.Handler):
    """Render records as workflow commands on stdout."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        super().__init__()
        self.stream = stream

    def _escape(self, message: str) -> str:
        return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            if record.levelno >= logging.ERROR:
                line = f"::error::{self._escape(message)}"
            elif record.levelno >= logging.WARNING:
                line = f"::warning::{self._escape(message)}"
            elif record.levelno >= logging.INFO:
                line = message
            else:
                line = f"::debug::{self._escape(message)}"
            stream = self.stream or sys.stdout
            stream.write(line + "\n")
            stream.flush()
        except Exception:  # pragma: no cover - logging must never raise
            self.handleError(record)


def debug_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return env.get("RUNNER_DEBUG", "") == "1"


def configure_logging(debug: bool = False, *, stream: Optional[TextIO] = None) -> logging.Handler:
    """Install a single workflow-command handler on the root logger."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, GitHubActionsHandler):
            root.removeHandler(existing)
    handler = GitHubActionsHandler(stream)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug or debug_enabled() else logging.INFO)
    return handler


# ---------------------------------------------------------------------------
# Outputs and terminal status
# ---------------------------------------------------------------------------


def set_output(name: str, value: Any, *, output_file: Optional[str] = None) -> None:
    path = output_file if output_file is not None else os.environ.get("GITHUB_OUTPUT", "")
    text = str(value)
    if not path:
        print(f"{name}={text}")
        return
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    with Path(path).open("a", encoding="utf-8") as f:
        f.write(f"{name}<<{delimiter}\n{text}\n{delimiter}\n")


def set_failed(message: str, *, stream: Optional[TextIO] = None) -> None:
    _state["failed"] = True
    out = stream or sys.stdout
    out.write(f"::error::{message}\n")
    out.flush()


def has_failed() -> bool:
    return bool(_state["failed"])


def reset_failed() -> None:
    _state["failed"] = False
