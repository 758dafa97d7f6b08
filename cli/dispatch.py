"""cli.dispatch

Top-level run: bind inputs, run the orchestrator, translate the outcome into
the host's terminal status.

This is the only place errors become ``set_failed``. Everything below raises.

Terminal status rules
---------------------
* success: ``status`` output (when ``return_status``) is the engine exit code.
* failure: the exit code is recovered from the error (``-1`` when the engine
  never ran) and written to ``status`` the same way. Then:

  - ``mark_build_status=success`` with engine exit 8 logs the translated exit
    message and leaves the build green;
  - anything else calls ``set_failed("Workflow failed! <message>")``.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

from cli.common import parse_input_pairs
from cli.ui import has_failed, set_failed, set_output
from pipeline.config import load_config, parse_to_boolean
from pipeline.constants import (
    BUILD_STATUS_FAILURE,
    BUILD_STATUS_SUCCESS,
    EXIT_CODE_MAP,
    EXIT_CODE_POLICY_BREAK,
    MARK_BUILD_STATUS_MESSAGE,
    TASK_RETURN_STATUS,
    WORKFLOW_FAILED,
)
from pipeline.errors import PipelineError, exit_code_from_error
from pipeline.wiring import build_input_source, build_orchestrator, load_env_file
from tools.github.context import GitHubContext

logger = logging.getLogger(__name__)

BUILD_STATUSES = (BUILD_STATUS_SUCCESS, BUILD_STATUS_FAILURE)


# ---------------------------------------------------------------------------
# Exit-code helpers
# ---------------------------------------------------------------------------


def log_bridge_exit_codes(message: str) -> str:
    """``"... exit code 8"`` -> ``"Exit Code: 8 <meaning>"``; other messages pass through."""
    code = message.strip()[-1:]
    if code in EXIT_CODE_MAP:
        return f"Exit Code: {code} {EXIT_CODE_MAP[code]}"
    return message


def get_bridge_exit_code_as_numeric_value(error: BaseException) -> int:
    return exit_code_from_error(error)


def check_job_result(build_status: Optional[str]) -> Optional[str]:
    if build_status and build_status in BUILD_STATUSES:
        return build_status
    if build_status:
        logger.debug("Unsupported value for mark_build_status: %s", build_status)
    return None


def mark_build_status_if_issues_are_present(status: int, task_result: str, error_message: str) -> None:
    exit_message = log_bridge_exit_codes(error_message)
    if status == EXIT_CODE_POLICY_BREAK:
        logger.debug(error_message)
        if task_result == BUILD_STATUS_SUCCESS:
            logger.info(exit_message)
        logger.info(MARK_BUILD_STATUS_MESSAGE.format(task_result))
    else:
        set_failed(WORKFLOW_FAILED.format(log_bridge_exit_codes(exit_message)))


def _report_status(return_status: bool, exit_code: int) -> None:
    if return_status:
        logger.debug("Setting output variable %s with exit code %s", TASK_RETURN_STATUS, exit_code)
        set_output(TASK_RETURN_STATUS, exit_code)


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------


def run_action(args: argparse.Namespace) -> int:
    """Run the launcher once; returns the process exit status (0 unless failed)."""
    if args.env_file:
        load_env_file(Path(args.env_file))
    else:
        load_env_file()

    config_file = Path(args.config_file) if args.config_file else None
    try:
        overrides = parse_input_pairs(args.inputs)
        source = build_input_source(config_file=config_file, overrides=overrides)
    except (ValueError, PipelineError, OSError) as e:
        set_failed(WORKFLOW_FAILED.format(getattr(e, "message", None) or e))
        return 1

    return_status = parse_to_boolean(source.get("return_status"))
    mark_build_status = source.get("mark_build_status")

    context = GitHubContext.from_env()
    if args.workspace:
        context = replace(context, workspace=str(Path(args.workspace).resolve()))

    try:
        config = load_config(source)
        exit_code = build_orchestrator(config, context).run()
    except (PipelineError, OSError) as e:
        message = getattr(e, "message", None) or str(e)
        exit_code = get_bridge_exit_code_as_numeric_value(e)
        _report_status(return_status, exit_code)

        task_result = check_job_result(mark_build_status)
        if task_result and task_result != BUILD_STATUS_FAILURE:
            mark_build_status_if_issues_are_present(exit_code, task_result, message)
        else:
            set_failed(WORKFLOW_FAILED.format(log_bridge_exit_codes(message)))
        return 1 if has_failed() else 0

    _report_status(return_status, exit_code)
    return 1 if has_failed() else 0
