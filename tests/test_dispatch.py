from __future__ import annotations

import argparse
import io
import logging
from pathlib import Path

import pytest

import cli.dispatch as dispatch
from cli.common import parse_input_pairs
from cli.ui import GitHubActionsHandler, has_failed, reset_failed, set_failed, set_output
from conftest import FakeCapture, FakeRunner
from pipeline.errors import ExecutionError, NetworkError
from pipeline.wiring import build_orchestrator
from tools.bridge import Executor
from tools.github.issues import GitHubIssuesService

POLICY_MESSAGE = "Exit Code: 8 The config option bridge.break has been set to true"


@pytest.fixture(autouse=True)
def _clean_failure_state():
    reset_failed()
    yield
    reset_failed()


# ---------------------------------------------------------------------------
# Exit-code helpers
# ---------------------------------------------------------------------------


def test_exit_code_messages_are_translated() -> None:
    assert dispatch.log_bridge_exit_codes("The process '/x/bridge-cli' failed with exit code 8") == POLICY_MESSAGE
    assert dispatch.log_bridge_exit_codes("failed with exit code 2") == "Exit Code: 2 Error from adapter end"
    assert dispatch.log_bridge_exit_codes("failed with exit code 7") == "failed with exit code 7"
    assert dispatch.log_bridge_exit_codes("plain failure") == "plain failure"


def test_numeric_exit_code_from_errors() -> None:
    assert dispatch.get_bridge_exit_code_as_numeric_value(ExecutionError.for_exit("bridge-cli", 2)) == 2
    assert dispatch.get_bridge_exit_code_as_numeric_value(NetworkError("HTTP 503 on attempt 3")) == -1
    assert dispatch.get_bridge_exit_code_as_numeric_value(OSError("disk full 9")) == 9


def test_check_job_result_accepts_only_known_statuses(caplog) -> None:
    assert dispatch.check_job_result("success") == "success"
    assert dispatch.check_job_result("failure") == "failure"
    assert dispatch.check_job_result("") is None
    with caplog.at_level(logging.DEBUG):
        assert dispatch.check_job_result("unstable") is None
    assert "Unsupported value for mark_build_status" in caplog.text


def test_policy_break_marked_success_keeps_build_green(caplog) -> None:
    with caplog.at_level(logging.INFO):
        dispatch.mark_build_status_if_issues_are_present(
            8, "success", "The process '/x/bridge-cli' failed with exit code 8"
        )

    assert not has_failed()
    assert POLICY_MESSAGE in caplog.text
    assert "Marking the build success as configured in the task." in caplog.text


def test_other_exit_codes_fail_the_build(capsys) -> None:
    dispatch.mark_build_status_if_issues_are_present(2, "success", "failed with exit code 2")

    assert has_failed()
    assert "::error::Workflow failed! Exit Code: 2 Error from adapter end" in capsys.readouterr().out


def test_input_pairs() -> None:
    assert parse_input_pairs(["a=1", " b = x=y "]) == {"a": "1", "b": "x=y"}
    assert parse_input_pairs(None) == {}
    with pytest.raises(ValueError):
        parse_input_pairs(["novalue"])
    with pytest.raises(ValueError):
        parse_input_pairs(["=value"])


# ---------------------------------------------------------------------------
# Host glue
# ---------------------------------------------------------------------------


def test_handler_renders_workflow_commands() -> None:
    stream = io.StringIO()
    logger = logging.getLogger("tests.dispatch.handler")
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    handler = GitHubActionsHandler(stream)
    logger.addHandler(handler)
    try:
        logger.debug("d")
        logger.info("plain info")
        logger.warning("w 100%")
        logger.error("two\nlines")
    finally:
        logger.removeHandler(handler)

    assert stream.getvalue().splitlines() == ["::debug::d", "plain info", "::warning::w 100%25", "::error::two%0Alines"]


def test_set_output_uses_delimiter_form(tmp_path: Path) -> None:
    out = tmp_path / "github_output"

    set_output("status", 8, output_file=str(out))

    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("status<<ghadelimiter_")
    assert lines[1] == "8"
    assert lines[2] == lines[0].split("<<", 1)[1]


def test_set_output_without_output_file_prints(capsys) -> None:
    set_output("status", 0, output_file="")
    assert capsys.readouterr().out == "status=0\n"


def test_set_failed_records_failure() -> None:
    stream = io.StringIO()
    set_failed("boom", stream=stream)
    assert has_failed()
    assert stream.getvalue() == "::error::boom\n"


# ---------------------------------------------------------------------------
# run_action
# ---------------------------------------------------------------------------


def _args(tmp_path: Path, *inputs: str) -> argparse.Namespace:
    return argparse.Namespace(
        env_file=str(tmp_path / "absent.env"),
        config_file=None,
        inputs=list(inputs),
        workspace=str(tmp_path / "ws"),
    )


@pytest.fixture
def action_env(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "ws").mkdir()
    output = tmp_path / "github_output"
    monkeypatch.setenv("GITHUB_OUTPUT", str(output))
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/webapp")
    monkeypatch.setenv("GITHUB_EVENT_NAME", "push")
    monkeypatch.setenv("GITHUB_REF", "refs/heads/main")
    monkeypatch.setenv("RUNNER_TEMP", str(tmp_path / "runner-temp"))
    return output


def _cached_engine(install: Path) -> None:
    folder = install / "bridge-cli-bundle" / "bridge-cli-bundle-linux64"
    folder.mkdir(parents=True)
    (folder / "versions.txt").write_text("bridge-cli-bundle: 1.4.0\n", encoding="utf-8")
    (folder / "bridge-cli").write_text("#!/bin/sh\n", encoding="utf-8")


def _inject(monkeypatch, runner, linux_x64, transport) -> None:
    def _build(config, context):
        return build_orchestrator(
            config,
            context,
            transport=transport,
            executor=Executor(runner=runner),
            capture=FakeCapture(),
            platform_info=linux_x64,
        )

    monkeypatch.setattr(dispatch, "build_orchestrator", _build)


def test_run_action_policy_break_with_mark_build_status_success(
    monkeypatch, action_env, linux_x64, transport, tmp_path: Path, caplog
) -> None:
    _cached_engine(tmp_path / "install")
    _inject(monkeypatch, FakeRunner([8]), linux_x64, transport)
    args = _args(
        tmp_path,
        "srm_url=https://srm.example",
        "srm_apikey=k",
        "srm_assessment_types=SCA",
        "network_airgap=true",
        f"bridgecli_install_directory={tmp_path / 'install'}",
        "mark_build_status=success",
        "return_status=true",
    )

    with caplog.at_level(logging.INFO):
        code = dispatch.run_action(args)

    assert code == 0
    assert not has_failed()
    assert POLICY_MESSAGE in caplog.text
    assert action_env.read_text(encoding="utf-8").splitlines()[1] == "8"


def test_run_action_failure_sets_failed(monkeypatch, action_env, linux_x64, transport, tmp_path: Path, capsys) -> None:
    _cached_engine(tmp_path / "install")
    _inject(monkeypatch, FakeRunner([2]), linux_x64, transport)
    args = _args(
        tmp_path,
        "srm_url=https://srm.example",
        "srm_apikey=k",
        "srm_assessment_types=SCA",
        "network_airgap=true",
        f"bridgecli_install_directory={tmp_path / 'install'}",
        "mark_build_status=success",
    )

    code = dispatch.run_action(args)

    assert code == 1
    assert "::error::Workflow failed! Exit Code: 2 Error from adapter end" in capsys.readouterr().out
    assert not action_env.exists()


def test_run_action_success_reports_status(monkeypatch, action_env, linux_x64, transport, tmp_path: Path) -> None:
    _cached_engine(tmp_path / "install")
    _inject(monkeypatch, FakeRunner([0]), linux_x64, transport)
    args = _args(
        tmp_path,
        "srm_url=https://srm.example",
        "srm_apikey=k",
        "srm_assessment_types=SCA",
        "network_airgap=true",
        f"bridgecli_install_directory={tmp_path / 'install'}",
        "return_status=true",
    )

    assert dispatch.run_action(args) == 0
    assert action_env.read_text(encoding="utf-8").splitlines()[1] == "0"


def test_run_action_rejects_malformed_input(action_env, tmp_path: Path, capsys) -> None:
    assert dispatch.run_action(_args(tmp_path, "oops")) == 1
    assert "::error::Workflow failed! Expected KEY=VALUE" in capsys.readouterr().out


def test_configuration_error_reports_not_executed(monkeypatch, action_env, linux_x64, transport, tmp_path) -> None:
    _inject(monkeypatch, FakeRunner(), linux_x64, transport)

    assert dispatch.run_action(_args(tmp_path, "return_status=true")) == 1
    assert action_env.read_text(encoding="utf-8").splitlines()[1] == "-1"


def test_corrupt_sarif_during_run_fails_the_workflow(
    monkeypatch, action_env, transport, make_context, tmp_path: Path, capsys
) -> None:
    sarif = tmp_path / "report.sarif.json"
    sarif.write_text("{not json", encoding="utf-8")

    class IssuesFromCorruptReport:
        def run(self) -> int:
            return GitHubIssuesService(transport, make_context(), "ghs_x").create_issues_from_sarif(sarif)

    monkeypatch.setattr(dispatch, "build_orchestrator", lambda config, context: IssuesFromCorruptReport())

    code = dispatch.run_action(_args(tmp_path, "return_status=true"))

    assert code == 1
    assert "::error::Workflow failed! Failed to create GitHub Issues from SARIF report" in capsys.readouterr().out
    assert action_env.read_text(encoding="utf-8").splitlines()[1] == "-1"
