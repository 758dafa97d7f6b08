"""pipeline.wiring

This module is the **composition root** for the launcher.

"Composition root" means: the single place where we *assemble* the running
application from its building blocks:

- load ``.env`` files and input files
- build the typed config and the CI run context
- choose real vs injected collaborators (HTTP session, process runner,
  artifact client); tests pass fakes, entrypoints pass nothing
- build the :class:`~pipeline.orchestrator.Orchestrator`

Keeping this wiring in one place prevents configuration and dependency setup
from being duplicated across entrypoints (CLI, scripts, tests).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from dotenv import load_dotenv

from pipeline.config import InputSource, load_config
from pipeline.models import ActionConfig
from pipeline.orchestrator import Orchestrator
from pipeline.reporting import ReportingPublisher
from tools.bridge import create_bridge_client
from tools.bridge.executor import Executor
from tools.core_cmd import CmdResult, run_cmd
from tools.github.artifacts import ArtifactClient, StagingArtifactClient
from tools.github.code_scanning import CodeScanningClient
from tools.github.context import GitHubContext
from tools.github.issues import GitHubIssuesService
from tools.http import HttpTransport, TrustStore
from tools.platform_info import PlatformInfo

logger = logging.getLogger(__name__)

ENV_PATH: Path = Path(".env")


def load_env_file(dotenv_path: Optional[Path] = None) -> bool:
    """Load ``KEY=VALUE`` lines into ``os.environ``; variables already set win."""
    path = dotenv_path or ENV_PATH
    if not path.exists():
        return False
    logger.debug("Loading environment from %s", path)
    return bool(load_dotenv(path, override=False))


def build_input_source(
    *,
    config_file: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> InputSource:
    """``--config`` YAML, then ``--input`` pairs on top, then the environment."""
    if config_file is not None:
        return InputSource.from_yaml(config_file, extra=overrides, environ=environ)
    return InputSource(overrides, environ)


def build_transport(config: ActionConfig, *, session: Any = None, **kwargs: Any) -> HttpTransport:
    trust = TrustStore(
        trust_all=config.network.ssl_trust_all,
        cert_file=config.network.ssl_cert_file or None,
    )
    return HttpTransport(trust=trust, session=session, **kwargs)


def build_publisher(
    config: ActionConfig,
    context: GitHubContext,
    transport: HttpTransport,
    *,
    artifacts: Optional[ArtifactClient] = None,
    clock: Optional[Callable[[], float]] = None,
) -> ReportingPublisher:
    code_scanning: Optional[CodeScanningClient] = None
    issues: Optional[GitHubIssuesService] = None
    if config.github_token:
        code_scanning = CodeScanningClient(transport, context, config.github_token)
        issues = GitHubIssuesService(transport, context, config.github_token)

    extra = {"clock": clock} if clock is not None else {}
    return ReportingPublisher(
        config,
        context,
        artifacts=artifacts or StagingArtifactClient(runner_temp=context.runner_temp),
        code_scanning=code_scanning,
        issues=issues,
        **extra,
    )


def build_orchestrator(
    config: ActionConfig,
    context: GitHubContext,
    *,
    transport: Optional[HttpTransport] = None,
    executor: Optional[Executor] = None,
    capture: Callable[..., CmdResult] = run_cmd,
    platform_info: Optional[PlatformInfo] = None,
    artifacts: Optional[ArtifactClient] = None,
    clock: Optional[Callable[[], float]] = None,
    temp_root: Optional[Path] = None,
) -> Orchestrator:
    transport = transport or build_transport(config)
    client = create_bridge_client(
        config,
        transport=transport,
        platform_info=platform_info,
        executor=executor,
        capture=capture,
        runner_os=context.runner_os,
    )
    publisher = build_publisher(config, context, transport, artifacts=artifacts, clock=clock)
    return Orchestrator(config, context, client, publisher, temp_root=temp_root)

