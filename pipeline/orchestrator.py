"""pipeline.orchestrator

One launcher run, end to end.

Order::

    temp dir -> state files + arguments -> provision engine -> SARIF path
    rewrite -> execute -> (reporting, when the engine ran) -> temp dir cleanup

The temp directory is removed on every path out of :meth:`Orchestrator.run`,
including failures raised by reporting itself. When the engine already failed,
a reporting failure is logged and the engine error is the one raised.

A non-zero engine exit becomes :class:`~pipeline.errors.ExecutionError`
(``PolicyBreakExit`` for 8) *after* reporting ran, so SARIF produced by a
policy-breaking scan is still published.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pipeline.arguments import ArgumentBuilder, CommandPlan
from pipeline.constants import EXIT_CODE_NOT_EXECUTED, EXIT_CODE_SUCCESS, POLARIS
from pipeline.errors import ExecutionError, PipelineError
from pipeline.models import ActionConfig
from pipeline.products import PRODUCTS, SARIF_PRODUCTS
from pipeline.reporting import ReportingPublisher
from pipeline.state_files import update_sarif_file_paths
from tools.bridge.client import EngineClient
from tools.github.context import GitHubContext
from tools.io import cleanup_temp_dir, create_temp_dir

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        config: ActionConfig,
        context: GitHubContext,
        client: EngineClient,
        publisher: ReportingPublisher,
        *,
        temp_root: Optional[Path] = None,
    ) -> None:
        self.config = config
        self.context = context
        self.client = client
        self.publisher = publisher
        self.temp_root = temp_root

        self.exit_code = EXIT_CODE_NOT_EXECUTED
        self.engine_version = ""
        self.executed = False

    def _rewrite_sarif_paths(self, plan: CommandPlan) -> None:
        for key in SARIF_PRODUCTS:
            if not plan.has(key):
                continue
            settings = self.config.polaris if key == POLARIS else self.config.blackducksca
            update_sarif_file_paths(plan.state_file(key), key, self.engine_version, settings.sarif.file_path)

    def run(self) -> int:
        """Run once; returns the engine's exit code (0) or raises."""
        logger.info("Black Duck Security Action started...")
        engine_error: Optional[ExecutionError] = None
        temp_dir = create_temp_dir(self.temp_root)
        try:
            plan = ArgumentBuilder(self.config, self.context, self.client.variant, temp_dir).build()
            logger.debug(
                "Products in this run: %s",
                ", ".join(PRODUCTS[k].label for k in PRODUCTS if plan.has(k)),
            )

            descriptor = self.client.provision(temp_dir)
            self.engine_version = descriptor.version
            self._rewrite_sarif_paths(plan)

            self.exit_code = self.client.execute(list(plan.args), cwd=self.context.workspace_path())
            self.executed = True
            if self.exit_code != EXIT_CODE_SUCCESS:
                engine_error = ExecutionError.for_exit(str(descriptor.executable_path), self.exit_code)
                raise engine_error

            logger.info("Black Duck Security Action workflow execution completed successfully.")
            return self.exit_code
        finally:
            logger.debug("Bridge CLI execution completed: %s", self.executed)
            try:
                if self.executed:
                    self._publish(engine_error)
            finally:
                cleanup_temp_dir(temp_dir)

    def _publish(self, engine_error: Optional[ExecutionError]) -> None:
        """A publish failure never replaces the engine error already on its way out."""
        try:
            self.publisher.publish(self.exit_code, self.engine_version)
        except PipelineError as e:
            if engine_error is None:
                raise
            logger.error("Publishing results after exit code %s failed: %s", self.exit_code, e.message)
