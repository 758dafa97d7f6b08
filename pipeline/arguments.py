"""pipeline.arguments

Argument Builder: active products -> engine command line + state files.

For every product, in registry order:

1. run its validator;
2. if the product is active and validated clean, write its state file and
   format the ``--stage ... --input ...`` fragment with the engine variant.

If no product produced a fragment and validators reported errors, the run
fails with the joined error text. If some products produced fragments, the
errors of the others are logged and the run continues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from pipeline.constants import BLACKDUCKSCA, COVERITY, POLARIS, SRM
from pipeline.errors import ConfigurationError
from pipeline.models import ActionConfig, StageParams
from pipeline.products import PRODUCTS
from pipeline.state_files import StateFileWriter
from pipeline.validators import (
    validate_blackducksca,
    validate_coverity,
    validate_github_token,
    validate_polaris,
    validate_scan_types,
    validate_srm,
)
from tools.bridge.variants import Variant
from tools.github.context import GitHubContext

logger = logging.getLogger(__name__)

DIAGNOSTICS_FLAG = "--diagnostics"


@dataclass(frozen=True)
class CommandPlan:
    """The engine arguments plus the stages that produced them."""

    args: Tuple[str, ...]
    stages: Tuple[StageParams, ...]

    def display(self) -> str:
        return " ".join(self.args)

    def state_file(self, product_key: str) -> Path:
        """State file written for ``product_key`` (``KeyError`` when the product did not run)."""
        stage = PRODUCTS[product_key].stage
        for params in self.stages:
            if params.stage == stage:
                return params.state_file_path
        raise KeyError(product_key)

    def has(self, product_key: str) -> bool:
        stage = PRODUCTS[product_key].stage
        return any(params.stage == stage for params in self.stages)


class ArgumentBuilder:
    def __init__(
        self,
        config: ActionConfig,
        context: GitHubContext,
        variant: Variant,
        temp_dir: Path,
    ) -> None:
        self.config = config
        self.context = context
        self.variant = variant
        self.writer = StateFileWriter(config, context, temp_dir)

    def _steps(self) -> Dict[str, Tuple[bool, Callable[[], List[str]], Callable[[], StageParams]]]:
        cfg = self.config
        return {
            POLARIS: (cfg.polaris.active, lambda: validate_polaris(cfg.polaris), self.writer.polaris),
            COVERITY: (cfg.coverity.active, lambda: validate_coverity(cfg.coverity), self.writer.coverity),
            BLACKDUCKSCA: (
                cfg.blackducksca.active,
                lambda: validate_blackducksca(cfg.blackducksca),
                self.writer.blackducksca,
            ),
            SRM: (cfg.srm.active, lambda: validate_srm(cfg.srm), self.writer.srm),
        }

    def build(self) -> CommandPlan:
        scan_type_errors = validate_scan_types(self.config)
        if scan_type_errors:
            raise ConfigurationError(",".join(scan_type_errors))

        errors: List[str] = []
        args: List[str] = []
        stages: List[StageParams] = []

        token_errors = validate_github_token(self.config, is_pull_request=self.context.is_pull_request)
        if token_errors:
            raise ConfigurationError(",".join(token_errors))

        for key, (active, validate, emit) in self._steps().items():
            if not active:
                continue
            product_errors = validate()
            if product_errors:
                logger.debug("%s validation failed: %s", PRODUCTS[key].label, product_errors)
                errors.extend(product_errors)
                continue
            params = emit()
            stages.append(params)
            args.extend(self.variant.format_stage(params))

        if not stages:
            raise ConfigurationError(",".join(errors))
        if errors:
            logger.error(",".join(errors))

        if self.config.include_diagnostics:
            args.append(DIAGNOSTICS_FLAG)

        plan = CommandPlan(args=tuple(args), stages=tuple(stages))
        logger.debug("Formatted command is - %s", plan.display())
        return plan
