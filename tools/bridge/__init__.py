"""tools/bridge

Bridge CLI engine package: variants, provisioning client, executor.

:func:`create_bridge_client` is the factory the composition root uses; an
empty or false ``thin_client_enabled`` selects the bundle.
"""

from __future__ import annotations

import logging
from typing import Any

from pipeline.models import ActionConfig

from .client import EngineClient
from .executor import Executor
from .variants import BundleVariant, ThinVariant, Variant

logger = logging.getLogger(__name__)


def create_bridge_client(config: ActionConfig, **kwargs: Any) -> EngineClient:
    """Build the one engine client used for this run."""
    variant: Variant
    if config.bridge.thin_client_enabled:
        logger.info("Using Bridge Thin Client")
        variant = ThinVariant(disable_update=config.bridge.workflow_disable_update)
    else:
        logger.info("Using Bridge CLI Bundle")
        variant = BundleVariant()
    return EngineClient(variant, config, **kwargs)


__all__ = [
    "BundleVariant",
    "EngineClient",
    "Executor",
    "ThinVariant",
    "Variant",
    "create_bridge_client",
]
