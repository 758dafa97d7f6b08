"""pipeline.products

Central registry of supported scan products.

Why this exists
---------------
Several parts of the launcher need to agree on the *same* product facts:
- which input key activates a product (scan-type validation)
- which engine stage runs it (command building)
- which JSON state file it reads (state-file emission, SARIF path rewrite)
- a human-friendly label (logs)

Defining them once keeps the argument builder, the SARIF path rewrite and the
reporting publisher from drifting apart.

This registry is pure data: no filesystem writes, no process execution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from pipeline.constants import (
    BLACKDUCK_SARIF_ARTIFACT_PREFIX,
    BLACKDUCK_SARIF_GENERATOR_DIR,
    BLACKDUCKSCA,
    BLACKDUCKSCA_URL_KEY,
    COVERITY,
    COVERITY_URL_KEY,
    POLARIS,
    POLARIS_SARIF_ARTIFACT_PREFIX,
    POLARIS_SARIF_GENERATOR_DIR,
    POLARIS_SERVER_URL_KEY,
    SRM,
    SRM_URL_KEY,
)


@dataclass(frozen=True)
class ProductInfo:
    """Static metadata describing one scan product."""

    key: str
    label: str
    stage: str
    state_file: str
    url_key: str

    # Products that can emit SARIF. ``None`` when the product has no report.
    sarif_generator_dir: Optional[str] = None
    sarif_artifact_prefix: Optional[str] = None


# NOTE: insertion order is the order fragments appear on the command line.
PRODUCTS: Dict[str, ProductInfo] = {
    POLARIS: ProductInfo(
        key=POLARIS,
        label="Polaris",
        stage="polaris",
        state_file="polaris_input.json",
        url_key=POLARIS_SERVER_URL_KEY,
        sarif_generator_dir=POLARIS_SARIF_GENERATOR_DIR,
        sarif_artifact_prefix=POLARIS_SARIF_ARTIFACT_PREFIX,
    ),
    COVERITY: ProductInfo(
        key=COVERITY,
        label="Coverity",
        stage="connect",
        state_file="coverity_input.json",
        url_key=COVERITY_URL_KEY,
    ),
    BLACKDUCKSCA: ProductInfo(
        key=BLACKDUCKSCA,
        label="Black Duck SCA",
        stage="blackducksca",
        state_file="bd_input.json",
        url_key=BLACKDUCKSCA_URL_KEY,
        sarif_generator_dir=BLACKDUCK_SARIF_GENERATOR_DIR,
        sarif_artifact_prefix=BLACKDUCK_SARIF_ARTIFACT_PREFIX,
    ),
    SRM: ProductInfo(
        key=SRM,
        label="SRM",
        stage="srm",
        state_file="srm_input.json",
        url_key=SRM_URL_KEY,
    ),
}

PRODUCT_URL_KEYS: List[str] = [info.url_key for info in PRODUCTS.values()]

# Reporting walks SARIF producers Black Duck first, then Polaris.
SARIF_PRODUCTS: List[str] = [BLACKDUCKSCA, POLARIS]


def product(key: str) -> ProductInfo:
    return PRODUCTS[key]
