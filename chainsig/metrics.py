"""Prometheus metrics for chainsig.

All metrics live in a dedicated registry so that embedding applications can
expose them alongside their own, or ignore them.
"""

import logging

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Info,
    generate_latest,
)

from . import __version__

logger = logging.getLogger(__name__)

REGISTRY = CollectorRegistry()

# Application info
APP_INFO = Info(
    "chainsig_build",
    "Build information about chainsig",
    registry=REGISTRY,
)
APP_INFO.info({"version": __version__, "name": "chainsig"})

# Signature metrics
SIGNATURES_ASSEMBLED_TOTAL = Counter(
    "signatures_assembled_total",
    "Total number of compact signatures assembled from signer components",
    registry=REGISTRY,
)

SIGNATURE_ERRORS_TOTAL = Counter(
    "signature_errors_total",
    "Total number of rejected signature components",
    ["error_type"],
    registry=REGISTRY,
)

# Outcome extraction metrics
SIGNATURES_EXTRACTED_TOTAL = Counter(
    "signatures_extracted_total",
    "Total number of (big_r, s) pairs extracted from execution outcomes",
    ["mode"],
    registry=REGISTRY,
)

RECEIPTS_SKIPPED_TOTAL = Counter(
    "receipts_skipped_total",
    "Total number of receipts skipped while collecting signatures",
    ["reason"],
    registry=REGISTRY,
)

# Derivation metrics
DERIVATION_CHECKS_TOTAL = Counter(
    "derivation_checks_total",
    "Total number of derived-key checks against node-reported values",
    ["script_type", "result"],
    registry=REGISTRY,
)


def get_metrics_output() -> bytes:
    """Generate Prometheus-formatted metrics output."""
    return generate_latest(REGISTRY)
