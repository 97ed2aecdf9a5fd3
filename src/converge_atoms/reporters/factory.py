"""Reporter factory."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


def parse_headers(raw: str) -> dict[str, str]:
    headers: dict[str, str] = {}
    for pair in raw.split(","):
        if "=" in pair:
            k, v = pair.split("=", 1)
            headers[k.strip()] = v.strip()
    return headers


def create_reporter(name: str | None, config: dict[str, Any]):
    """Create a reporter instance from merged config. Returns None when unset or on failure."""
    if not name:
        return None
    rcfg = config.get(name, {})

    if name == "otlp":
        try:
            from converge_atoms.reporters.otlp import OTLPReporter
        except ImportError:
            logger.warning("OpenTelemetry SDK is not installed; reporting disabled")
            return None
        endpoint = rcfg.get("endpoint", "")
        if not endpoint:
            return None
        headers = parse_headers(rcfg.get("headers", ""))
        try:
            return OTLPReporter(endpoint=endpoint, headers=headers)
        except Exception:
            logger.warning("Failed to create OTLPReporter", exc_info=True)
            return None

    logger.warning("Unknown reporter: %s", name)
    return None
