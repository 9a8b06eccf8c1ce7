"""
config.py
=========
Runtime settings for the migrator, read from the environment.

    BTP_CONNECTOR_REGISTRY   path to a pipeline-connector-registry.json
    BTP_WORKFLOW_KIND        Stateful | Stateless
    BTP_LOG_LEVEL            standard logging level name

Command-line options override these values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s — %(message)s"

WORKFLOW_KINDS = ("Stateful", "Stateless")


@dataclass(frozen=True)
class MigratorSettings:
    registry_path: Path | None = None
    workflow_kind: str = "Stateful"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "MigratorSettings":
        env = os.environ if environ is None else environ

        registry = env.get("BTP_CONNECTOR_REGISTRY", "").strip()

        kind = env.get("BTP_WORKFLOW_KIND", "").strip() or "Stateful"
        matched = next((k for k in WORKFLOW_KINDS if k.lower() == kind.lower()), None)
        if matched is None:
            logger.warning("Ignoring BTP_WORKFLOW_KIND=%r; expected one of %s.", kind, ", ".join(WORKFLOW_KINDS))
            matched = "Stateful"

        level = (env.get("BTP_LOG_LEVEL", "").strip() or "INFO").upper()
        if not isinstance(logging.getLevelName(level), int):
            logger.warning("Ignoring BTP_LOG_LEVEL=%r; using INFO.", level)
            level = "INFO"

        return cls(
            registry_path=Path(registry) if registry else None,
            workflow_kind=matched,
            log_level=level,
        )
