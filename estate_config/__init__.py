"""
estate_config -- single public entrypoint for engine settings.

Responsibility:
    Provides the way to obtain engine settings at runtime through
    ``get_active_settings()``. Services and bridges receive the returned
    ``EngineSettings``; they never read YAML or environment variables
    themselves.

Architecture position:
    Configuration -- sits above ``estate_kernel`` and ``estate_engines``
    and below ``estate_services``. The kernel MUST NEVER import from
    ``estate_config``; ``estate_config.bridges`` translates settings into
    configured engine instances.

Invariants enforced:
    - Path resolution order: explicit argument, ``ESTATE_CONFIG_PATH``,
      packaged ``defaults.yaml``.
    - Deterministic checksum: the same YAML always yields the same
      ``EngineSettings.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the resolved path does not exist.
    - ``ConfigError`` (a ``ValueError``) -- malformed YAML or values.

Audit relevance:
    Every successful ``get_active_settings()`` call emits an
    ``ESTATE_CONFIG_TRACE`` log entry with config id, version, checksum
    and source path, tying engine output to the settings that produced it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from estate_config.loader import ConfigError, load_settings
from estate_config.schema import (
    AccountBinding,
    AllocationSettings,
    DistributionSettings,
    DunningSettings,
    DunningStageDef,
    EngineSettings,
    InterestSettings,
    MatchingSettings,
)

_logger = logging.getLogger("estate_kernel.config")

CONFIG_PATH_ENV = "ESTATE_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def resolve_config_path(path: Path | str | None = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def get_active_settings(path: Path | str | None = None) -> EngineSettings:
    """
    Load the active engine settings.

    Args:
        path: Settings file. Defaults to ``$ESTATE_CONFIG_PATH``, then the
            packaged defaults.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ConfigError: If the file is malformed.
    """
    resolved = resolve_config_path(path)
    settings = load_settings(resolved)

    _logger.info(
        "ESTATE_CONFIG_TRACE",
        extra={
            "trace_type": "ESTATE_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "source_path": settings.source_path,
            "dunning_stage_count": len(settings.dunning.stages),
            "account_binding_count": len(settings.account_bindings),
        },
    )
    return settings


__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_CONFIG_PATH",
    "AccountBinding",
    "AllocationSettings",
    "ConfigError",
    "DistributionSettings",
    "DunningSettings",
    "DunningStageDef",
    "EngineSettings",
    "InterestSettings",
    "MatchingSettings",
    "get_active_settings",
    "resolve_config_path",
]
