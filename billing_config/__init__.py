"""
billing_config -- single public entrypoint for billing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``BillingConfig``.

Architecture position:
    Configuration.  Sits beside ``billing_kernel``; the kernel never imports
    from ``billing_config``.  The CLI and batch wiring hand the relevant
    values (rates, regeneration tuning, database URL) to the kernel.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or invalid fields.
"""

from __future__ import annotations

import logging
from pathlib import Path

from billing_config.loader import load_yaml_file, parse_config
from billing_config.schema import BillingConfig, RegenerationSettings

_logger = logging.getLogger("billing_kernel.config")

# Default configuration file
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> BillingConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override path to a configuration file.  Defaults to
            billing_config/sets/default.yaml.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(config_path))

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "rate_years": sorted(config.standard_rates),
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "RegenerationSettings",
    "DEFAULT_CONFIG_PATH",
    "get_active_config",
]
