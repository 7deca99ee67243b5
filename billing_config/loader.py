"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads the YAML configuration set and parses it into the typed
``billing_config.schema`` dataclasses.  The single public entry point for
runtime config is ``billing_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Monetary values must be quoted strings or integers in YAML; a bare
  ``37.70`` would arrive as a float and is rejected.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Non-positive rates or batch sizes, unknown timezone  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from billing_config.schema import BillingConfig, RegenerationSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_rate(value: Any) -> Decimal:
    """
    Parse a monetary rate from YAML.

    Raises:
        ValueError: for floats, unparseable strings, or non-positive rates.
    """
    if isinstance(value, float):
        raise ValueError(f"Rate {value!r} must be quoted so it is not read as a float")
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Cannot parse rate from {value!r}") from None
    if rate <= 0:
        raise ValueError(f"Rate must be positive, got {rate}")
    return rate


def parse_standard_rates(data: dict[Any, Any]) -> dict[int, Decimal]:
    """Parse the ``standard_rates`` mapping of year -> rate."""
    return {int(year): parse_rate(amount) for year, amount in (data or {}).items()}


def parse_timezone(name: Any) -> str:
    """
    Validate the billing timezone, an IANA name such as ``Europe/Madrid``.

    Raises:
        ValueError: if the zone is unknown.
    """
    try:
        ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone {name!r}") from None
    return str(name)


def parse_regeneration(data: dict[str, Any]) -> RegenerationSettings:
    """Parse the ``regeneration`` block; every key is optional."""
    settings = RegenerationSettings(
        batch_size=int(data.get("batch_size", RegenerationSettings.batch_size)),
        max_workers=int(data.get("max_workers", RegenerationSettings.max_workers)),
        retry_failed=bool(data.get("retry_failed", RegenerationSettings.retry_failed)),
    )
    if settings.batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {settings.batch_size}")
    if settings.max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {settings.max_workers}")
    return settings


def parse_config(data: dict[str, Any]) -> BillingConfig:
    """
    Parse a full configuration set.

    Raises:
        KeyError: if ``config_id``, ``database_url`` or ``standard_rates``
            is missing.
    """
    return BillingConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        database_url=data["database_url"],
        timezone=parse_timezone(data.get("timezone", "UTC")),
        regeneration=parse_regeneration(data.get("regeneration") or {}),
        standard_rates=parse_standard_rates(data["standard_rates"]),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
