"""
Settings Loader (``ledger_config.loader``).

Responsibility
--------------
Loads the packaged ``defaults.yaml``, overlays an optional deployment YAML
file and a small set of environment variables, and parses the result into
a frozen ``LedgerSettings``.

Failure modes
-------------
* Missing deployment file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` / ``UnsupportedCurrencyError`` from the
  schema dataclasses.
"""

from __future__ import annotations

import hashlib
import json
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from ledger_config.schema import FallbackRate, LedgerSettings, RateSourceSettings
from ledger_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULTS_PATH = Path(__file__).with_name("defaults.yaml")

# Environment variable -> settings key
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "LEDGER_DATABASE_URL": ("database_url",),
    "LEDGER_RATE_SOURCE_URL": ("rate_source", "url"),
    "LEDGER_LOG_LEVEL": ("log_level",),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a Decimal from YAML (quoted string or int; floats via str)."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"{name} must be numeric, got {value!r}") from e


def merge_settings(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay ``override`` onto ``base``; nested mappings merge one level deep."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def apply_env_overrides(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    result = dict(data)
    for var, path in ENV_OVERRIDES.items():
        if var not in env:
            continue
        if len(path) == 1:
            result[path[0]] = env[var]
        else:
            section = dict(result.get(path[0]) or {})
            section[path[1]] = env[var]
            result[path[0]] = section
    return result


def parse_settings(data: Mapping[str, Any]) -> LedgerSettings:
    """
    Parse a ``LedgerSettings`` from a dict.

    Keys absent from ``data`` take the dataclass defaults.
    """
    kwargs: dict[str, Any] = {}
    for key in (
        "base_currency",
        "default_invoice_currency",
        "invoice_number_prefix",
        "database_url",
        "log_level",
    ):
        if key in data:
            kwargs[key] = str(data[key])
    if "supported_currencies" in data:
        kwargs["supported_currencies"] = tuple(data["supported_currencies"])
    if "fx_markup" in data:
        kwargs["fx_markup"] = parse_decimal(data["fx_markup"], "fx_markup")
    if "rate_cache_ttl_seconds" in data:
        kwargs["rate_cache_ttl_seconds"] = int(data["rate_cache_ttl_seconds"])
    if "invoice_number_width" in data:
        kwargs["invoice_number_width"] = int(data["invoice_number_width"])
    if "fallback_rates" in data:
        kwargs["fallback_rates"] = tuple(
            FallbackRate(
                base=r["base"],
                quote=r["quote"],
                rate=parse_decimal(r["rate"], f"fallback rate {r['base']}/{r['quote']}"),
            )
            for r in data["fallback_rates"] or ()
        )
    if "rate_source" in data:
        source = data["rate_source"] or {}
        kwargs["rate_source"] = RateSourceSettings(
            url=source.get("url") or None,
            timeout_seconds=float(source.get("timeout_seconds", 5.0)),
        )
    return LedgerSettings(**kwargs)


def compute_checksum(data: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_settings(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Build settings from defaults, an optional YAML file and the environment.

    Args:
        path: Deployment YAML overriding ``defaults.yaml``.
        env: Environment mapping (defaults to ``os.environ``).
    """
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data = merge_settings(data, load_yaml_file(Path(path)))
    data = apply_env_overrides(data, os.environ if env is None else env)

    settings = parse_settings(data)
    logger.info("ledger_settings_loaded", extra={
        "source": str(path) if path is not None else "defaults",
        "base_currency": settings.base_currency,
        "supported_currencies": list(settings.supported_currencies),
        "rate_source_enabled": settings.rate_source.url is not None,
        "checksum": compute_checksum(data),
    })
    return settings
