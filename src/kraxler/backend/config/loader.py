"""Configuration loader wrapping the shared schema models."""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .schema import ConfigurationError, KraxlerConfig

_LOGGER = logging.getLogger(__name__)

CONFIG_DIRECTORY = Path(__file__).resolve().parent / "data"
DEFAULT_CONFIG_FILE = CONFIG_DIRECTORY / "config.yaml"
CONFIG_ENV_VAR = "KRAXLER_CONFIG"

LEGACY_SOURCE_ID = "default_business"
LEGACY_VALID_FROM = "1970-01-01"
LEGACY_DEFAULT_PERCENT = 50


def _load_mapping(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix.lower() == ".json":
            try:
                data = json.load(handle)
            except json.JSONDecodeError as error:
                raise ConfigurationError(f"Invalid JSON in {path.name}: {error}") from error
        else:
            try:
                data = yaml.safe_load(handle) or {}
            except yaml.YAMLError as error:
                raise ConfigurationError(f"Invalid YAML in {path.name}: {error}") from error
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must define a mapping at the top level")
    return data


def is_legacy_config(data: Mapping[str, Any]) -> bool:
    """Return ``True`` for first-generation files without situations."""

    return data.get("version") != 2 and (
        "config_version" in data or "tax_jurisdiction" in data
    )


def migrate_legacy_config(data: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a legacy flat configuration into a single open-ended situation.

    The legacy format described one tax profile without validity dates, so the
    migrated situation and its single income source cover all history.
    """

    has_company_car = bool(data.get("has_company_car"))
    situation = {
        "id": "1",
        "from": LEGACY_VALID_FROM,
        "to": None,
        "jurisdiction": data.get("tax_jurisdiction") or "AT",
        "vatStatus": (
            "kleinunternehmer" if data.get("is_kleinunternehmer") else "regelbesteuert"
        ),
        "hasCompanyCar": has_company_car,
        "companyCarType": data.get("company_car_type"),
        "carBusinessPercent": 100 if has_company_car else 0,
        "telecomBusinessPercent": (
            data.get("telecom_business_percent") or LEGACY_DEFAULT_PERCENT
        ),
        "internetBusinessPercent": (
            data.get("internet_business_percent") or LEGACY_DEFAULT_PERCENT
        ),
        "homeOffice": "none",
    }
    source = {
        "id": LEGACY_SOURCE_ID,
        "name": "Default Business",
        "category": "selbstaendige_arbeit",
        "validFrom": LEGACY_VALID_FROM,
        "validTo": None,
    }
    category_defaults = {
        category: LEGACY_SOURCE_ID
        for category in ("full", "vehicle", "meals", "telecom", "partial")
    }
    return {
        "version": 2,
        "jurisdiction": data.get("tax_jurisdiction") or "AT",
        "situations": [situation],
        "incomeSources": [source],
        "allocationRules": [],
        "categoryDefaults": category_defaults,
        "accounts": list(data.get("accounts") or []),
        "setupCompleted": bool(data.get("setup_completed")),
    }


def parse_config(data: Mapping[str, Any]) -> KraxlerConfig:
    """Validate raw configuration data, migrating legacy layouts first."""

    if is_legacy_config(data):
        _LOGGER.warning("Migrating legacy configuration to the situations format")
        data = migrate_legacy_config(data)

    # Unknown top-level keys belong to other tools (model presets, UI state).
    known = {
        name
        for field_name, field in KraxlerConfig.model_fields.items()
        for name in (field_name, field.alias)
        if name
    }
    filtered = {key: value for key, value in data.items() if key in known}

    try:
        return KraxlerConfig.model_validate(filtered)
    except ValidationError as error:
        raise ConfigurationError(f"Configuration validation failed: {error}") from error


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Return the explicit path, the ``KRAXLER_CONFIG`` path, or the bundled sample."""

    if path is not None:
        return Path(path)
    override = os.getenv(CONFIG_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_FILE


@lru_cache(maxsize=8)
def _load_config_cached(path: Path) -> KraxlerConfig:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    configuration = parse_config(_load_mapping(path))
    _LOGGER.info(
        "Loaded configuration %s (%d situations, %d income sources)",
        path.name,
        len(configuration.situations),
        len(configuration.income_sources),
    )
    return configuration


def load_config(path: str | Path | None = None) -> KraxlerConfig:
    """Load and cache the configuration from disk."""

    return _load_config_cached(resolve_config_path(path).resolve())


def clear_config_cache() -> None:
    _load_config_cached.cache_clear()


__all__ = [
    "CONFIG_DIRECTORY",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_FILE",
    "clear_config_cache",
    "is_legacy_config",
    "load_config",
    "migrate_legacy_config",
    "parse_config",
    "resolve_config_path",
]
