"""
Configuration Loader (``shop_config.loader``).

Responsibility
--------------
Reads the YAML configuration file and parses it into a validated
``ShopConfig``.  The single public entry point for runtime config is
``shop_config.get_active_config()``.

Invariants enforced
-------------------
* Every parse or validation failure raises ``ConfigurationError`` naming
  the offending setting; there are no silent defaults for required keys.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``ConfigurationError`` (wrapping ``yaml.YAMLError``).
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from shop_config.schema import ShopConfig
from shop_kernel.db.types import QUANTITY_DECIMAL_PLACES
from shop_kernel.domain.values import PaymentMode
from shop_kernel.exceptions import ConfigurationError

REQUIRED_KEYS = (
    "paper_widths",
    "currencies",
    "default_currency",
    "stone_decimal_places",
    "money_decimal_places",
    "ledger_max_retries",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the path does not exist.
        ConfigurationError: if the file is not valid YAML or not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _int_setting(data: dict[str, Any], key: str, minimum: int, maximum: int | None = None) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(key, f"must be an integer (got {value!r})")
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise ConfigurationError(key, f"must be {bounds} (got {value})")
    return value


def _bool_setting(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(key, f"must be true or false (got {value!r})")
    return value


def parse_config(data: dict[str, Any]) -> ShopConfig:
    """
    Validate a raw configuration mapping and build a ShopConfig.

    Raises:
        ConfigurationError: on a missing key or an invalid value.
    """
    for key in REQUIRED_KEYS:
        if key not in data:
            raise ConfigurationError(key, "is required")

    widths = data["paper_widths"]
    if not isinstance(widths, list) or not widths:
        raise ConfigurationError("paper_widths", "must be a non-empty list")
    for width in widths:
        if isinstance(width, bool) or not isinstance(width, int) or width <= 0:
            raise ConfigurationError("paper_widths", f"must be positive integers (got {width!r})")
    if len(set(widths)) != len(widths):
        raise ConfigurationError("paper_widths", "must not contain duplicates")

    currencies = data["currencies"]
    if not isinstance(currencies, list) or not currencies:
        raise ConfigurationError("currencies", "must be a non-empty list")
    currencies = [str(c) for c in currencies]
    default_currency = str(data["default_currency"])
    if default_currency not in currencies:
        raise ConfigurationError(
            "default_currency", f"{default_currency!r} is not one of {currencies}"
        )

    raw_modes = data.get("payment_modes", [mode.value for mode in PaymentMode])
    try:
        payment_modes = tuple(PaymentMode(mode) for mode in raw_modes)
    except ValueError as exc:
        raise ConfigurationError("payment_modes", str(exc)) from None

    return ShopConfig(
        config_id=str(data.get("config_id", "shop-defaults")),
        version=int(data.get("version", 1)),
        paper_widths=tuple(widths),
        currencies=tuple(currencies),
        default_currency=default_currency,
        stone_decimal_places=_int_setting(
            data, "stone_decimal_places", 0, QUANTITY_DECIMAL_PLACES
        ),
        money_decimal_places=_int_setting(
            data, "money_decimal_places", 0, QUANTITY_DECIMAL_PLACES
        ),
        ledger_max_retries=_int_setting(data, "ledger_max_retries", 1),
        payment_modes=payment_modes,
        checksum=compute_checksum(data),
        reject_low_paper_stock=_bool_setting(data, "reject_low_paper_stock", False),
    )
