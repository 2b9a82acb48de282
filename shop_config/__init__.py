"""
shop_config -- single public entrypoint for shop configuration.

Responsibility:
    Provides the ONLY way to obtain business configuration at runtime
    through ``get_active_config()``: stocked paper widths, pricing
    currencies, decimal precision and ledger retry limits.

Architecture position:
    Configuration.  Sits above ``shop_kernel`` and below ``shop_modules``.
    The kernel MUST NEVER import from ``shop_config``; modules read the
    config and pass plain values (e.g. the retry limit) down to kernel
    services.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ConfigurationError`` -- invalid YAML or an invalid setting.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``SHOP_CONFIG_TRACE`` log entry with the config id, version and
    checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from shop_config.loader import load_yaml_file, parse_config
from shop_config.schema import ShopConfig

_logger = logging.getLogger("shop_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

__all__ = ["ShopConfig", "get_active_config"]


def get_active_config(config_path: Path | str | None = None) -> ShopConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to shop_config/defaults.yaml.

    Returns:
        A frozen, validated ShopConfig.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigurationError: If the file fails validation.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    _logger.info(
        "SHOP_CONFIG_TRACE",
        extra={
            "trace_type": "SHOP_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "paper_width_count": len(config.paper_widths),
            "currency_count": len(config.currencies),
        },
    )
    return config
