"""
Configuration schema (``shop_config.schema``).

Frozen dataclasses describing the validated shop configuration.  Instances
are produced by ``shop_config.loader`` and handed out by
``shop_config.get_active_config()``; nothing mutates them afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass

from shop_kernel.domain.values import PaymentMode


@dataclass(frozen=True)
class ShopConfig:
    """
    Validated business configuration.

    Guarantees:
        - paper_widths is non-empty and every width is a positive integer.
        - default_currency is one of currencies.
        - decimal places are between 0 and 9 (storage precision).
        - ledger_max_retries >= 1.
        - reject_low_paper_stock is a bool; when set, orders asking for more
          paper pieces than the pool holds are refused at creation.
    """

    config_id: str
    version: int
    paper_widths: tuple[int, ...]
    currencies: tuple[str, ...]
    default_currency: str
    stone_decimal_places: int
    money_decimal_places: int
    ledger_max_retries: int
    payment_modes: tuple[PaymentMode, ...]
    checksum: str
    reject_low_paper_stock: bool = False

    def is_valid_paper_width(self, width: int) -> bool:
        return width in self.paper_widths

    def is_valid_currency(self, currency: str) -> bool:
        return currency in self.currencies
