"""Kernel services: flush-only, the caller owns the transaction."""

from shop_kernel.services.catalog_service import CatalogService
from shop_kernel.services.ledger_service import InventoryLedger
from shop_kernel.services.party_service import PartyService

__all__ = ["CatalogService", "InventoryLedger", "PartyService"]
