"""
Inventory entries module: purchases and returns that increase stock.
"""

from shop_modules.inventory_entries.models import RecordedEntry
from shop_modules.inventory_entries.service import InventoryEntryService

__all__ = [
    "InventoryEntryService",
    "RecordedEntry",
]
