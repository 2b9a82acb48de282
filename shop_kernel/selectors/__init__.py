"""Read-only selectors."""

from shop_kernel.selectors.inventory_selector import (
    EntryItemRow,
    EntryPage,
    EntryRow,
    InventorySelector,
    StockLevel,
)

__all__ = ["EntryItemRow", "EntryPage", "EntryRow", "InventorySelector", "StockLevel"]
