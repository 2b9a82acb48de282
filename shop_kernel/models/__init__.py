"""ORM models for the shop kernel."""

from shop_kernel.models.design import Design, DesignPrice, DesignStone
from shop_kernel.models.inventory import Paper, Plastic, Stone, Tape
from shop_kernel.models.inventory_entry import (
    MIXED_INVENTORY_TYPE,
    InventoryEntry,
    InventoryEntryItem,
)
from shop_kernel.models.order import (
    Order,
    OrderAuditEntry,
    OrderReceivedStone,
    OrderShortfall,
    OrderStoneLine,
)
from shop_kernel.models.party import Customer, Supplier

__all__ = [
    "Customer",
    "Design",
    "DesignPrice",
    "DesignStone",
    "InventoryEntry",
    "InventoryEntryItem",
    "MIXED_INVENTORY_TYPE",
    "Order",
    "OrderAuditEntry",
    "OrderReceivedStone",
    "OrderShortfall",
    "OrderStoneLine",
    "Paper",
    "Plastic",
    "Stone",
    "Supplier",
    "Tape",
]
