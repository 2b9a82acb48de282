"""
Module: shop_kernel.models.inventory_entry
Responsibility: ORM persistence for recorded inventory entries (supplier
    purchases and returns) and their item lines.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - Entries and items are immutable from creation (db/immutability.py).
    - Item quantities are strictly positive.
    - A purchase carries supplier, bill number and bill date; a return carries
      exactly one of source_order_id / source_description.  Enforced by the
      inventory entry service before the row is written.

Audit relevance:
    Every increase of a ledger counter outside of admin corrections is
    explained by exactly one entry item.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shop_kernel.db.base import TrackedBase, UUIDString
from shop_kernel.domain.values import EntryType, InventoryKind, ReturnSource

# Entry-level inventory type when items span more than one kind
MIXED_INVENTORY_TYPE = "mixed"


class InventoryEntry(TrackedBase):
    __tablename__ = "inventory_entries"

    __table_args__ = (
        Index("idx_inventory_entry_type", "entry_type"),
        Index("idx_inventory_entry_inventory_type", "inventory_type"),
        Index("idx_inventory_entry_created", "created_at"),
    )

    entry_type: Mapped[EntryType] = mapped_column(String(20), nullable=False)

    # stones | paper | plastic | tape | mixed, derived from the items
    inventory_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Purchase
    supplier_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("suppliers.id"), nullable=True
    )
    bill_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bill_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Return
    source: Mapped[ReturnSource | None] = mapped_column(String(20), nullable=True)
    source_order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("orders.id"), nullable=True
    )
    source_description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    total_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    entered_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    items: Mapped[list["InventoryEntryItem"]] = relationship(
        back_populates="entry",
        lazy="selectin",
        order_by="InventoryEntryItem.position",
    )

    def __repr__(self) -> str:
        return f"<InventoryEntry {self.entry_type} {self.inventory_type} ({len(self.items)} items)>"


class InventoryEntryItem(TrackedBase):
    __tablename__ = "inventory_entry_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_entry_item_positive"),
        Index("idx_inventory_entry_item_entry", "entry_id"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_entries.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    kind: Mapped[InventoryKind] = mapped_column(String(20), nullable=False)

    # Rendered ledger key, e.g. "S-101/internal" or '13"/out'
    item_key: Mapped[str] = mapped_column(String(100), nullable=False)

    # Ledger row the quantity was added to
    item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    item_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)

    entry: Mapped[InventoryEntry] = relationship(back_populates="items")
