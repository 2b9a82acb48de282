"""
Module: shop_kernel.selectors.inventory_selector
Responsibility: Read-only views of stock on hand and of recorded inventory
    entries.
Architecture position: Kernel > Selectors.

Audit relevance:
    Stock levels are read straight from the ledger counters; entry listings
    are the paper trail explaining how they got there.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from shop_kernel.domain.dtos import EntryFilter
from shop_kernel.domain.values import InventoryKind, InventoryType
from shop_kernel.models.inventory import Paper, Plastic, Stone, Tape
from shop_kernel.models.inventory_entry import InventoryEntry
from shop_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class StockLevel:
    """One ledger counter."""

    kind: InventoryKind
    key: str
    name: str
    quantity: Decimal
    unit: str
    available_pieces: Decimal | None = None  # paper only


@dataclass(frozen=True)
class EntryItemRow:
    kind: InventoryKind
    item_key: str
    item_name: str | None
    quantity: Decimal
    unit: str | None


@dataclass(frozen=True)
class EntryRow:
    id: UUID
    entry_type: str
    inventory_type: str
    items: tuple[EntryItemRow, ...]
    supplier_id: UUID | None
    bill_number: str | None
    bill_date: date | None
    source: str | None
    source_order_id: UUID | None
    source_description: str | None
    total_amount: Decimal | None
    notes: str | None
    entered_by_id: UUID
    created_at: datetime


@dataclass(frozen=True)
class EntryPage:
    entries: tuple[EntryRow, ...]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def entry_to_row(entry: InventoryEntry) -> EntryRow:
    return EntryRow(
        id=entry.id,
        entry_type=entry.entry_type,
        inventory_type=entry.inventory_type,
        items=tuple(
            EntryItemRow(
                kind=InventoryKind(item.kind),
                item_key=item.item_key,
                item_name=item.item_name,
                quantity=item.quantity,
                unit=item.unit,
            )
            for item in entry.items
        ),
        supplier_id=entry.supplier_id,
        bill_number=entry.bill_number,
        bill_date=entry.bill_date,
        source=entry.source,
        source_order_id=entry.source_order_id,
        source_description=entry.source_description,
        total_amount=entry.total_amount,
        notes=entry.notes,
        entered_by_id=entry.entered_by_id,
        created_at=entry.created_at,
    )


class InventorySelector(BaseSelector):
    """Stock levels per pool and paginated entry listings."""

    def stock_levels(
        self,
        kind: InventoryKind,
        inventory_type: InventoryType | None = None,
    ) -> list[StockLevel]:
        """
        All counters of one kind, ordered by key.

        ``inventory_type`` filters stones and paper by pool; plastic and tape
        have a single pool and ignore it.
        """
        if kind is InventoryKind.STONES:
            stmt = select(Stone).order_by(Stone.number, Stone.inventory_type)
            if inventory_type is not None:
                stmt = stmt.where(Stone.inventory_type == inventory_type.value)
            return [
                StockLevel(kind, str(s.ledger_key), s.name, s.quantity, s.unit)
                for s in self.session.execute(stmt).scalars()
            ]
        if kind is InventoryKind.PAPER:
            stmt = select(Paper).order_by(Paper.width, Paper.inventory_type)
            if inventory_type is not None:
                stmt = stmt.where(Paper.inventory_type == inventory_type.value)
            return [
                StockLevel(
                    kind,
                    str(p.ledger_key),
                    p.name,
                    p.quantity,
                    "rolls",
                    available_pieces=p.available_pieces,
                )
                for p in self.session.execute(stmt).scalars()
            ]
        model = Plastic if kind is InventoryKind.PLASTIC else Tape
        stmt = select(model).order_by(model.name)
        return [
            StockLevel(kind, str(r.ledger_key), r.name, r.quantity, r.unit)
            for r in self.session.execute(stmt).scalars()
        ]

    def list_entries(self, entry_filter: EntryFilter | None = None) -> EntryPage:
        """
        Recorded inventory entries, newest first.

        Filters by entry type, inventory type and an inclusive date range on
        the recording date.
        """
        f = entry_filter or EntryFilter()
        criteria = []
        if f.entry_type:
            criteria.append(InventoryEntry.entry_type == f.entry_type)
        if f.inventory_type:
            criteria.append(InventoryEntry.inventory_type == f.inventory_type)
        if f.start:
            criteria.append(InventoryEntry.created_at >= _day_start(f.start))
        if f.end:
            criteria.append(InventoryEntry.created_at < _day_start(f.end + timedelta(days=1)))

        total = self.session.execute(
            select(func.count()).select_from(InventoryEntry).where(*criteria)
        ).scalar_one()

        stmt = (
            select(InventoryEntry)
            .where(*criteria)
            .order_by(InventoryEntry.created_at.desc(), InventoryEntry.id)
            .offset((f.page - 1) * f.limit)
            .limit(f.limit)
        )
        entries = self.session.execute(stmt).scalars().all()
        return EntryPage(
            entries=tuple(entry_to_row(e) for e in entries),
            total=total,
            page=f.page,
            limit=f.limit,
        )
