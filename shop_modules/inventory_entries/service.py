"""
Inventory Entry Module Service (``shop_modules.inventory_entries.service``).

Responsibility
--------------
Records supplier purchases and material returns.  A batch may mix stones,
paper, plastic and tape; each line increments one ledger counter and the
whole batch is written as one immutable InventoryEntry with its items.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper around the kernel
``InventoryLedger`` and ``PartyService``.

Invariants
----------
- Validation runs in a fixed order before any mutation:
    1. every line's key resolves to an existing ledger record;
    2. every quantity is positive, stones within the configured decimal
       places, all other kinds integral;
    3. a purchase names supplier, bill number and bill date; a return names
       an existing source order or a non-empty source description.
- The batch is one transaction.  A failure on any line rolls back every
  increment already applied in the call.

Usage::

    service = InventoryEntryService(session, clock=clock)
    recorded = service.record_entry(
        PurchaseEntryRequest(
            lines=(EntryLine(StoneKey("S-101"), Decimal("100")),),
            supplier_name="Acme Gems",
            bill_number="B-77",
            bill_date=date(2024, 1, 5),
        ),
        actor_id,
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from shop_config import ShopConfig, get_active_config
from shop_kernel.db.types import decimal_places_of
from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.domain.dtos import (
    EntryFilter,
    EntryLine,
    EntryRequest,
    FromOrder,
    OtherSource,
    PurchaseEntryRequest,
    ReturnEntryRequest,
)
from shop_kernel.domain.values import (
    EntryType,
    InventoryKind,
    InventoryType,
    LedgerMovement,
    ReturnSource,
)
from shop_kernel.exceptions import ValidationError
from shop_kernel.logging_config import LogContext, get_logger
from shop_kernel.models.inventory import Paper
from shop_kernel.models.inventory_entry import (
    MIXED_INVENTORY_TYPE,
    InventoryEntry,
    InventoryEntryItem,
)
from shop_kernel.models.order import Order
from shop_kernel.selectors.inventory_selector import (
    EntryPage,
    InventorySelector,
    StockLevel,
    entry_to_row,
)
from shop_kernel.services.ledger_service import InventoryLedger, InventoryRecord
from shop_kernel.services.party_service import PartyService
from shop_modules.inventory_entries.models import RecordedEntry

logger = get_logger("modules.inventory_entries.service")


class InventoryEntryService:
    """
    Orchestrates purchase and return entries.

    Contract
    --------
    ``record_entry`` validates the whole batch, applies one increment per
    line, writes the entry and commits.  On any exception the session is
    rolled back and the exception re-raised.
    """

    def __init__(
        self,
        session: Session,
        config: ShopConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._ledger = InventoryLedger(session, max_retries=self._config.ledger_max_retries)
        self._parties = PartyService(session)
        self._selector = InventorySelector(session)

    def list_entries(self, entry_filter: EntryFilter | None = None) -> EntryPage:
        """Recorded entries, newest first, filtered and paginated."""
        return self._selector.list_entries(entry_filter)

    def stock_levels(
        self,
        kind: InventoryKind,
        inventory_type: InventoryType | None = None,
    ) -> list[StockLevel]:
        return self._selector.stock_levels(kind, inventory_type)

    def record_entry(self, request: EntryRequest, actor_id: UUID) -> RecordedEntry:
        """
        Record a purchase or return batch.

        Raises:
            ValidationError: empty batch, bad quantity, or missing purchase /
                return details.
            UnknownInventoryKeyError: a line's key does not exist.
        """
        with LogContext.bind(actor_id=str(actor_id)):
            try:
                recorded = self._record(request, actor_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

        entry = recorded.entry
        logger.info(
            "inventory_entry_recorded",
            extra={
                "entry_id": str(entry.id),
                "entry_type": EntryType(entry.entry_type).value,
                "inventory_type": entry.inventory_type,
                "line_count": recorded.line_count,
            },
        )
        return recorded

    def _record(self, request: EntryRequest, actor_id: UUID) -> RecordedEntry:
        lines = tuple(request.lines)
        if not lines:
            raise ValidationError("items", "at least one item is required")

        records = [self._ledger.resolve(line.key) for line in lines]
        for line in lines:
            self._check_quantity(line)

        entry = InventoryEntry(
            inventory_type=self._entry_inventory_type(lines),
            total_amount=request.total_amount,
            notes=request.notes,
            entered_by_id=actor_id,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        if isinstance(request, PurchaseEntryRequest):
            self._check_purchase(request)
            supplier = self._parties.find_or_create_supplier(request.supplier_name, actor_id)
            entry.entry_type = EntryType.PURCHASE
            entry.supplier_id = supplier.id
            entry.bill_number = request.bill_number.strip()
            entry.bill_date = request.bill_date
        elif isinstance(request, ReturnEntryRequest):
            self._check_return(request)
            entry.entry_type = EntryType.RETURN
            if isinstance(request.source, FromOrder):
                entry.source = ReturnSource.ORDER
                entry.source_order_id = request.source.order_id
            else:
                entry.source = ReturnSource.OTHER
                entry.source_description = request.source.description.strip()
        else:
            raise ValidationError("entryType", f"unsupported entry request {type(request).__name__}")

        movements: list[LedgerMovement] = []
        for position, (line, record) in enumerate(zip(lines, records)):
            movements.append(self._ledger.increment(line.key, line.quantity, actor_id))
            entry.items.append(
                InventoryEntryItem(
                    position=position,
                    kind=line.kind,
                    item_key=str(line.key),
                    item_id=record.id,
                    item_name=line.item_name or record.name,
                    quantity=line.quantity,
                    unit=line.unit or self._unit_of(record),
                    created_by_id=actor_id,
                )
            )

        self._session.add(entry)
        self._session.flush()
        return RecordedEntry(entry=entry_to_row(entry), movements=tuple(movements))

    # =========================================================================
    # Validation
    # =========================================================================

    def _check_quantity(self, line: EntryLine) -> None:
        quantity = line.quantity
        if quantity <= 0:
            raise ValidationError("items.quantity", f"must be > 0 (got {quantity})")
        if line.kind is InventoryKind.STONES:
            places = self._config.stone_decimal_places
            if decimal_places_of(quantity) > places:
                raise ValidationError(
                    "items.quantity",
                    f"stones allow at most {places} decimal places (got {quantity})",
                )
        elif quantity != quantity.to_integral_value():
            raise ValidationError(
                "items.quantity",
                f"{line.kind.value} quantities must be whole numbers (got {quantity})",
            )

    @staticmethod
    def _check_purchase(request: PurchaseEntryRequest) -> None:
        if not request.supplier_name or not request.supplier_name.strip():
            raise ValidationError("supplierName", "is required for purchases")
        if not request.bill_number or not request.bill_number.strip():
            raise ValidationError("billNumber", "is required for purchases")
        if request.bill_date is None:
            raise ValidationError("billDate", "is required for purchases")

    def _check_return(self, request: ReturnEntryRequest) -> None:
        source = request.source
        if isinstance(source, FromOrder):
            exists = self._session.execute(
                select(Order.id).where(Order.id == source.order_id)
            ).scalar_one_or_none()
            if exists is None:
                raise ValidationError(
                    "sourceOrderId", f"order {source.order_id} does not exist"
                )
        elif isinstance(source, OtherSource):
            if not source.description or not source.description.strip():
                raise ValidationError("sourceDescription", "is required for other returns")
        else:
            raise ValidationError("source", "a return needs a source order or a description")

    @staticmethod
    def _entry_inventory_type(lines: Sequence[EntryLine]) -> str:
        kinds = {line.kind for line in lines}
        if len(kinds) == 1:
            return next(iter(kinds)).value
        return MIXED_INVENTORY_TYPE

    @staticmethod
    def _unit_of(record: InventoryRecord) -> str | None:
        if isinstance(record, Paper):
            return "rolls"
        return record.unit

