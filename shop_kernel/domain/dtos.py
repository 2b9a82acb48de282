"""
DTOs -- Request objects validated at the service boundary.

Responsibility:
    Defines the immutable request structures handed to the order and
    inventory-entry services by the HTTP layer: order creation and edits,
    paper and stone usage, customer-supplied materials, and inventory entry
    batches.  Shape errors (non-positive quantities, unknown enum tags) are
    rejected here, before any service touches the database.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Free of ORM dependencies.

Invariants enforced:
    - Every usage quantity is strictly positive.
    - Internal orders never carry received materials.
    - Return sources are a tagged union (``FromOrder | OtherSource``); the
      entry requests themselves are a tagged union
      (``PurchaseEntryRequest | ReturnEntryRequest``).

Failure modes:
    - ValidationError on any malformed field.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Union
from uuid import UUID

from shop_kernel.domain.values import (
    NO_DISCOUNT,
    DiscountSpec,
    InventoryKind,
    InventoryType,
    LedgerKey,
    OrderType,
    PaperKey,
    PaymentMode,
    PaymentStatus,
    PlasticKey,
    StoneKey,
    TapeKey,
)
from shop_kernel.exceptions import ValidationError


def to_decimal(value: Any, field_name: str) -> Decimal:
    """Convert a wire number to Decimal, going through str to avoid float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValidationError(field_name, f"must be a number (got {value!r})")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(field_name, f"must be a number (got {value!r})") from None


# =============================================================================
# Orders
# =============================================================================


@dataclass(frozen=True)
class StoneLine:
    """One line of a bill of materials: stone number and grams used."""

    stone_number: str
    quantity: Decimal

    def __post_init__(self) -> None:
        if not self.stone_number:
            raise ValidationError("stone_number", "must not be empty")
        object.__setattr__(self, "quantity", to_decimal(self.quantity, "stones_used.quantity"))
        if self.quantity <= 0:
            raise ValidationError(
                "stones_used.quantity", f"must be > 0 (got {self.quantity})"
            )


@dataclass(frozen=True)
class PaperUsage:
    """Paper requested for an order, in pieces of a given width."""

    size_in_inch: int
    quantity_in_pcs: int

    def __post_init__(self) -> None:
        if self.quantity_in_pcs <= 0:
            raise ValidationError(
                "paper_used.quantity_in_pcs",
                f"must be > 0 (got {self.quantity_in_pcs})",
            )


@dataclass(frozen=True)
class ReceivedMaterials:
    """Stock a customer handed over for an out job."""

    stones: tuple[StoneLine, ...] = ()
    paper_quantity_in_pcs: int = 0
    paper_weight_per_pc: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.paper_quantity_in_pcs < 0:
            raise ValidationError("received_materials.paper", "pieces must be >= 0")
        if self.paper_weight_per_pc < 0:
            raise ValidationError("received_materials.paper", "weight per piece must be >= 0")

    @property
    def total_stone_weight(self) -> Decimal:
        return sum((line.quantity for line in self.stones), Decimal("0"))

    @property
    def paper_weight(self) -> Decimal:
        return self.paper_weight_per_pc * self.paper_quantity_in_pcs


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    phone: str
    email: str | None = None
    company: str | None = None
    gst_number: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("customer_name", "is required")
        if not self.phone or not self.phone.strip():
            raise ValidationError("phone", "is required")


@dataclass(frozen=True)
class CreateOrderRequest:
    """
    Order creation input.

    ``stones`` left as None copies the design's default bill of materials.
    ``currency`` left as None uses the configured default currency.
    """

    order_type: OrderType
    customer: CustomerInfo
    design_id: UUID
    paper: PaperUsage
    stones: tuple[StoneLine, ...] | None = None
    discount: DiscountSpec = NO_DISCOUNT
    currency: str | None = None
    mode_of_payment: PaymentMode = PaymentMode.CASH
    payment_status: PaymentStatus = PaymentStatus.PENDING
    received: ReceivedMaterials | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.order_type is OrderType.INTERNAL and self.received is not None:
            raise ValidationError(
                "received_materials", "only out orders record received materials"
            )


@dataclass(frozen=True)
class OrderChanges:
    """
    Partial update of an order.  Fields left as None are unchanged.

    Status, final weight and finalization have dedicated transitions on the
    order service and are not part of a generic edit.
    """

    order_type: OrderType | None = None
    customer_name: str | None = None
    phone: str | None = None
    design_id: UUID | None = None
    stones: tuple[StoneLine, ...] | None = None
    paper: PaperUsage | None = None
    discount: DiscountSpec | None = None
    mode_of_payment: PaymentMode | None = None
    payment_status: PaymentStatus | None = None
    notes: str | None = None

    @property
    def touches_materials(self) -> bool:
        """True if the edit would change what finalization deducts."""
        return (
            self.order_type is not None
            or self.stones is not None
            or self.paper is not None
        )


# =============================================================================
# Inventory entries
# =============================================================================


@dataclass(frozen=True)
class EntryLine:
    """One line of an inventory entry batch."""

    key: LedgerKey
    quantity: Decimal
    item_name: str | None = None
    unit: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", to_decimal(self.quantity, "items.quantity"))

    @property
    def kind(self) -> InventoryKind:
        return self.key.kind


@dataclass(frozen=True)
class FromOrder:
    """Return of leftover customer material from a specific order."""

    order_id: UUID


@dataclass(frozen=True)
class OtherSource:
    """Return from anywhere else, described in free text."""

    description: str


EntrySource = Union[FromOrder, OtherSource]


@dataclass(frozen=True)
class PurchaseEntryRequest:
    lines: tuple[EntryLine, ...]
    supplier_name: str | None
    bill_number: str | None
    bill_date: date | None
    total_amount: Decimal | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ReturnEntryRequest:
    lines: tuple[EntryLine, ...]
    source: EntrySource | None
    total_amount: Decimal | None = None
    notes: str | None = None


EntryRequest = Union[PurchaseEntryRequest, ReturnEntryRequest]


def parse_entry_line(raw: Mapping[str, Any]) -> EntryLine:
    """
    Build an EntryLine from a wire mapping.

    Expected keys: ``inventoryType`` (stones | paper | plastic | tape),
    ``quantity``, and the key fields of that kind: ``number`` (+ optional
    ``pool``) for stones, ``width`` (+ optional ``pool``) for paper, ``name``
    for plastic and tape.

    Raises:
        ValidationError: unknown inventory type or missing key fields.
    """
    raw_kind = raw.get("inventoryType")
    try:
        kind = InventoryKind(raw_kind)
    except ValueError:
        raise ValidationError(
            "items.inventoryType",
            f"must be one of stones, paper, plastic, tape (got {raw_kind!r})",
        ) from None

    try:
        pool = InventoryType(raw.get("pool", InventoryType.INTERNAL.value))
    except ValueError:
        raise ValidationError("items.pool", f"must be internal or out (got {raw.get('pool')!r})") from None

    key: LedgerKey
    if kind is InventoryKind.STONES:
        if not raw.get("number"):
            raise ValidationError("items.number", "is required for stones")
        key = StoneKey(str(raw["number"]), pool)
    elif kind is InventoryKind.PAPER:
        try:
            width = int(raw["width"])
        except (KeyError, TypeError, ValueError):
            raise ValidationError("items.width", "is required for paper") from None
        key = PaperKey(width, pool)
    elif kind is InventoryKind.PLASTIC:
        if not raw.get("name"):
            raise ValidationError("items.name", "is required for plastic")
        key = PlasticKey(str(raw["name"]))
    else:
        if not raw.get("name"):
            raise ValidationError("items.name", "is required for tape")
        key = TapeKey(str(raw["name"]))

    return EntryLine(
        key=key,
        quantity=to_decimal(raw.get("quantity"), "items.quantity"),
        item_name=raw.get("itemName"),
        unit=raw.get("unit"),
    )


@dataclass(frozen=True)
class EntryFilter:
    """Listing filter for recorded inventory entries."""

    entry_type: str | None = None
    inventory_type: str | None = None
    start: date | None = None
    end: date | None = None
    page: int = 1
    limit: int = 10

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError("page", f"must be >= 1 (got {self.page})")
        if self.limit < 1:
            raise ValidationError("limit", f"must be >= 1 (got {self.limit})")
