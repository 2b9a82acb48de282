"""
Values -- Enumerations, ledger keys and small immutable value objects.

Responsibility:
    Names every closed vocabulary of the costing core (order types, inventory
    kinds, discount kinds, statuses) and the composite keys under which the
    inventory ledger partitions its counters.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Imported by models,
    services, engines and modules alike.

Invariants enforced:
    - Discounts are a tagged union (``PercentageDiscount | FlatDiscount``);
      a negative discount value cannot be constructed.
    - Ledger keys are hashable frozen dataclasses; two keys are equal iff
      they address the same counter.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Union

from shop_kernel.exceptions import ValidationError


class InventoryType(str, Enum):
    """Which pool a stone or paper record belongs to."""

    INTERNAL = "internal"  # shop-owned stock
    OUT = "out"  # customer-supplied stock for out jobs


class OrderType(str, Enum):
    """Job type of an order."""

    INTERNAL = "internal"
    OUT = "out"

    @property
    def inventory_type(self) -> InventoryType:
        """Ledger pool this job draws from."""
        return InventoryType(self.value)


class InventoryKind(str, Enum):
    """Material kinds tracked by the ledger."""

    STONES = "stones"
    PAPER = "paper"
    PLASTIC = "plastic"
    TAPE = "tape"


class StoneUnit(str, Enum):
    GRAM = "g"
    KILOGRAM = "kg"


class OrderStatus(str, Enum):
    """Operational status; independent of ``is_finalized``."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMode(str, Enum):
    CASH = "cash"
    UPI = "UPI"
    CARD = "card"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


class EntryType(str, Enum):
    """Inventory entry categories.  Both increase stock."""

    PURCHASE = "purchase"
    RETURN = "return"


class ReturnSource(str, Enum):
    ORDER = "order"
    OTHER = "other"


# =============================================================================
# Ledger keys
# =============================================================================


@dataclass(frozen=True)
class StoneKey:
    """Stone counter key: ``(number, inventory_type)``."""

    number: str
    inventory_type: InventoryType = InventoryType.INTERNAL

    kind: ClassVar[InventoryKind] = InventoryKind.STONES

    def __str__(self) -> str:
        return f"{self.number}/{self.inventory_type.value}"


@dataclass(frozen=True)
class PaperKey:
    """Paper counter key: ``(width, inventory_type)``."""

    width: int
    inventory_type: InventoryType = InventoryType.INTERNAL

    kind: ClassVar[InventoryKind] = InventoryKind.PAPER

    def __str__(self) -> str:
        return f'{self.width}"/{self.inventory_type.value}'


@dataclass(frozen=True)
class PlasticKey:
    name: str

    kind: ClassVar[InventoryKind] = InventoryKind.PLASTIC

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class TapeKey:
    name: str

    kind: ClassVar[InventoryKind] = InventoryKind.TAPE

    def __str__(self) -> str:
        return self.name


LedgerKey = Union[StoneKey, PaperKey, PlasticKey, TapeKey]


# =============================================================================
# Discounts
# =============================================================================


@dataclass(frozen=True)
class PercentageDiscount:
    """Discount as a percentage of total cost.  Values above 100 clamp to 100."""

    percent: Decimal

    discount_type: ClassVar[DiscountType] = DiscountType.PERCENTAGE

    def __post_init__(self) -> None:
        if self.percent < 0:
            raise ValidationError("discount_value", f"must be >= 0 (got {self.percent})")

    @property
    def value(self) -> Decimal:
        return self.percent


@dataclass(frozen=True)
class FlatDiscount:
    """Absolute discount.  Values above total cost clamp to total cost."""

    amount: Decimal

    discount_type: ClassVar[DiscountType] = DiscountType.FLAT

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValidationError("discount_value", f"must be >= 0 (got {self.amount})")

    @property
    def value(self) -> Decimal:
        return self.amount


DiscountSpec = Union[PercentageDiscount, FlatDiscount]

NO_DISCOUNT: DiscountSpec = PercentageDiscount(Decimal("0"))


def discount_from(discount_type: str, value: Decimal | int | str) -> DiscountSpec:
    """
    Build a DiscountSpec from the wire pair ``(discount_type, discount_value)``.

    Raises:
        ValidationError: unknown discount type or negative value.
    """
    try:
        kind = DiscountType(discount_type)
    except ValueError:
        raise ValidationError(
            "discount_type", f"must be one of percentage, flat (got {discount_type!r})"
        ) from None
    amount = Decimal(str(value))
    if kind is DiscountType.PERCENTAGE:
        return PercentageDiscount(amount)
    return FlatDiscount(amount)


# =============================================================================
# Ledger movement results
# =============================================================================


@dataclass(frozen=True)
class InsufficientStock:
    """
    Warning-level condition: a deduction asked for more than was on hand.

    The counter was clamped at zero; ``shortfall`` is what could not be
    deducted.  Finalization still proceeds because the material has already
    been consumed physically.
    """

    kind: InventoryKind
    key: str
    requested: Decimal
    deducted: Decimal

    code: ClassVar[str] = "INSUFFICIENT_STOCK"

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.deducted


@dataclass(frozen=True)
class LedgerMovement:
    """Outcome of a single ledger increment or decrement."""

    kind: InventoryKind
    key: str
    requested: Decimal
    applied: Decimal
    quantity_before: Decimal
    quantity_after: Decimal

    @property
    def insufficient_stock(self) -> InsufficientStock | None:
        if self.applied >= self.requested:
            return None
        return InsufficientStock(
            kind=self.kind,
            key=self.key,
            requested=self.requested,
            deducted=self.applied,
        )
