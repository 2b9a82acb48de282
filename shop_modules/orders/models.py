"""
Order Domain Models (``shop_modules.orders.models``).

Frozen value objects handed back by the order service: a flattened order
summary and the finalization result.  They carry no ORM identity and no
I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from shop_kernel.domain.dtos import PaperUsage, ReceivedMaterials, StoneLine
from shop_kernel.domain.values import (
    DiscountSpec,
    InsufficientStock,
    LedgerMovement,
    OrderStatus,
    OrderType,
    PaymentMode,
    PaymentStatus,
)


@dataclass(frozen=True)
class OrderSummary:
    id: UUID
    order_type: OrderType
    customer_id: UUID | None
    customer_name: str
    phone: str
    design_id: UUID
    currency: str
    stone_lines: tuple[StoneLine, ...]
    paper: PaperUsage
    paper_weight_per_pc: Decimal
    received: ReceivedMaterials | None
    calculated_weight: Decimal
    final_total_weight: Decimal | None
    weight_discrepancy: Decimal | None
    discrepancy_percentage: Decimal | None
    stone_used: Decimal | None
    stone_balance: Decimal | None
    stone_loss: Decimal | None
    paper_balance: int | None
    paper_loss: int | None
    status: OrderStatus
    is_finalized: bool
    finalized_at: datetime | None
    mode_of_payment: PaymentMode
    payment_status: PaymentStatus
    discount: DiscountSpec
    unit_price: Decimal
    total_cost: Decimal
    discounted_amount: Decimal
    final_amount: Decimal
    notes: str | None
    created_by_id: UUID
    updated_by_id: UUID | None


class FinalizationStatus(str, Enum):
    FINALIZED = "finalized"
    FINALIZED_WITH_SHORTFALL = "finalized_with_shortfall"
    ALREADY_FINALIZED = "already_finalized"


@dataclass(frozen=True)
class FinalizationResult:
    """
    Outcome of a finalize call.

    A repeated call returns the same finalized_at, discrepancy and
    shortfalls as the original one with status ALREADY_FINALIZED and no
    movements, because it performed none.
    """

    order_id: UUID
    status: FinalizationStatus
    finalized_at: datetime
    weight_discrepancy: Decimal
    discrepancy_percentage: Decimal
    shortfalls: tuple[InsufficientStock, ...] = ()
    movements: tuple[LedgerMovement, ...] = ()

    @property
    def already_finalized(self) -> bool:
        return self.status is FinalizationStatus.ALREADY_FINALIZED

    @property
    def has_shortfall(self) -> bool:
        return bool(self.shortfalls)
