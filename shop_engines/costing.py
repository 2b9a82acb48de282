"""
shop_engines.costing -- Order cost, discount and final amount.

Responsibility:
    Turn a unit price, a piece count and a discount into the three money
    figures persisted on an order: total cost, discounted amount and final
    amount.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import shop_kernel domain values and db/types rounding helpers.
    Consumed by the order service for previews and on create/update.

Invariants enforced:
    - 0 <= discounted_amount <= total_cost.  Percentages above 100 clamp to
      100; flat discounts above the total clamp to the total.
    - final_amount = total_cost - discounted_amount, so 0 <= final <= total.
    - Money is rounded once, at the end, to the configured places with
      ROUND_HALF_UP.  The discount is rounded and the final amount is derived
      from the rounded figures so the three always add up.
    - Purity: no clock access, no I/O.

Failure modes:
    - ValidationError if unit_price < 0 or quantity_in_pcs <= 0.

Usage:
    from shop_engines.costing import CostCalculator
    from shop_kernel.domain.values import PercentageDiscount

    breakdown = CostCalculator().calculate(
        unit_price=Decimal("50"),
        quantity_in_pcs=100,
        discount=PercentageDiscount(Decimal("10")),
    )
    breakdown.final_amount  # Decimal("4500.00")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from shop_engines.tracer import traced_engine
from shop_kernel.db.types import MONEY_DECIMAL_PLACES, round_money
from shop_kernel.domain.values import (
    DiscountSpec,
    DiscountType,
    FlatDiscount,
    PercentageDiscount,
)
from shop_kernel.exceptions import ValidationError
from shop_kernel.logging_config import get_logger

logger = get_logger("engines.costing")

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CostBreakdown:
    unit_price: Decimal
    quantity_in_pcs: int
    discount_type: DiscountType
    discount_value: Decimal
    total_cost: Decimal
    discounted_amount: Decimal
    final_amount: Decimal

    @property
    def discount_was_clamped(self) -> bool:
        """True if the requested discount exceeded what could be applied."""
        if self.discount_type is DiscountType.PERCENTAGE:
            return self.discount_value > HUNDRED
        return self.discount_value > self.total_cost


class CostCalculator:
    """
    Pure function calculator for order costing.

    Contract:
        No I/O, no database access, fully deterministic.
    """

    def __init__(self, decimal_places: int = MONEY_DECIMAL_PLACES):
        self._decimal_places = decimal_places

    @staticmethod
    def discount_amount(total_cost: Decimal, discount: DiscountSpec) -> Decimal:
        """Unrounded discount on ``total_cost``, clamped to [0, total_cost]."""
        if isinstance(discount, PercentageDiscount):
            percent = min(discount.percent, HUNDRED)
            return total_cost * percent / HUNDRED
        if isinstance(discount, FlatDiscount):
            return min(discount.amount, total_cost)
        raise ValidationError("discount_type", f"unsupported discount {discount!r}")

    @traced_engine(
        "costing",
        "1.0",
        fingerprint_fields=("unit_price", "quantity_in_pcs", "discount"),
    )
    def calculate(
        self,
        unit_price: Decimal,
        quantity_in_pcs: int,
        discount: DiscountSpec,
    ) -> CostBreakdown:
        """
        Compute total, discount and final amount.

        Preconditions:
            unit_price >= 0; quantity_in_pcs > 0.

        Postconditions:
            0 <= discounted_amount <= total_cost and
            final_amount == total_cost - discounted_amount.

        Raises:
            ValidationError: on a negative price or non-positive quantity.
        """
        if unit_price < 0:
            raise ValidationError("unit_price", f"must be >= 0 (got {unit_price})")
        if quantity_in_pcs <= 0:
            raise ValidationError(
                "paper_used.quantity_in_pcs", f"must be > 0 (got {quantity_in_pcs})"
            )

        total_cost = round_money(unit_price * quantity_in_pcs, self._decimal_places)
        discounted = round_money(
            self.discount_amount(total_cost, discount), self._decimal_places
        )
        # Rounding a clamped discount never exceeds the already-rounded total
        discounted = min(discounted, total_cost)
        final_amount = total_cost - discounted

        breakdown = CostBreakdown(
            unit_price=unit_price,
            quantity_in_pcs=quantity_in_pcs,
            discount_type=discount.discount_type,
            discount_value=discount.value,
            total_cost=total_cost,
            discounted_amount=discounted,
            final_amount=final_amount,
        )

        if breakdown.discount_was_clamped:
            logger.info(
                "discount_clamped",
                extra={
                    "discount_type": discount.discount_type.value,
                    "discount_value": str(discount.value),
                    "total_cost": str(total_cost),
                    "discounted_amount": str(discounted),
                },
            )
        logger.debug(
            "order_costed",
            extra={
                "total_cost": str(total_cost),
                "discounted_amount": str(discounted),
                "final_amount": str(final_amount),
            },
        )
        return breakdown
