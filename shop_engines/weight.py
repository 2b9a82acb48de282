"""
shop_engines.weight -- Weight reconciliation and out-job material balance.

Responsibility:
    Compute the expected weight of an order from its bill of materials,
    compare it with the physically measured final weight, and for out jobs
    split the measured weight into the customer's stone and paper balance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by the order service on create, update, final-weight recording
    and finalization.

Invariants enforced:
    - Decimal arithmetic throughout; equal weights yield a discrepancy that
      compares equal to Decimal(0) with no float residue.
    - Sign is preserved: positive discrepancy = more consumed than expected
      (loss), negative = surplus.
    - discrepancy_percentage is 0 when calculated_weight is 0, never a
      division error.
    - Balances and losses are clamped at zero; at most one of
      (balance, loss) is non-zero per material.

Failure modes:
    - ValidationError on negative inputs.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from shop_engines.tracer import traced_engine
from shop_kernel.db.types import round_quantity
from shop_kernel.exceptions import ValidationError
from shop_kernel.logging_config import get_logger

logger = get_logger("engines.weight")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class WeightReconciliation:
    """
    Expected vs. measured weight of an order.

    ``weight_discrepancy`` and ``discrepancy_percentage`` are None until a
    final weight has been measured.
    """

    calculated_weight: Decimal
    final_total_weight: Decimal | None
    weight_discrepancy: Decimal | None
    discrepancy_percentage: Decimal | None

    @property
    def is_measured(self) -> bool:
        return self.final_total_weight is not None

    @property
    def is_loss(self) -> bool:
        return self.weight_discrepancy is not None and self.weight_discrepancy > 0

    @property
    def is_surplus(self) -> bool:
        return self.weight_discrepancy is not None and self.weight_discrepancy < 0


@dataclass(frozen=True)
class MaterialBalance:
    """What happened to the materials a customer supplied for an out job."""

    stone_used: Decimal
    stone_balance: Decimal
    stone_loss: Decimal
    paper_balance: int
    paper_loss: int


class WeightReconciliationCalculator:
    """
    Pure function calculator for order weights.

    Contract:
        No I/O, no database access, fully deterministic.
    """

    @staticmethod
    def calculated_weight(
        stone_quantities: Iterable[Decimal],
        quantity_in_pcs: int,
        paper_weight_per_pc: Decimal,
    ) -> Decimal:
        """Sum of stone quantities plus the weight of the paper pieces."""
        stones = sum(stone_quantities, ZERO)
        if stones < 0 or paper_weight_per_pc < 0 or quantity_in_pcs < 0:
            raise ValidationError("weight", "weights and quantities must be >= 0")
        return stones + paper_weight_per_pc * quantity_in_pcs

    @traced_engine(
        "weight_reconciliation",
        "1.0",
        fingerprint_fields=("calculated_weight", "final_total_weight"),
    )
    def reconcile(
        self,
        calculated_weight: Decimal,
        final_total_weight: Decimal | None,
    ) -> WeightReconciliation:
        """
        Compare the expected weight with the measured one.

        Postconditions:
            weight_discrepancy == final_total_weight - calculated_weight.
            discrepancy_percentage == 0 when calculated_weight == 0.
        """
        if final_total_weight is None:
            return WeightReconciliation(calculated_weight, None, None, None)
        if final_total_weight < 0:
            raise ValidationError(
                "final_total_weight", f"must be >= 0 (got {final_total_weight})"
            )

        discrepancy = final_total_weight - calculated_weight
        if calculated_weight == 0:
            percentage = ZERO
        else:
            percentage = round_quantity(discrepancy / calculated_weight * HUNDRED)

        logger.debug(
            "weight_reconciled",
            extra={
                "calculated_weight": str(calculated_weight),
                "final_total_weight": str(final_total_weight),
                "weight_discrepancy": str(discrepancy),
                "discrepancy_percentage": str(percentage),
            },
        )
        return WeightReconciliation(
            calculated_weight=calculated_weight,
            final_total_weight=final_total_weight,
            weight_discrepancy=discrepancy,
            discrepancy_percentage=percentage,
        )


class MaterialBalanceCalculator:
    """
    Out-job stone and paper balance.

    The measured final weight minus the customer's paper weight is the stone
    actually used; comparing it with what the customer handed over yields a
    balance to return or a loss to explain.
    """

    @traced_engine(
        "material_balance",
        "1.0",
        fingerprint_fields=(
            "final_total_weight",
            "received_stone_weight",
            "received_paper_pcs",
            "received_paper_weight_per_pc",
            "used_paper_pcs",
        ),
    )
    def calculate(
        self,
        final_total_weight: Decimal,
        received_stone_weight: Decimal,
        received_paper_pcs: int,
        received_paper_weight_per_pc: Decimal,
        used_paper_pcs: int,
    ) -> MaterialBalance:
        stone_used = final_total_weight - received_paper_pcs * received_paper_weight_per_pc
        return MaterialBalance(
            stone_used=stone_used,
            stone_balance=max(ZERO, received_stone_weight - stone_used),
            stone_loss=max(ZERO, stone_used - received_stone_weight),
            paper_balance=max(0, received_paper_pcs - used_paper_pcs),
            paper_loss=max(0, used_paper_pcs - received_paper_pcs),
        )
