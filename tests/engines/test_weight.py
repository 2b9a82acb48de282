"""
Tests for the Weight Reconciliation and Material Balance calculators.

Covers:
- Expected weight from stones and paper
- Discrepancy sign and percentage
- Zero-guard for a zero expected weight
- Out-job stone and paper balance
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from shop_engines.weight import (
    MaterialBalanceCalculator,
    WeightReconciliationCalculator,
)
from shop_kernel.exceptions import ValidationError


class TestCalculatedWeight:
    def test_paper_only(self):
        """16" paper, 5 g per piece, 40 pcs, no stones."""
        weight = WeightReconciliationCalculator.calculated_weight([], 40, Decimal("5"))

        assert weight == Decimal("200")

    def test_stones_and_paper(self):
        weight = WeightReconciliationCalculator.calculated_weight(
            [Decimal("5"), Decimal("2.5")], 100, Decimal("0.5")
        )

        assert weight == Decimal("57.5")

    def test_negative_input_rejected(self):
        with pytest.raises(ValidationError):
            WeightReconciliationCalculator.calculated_weight([Decimal("-1")], 1, Decimal("1"))


class TestReconcile:
    def setup_method(self):
        self.calculator = WeightReconciliationCalculator()

    def test_loss(self):
        result = self.calculator.reconcile(Decimal("200"), Decimal("210"))

        assert result.weight_discrepancy == Decimal("10")
        assert result.discrepancy_percentage == Decimal("5")
        assert result.is_loss
        assert not result.is_surplus

    def test_surplus_keeps_sign(self):
        result = self.calculator.reconcile(Decimal("200"), Decimal("190"))

        assert result.weight_discrepancy == Decimal("-10")
        assert result.discrepancy_percentage == Decimal("-5")
        assert result.is_surplus

    def test_equal_weights_are_exactly_zero(self):
        result = self.calculator.reconcile(Decimal("0.1") + Decimal("0.2"), Decimal("0.3"))

        assert result.weight_discrepancy == 0
        assert result.discrepancy_percentage == 0
        assert not result.is_loss and not result.is_surplus

    def test_zero_calculated_weight_guarded(self):
        result = self.calculator.reconcile(Decimal("0"), Decimal("12"))

        assert result.weight_discrepancy == Decimal("12")
        assert result.discrepancy_percentage == Decimal("0")

    def test_unmeasured_leaves_discrepancy_unset(self):
        result = self.calculator.reconcile(Decimal("200"), None)

        assert not result.is_measured
        assert result.weight_discrepancy is None
        assert result.discrepancy_percentage is None

    def test_negative_final_weight_rejected(self):
        with pytest.raises(ValidationError):
            self.calculator.reconcile(Decimal("10"), Decimal("-1"))

    def test_percentage_quantized(self):
        result = self.calculator.reconcile(Decimal("3"), Decimal("4"))

        assert result.discrepancy_percentage == Decimal("33.333333333")


class TestMaterialBalance:
    def setup_method(self):
        self.calculator = MaterialBalanceCalculator()

    def test_balance_to_return(self):
        balance = self.calculator.calculate(
            final_total_weight=Decimal("60"),
            received_stone_weight=Decimal("20"),
            received_paper_pcs=100,
            received_paper_weight_per_pc=Decimal("0.5"),
            used_paper_pcs=80,
        )

        assert balance.stone_used == Decimal("10")
        assert balance.stone_balance == Decimal("10")
        assert balance.stone_loss == Decimal("0")
        assert balance.paper_balance == 20
        assert balance.paper_loss == 0

    def test_loss_to_explain(self):
        balance = self.calculator.calculate(
            final_total_weight=Decimal("80"),
            received_stone_weight=Decimal("20"),
            received_paper_pcs=50,
            received_paper_weight_per_pc=Decimal("0.5"),
            used_paper_pcs=60,
        )

        assert balance.stone_used == Decimal("55")
        assert balance.stone_balance == Decimal("0")
        assert balance.stone_loss == Decimal("35")
        assert balance.paper_balance == 0
        assert balance.paper_loss == 10


weights = st.decimals(min_value=0, max_value=1_000_000, places=3, allow_nan=False, allow_infinity=False)


class TestReconcileProperties:
    @given(calculated=weights, final=weights)
    def test_sign_matches_direction(self, calculated, final):
        result = WeightReconciliationCalculator().reconcile(calculated, final)

        assert result.weight_discrepancy == final - calculated
        if final > calculated:
            assert result.is_loss
            assert result.discrepancy_percentage >= 0
        elif final < calculated:
            assert result.is_surplus
            assert result.discrepancy_percentage <= 0
        else:
            assert result.weight_discrepancy == 0
            assert result.discrepancy_percentage == 0
