"""
Tests for the one-way order finalization.

Covers:
- Ledger deductions for stones and paper, from the order's own pool
- Shortfalls clamp, persist and warn without rolling finalization back
- Idempotency: a repeated finalize returns the original result
- Preconditions checked before any mutation
- Finalized orders keep their ledger-affecting fields
"""

from decimal import Decimal

import pytest

from shop_kernel.domain.audit import OrderAuditField
from shop_kernel.domain.dtos import (
    OrderChanges,
    PaperUsage,
    ReceivedMaterials,
    StoneLine,
)
from shop_kernel.domain.values import (
    InventoryKind,
    InventoryType,
    OrderType,
    PaperKey,
    StoneKey,
)
from shop_kernel.exceptions import (
    ImmutabilityViolationError,
    InconsistentStateError,
    UnknownInventoryKeyError,
)
from shop_kernel.models.order import Order, OrderShortfall
from shop_modules.orders.models import FinalizationStatus


@pytest.fixture
def weighed_order(order_service, order_request, test_actor_id):
    """Default design order (5 g S-101, 2.5 g S-202, 100 pcs of 13") with a final weight."""
    order = order_service.create_order(order_request(), test_actor_id)
    order_service.record_final_weight(order.id, Decimal("60"), test_actor_id)
    return order


class TestFinalize:
    def test_deducts_consumption(self, order_service, weighed_order, ledger, test_actor_id):
        result = order_service.finalize_order(weighed_order.id, test_actor_id)

        assert result.status is FinalizationStatus.FINALIZED
        assert not result.has_shortfall
        assert len(result.movements) == 3
        assert ledger.get_quantity(StoneKey("S-101")) == Decimal("95")
        assert ledger.get_quantity(StoneKey("S-202")) == Decimal("47.5")
        # 100 pieces of a 100-piece roll
        assert ledger.get_quantity(PaperKey(13)) == Decimal("9")

    def test_marks_order_finalized(self, order_service, weighed_order, test_actor_id, deterministic_clock):
        deterministic_clock.advance(60)
        result = order_service.finalize_order(weighed_order.id, test_actor_id)

        order = order_service.get_order(weighed_order.id)
        assert order.is_finalized is True
        assert order.finalized_at == deterministic_clock.now() == result.finalized_at
        # 57.5 expected, 60 measured
        assert result.weight_discrepancy == Decimal("2.5")
        assert order.discrepancy_percentage == result.discrepancy_percentage

    def test_appends_one_finalized_audit_entry(self, order_service, weighed_order, test_actor_id):
        order_service.finalize_order(weighed_order.id, test_actor_id)

        finalized = [
            e for e in order_service.audit_trail(weighed_order.id)
            if e.field is OrderAuditField.FINALIZED
        ]
        assert len(finalized) == 1
        assert (finalized[0].old_value, finalized[0].new_value) == ("False", "True")
        assert finalized[0].actor_id == test_actor_id

    def test_completed_order_can_be_finalized(self, order_service, weighed_order, test_actor_id):
        order_service.complete_order(weighed_order.id, test_actor_id)

        result = order_service.finalize_order(weighed_order.id, test_actor_id)

        assert result.status is FinalizationStatus.FINALIZED

    def test_out_order_draws_from_out_pool(self, order_service, order_request, ledger, test_actor_id):
        order = order_service.create_order(
            order_request(
                order_type=OrderType.OUT,
                stones=(StoneLine("S-101", Decimal("10")),),
                paper=PaperUsage(size_in_inch=13, quantity_in_pcs=80),
                received=ReceivedMaterials(
                    stones=(StoneLine("S-101", Decimal("20")),),
                    paper_quantity_in_pcs=100,
                    paper_weight_per_pc=Decimal("0.5"),
                ),
            ),
            test_actor_id,
        )
        order_service.record_final_weight(order.id, Decimal("60"), test_actor_id)

        order_service.finalize_order(order.id, test_actor_id)

        assert ledger.get_quantity(StoneKey("S-101", InventoryType.OUT)) == Decimal("10")
        assert ledger.get_quantity(PaperKey(13, InventoryType.OUT)) == Decimal("9.2")
        assert ledger.get_quantity(StoneKey("S-101")) == Decimal("100")
        assert ledger.get_quantity(PaperKey(13)) == Decimal("10")

        finalized = order_service.get_order(order.id)
        assert finalized.stone_balance == Decimal("10")
        assert finalized.paper_balance == 20

    def test_logs_finalization(self, order_service, weighed_order, test_actor_id, captured_logs):
        order_service.finalize_order(weighed_order.id, test_actor_id)

        records = [r for r in captured_logs() if r["message"] == "order_finalized"]
        assert len(records) == 1
        assert records[0]["status"] == "finalized"
        assert records[0]["order_id"] == str(weighed_order.id)


class TestShortfall:
    @pytest.fixture
    def greedy_order(self, order_service, order_request, test_actor_id):
        """Consumes 120 g of S-101 while only 100 g are on hand."""
        order = order_service.create_order(
            order_request(stones=(StoneLine("S-101", Decimal("120")),)), test_actor_id
        )
        order_service.record_final_weight(order.id, Decimal("175"), test_actor_id)
        return order

    def test_clamps_and_still_finalizes(self, order_service, greedy_order, ledger, test_actor_id):
        result = order_service.finalize_order(greedy_order.id, test_actor_id)

        assert result.status is FinalizationStatus.FINALIZED_WITH_SHORTFALL
        assert ledger.get_quantity(StoneKey("S-101")) == Decimal("0")
        assert order_service.get_order(greedy_order.id).is_finalized is True

        (shortage,) = result.shortfalls
        assert shortage.kind is InventoryKind.STONES
        assert shortage.key == "S-101/internal"
        assert shortage.shortfall == Decimal("20")

    def test_shortfall_persisted(self, order_service, greedy_order, session, test_actor_id):
        from sqlalchemy import select

        order_service.finalize_order(greedy_order.id, test_actor_id)

        rows = session.execute(
            select(OrderShortfall).where(OrderShortfall.order_id == greedy_order.id)
        ).scalars().all()
        assert len(rows) == 1
        assert rows[0].item_key == "S-101/internal"
        assert rows[0].shortfall == Decimal("20")

    def test_shortfall_warned(self, order_service, greedy_order, test_actor_id, captured_logs):
        order_service.finalize_order(greedy_order.id, test_actor_id)

        warnings = [
            r for r in captured_logs()
            if r["message"] == "order_finalized_with_shortfall"
        ]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["code"] == "INSUFFICIENT_STOCK"


class TestIdempotency:
    def test_second_finalize_returns_original_result(self, order_service, order_request, ledger, test_actor_id):
        order = order_service.create_order(
            order_request(stones=(StoneLine("S-101", Decimal("120")),)), test_actor_id
        )
        order_service.record_final_weight(order.id, Decimal("175"), test_actor_id)
        first = order_service.finalize_order(order.id, test_actor_id)
        quantities = (ledger.get_quantity(StoneKey("S-101")), ledger.get_quantity(PaperKey(13)))

        second = order_service.finalize_order(order.id, test_actor_id)

        assert second.status is FinalizationStatus.ALREADY_FINALIZED
        assert second.already_finalized
        assert second.movements == ()
        assert second.finalized_at == first.finalized_at
        assert second.weight_discrepancy == first.weight_discrepancy
        assert [s.shortfall for s in second.shortfalls] == [s.shortfall for s in first.shortfalls]
        assert (ledger.get_quantity(StoneKey("S-101")), ledger.get_quantity(PaperKey(13))) == quantities

    def test_repeat_appends_no_audit_entry(self, order_service, weighed_order, test_actor_id):
        order_service.finalize_order(weighed_order.id, test_actor_id)
        before = len(order_service.audit_trail(weighed_order.id))

        order_service.finalize_order(weighed_order.id, test_actor_id)

        assert len(order_service.audit_trail(weighed_order.id)) == before


class TestPreconditions:
    def test_requires_final_weight(self, order_service, order_request, ledger, test_actor_id):
        order = order_service.create_order(order_request(), test_actor_id)

        with pytest.raises(InconsistentStateError):
            order_service.finalize_order(order.id, test_actor_id)

        assert order_service.get_order(order.id).is_finalized is False
        assert ledger.get_quantity(StoneKey("S-101")) == Decimal("100")

    def test_cancelled_order_cannot_be_finalized(self, order_service, weighed_order, ledger, test_actor_id):
        order_service.cancel_order(weighed_order.id, test_actor_id)

        with pytest.raises(InconsistentStateError):
            order_service.finalize_order(weighed_order.id, test_actor_id)

        assert ledger.get_quantity(StoneKey("S-101")) == Decimal("100")

    def test_unknown_stone_mutates_nothing(self, order_service, order_request, ledger, test_actor_id):
        order = order_service.create_order(
            order_request(
                stones=(
                    StoneLine("S-101", Decimal("5")),
                    StoneLine("S-999", Decimal("1")),
                )
            ),
            test_actor_id,
        )
        order_service.record_final_weight(order.id, Decimal("60"), test_actor_id)

        with pytest.raises(UnknownInventoryKeyError):
            order_service.finalize_order(order.id, test_actor_id)

        assert order_service.get_order(order.id).is_finalized is False
        assert ledger.get_quantity(StoneKey("S-101")) == Decimal("100")
        assert ledger.get_quantity(PaperKey(13)) == Decimal("10")


class TestAfterFinalization:
    @pytest.fixture
    def finalized(self, order_service, weighed_order, test_actor_id):
        order_service.finalize_order(weighed_order.id, test_actor_id)
        return weighed_order

    @pytest.mark.parametrize(
        "changes",
        [
            OrderChanges(stones=(StoneLine("S-101", Decimal("1")),)),
            OrderChanges(paper=PaperUsage(size_in_inch=13, quantity_in_pcs=1)),
            OrderChanges(order_type=OrderType.OUT),
        ],
    )
    def test_material_edits_blocked(self, order_service, finalized, test_actor_id, changes):
        with pytest.raises(InconsistentStateError):
            order_service.update_order(finalized.id, changes, test_actor_id)

    def test_final_weight_frozen(self, order_service, finalized, test_actor_id):
        with pytest.raises(InconsistentStateError):
            order_service.record_final_weight(finalized.id, Decimal("61"), test_actor_id)

    def test_cannot_cancel(self, order_service, finalized, test_actor_id):
        with pytest.raises(InconsistentStateError):
            order_service.cancel_order(finalized.id, test_actor_id)

    def test_descriptive_edits_allowed(self, order_service, finalized, test_actor_id):
        updated = order_service.update_order(
            finalized.id, OrderChanges(notes="picked up"), test_actor_id
        )

        assert updated.notes == "picked up"
        assert updated.is_finalized is True

    def test_orm_cannot_unfinalize(self, finalized, session):
        order = session.get(Order, finalized.id)
        order.is_finalized = False

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
