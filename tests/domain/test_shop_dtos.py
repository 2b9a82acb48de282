"""
Tests for request DTOs and value objects.

Shape errors must surface as ValidationError at construction time, before
any service touches the database.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from shop_kernel.domain.dtos import (
    CreateOrderRequest,
    CustomerInfo,
    EntryLine,
    OrderChanges,
    PaperUsage,
    ReceivedMaterials,
    StoneLine,
    parse_entry_line,
    to_decimal,
)
from shop_kernel.domain.values import (
    DiscountType,
    FlatDiscount,
    InventoryKind,
    InventoryType,
    LedgerMovement,
    OrderType,
    PaperKey,
    PercentageDiscount,
    PlasticKey,
    StoneKey,
    TapeKey,
    discount_from,
)
from shop_kernel.exceptions import ValidationError


class TestLedgerKeys:
    def test_rendering(self):
        assert str(StoneKey("S-101")) == "S-101/internal"
        assert str(PaperKey(13, InventoryType.OUT)) == '13"/out'
        assert str(PlasticKey("Clear sleeve")) == "Clear sleeve"

    def test_kind_follows_key_type(self):
        assert StoneKey("S-1").kind is InventoryKind.STONES
        assert PaperKey(9).kind is InventoryKind.PAPER
        assert TapeKey("Gold").kind is InventoryKind.TAPE

    def test_out_order_draws_from_out_pool(self):
        assert OrderType.OUT.inventory_type is InventoryType.OUT


class TestDiscounts:
    def test_from_wire_pair(self):
        assert discount_from("percentage", "12.5") == PercentageDiscount(Decimal("12.5"))
        assert discount_from("flat", 40) == FlatDiscount(Decimal("40"))

    def test_type_tag(self):
        assert discount_from("flat", 1).discount_type is DiscountType.FLAT

    def test_unknown_type(self):
        with pytest.raises(ValidationError) as exc_info:
            discount_from("bogus", 1)

        assert exc_info.value.field == "discount_type"

    @pytest.mark.parametrize("discount_type", ["percentage", "flat"])
    def test_negative_value(self, discount_type):
        with pytest.raises(ValidationError):
            discount_from(discount_type, "-1")


class TestOrderRequests:
    def test_stone_line_must_be_positive(self):
        with pytest.raises(ValidationError):
            StoneLine("S-101", Decimal("0"))

    def test_paper_pieces_must_be_positive(self):
        with pytest.raises(ValidationError):
            PaperUsage(size_in_inch=13, quantity_in_pcs=0)

    def test_customer_needs_name_and_phone(self):
        with pytest.raises(ValidationError):
            CustomerInfo(name=" ", phone="98")
        with pytest.raises(ValidationError):
            CustomerInfo(name="Asha", phone="")

    def test_internal_order_rejects_received_materials(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateOrderRequest(
                order_type=OrderType.INTERNAL,
                customer=CustomerInfo(name="Asha", phone="98"),
                design_id=uuid4(),
                paper=PaperUsage(size_in_inch=13, quantity_in_pcs=10),
                received=ReceivedMaterials(paper_quantity_in_pcs=10),
            )

        assert exc_info.value.field == "received_materials"

    def test_received_material_weights(self):
        received = ReceivedMaterials(
            stones=(StoneLine("S-1", Decimal("2.5")), StoneLine("S-2", Decimal("1"))),
            paper_quantity_in_pcs=40,
            paper_weight_per_pc=Decimal("0.25"),
        )

        assert received.total_stone_weight == Decimal("3.5")
        assert received.paper_weight == Decimal("10")

    def test_changes_touching_materials(self):
        assert OrderChanges(paper=PaperUsage(13, 1)).touches_materials
        assert not OrderChanges(notes="rush").touches_materials


class TestParseEntryLine:
    def test_stone_line(self):
        line = parse_entry_line(
            {"inventoryType": "stones", "number": "S-101", "pool": "out", "quantity": "2.25"}
        )

        assert line.key == StoneKey("S-101", InventoryType.OUT)
        assert line.quantity == Decimal("2.25")

    def test_paper_line_defaults_to_internal(self):
        line = parse_entry_line({"inventoryType": "paper", "width": "13", "quantity": 2})

        assert line.key == PaperKey(13)
        assert line.kind is InventoryKind.PAPER

    def test_float_quantity_goes_through_str(self):
        line = parse_entry_line({"inventoryType": "tape", "name": "Gold", "quantity": 0.1})

        assert line.quantity == Decimal("0.1")

    @pytest.mark.parametrize(
        "raw, field",
        [
            ({"inventoryType": "glue", "quantity": 1}, "items.inventoryType"),
            ({"inventoryType": "stones", "quantity": 1}, "items.number"),
            ({"inventoryType": "paper", "width": "wide", "quantity": 1}, "items.width"),
            ({"inventoryType": "plastic", "quantity": 1}, "items.name"),
            ({"inventoryType": "stones", "number": "S-1", "pool": "x", "quantity": 1}, "items.pool"),
            ({"inventoryType": "tape", "name": "Gold", "quantity": "lots"}, "items.quantity"),
        ],
    )
    def test_malformed(self, raw, field):
        with pytest.raises(ValidationError) as exc_info:
            parse_entry_line(raw)

        assert exc_info.value.field == field

    def test_entry_line_coerces_plain_numbers(self):
        assert EntryLine(PaperKey(13), 2).quantity == Decimal("2")
        assert EntryLine(StoneKey("S-101"), 0.1).quantity == Decimal("0.1")

    def test_entry_line_rejects_non_numbers(self):
        with pytest.raises(ValidationError) as exc_info:
            EntryLine(TapeKey("Gold"), "two")

        assert exc_info.value.field == "items.quantity"

    def test_stone_line_coerces_plain_numbers(self):
        assert StoneLine("S-101", 5).quantity == Decimal("5")

    def test_to_decimal_rejects_bool(self):
        with pytest.raises(ValidationError):
            to_decimal(True, "quantity")


class TestLedgerMovement:
    def test_full_deduction_has_no_shortfall(self):
        movement = LedgerMovement(
            InventoryKind.STONES, "S-1/internal", Decimal("5"), Decimal("5"), Decimal("10"), Decimal("5")
        )

        assert movement.insufficient_stock is None

    def test_clamped_deduction_reports_shortfall(self):
        movement = LedgerMovement(
            InventoryKind.STONES, "S-1/internal", Decimal("120"), Decimal("100"), Decimal("100"), Decimal("0")
        )

        shortage = movement.insufficient_stock
        assert shortage.shortfall == Decimal("20")
        assert shortage.code == "INSUFFICIENT_STOCK"
