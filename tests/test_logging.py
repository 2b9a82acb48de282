"""Tests for the structured logging system (shop_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from shop_kernel.domain.values import InventoryKind, OrderStatus
from shop_kernel.exceptions import UnknownInventoryKeyError, ValidationError
from shop_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests and restore the suite's config."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def stream() -> StringIO:
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    configure_logging(handler=handler)
    return buffer


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_envelope(self, stream):
        get_logger("services.ledger").info("inventory_incremented")

        (record,) = _records(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "inventory_incremented"
        assert record["logger"] == "shop_kernel.services.ledger"
        assert "ts" in record

    def test_shop_values_rendered_as_text(self, stream):
        entry_id = uuid4()
        get_logger("test").info(
            "entry_recorded",
            extra={
                "entry_ref": entry_id,
                "grams": Decimal("2.50"),
                "kind": InventoryKind.STONES,
                "status": OrderStatus.CANCELLED,
                "bill_date": date(2024, 1, 5),
                "lines": 2,
            },
        )

        (record,) = _records(stream)
        assert record["entry_ref"] == str(entry_id)
        assert record["grams"] == "2.50"
        assert record["kind"] == "stones"
        assert record["status"] == "cancelled"
        assert record["bill_date"] == "2024-01-05"
        assert record["lines"] == 2

    def test_kernel_error_code_and_detail(self, stream):
        try:
            raise UnknownInventoryKeyError("paper", '13"/out')
        except UnknownInventoryKeyError:
            get_logger("test").warning("finalize_rejected", exc_info=True)

        (record,) = _records(stream)
        assert record["error_type"] == "UnknownInventoryKeyError"
        assert record["error_code"] == "UNKNOWN_INVENTORY_KEY"
        assert record["error_detail"] == {"kind": "paper", "key": '13"/out'}
        assert "traceback" in record

    def test_validation_error_detail(self, stream):
        try:
            raise ValidationError("paper_used.size_in_inch", "no paper stocked at width 9")
        except ValidationError:
            get_logger("test").error("order_rejected", exc_info=True)

        (record,) = _records(stream)
        assert record["error_code"] == "VALIDATION_ERROR"
        assert record["error_detail"]["field"] == "paper_used.size_in_inch"
        assert record["error_detail"]["reason"] == "no paper stocked at width 9"

    def test_foreign_error_has_no_code(self, stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        (record,) = _records(stream)
        assert record["error_type"] == "ValueError"
        assert record["error_message"] == "boom"
        assert "error_code" not in record
        assert "error_detail" not in record

    def test_below_level_dropped(self, stream):
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"key": "S-101/internal"})
        logger.debug("third")

        assert [r["message"] for r in _records(stream)] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_bound_fields_on_records(self, stream):
        order_id, actor_id = uuid4(), uuid4()
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            get_logger("services.ledger").info("inventory_decremented")
        get_logger("services.ledger").info("after")

        inside, after = _records(stream)
        assert inside["order_id"] == str(order_id)
        assert inside["actor_id"] == str(actor_id)
        assert "order_id" not in after

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(order_id="outer", actor_id="a"):
            with LogContext.bind(order_id="inner", entry_id="e"):
                assert LogContext.current() == {
                    "order_id": "inner",
                    "actor_id": "a",
                    "entry_id": "e",
                }
            assert LogContext.current() == {"order_id": "outer", "actor_id": "a"}
        assert LogContext.current() == {}

    def test_restored_when_block_raises(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(order_id="o"):
                raise RuntimeError("finalize failed")

        assert LogContext.current() == {}

    def test_none_values_skipped(self):
        with LogContext.bind(order_id="o", actor_id=None):
            assert LogContext.current() == {"order_id": "o"}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            with LogContext.bind(shelf="A3"):
                pass

    def test_explicit_extra_wins_unless_none(self, stream):
        logger = get_logger("test")
        with LogContext.bind(actor_id="from-context"):
            logger.info("explicit", extra={"actor_id": "from-extra"})
            logger.info("missing", extra={"actor_id": None})

        explicit, missing = _records(stream)
        assert explicit["actor_id"] == "from-extra"
        assert missing["actor_id"] == "from-context"


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_only_first_call_applies(self, stream):
        configure_logging(handler=logging.StreamHandler(StringIO()))

        assert len(logging.getLogger("shop_kernel").handlers) == 1

    def test_level_applies_to_children(self):
        buffer = StringIO()
        configure_logging(handler=logging.StreamHandler(buffer), level=logging.DEBUG)
        get_logger("modules.orders").debug("order_costed")

        (record,) = _records(buffer)
        assert record["logger"] == "shop_kernel.modules.orders"

    def test_does_not_propagate(self, stream):
        assert logging.getLogger("shop_kernel").propagate is False

    def test_reset_allows_reconfigure(self, stream):
        reset_logging()
        buffer = StringIO()
        configure_logging(handler=logging.StreamHandler(buffer))
        get_logger("test").info("again")

        assert stream.getvalue() == ""
        assert _records(buffer)[0]["message"] == "again"

    def test_formatter_installed_on_given_handler(self, stream):
        (handler,) = logging.getLogger("shop_kernel").handlers
        assert isinstance(handler.formatter, StructuredFormatter)
