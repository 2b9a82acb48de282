"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Inventory entries explain every increase of a ledger counter, audit events
explain every change to an order, and a finalized order explains every
decrease.  If any of them could be edited after the fact, the stock levels
would no longer be reconstructible from history.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check the rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                 | What
--------------------|--------------------------------|------------------------------
InventoryEntry      | ALWAYS (from creation)         | Every column; no deletes
InventoryEntryItem  | ALWAYS (from creation)         | Every column; no deletes
OrderAuditEntry     | ALWAYS (from creation)         | Every column; no deletes
OrderShortfall      | ALWAYS (from creation)         | Every column; no deletes
Order               | After is_finalized = true      | is_finalized, finalized_at,
                    |                                | type, stone lines, paper usage,
                    |                                | final weight; no deletes

The finalization claim itself is a Core ``UPDATE`` and does not pass through
these listeners.  Edits made through the ORM afterwards do.

===============================================================================
USAGE
===============================================================================

    from shop_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    from shop_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from shop_kernel.exceptions import ImmutabilityViolationError
from shop_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Order columns frozen once the order is finalized.
FINALIZED_ORDER_FROZEN_FIELDS = (
    "order_type",
    "paper_size_in_inch",
    "paper_quantity_in_pcs",
    "final_total_weight",
    "finalized_at",
)


def _block(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_append_only_update(mapper, connection, target):
    """Append-only records may never be updated."""
    entity_type = type(target).__name__
    _block(entity_type, target, "UPDATE", f"{entity_type} records are append-only")


def _check_append_only_delete(mapper, connection, target):
    """Append-only records may never be deleted."""
    entity_type = type(target).__name__
    _block(entity_type, target, "DELETE", f"{entity_type} records cannot be deleted")


def _was_finalized(target) -> bool:
    """
    Whether the order was already finalized before the pending update.

    The attribute history distinguishes an order that is being finalized in
    this flush (false -> true) from one that was finalized earlier.
    """
    history = get_history(target, "is_finalized")
    if history.deleted:
        return bool(history.deleted[0])
    return bool(target.is_finalized)


def _check_order_immutability(mapper, connection, target):
    """
    Prevent un-finalizing an order and edits of a finalized order's
    ledger-affecting fields.
    """
    if not _was_finalized(target):
        return

    if not target.is_finalized:
        _block("Order", target, "UPDATE", "is_finalized cannot go from true to false")

    for field_name in FINALIZED_ORDER_FROZEN_FIELDS:
        history = get_history(target, field_name)
        if history.deleted and history.deleted[0] is not None:
            _block(
                "Order",
                target,
                "UPDATE",
                f"{field_name} cannot change after finalization",
            )


def _check_order_delete(mapper, connection, target):
    if target.is_finalized:
        _block("Order", target, "DELETE", "finalized orders cannot be deleted")


def _check_order_stone_line_update(mapper, connection, target):
    order = target.order
    if order is not None and _was_finalized(order):
        _block(
            "OrderStoneLine",
            target,
            "UPDATE",
            "stone lines cannot change after finalization",
        )


def _check_order_stone_line_delete(mapper, connection, target):
    order = target.order
    if order is not None and _was_finalized(order):
        _block(
            "OrderStoneLine",
            target,
            "DELETE",
            "stone lines cannot change after finalization",
        )


def _listeners():
    from shop_kernel.models.inventory_entry import InventoryEntry, InventoryEntryItem
    from shop_kernel.models.order import (
        Order,
        OrderAuditEntry,
        OrderShortfall,
        OrderStoneLine,
    )

    listeners = []
    for model in (InventoryEntry, InventoryEntryItem, OrderAuditEntry, OrderShortfall):
        listeners.append((model, "before_update", _check_append_only_update))
        listeners.append((model, "before_delete", _check_append_only_delete))

    listeners.append((Order, "before_update", _check_order_immutability))
    listeners.append((Order, "before_delete", _check_order_delete))
    listeners.append((OrderStoneLine, "before_update", _check_order_stone_line_update))
    listeners.append((OrderStoneLine, "before_delete", _check_order_stone_line_delete))
    return listeners


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent; call after all models are imported but before any database
    operations begin.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
