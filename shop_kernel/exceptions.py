"""
Typed Exception Hierarchy for the Shop Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The HTTP layer translates every failure of the costing and inventory core into
a status code.  It must do that by type and by a machine-readable ``code``,
never by parsing message strings.  Every exception here therefore:

  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        service.finalize_order(order_id, actor_id)
    except InconsistentStateError as e:
        return api_response(409, code=e.code, order=e.order_id, reason=e.reason)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ShopKernelError (base)
    |
    +-- ValidationError
    |
    +-- InventoryError
    |   +-- UnknownInventoryKeyError
    |   +-- DuplicateKeyError
    |
    +-- OrderError
    |   +-- OrderNotFoundError
    |   +-- DesignNotFoundError
    |   +-- AlreadyFinalizedError
    |   +-- InconsistentStateError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|---------------------------------------
Validation   | VALIDATION_ERROR          | Malformed input, rejected before any
             |                           | ledger mutation
-------------|---------------------------|---------------------------------------
Inventory    | UNKNOWN_INVENTORY_KEY     | Stone/paper/plastic/tape key missing
             | DUPLICATE_KEY             | Composite key already taken
-------------|---------------------------|---------------------------------------
Order        | ORDER_NOT_FOUND           | Order ID doesn't exist
             | DESIGN_NOT_FOUND          | Design ID doesn't exist
             | ALREADY_FINALIZED         | Finalize claim lost (idempotent no-op)
             | INCONSISTENT_STATE        | Finalize without final weight, on a
             |                           | cancelled order, edit after finalize
-------------|---------------------------|---------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT  | Ledger CAS retries exhausted
-------------|---------------------------|---------------------------------------
Immutability | IMMUTABILITY_VIOLATION    | Edit/delete of an inventory entry,
             |                           | audit event, or un-finalizing an order
-------------|---------------------------|---------------------------------------
Config       | CONFIGURATION_ERROR       | Invalid YAML configuration

Insufficient stock is deliberately NOT an exception.  The materials have
already left the shop, so a clamped deduction is reported as an
``InsufficientStock`` value in the finalization result and logged at WARNING.
"""


class ShopKernelError(Exception):
    """
    Base exception for all shop kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SHOP_KERNEL_ERROR"


# Validation


class ValidationError(ShopKernelError):
    """
    Input is malformed.

    Always raised before any ledger mutation; the caller may correct the
    input and resubmit.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Inventory-related exceptions


class InventoryError(ShopKernelError):
    """Base exception for inventory ledger errors."""

    code: str = "INVENTORY_ERROR"


class UnknownInventoryKeyError(InventoryError):
    """A ledger key does not resolve to an existing record."""

    code: str = "UNKNOWN_INVENTORY_KEY"

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"Unknown {kind} inventory key: {key}")


class DuplicateKeyError(InventoryError):
    """A record with the same unique key already exists."""

    code: str = "DUPLICATE_KEY"

    def __init__(self, entity_type: str, key: str):
        self.entity_type = entity_type
        self.key = key
        super().__init__(f"Duplicate {entity_type} key: {key}")


# Order-related exceptions


class OrderError(ShopKernelError):
    """Base exception for order lifecycle errors."""

    code: str = "ORDER_ERROR"


class OrderNotFoundError(OrderError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class DesignNotFoundError(OrderError):
    """Design with given ID was not found."""

    code: str = "DESIGN_NOT_FOUND"

    def __init__(self, design_id: str):
        self.design_id = design_id
        super().__init__(f"Design not found: {design_id}")


class AlreadyFinalizedError(OrderError):
    """
    Order was already finalized (idempotent no-op).

    Raised when a finalize claim loses against a concurrent or earlier
    finalization.  The order service answers it with the stored original
    result; it never leads to a second deduction.
    """

    code: str = "ALREADY_FINALIZED"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} is already finalized")


class InconsistentStateError(OrderError):
    """The order is not in a state that permits the requested transition."""

    code: str = "INCONSISTENT_STATE"

    def __init__(self, order_id: str, reason: str):
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Order {order_id} is in an inconsistent state: {reason}")


# Concurrency-related exceptions


class ConcurrencyError(ShopKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict could not be resolved by retrying."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, attempts: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.attempts = attempts
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"entity was modified by another transaction ({attempts} attempts)"
        )


# Immutability-related exceptions


class ImmutabilityError(ShopKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Inventory entries, their items and order audit events are immutable
    from creation; an order's finalization cannot be undone.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(ShopKernelError):
    """Shop configuration failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        self.reason = reason
        super().__init__(f"Invalid configuration '{setting}': {reason}")
