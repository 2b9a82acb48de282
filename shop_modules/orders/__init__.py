"""
Orders module: costing, weight reconciliation and finalization of orders.
"""

from shop_modules.orders.models import (
    FinalizationResult,
    FinalizationStatus,
    OrderSummary,
)
from shop_modules.orders.service import OrderService
from shop_modules.orders.workflows import (
    FINALIZATION_WORKFLOW,
    ORDER_STATUS_WORKFLOW,
)

__all__ = [
    "FINALIZATION_WORKFLOW",
    "ORDER_STATUS_WORKFLOW",
    "FinalizationResult",
    "FinalizationStatus",
    "OrderService",
    "OrderSummary",
]
