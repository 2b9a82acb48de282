"""
shop_engines -- pure calculators for order costing and weight reconciliation.

Engines perform no I/O and read no clock; every public calculation is
wrapped by ``@traced_engine`` and emits a SHOP_ENGINE_TRACE record.
"""

from shop_engines.costing import CostBreakdown, CostCalculator
from shop_engines.weight import (
    MaterialBalance,
    MaterialBalanceCalculator,
    WeightReconciliation,
    WeightReconciliationCalculator,
)

__all__ = [
    "CostBreakdown",
    "CostCalculator",
    "MaterialBalance",
    "MaterialBalanceCalculator",
    "WeightReconciliation",
    "WeightReconciliationCalculator",
]
