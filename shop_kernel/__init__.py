"""
Shop Kernel - order costing and inventory reconciliation core.

A jewelry/stationery workshop ledger with:
- Atomic, non-negative stock counters for stones, paper, plastic and tape
- Idempotent, one-way order finalization
- Typed audit trail for order edits
"""

__version__ = "0.1.0"
