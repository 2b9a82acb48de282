"""
Inventory Entry Domain Models (``shop_modules.inventory_entries.models``).
"""

from __future__ import annotations

from dataclasses import dataclass

from shop_kernel.domain.values import LedgerMovement
from shop_kernel.selectors.inventory_selector import EntryRow


@dataclass(frozen=True)
class RecordedEntry:
    """A recorded batch and the ledger increments it caused, one per line."""

    entry: EntryRow
    movements: tuple[LedgerMovement, ...]

    @property
    def line_count(self) -> int:
        return len(self.movements)
