"""
Audit -- Typed order audit events.

Responsibility:
    Every change to an order is recorded as one append-only audit event
    naming the field that changed (a closed ``OrderAuditField`` vocabulary,
    not a free-form string) with canonical string renderings of the old and
    new values.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  The order service builds events here
    and the ORM layer persists them as ``OrderAuditEntry`` rows.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class OrderAuditField(str, Enum):
    """Fields whose changes are recorded on an order's audit trail."""

    CREATED = "created"
    TYPE = "type"
    CUSTOMER_NAME = "customer_name"
    PHONE = "phone"
    DESIGN = "design_id"
    STONES_USED = "stones_used"
    PAPER_USED = "paper_used"
    DISCOUNT = "discount"
    MODE_OF_PAYMENT = "mode_of_payment"
    PAYMENT_STATUS = "payment_status"
    NOTES = "notes"
    STATUS = "status"
    FINAL_TOTAL_WEIGHT = "final_total_weight"
    STONE_USAGE = "stone_usage"
    FINALIZED = "is_finalized"


def render_value(value: Any) -> str | None:
    """
    Canonical string form of an audited value.

    Decimals are normalized so ``Decimal("10.0")`` and ``Decimal("10")``
    render identically; structured values render as sorted-key JSON.
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, (UUID, datetime)):
        return str(value)
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, sort_keys=True, default=render_value)
    return str(value)


@dataclass(frozen=True)
class OrderAuditEvent:
    field: OrderAuditField
    old_value: str | None
    new_value: str | None
    actor_id: UUID
    occurred_at: datetime

    @classmethod
    def change(
        cls,
        field: OrderAuditField,
        old: Any,
        new: Any,
        actor_id: UUID,
        occurred_at: datetime,
    ) -> OrderAuditEvent | None:
        """Build an event, or None if the rendered values are equal."""
        old_rendered = render_value(old)
        new_rendered = render_value(new)
        if old_rendered == new_rendered:
            return None
        return cls(field, old_rendered, new_rendered, actor_id, occurred_at)
