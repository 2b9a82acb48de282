"""
Order Workflows.

State machines for an order's operational status and for its one-way
finalization.  The order service looks transitions up here and evaluates
their guards before touching any state.
"""

from __future__ import annotations

from dataclasses import dataclass

from shop_kernel.domain.dtos import OrderChanges
from shop_kernel.domain.values import OrderStatus
from shop_kernel.exceptions import InconsistentStateError
from shop_kernel.logging_config import get_logger
from shop_kernel.models.order import Order

logger = get_logger("modules.orders.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""

    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""

    from_state: str
    to_state: str
    action: str
    guards: tuple[Guard, ...] = ()
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""

    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def transition(self, from_state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

FINAL_WEIGHT_RECORDED = Guard(
    name="final_weight_recorded",
    description="a final total weight must be recorded",
)

NOT_CANCELLED = Guard(
    name="not_cancelled",
    description="the order must not be cancelled",
)

NOT_FINALIZED = Guard(
    name="not_finalized",
    description="the order must not be finalized",
)

_GUARD_CHECKS = {
    FINAL_WEIGHT_RECORDED.name: lambda order: order.final_total_weight is not None,
    NOT_CANCELLED.name: lambda order: order.status != OrderStatus.CANCELLED,
    NOT_FINALIZED.name: lambda order: not order.is_finalized,
}


# -----------------------------------------------------------------------------
# Status Workflow
# -----------------------------------------------------------------------------

ORDER_STATUS_WORKFLOW = Workflow(
    name="order_status",
    description="Operational status of an order",
    initial_state=OrderStatus.PENDING.value,
    states=tuple(s.value for s in OrderStatus),
    transitions=(
        Transition("pending", "completed", action="complete", guards=(FINAL_WEIGHT_RECORDED,)),
        Transition("pending", "cancelled", action="cancel", guards=(NOT_FINALIZED,)),
        Transition("completed", "cancelled", action="cancel", guards=(NOT_FINALIZED,)),
    ),
)


# -----------------------------------------------------------------------------
# Finalization Workflow
# -----------------------------------------------------------------------------

DRAFT = "draft"
FINALIZED = "finalized"

FINALIZATION_WORKFLOW = Workflow(
    name="order_finalization",
    description="One-way conversion of expected consumption into ledger deductions",
    initial_state=DRAFT,
    states=(DRAFT, FINALIZED),
    transitions=(
        Transition(
            DRAFT,
            FINALIZED,
            action="finalize",
            guards=(FINAL_WEIGHT_RECORDED, NOT_CANCELLED),
            moves_stock=True,
        ),
    ),
)


def finalization_state(order: Order) -> str:
    return FINALIZED if order.is_finalized else DRAFT


def require_transition(workflow: Workflow, from_state: str, action: str, order: Order) -> Transition:
    """
    Find the transition for ``action`` and check its guards.

    Raises:
        InconsistentStateError: no such transition from ``from_state`` or a
            guard does not hold.
    """
    transition = workflow.transition(str(from_state), action)
    if transition is None:
        raise InconsistentStateError(
            str(order.id), f"cannot {action} an order in state {from_state}"
        )
    for guard in transition.guards:
        if not _GUARD_CHECKS[guard.name](order):
            logger.info(
                "order_transition_blocked",
                extra={
                    "workflow": workflow.name,
                    "action": action,
                    "from_state": str(from_state),
                    "guard": guard.name,
                },
            )
            raise InconsistentStateError(str(order.id), f"cannot {action}: {guard.description}")
    return transition


def require_editable(order: Order, changes: OrderChanges | None = None) -> None:
    """
    A finalized order keeps its ledger-affecting fields.

    ``changes`` None means the caller is about to change the final weight,
    which is always ledger-affecting.
    """
    if not order.is_finalized:
        return
    if changes is None or changes.touches_materials:
        raise InconsistentStateError(
            str(order.id), "ledger-affecting fields of a finalized order cannot change"
        )
