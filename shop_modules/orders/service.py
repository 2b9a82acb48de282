"""
Order Module Service (``shop_modules.orders.service``).

Responsibility
--------------
Orchestrates an order's life: creation with costing and expected weight,
edits, recording of the measured final weight, completion, cancellation and
the one-way finalization that deducts consumed materials from the ledger.
Arithmetic is delegated to ``shop_engines`` (CostCalculator,
WeightReconciliationCalculator, MaterialBalanceCalculator); stock changes to
the kernel ``InventoryLedger``.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

Invariants
----------
- Each public method owns its transaction boundary: commit on success,
  rollback and re-raise on failure.
- Finalization is claimed with a conditional UPDATE
  (``... WHERE is_finalized = false``); exactly one caller wins.  A losing
  or repeated call performs zero ledger mutations and returns the stored
  original result flagged ALREADY_FINALIZED.
- Every precondition (final weight, not cancelled, every ledger key
  resolves) is checked before the claim, so a rejected finalize mutates
  nothing.
- Insufficient stock never rolls finalization back: the clamped shortfall
  is persisted as an OrderShortfall row and logged at WARNING.
- Every change appends one typed audit entry per changed field.

Failure Modes
-------------
- OrderNotFoundError / DesignNotFoundError for unknown ids.
- ValidationError for malformed input (unknown currency, paper width, no
  design price in the order currency).
- UnknownInventoryKeyError when a stone or paper key does not exist.
- InconsistentStateError for a transition the order's state forbids.

Usage::

    service = OrderService(session, clock=clock)
    order = service.create_order(request, actor_id)
    service.record_final_weight(order.id, Decimal("210"), actor_id)
    result = service.finalize_order(order.id, actor_id)
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from shop_config import ShopConfig, get_active_config
from shop_engines.costing import CostBreakdown, CostCalculator
from shop_engines.weight import MaterialBalanceCalculator, WeightReconciliationCalculator
from shop_kernel.db.types import decimal_places_of
from shop_kernel.domain.audit import OrderAuditEvent, OrderAuditField
from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.domain.dtos import (
    CreateOrderRequest,
    OrderChanges,
    PaperUsage,
    ReceivedMaterials,
    StoneLine,
)
from shop_kernel.domain.values import (
    DiscountSpec,
    DiscountType,
    InsufficientStock,
    InventoryKind,
    LedgerMovement,
    OrderStatus,
    OrderType,
    PaperKey,
    PaymentMode,
    PaymentStatus,
    StoneKey,
    discount_from,
)
from shop_kernel.exceptions import (
    AlreadyFinalizedError,
    InconsistentStateError,
    OrderNotFoundError,
    ValidationError,
)
from shop_kernel.logging_config import LogContext, get_logger
from shop_kernel.models.design import Design
from shop_kernel.models.order import (
    Order,
    OrderAuditEntry,
    OrderReceivedStone,
    OrderShortfall,
    OrderStoneLine,
)
from shop_kernel.services.catalog_service import CatalogService
from shop_kernel.services.ledger_service import InventoryLedger
from shop_kernel.services.party_service import PartyService
from shop_modules.orders.models import (
    FinalizationResult,
    FinalizationStatus,
    OrderSummary,
)
from shop_modules.orders.workflows import (
    FINALIZATION_WORKFLOW,
    ORDER_STATUS_WORKFLOW,
    finalization_state,
    require_editable,
    require_transition,
)

logger = get_logger("modules.orders.service")


def _stone_payload(lines) -> list[dict]:
    return [{"stone_number": line.stone_number, "quantity": line.quantity} for line in lines]


def _paper_payload(size_in_inch: int, quantity_in_pcs: int) -> dict:
    return {"size_in_inch": size_in_inch, "quantity_in_pcs": quantity_in_pcs}


def _discount_payload(discount_type, value) -> dict:
    return {"type": DiscountType(discount_type).value, "value": value}


class OrderService:
    """
    Orchestrates orders through engines and the kernel ledger.

    Contract
    --------
    Every public method validates its input, computes derived fields with
    the engines, applies state changes and audit entries, and commits.  On
    any exception the session is rolled back and the exception re-raised.

    Non-goals
    ---------
    - Does NOT compute costs or weights itself -- see ``shop_engines``.
    - Does NOT change stock anywhere except ``finalize_order``.
    """

    def __init__(
        self,
        session: Session,
        config: ShopConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._ledger = InventoryLedger(session, max_retries=self._config.ledger_max_retries)
        self._catalog = CatalogService(session, paper_widths=self._config.paper_widths)
        self._parties = PartyService(session)
        self._costing = CostCalculator(decimal_places=self._config.money_decimal_places)
        self._weights = WeightReconciliationCalculator()
        self._balances = MaterialBalanceCalculator()

    # =========================================================================
    # Queries
    # =========================================================================

    def get_order(self, order_id: UUID) -> OrderSummary:
        """
        Raises:
            OrderNotFoundError: if the order does not exist.
        """
        return self._to_summary(self._load(order_id))

    def audit_trail(self, order_id: UUID) -> tuple[OrderAuditEvent, ...]:
        """Recorded changes of an order, oldest first."""
        order = self._load(order_id)
        return tuple(
            OrderAuditEvent(
                field=OrderAuditField(entry.field),
                old_value=entry.old_value,
                new_value=entry.new_value,
                actor_id=entry.actor_id,
                occurred_at=entry.occurred_at,
            )
            for entry in order.audit_events
        )

    def preview_costing(
        self,
        design_id: UUID,
        paper: PaperUsage,
        discount: DiscountSpec,
        currency: str | None = None,
    ) -> CostBreakdown:
        """Cost of a prospective order, without creating it."""
        currency = self._resolve_currency(currency)
        design = self._catalog.get_design(design_id)
        return self._costing.calculate(
            unit_price=self._unit_price(design, currency),
            quantity_in_pcs=paper.quantity_in_pcs,
            discount=discount,
        )

    # =========================================================================
    # Creation and edits
    # =========================================================================

    def create_order(self, request: CreateOrderRequest, actor_id: UUID) -> OrderSummary:
        """
        Create a pending, unfinalized order.

        Stone lines default to the design's bill of materials; the paper
        weight per piece is copied from the paper record of the order's pool.

        Raises:
            ValidationError: unknown currency, paper width or payment mode,
                or the design has no price in the order currency.
            DesignNotFoundError: design_id does not exist.
            UnknownInventoryKeyError: no paper of that width in the pool.
        """
        try:
            currency = self._resolve_currency(request.currency)
            self._check_paper_width(request.paper.size_in_inch)
            self._check_payment_mode(request.mode_of_payment)

            design = self._catalog.get_design(request.design_id)
            paper_key = PaperKey(request.paper.size_in_inch, request.order_type.inventory_type)
            paper = self._ledger.resolve(paper_key)

            if request.stones is not None:
                stones = tuple(request.stones)
            else:
                stones = self._design_stones(design)
            self._check_stone_precision(stones)
            if request.received is not None:
                self._check_stone_precision(request.received.stones)

            cost = self._costing.calculate(
                unit_price=self._unit_price(design, currency),
                quantity_in_pcs=request.paper.quantity_in_pcs,
                discount=request.discount,
            )
            calculated_weight = self._weights.calculated_weight(
                (line.quantity for line in stones),
                request.paper.quantity_in_pcs,
                paper.weight_per_piece,
            )

            available = paper.available_pieces
            if available < request.paper.quantity_in_pcs:
                if self._config.reject_low_paper_stock:
                    raise ValidationError(
                        "paper_used.quantity_in_pcs",
                        f"insufficient paper stock: {available} pieces of {paper_key} "
                        f"available, {request.paper.quantity_in_pcs} requested",
                    )
                logger.warning(
                    "order_paper_stock_low",
                    extra={
                        "paper_key": str(paper_key),
                        "available_pieces": str(available),
                        "requested_pieces": request.paper.quantity_in_pcs,
                    },
                )

            customer = self._parties.find_or_create_customer(request.customer, actor_id)
            now = self._clock.now()

            order = Order(
                order_type=request.order_type,
                customer_id=customer.id,
                customer_name=request.customer.name.strip(),
                phone=request.customer.phone.strip(),
                design_id=design.id,
                currency=currency,
                paper_size_in_inch=request.paper.size_in_inch,
                paper_quantity_in_pcs=request.paper.quantity_in_pcs,
                paper_weight_per_pc=paper.weight_per_piece,
                calculated_weight=calculated_weight,
                status=OrderStatus.PENDING,
                is_finalized=False,
                mode_of_payment=request.mode_of_payment,
                payment_status=request.payment_status,
                discount_type=request.discount.discount_type,
                discount_value=request.discount.value,
                unit_price=cost.unit_price,
                total_cost=cost.total_cost,
                discounted_amount=cost.discounted_amount,
                final_amount=cost.final_amount,
                notes=request.notes,
                created_at=now,
                created_by_id=actor_id,
            )
            for position, line in enumerate(stones):
                order.stone_lines.append(
                    OrderStoneLine(
                        position=position,
                        stone_number=line.stone_number,
                        quantity=line.quantity,
                        created_by_id=actor_id,
                    )
                )
            if request.received is not None:
                self._set_received(order, request.received, actor_id)

            self._session.add(order)
            self._session.flush()
            self._append_audit(
                order,
                [OrderAuditEvent(OrderAuditField.CREATED, None, str(order.id), actor_id, now)],
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "order_created",
            extra={
                "order_id": str(order.id),
                "order_type": request.order_type.value,
                "design_id": str(design.id),
                "currency": currency,
                "total_cost": str(cost.total_cost),
                "final_amount": str(cost.final_amount),
                "calculated_weight": str(calculated_weight),
            },
        )
        return self._to_summary(order)

    def update_order(
        self,
        order_id: UUID,
        changes: OrderChanges,
        actor_id: UUID,
    ) -> OrderSummary:
        """
        Apply a partial edit, recomputing costing and weights as needed.

        Raises:
            InconsistentStateError: the edit touches the type, stones or
                paper of a finalized order.
        """
        try:
            order = self._load(order_id, lock=True)
            require_editable(order, changes)
            now = self._clock.now()
            events: list[OrderAuditEvent | None] = []

            order_type = changes.order_type or OrderType(order.order_type)
            reprice = False
            reweigh = False

            if changes.order_type is not None:
                if changes.order_type is OrderType.INTERNAL and (
                    order.received_stones or order.received_paper_quantity_in_pcs
                ):
                    raise ValidationError(
                        "type", "an order with received materials must stay an out order"
                    )
                events.append(self._change(OrderAuditField.TYPE, order.order_type, changes.order_type, actor_id, now))
                order.order_type = changes.order_type
                reweigh = True

            if changes.customer_name is not None:
                name = changes.customer_name.strip()
                if not name:
                    raise ValidationError("customer_name", "is required")
                events.append(self._change(OrderAuditField.CUSTOMER_NAME, order.customer_name, name, actor_id, now))
                order.customer_name = name

            if changes.phone is not None:
                phone = changes.phone.strip()
                if not phone:
                    raise ValidationError("phone", "is required")
                events.append(self._change(OrderAuditField.PHONE, order.phone, phone, actor_id, now))
                order.phone = phone

            if changes.design_id is not None and changes.design_id != order.design_id:
                self._catalog.get_design(changes.design_id)
                events.append(self._change(OrderAuditField.DESIGN, order.design_id, changes.design_id, actor_id, now))
                order.design_id = changes.design_id
                reprice = True

            if changes.stones is not None:
                self._check_stone_precision(changes.stones)
                events.append(
                    self._change(
                        OrderAuditField.STONES_USED,
                        _stone_payload(order.stone_lines),
                        _stone_payload(changes.stones),
                        actor_id,
                        now,
                    )
                )
                order.stone_lines.clear()
                self._session.flush()
                for position, line in enumerate(changes.stones):
                    order.stone_lines.append(
                        OrderStoneLine(
                            position=position,
                            stone_number=line.stone_number,
                            quantity=line.quantity,
                            created_by_id=actor_id,
                        )
                    )
                reweigh = True

            if changes.paper is not None:
                self._check_paper_width(changes.paper.size_in_inch)
                events.append(
                    self._change(
                        OrderAuditField.PAPER_USED,
                        _paper_payload(order.paper_size_in_inch, order.paper_quantity_in_pcs),
                        _paper_payload(changes.paper.size_in_inch, changes.paper.quantity_in_pcs),
                        actor_id,
                        now,
                    )
                )
                order.paper_size_in_inch = changes.paper.size_in_inch
                order.paper_quantity_in_pcs = changes.paper.quantity_in_pcs
                reprice = True
                reweigh = True

            if changes.discount is not None:
                events.append(
                    self._change(
                        OrderAuditField.DISCOUNT,
                        _discount_payload(order.discount_type, order.discount_value),
                        _discount_payload(changes.discount.discount_type, changes.discount.value),
                        actor_id,
                        now,
                    )
                )
                order.discount_type = changes.discount.discount_type
                order.discount_value = changes.discount.value
                reprice = True

            if changes.mode_of_payment is not None:
                self._check_payment_mode(changes.mode_of_payment)
                events.append(self._change(OrderAuditField.MODE_OF_PAYMENT, order.mode_of_payment, changes.mode_of_payment, actor_id, now))
                order.mode_of_payment = changes.mode_of_payment

            if changes.payment_status is not None:
                events.append(self._change(OrderAuditField.PAYMENT_STATUS, order.payment_status, changes.payment_status, actor_id, now))
                order.payment_status = changes.payment_status

            if changes.notes is not None:
                events.append(self._change(OrderAuditField.NOTES, order.notes, changes.notes, actor_id, now))
                order.notes = changes.notes

            if reprice:
                self._reprice(order)
            if reweigh:
                paper = self._ledger.resolve(
                    PaperKey(order.paper_size_in_inch, order_type.inventory_type)
                )
                order.paper_weight_per_pc = paper.weight_per_piece
                order.calculated_weight = self._weights.calculated_weight(
                    (line.quantity for line in order.stone_lines),
                    order.paper_quantity_in_pcs,
                    order.paper_weight_per_pc,
                )
                self._reconcile(order)

            order.updated_by_id = actor_id
            changed = self._append_audit(order, events)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "order_updated",
            extra={
                "order_id": str(order.id),
                "fields": [e.field.value for e in changed],
                "repriced": reprice,
                "reweighed": reweigh,
            },
        )
        return self._to_summary(order)

    def record_final_weight(
        self,
        order_id: UUID,
        final_total_weight: Decimal,
        actor_id: UUID,
    ) -> OrderSummary:
        """
        Record the measured weight and recompute the discrepancy.

        For out orders the customer's stone and paper balance is recomputed
        as well.

        Raises:
            ValidationError: negative weight.
            InconsistentStateError: the order is finalized or cancelled.
        """
        try:
            if final_total_weight < 0:
                raise ValidationError(
                    "final_total_weight", f"must be >= 0 (got {final_total_weight})"
                )
            order = self._load(order_id, lock=True)
            require_editable(order)
            if order.status == OrderStatus.CANCELLED:
                raise InconsistentStateError(str(order.id), "a cancelled order takes no final weight")

            now = self._clock.now()
            events = [
                self._change(
                    OrderAuditField.FINAL_TOTAL_WEIGHT,
                    order.final_total_weight,
                    final_total_weight,
                    actor_id,
                    now,
                )
            ]
            old_stone_used = order.stone_used
            order.final_total_weight = final_total_weight
            self._reconcile(order)
            if OrderType(order.order_type) is OrderType.OUT:
                events.append(
                    self._change(OrderAuditField.STONE_USAGE, old_stone_used, order.stone_used, actor_id, now)
                )
            order.updated_by_id = actor_id
            self._append_audit(order, events)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "order_final_weight_recorded",
            extra={
                "order_id": str(order.id),
                "final_total_weight": str(final_total_weight),
                "calculated_weight": str(order.calculated_weight),
                "weight_discrepancy": str(order.weight_discrepancy),
                "discrepancy_percentage": str(order.discrepancy_percentage),
            },
        )
        return self._to_summary(order)

    # =========================================================================
    # Status transitions
    # =========================================================================

    def complete_order(self, order_id: UUID, actor_id: UUID) -> OrderSummary:
        """
        Mark the order completed.  Does not touch the ledger.

        Completing an already completed order is a no-op.

        Raises:
            InconsistentStateError: no final weight, or the order is cancelled.
        """
        return self._change_status(order_id, "complete", OrderStatus.COMPLETED, actor_id)

    def cancel_order(self, order_id: UUID, actor_id: UUID) -> OrderSummary:
        """
        Cancel the order.  Cancelling an already cancelled order is a no-op.

        Raises:
            InconsistentStateError: the order is finalized.
        """
        return self._change_status(order_id, "cancel", OrderStatus.CANCELLED, actor_id)

    def _change_status(
        self,
        order_id: UUID,
        action: str,
        target: OrderStatus,
        actor_id: UUID,
    ) -> OrderSummary:
        try:
            order = self._load(order_id, lock=True)
            current = OrderStatus(order.status)
            if current is target:
                self._session.commit()
                return self._to_summary(order)

            require_transition(ORDER_STATUS_WORKFLOW, current.value, action, order)
            now = self._clock.now()
            order.status = target
            order.updated_by_id = actor_id
            self._append_audit(
                order,
                [self._change(OrderAuditField.STATUS, current, target, actor_id, now)],
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "order_status_changed",
            extra={
                "order_id": str(order.id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        return self._to_summary(order)

    # =========================================================================
    # Finalization
    # =========================================================================

    def finalize_order(self, order_id: UUID, actor_id: UUID) -> FinalizationResult:
        """
        Deduct the order's consumption from the ledger, exactly once.

        Preconditions (checked before any mutation):
            - a final total weight is recorded;
            - the order is not cancelled;
            - every stone line and the paper usage resolve to ledger keys in
              the order's pool.

        Postconditions:
            - is_finalized is true and finalized_at set;
            - each stone line and the paper usage were decremented once,
              clamped at zero, with shortfalls persisted;
            - discrepancy fields are recomputed and one FINALIZED audit
              entry appended.

        Returns:
            FinalizationResult.  A repeated call returns the original
            result with status ALREADY_FINALIZED and no movements.

        Raises:
            InconsistentStateError: no final weight, or cancelled.
            UnknownInventoryKeyError: a stone or paper key does not exist.
        """
        with LogContext.bind(order_id=str(order_id), actor_id=str(actor_id)):
            try:
                return self._finalize(order_id, actor_id)
            except AlreadyFinalizedError:
                self._session.rollback()
                logger.info("order_finalize_claim_lost", extra={"order_id": str(order_id)})
                return self._already_finalized(order_id)
            except Exception:
                self._session.rollback()
                raise

    def _finalize(self, order_id: UUID, actor_id: UUID) -> FinalizationResult:
        order = self._load(order_id, lock=True)
        if order.is_finalized:
            raise AlreadyFinalizedError(str(order_id))

        require_transition(FINALIZATION_WORKFLOW, finalization_state(order), "finalize", order)

        pool = OrderType(order.order_type).inventory_type
        stone_keys = [(StoneKey(line.stone_number, pool), line.quantity) for line in order.stone_lines]
        paper_key = PaperKey(order.paper_size_in_inch, pool)
        for key, _ in stone_keys:
            self._ledger.resolve(key)
        self._ledger.resolve(paper_key)

        now = self._clock.now()
        claim = self._session.execute(
            update(Order)
            .where(Order.id == order.id, Order.is_finalized.is_(False))
            .values(is_finalized=True, finalized_at=now, updated_by_id=actor_id)
            .execution_options(synchronize_session=False)
        )
        if claim.rowcount != 1:
            raise AlreadyFinalizedError(str(order_id))
        self._session.refresh(order, ["is_finalized", "finalized_at", "updated_by_id"])

        movements: list[LedgerMovement] = []
        for key, quantity in stone_keys:
            movements.append(self._ledger.decrement(key, quantity, actor_id))
        movements.append(
            self._ledger.decrement_paper_pieces(paper_key, order.paper_quantity_in_pcs, actor_id)
        )

        shortfalls = tuple(
            m.insufficient_stock for m in movements if m.insufficient_stock is not None
        )
        for position, shortage in enumerate(shortfalls):
            order.shortfalls.append(
                OrderShortfall(
                    position=position,
                    kind=shortage.kind,
                    item_key=shortage.key,
                    requested=shortage.requested,
                    deducted=shortage.deducted,
                    created_by_id=actor_id,
                )
            )

        self._reconcile(order)
        self._append_audit(
            order,
            [self._change(OrderAuditField.FINALIZED, False, True, actor_id, now)],
        )
        self._session.commit()

        status = (
            FinalizationStatus.FINALIZED_WITH_SHORTFALL
            if shortfalls
            else FinalizationStatus.FINALIZED
        )
        for shortage in shortfalls:
            logger.warning(
                "order_finalized_with_shortfall",
                extra={
                    "order_id": str(order.id),
                    "code": shortage.code,
                    "kind": shortage.kind.value,
                    "key": shortage.key,
                    "requested": str(shortage.requested),
                    "deducted": str(shortage.deducted),
                    "shortfall": str(shortage.shortfall),
                },
            )
        logger.info(
            "order_finalized",
            extra={
                "order_id": str(order.id),
                "status": status.value,
                "movement_count": len(movements),
                "shortfall_count": len(shortfalls),
                "weight_discrepancy": str(order.weight_discrepancy),
            },
        )
        return FinalizationResult(
            order_id=order.id,
            status=status,
            finalized_at=now,
            weight_discrepancy=order.weight_discrepancy,
            discrepancy_percentage=order.discrepancy_percentage,
            shortfalls=shortfalls,
            movements=tuple(movements),
        )

    def _already_finalized(self, order_id: UUID) -> FinalizationResult:
        """The stored result of an earlier finalization."""
        try:
            order = self._load(order_id)
            result = FinalizationResult(
                order_id=order.id,
                status=FinalizationStatus.ALREADY_FINALIZED,
                finalized_at=order.finalized_at,
                weight_discrepancy=order.weight_discrepancy,
                discrepancy_percentage=order.discrepancy_percentage,
                shortfalls=tuple(
                    InsufficientStock(
                        kind=InventoryKind(s.kind),
                        key=s.item_key,
                        requested=s.requested,
                        deducted=s.deducted,
                    )
                    for s in order.shortfalls
                ),
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "order_already_finalized",
            extra={"order_id": str(order_id), "finalized_at": order.finalized_at},
        )
        return result

    # =========================================================================
    # Internals
    # =========================================================================

    def _load(self, order_id: UUID, lock: bool = False) -> Order:
        stmt = select(Order).where(Order.id == order_id)
        if lock:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        order = self._session.execute(stmt).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def _resolve_currency(self, currency: str | None) -> str:
        currency = currency or self._config.default_currency
        if not self._config.is_valid_currency(currency):
            raise ValidationError(
                "currency", f"must be one of {list(self._config.currencies)} (got {currency!r})"
            )
        return currency

    def _check_paper_width(self, width: int) -> None:
        if not self._config.is_valid_paper_width(width):
            raise ValidationError(
                "paper_used.size_in_inch",
                f"must be one of {list(self._config.paper_widths)} (got {width})",
            )

    def _check_payment_mode(self, mode: PaymentMode) -> None:
        if mode not in self._config.payment_modes:
            raise ValidationError("mode_of_payment", f"{PaymentMode(mode).value} is not accepted")

    def _check_stone_precision(self, stones) -> None:
        places = self._config.stone_decimal_places
        for line in stones:
            if decimal_places_of(line.quantity) > places:
                raise ValidationError(
                    "stones_used.quantity",
                    f"at most {places} decimal places (got {line.quantity})",
                )

    @staticmethod
    def _unit_price(design: Design, currency: str) -> Decimal:
        price = design.price_for(currency)
        if price is None:
            raise ValidationError(
                "currency", f"design {design.number} has no price in {currency}"
            )
        return price

    @staticmethod
    def _design_stones(design: Design) -> tuple[StoneLine, ...]:
        return tuple(
            StoneLine(stone.stone_number, stone.quantity)
            for stone in design.default_stones
            if stone.quantity > 0
        )

    def _set_received(self, order: Order, received: ReceivedMaterials, actor_id: UUID) -> None:
        for position, line in enumerate(received.stones):
            order.received_stones.append(
                OrderReceivedStone(
                    position=position,
                    stone_number=line.stone_number,
                    quantity=line.quantity,
                    created_by_id=actor_id,
                )
            )
        order.received_paper_quantity_in_pcs = received.paper_quantity_in_pcs
        order.received_paper_weight_per_pc = received.paper_weight_per_pc

    def _reprice(self, order: Order) -> None:
        design = self._catalog.get_design(order.design_id)
        cost = self._costing.calculate(
            unit_price=self._unit_price(design, order.currency),
            quantity_in_pcs=order.paper_quantity_in_pcs,
            discount=discount_from(order.discount_type, order.discount_value),
        )
        order.unit_price = cost.unit_price
        order.total_cost = cost.total_cost
        order.discounted_amount = cost.discounted_amount
        order.final_amount = cost.final_amount

    def _reconcile(self, order: Order) -> None:
        """Recompute discrepancy and, for out orders, material balance."""
        reconciliation = self._weights.reconcile(
            calculated_weight=order.calculated_weight,
            final_total_weight=order.final_total_weight,
        )
        order.weight_discrepancy = reconciliation.weight_discrepancy
        order.discrepancy_percentage = reconciliation.discrepancy_percentage

        if OrderType(order.order_type) is not OrderType.OUT or order.final_total_weight is None:
            return
        balance = self._balances.calculate(
            final_total_weight=order.final_total_weight,
            received_stone_weight=order.received_stone_weight,
            received_paper_pcs=order.received_paper_quantity_in_pcs,
            received_paper_weight_per_pc=order.received_paper_weight_per_pc,
            used_paper_pcs=order.paper_quantity_in_pcs,
        )
        order.stone_used = balance.stone_used
        order.stone_balance = balance.stone_balance
        order.stone_loss = balance.stone_loss
        order.paper_balance = balance.paper_balance
        order.paper_loss = balance.paper_loss

    @staticmethod
    def _change(field, old, new, actor_id, now) -> OrderAuditEvent | None:
        return OrderAuditEvent.change(field, old, new, actor_id, now)

    def _append_audit(
        self,
        order: Order,
        events: list[OrderAuditEvent | None],
    ) -> list[OrderAuditEvent]:
        recorded = [e for e in events if e is not None]
        sequence = len(order.audit_events)
        for event in recorded:
            sequence += 1
            order.audit_events.append(
                OrderAuditEntry(
                    sequence=sequence,
                    field=event.field.value,
                    old_value=event.old_value,
                    new_value=event.new_value,
                    actor_id=event.actor_id,
                    occurred_at=event.occurred_at,
                    created_by_id=event.actor_id,
                )
            )
        return recorded

    def _to_summary(self, order: Order) -> OrderSummary:
        order_type = OrderType(order.order_type)
        received = None
        if order_type is OrderType.OUT and (
            order.received_stones or order.received_paper_quantity_in_pcs
        ):
            received = ReceivedMaterials(
                stones=tuple(
                    StoneLine(s.stone_number, s.quantity) for s in order.received_stones
                ),
                paper_quantity_in_pcs=order.received_paper_quantity_in_pcs,
                paper_weight_per_pc=order.received_paper_weight_per_pc,
            )
        return OrderSummary(
            id=order.id,
            order_type=order_type,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            phone=order.phone,
            design_id=order.design_id,
            currency=order.currency,
            stone_lines=tuple(
                StoneLine(line.stone_number, line.quantity) for line in order.stone_lines
            ),
            paper=PaperUsage(order.paper_size_in_inch, order.paper_quantity_in_pcs),
            paper_weight_per_pc=order.paper_weight_per_pc,
            received=received,
            calculated_weight=order.calculated_weight,
            final_total_weight=order.final_total_weight,
            weight_discrepancy=order.weight_discrepancy,
            discrepancy_percentage=order.discrepancy_percentage,
            stone_used=order.stone_used,
            stone_balance=order.stone_balance,
            stone_loss=order.stone_loss,
            paper_balance=order.paper_balance,
            paper_loss=order.paper_loss,
            status=OrderStatus(order.status),
            is_finalized=order.is_finalized,
            finalized_at=order.finalized_at,
            mode_of_payment=PaymentMode(order.mode_of_payment),
            payment_status=PaymentStatus(order.payment_status),
            discount=discount_from(order.discount_type, order.discount_value),
            unit_price=order.unit_price,
            total_cost=order.total_cost,
            discounted_amount=order.discounted_amount,
            final_amount=order.final_amount,
            notes=order.notes,
            created_by_id=order.created_by_id,
            updated_by_id=order.updated_by_id,
        )
