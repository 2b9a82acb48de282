"""
Module: shop_kernel.models.order
Responsibility: ORM persistence for customer orders, their stone lines,
    customer-supplied materials, typed audit trail and finalization
    shortfalls.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - is_finalized transitions only false -> true and finalized_at is set
      once (ORM listeners in db/immutability.py; the claim itself is a
      conditional UPDATE issued by the order service).
    - discount_value >= 0 and final_amount >= 0 (CHECK constraints).
    - Audit entries and shortfalls are append-only.

Failure modes:
    - ImmutabilityViolationError when a finalized order's ledger-affecting
      fields are edited or an audit entry is modified.

Audit relevance:
    Every change to an order appends one OrderAuditEntry naming the changed
    field.  A finalized order, its stone lines and its shortfall rows are the
    permanent explanation of the stock it consumed.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shop_kernel.db.base import TrackedBase, UUIDString
from shop_kernel.domain.values import (
    DiscountType,
    InventoryKind,
    OrderStatus,
    OrderType,
    PaymentMode,
    PaymentStatus,
)


class Order(TrackedBase):
    """
    A customer order for one design, printed on one paper width.

    Contract:
        Costing fields (unit_price, total_cost, discounted_amount,
        final_amount) and calculated_weight are derived by the order service
        on create and update.  Discrepancy fields stay None until a final
        weight is recorded.

    Guarantees:
        - status is one of pending, completed, cancelled.
        - is_finalized never reverts once true.
    """

    __tablename__ = "orders"

    __table_args__ = (
        CheckConstraint("discount_value >= 0", name="ck_order_discount_non_negative"),
        CheckConstraint("final_amount >= 0", name="ck_order_final_amount_non_negative"),
        CheckConstraint(
            "paper_quantity_in_pcs > 0", name="ck_order_paper_pcs_positive"
        ),
        Index("idx_order_status", "status"),
        Index("idx_order_customer", "customer_id"),
        Index("idx_order_finalized", "is_finalized"),
    )

    order_type: Mapped[OrderType] = mapped_column(String(20), nullable=False)

    # Customer snapshot at order time
    customer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=True
    )
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)

    design_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("designs.id"), nullable=False
    )
    currency: Mapped[str] = mapped_column(String(8), nullable=False)

    # Paper usage
    paper_size_in_inch: Mapped[int] = mapped_column(Integer, nullable=False)
    paper_quantity_in_pcs: Mapped[int] = mapped_column(Integer, nullable=False)
    paper_weight_per_pc: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    # Customer-supplied paper (out jobs)
    received_paper_quantity_in_pcs: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    received_paper_weight_per_pc: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    # Weights
    calculated_weight: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    final_total_weight: Mapped[Decimal | None] = mapped_column(nullable=True)
    weight_discrepancy: Mapped[Decimal | None] = mapped_column(nullable=True)
    discrepancy_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Out-job material balance
    stone_used: Mapped[Decimal | None] = mapped_column(nullable=True)
    stone_balance: Mapped[Decimal | None] = mapped_column(nullable=True)
    stone_loss: Mapped[Decimal | None] = mapped_column(nullable=True)
    paper_balance: Mapped[int | None] = mapped_column(Integer, nullable=True)
    paper_loss: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Lifecycle
    status: Mapped[OrderStatus] = mapped_column(
        String(20), nullable=False, default=OrderStatus.PENDING
    )
    is_finalized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    finalized_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Pricing
    mode_of_payment: Mapped[PaymentMode] = mapped_column(
        String(20), nullable=False, default=PaymentMode.CASH
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING
    )
    discount_type: Mapped[DiscountType] = mapped_column(
        String(20), nullable=False, default=DiscountType.PERCENTAGE
    )
    discount_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    unit_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discounted_amount: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    final_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    stone_lines: Mapped[list["OrderStoneLine"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderStoneLine.position",
    )

    received_stones: Mapped[list["OrderReceivedStone"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderReceivedStone.position",
    )

    audit_events: Mapped[list["OrderAuditEntry"]] = relationship(
        back_populates="order",
        lazy="selectin",
        order_by="OrderAuditEntry.sequence",
    )

    shortfalls: Mapped[list["OrderShortfall"]] = relationship(
        back_populates="order",
        lazy="selectin",
        order_by="OrderShortfall.position",
    )

    @property
    def total_stone_weight(self) -> Decimal:
        return sum((line.quantity for line in self.stone_lines), Decimal("0"))

    @property
    def received_stone_weight(self) -> Decimal:
        return sum((line.quantity for line in self.received_stones), Decimal("0"))

    def __repr__(self) -> str:
        return f"<Order {self.id} {self.order_type} {self.status}>"


class OrderStoneLine(TrackedBase):
    """Stones the order consumes: copied from the design or entered by staff."""

    __tablename__ = "order_stone_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_stone_line_positive"),
        Index("idx_order_stone_line_order", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stone_number: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped[Order] = relationship(back_populates="stone_lines")


class OrderReceivedStone(TrackedBase):
    """Stones a customer handed over for an out job."""

    __tablename__ = "order_received_stones"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_received_stone_positive"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stone_number: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped[Order] = relationship(back_populates="received_stones")


class OrderAuditEntry(TrackedBase):
    """
    One recorded change to an order.  Append-only.

    ``field`` is an OrderAuditField value; old and new values are canonical
    string renderings (see shop_kernel.domain.audit.render_value).
    """

    __tablename__ = "order_audit_entries"

    __table_args__ = (Index("idx_order_audit_order_seq", "order_id", "sequence"),)

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("orders.id"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    field: Mapped[str] = mapped_column(String(50), nullable=False)
    old_value: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    new_value: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    order: Mapped[Order] = relationship(back_populates="audit_events")


class OrderShortfall(TrackedBase):
    """A deduction that was clamped at zero during finalization.  Append-only."""

    __tablename__ = "order_shortfalls"

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("orders.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    kind: Mapped[InventoryKind] = mapped_column(String(20), nullable=False)
    item_key: Mapped[str] = mapped_column(String(100), nullable=False)
    requested: Mapped[Decimal] = mapped_column(nullable=False)
    deducted: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped[Order] = relationship(back_populates="shortfalls")

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.deducted
