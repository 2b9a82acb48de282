"""
Module: shop_kernel.models.design
Responsibility: ORM persistence for designs, their per-currency prices and
    their default bill of materials.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Design.number is unique.
    - At most one price per (design, currency).
    - Default stone quantities are non-negative.

Audit relevance:
    Orders copy the design's default stones onto their own stone lines at
    creation, so editing a design never rewrites historical orders.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shop_kernel.db.base import TrackedBase, UUIDString


class Design(TrackedBase):
    __tablename__ = "designs"

    __table_args__ = (UniqueConstraint("number", name="uq_design_number"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    number: Mapped[str] = mapped_column(String(50), nullable=False)

    # Opaque URL; image storage lives outside the core
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    prices: Mapped[list["DesignPrice"]] = relationship(
        back_populates="design",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    default_stones: Mapped[list["DesignStone"]] = relationship(
        back_populates="design",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="DesignStone.position",
    )

    def price_for(self, currency: str) -> Decimal | None:
        """Unit price in ``currency``, or None if the design has none."""
        for price in self.prices:
            if price.currency == currency:
                return price.price
        return None

    def __repr__(self) -> str:
        return f"<Design {self.number}: {self.name}>"


class DesignPrice(TrackedBase):
    __tablename__ = "design_prices"

    __table_args__ = (
        UniqueConstraint("design_id", "currency", name="uq_design_price_currency"),
        CheckConstraint("price >= 0", name="ck_design_price_non_negative"),
    )

    design_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("designs.id", ondelete="CASCADE"),
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    price: Mapped[Decimal] = mapped_column(nullable=False)

    design: Mapped[Design] = relationship(back_populates="prices")


class DesignStone(TrackedBase):
    """One line of a design's default bill of materials."""

    __tablename__ = "design_stones"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_design_stone_non_negative"),
    )

    design_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("designs.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    stone_number: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    design: Mapped[Design] = relationship(back_populates="default_stones")
