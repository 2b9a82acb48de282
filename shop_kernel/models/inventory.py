"""
Module: shop_kernel.models.inventory
Responsibility: ORM persistence for the four material counters the ledger
    tracks: stones, paper rolls, plastic and tape.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - (number, inventory_type) is unique for stones and (width, inventory_type)
      for paper; plastic and tape names are unique.
    - quantity >= 0 (CHECK constraint).  The ledger clamps deductions at zero
      so the constraint is never the first line of defense.
    - version increments on every ledger mutation; the ledger's conditional
      UPDATE compares against the version it read.

Failure modes:
    - IntegrityError on a duplicate key (translated to DuplicateKeyError by
      the catalog service).
    - IntegrityError on a negative quantity written outside the ledger.

Audit relevance:
    Only quantity and version are mutated by the costing core.  Descriptive
    attributes belong to master-data maintenance.
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shop_kernel.db.base import TrackedBase
from shop_kernel.db.types import pieces_in_rolls
from shop_kernel.domain.values import (
    InventoryType,
    PaperKey,
    PlasticKey,
    StoneKey,
    StoneUnit,
    TapeKey,
)


class Stone(TrackedBase):
    """
    Stone stock, in grams (or kilograms per ``unit``), per pool.

    Guarantees:
        - number + inventory_type identify the counter.
        - weight_per_piece >= 0.
    """

    __tablename__ = "stones"

    __table_args__ = (
        UniqueConstraint("number", "inventory_type", name="uq_stone_number_pool"),
        CheckConstraint("quantity >= 0", name="ck_stone_quantity_non_negative"),
        CheckConstraint("weight_per_piece >= 0", name="ck_stone_weight_non_negative"),
        Index("idx_stone_pool", "inventory_type"),
    )

    number: Mapped[str] = mapped_column(String(50), nullable=False)
    inventory_type: Mapped[InventoryType] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    color: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    unit: Mapped[StoneUnit] = mapped_column(
        String(10), nullable=False, default=StoneUnit.GRAM
    )
    weight_per_piece: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    @property
    def ledger_key(self) -> StoneKey:
        return StoneKey(self.number, InventoryType(self.inventory_type))

    def __repr__(self) -> str:
        return f"<Stone {self.number}/{self.inventory_type}: {self.quantity}>"


class Paper(TrackedBase):
    """
    Paper stock in rolls, per width and pool.

    Available pieces are ``quantity * pieces_per_roll`` and are never stored.
    """

    __tablename__ = "papers"

    __table_args__ = (
        UniqueConstraint("width", "inventory_type", name="uq_paper_width_pool"),
        CheckConstraint("quantity >= 0", name="ck_paper_quantity_non_negative"),
        CheckConstraint("pieces_per_roll >= 1", name="ck_paper_pieces_per_roll"),
        CheckConstraint("weight_per_piece >= 0", name="ck_paper_weight_non_negative"),
    )

    width: Mapped[int] = mapped_column(Integer, nullable=False)
    inventory_type: Mapped[InventoryType] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    pieces_per_roll: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_per_piece: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    @property
    def ledger_key(self) -> PaperKey:
        return PaperKey(self.width, InventoryType(self.inventory_type))

    @property
    def available_pieces(self) -> Decimal:
        return pieces_in_rolls(self.quantity, self.pieces_per_roll)

    def __repr__(self) -> str:
        return f'<Paper {self.width}"/{self.inventory_type}: {self.quantity} rolls>'


class Plastic(TrackedBase):
    __tablename__ = "plastics"

    __table_args__ = (
        UniqueConstraint("name", name="uq_plastic_name"),
        CheckConstraint("quantity >= 0", name="ck_plastic_quantity_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    width: Mapped[Decimal | None] = mapped_column(nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="pcs")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    @property
    def ledger_key(self) -> PlasticKey:
        return PlasticKey(self.name)


class Tape(TrackedBase):
    __tablename__ = "tapes"

    __table_args__ = (
        UniqueConstraint("name", name="uq_tape_name"),
        CheckConstraint("quantity >= 0", name="ck_tape_quantity_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="pcs")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    @property
    def ledger_key(self) -> TapeKey:
        return TapeKey(self.name)
