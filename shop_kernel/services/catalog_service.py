"""
CatalogService -- master data the costing core reads: materials and designs.

Responsibility:
    Creates stone, paper, plastic and tape records (with zero or opening
    stock) and designs with their per-currency prices and default bill of
    materials.  Descriptive edits are out of scope; stock changes go
    through the InventoryLedger.

Architecture position:
    Kernel > Services.  Flush-only (see BaseService).

Invariants enforced:
    - Composite keys are unique.  A violation surfaces as DuplicateKeyError;
      the failed INSERT is rolled back to a savepoint so the caller's
      transaction stays usable.
    - Paper widths are restricted to the configured widths when the caller
      supplies them.
    - At most one design price per currency.

Failure modes:
    - DuplicateKeyError on a taken key.
    - ValidationError on invalid values.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from shop_kernel.domain.dtos import StoneLine
from shop_kernel.domain.values import InventoryType, StoneUnit
from shop_kernel.exceptions import DesignNotFoundError, DuplicateKeyError, ValidationError
from shop_kernel.logging_config import get_logger
from shop_kernel.models.design import Design, DesignPrice, DesignStone
from shop_kernel.models.inventory import Paper, Plastic, Stone, Tape
from shop_kernel.services.base import BaseService

logger = get_logger("services.catalog")

ZERO = Decimal("0")


class CatalogService(BaseService):
    """Creates master-data records and looks up designs."""

    def __init__(self, session, paper_widths: Iterable[int] | None = None):
        super().__init__(session)
        self._paper_widths = tuple(paper_widths) if paper_widths is not None else None

    def _insert(self, record, entity_type: str, key: str):
        """Add ``record`` inside a savepoint, translating unique violations."""
        savepoint = self.session.begin_nested()
        try:
            self.session.add(record)
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "duplicate_key_rejected",
                extra={"entity_type": entity_type, "key": key},
            )
            raise DuplicateKeyError(entity_type, key) from None
        savepoint.commit()
        logger.info(
            "catalog_record_created",
            extra={"entity_type": entity_type, "key": key, "record_id": str(record.id)},
        )
        return record

    @staticmethod
    def _non_negative(field_name: str, value: Decimal) -> Decimal:
        if value < 0:
            raise ValidationError(field_name, f"must be >= 0 (got {value})")
        return value

    # =========================================================================
    # Materials
    # =========================================================================

    def add_stone(
        self,
        number: str,
        name: str,
        actor_id: UUID,
        inventory_type: InventoryType = InventoryType.INTERNAL,
        quantity: Decimal = ZERO,
        unit: StoneUnit = StoneUnit.GRAM,
        weight_per_piece: Decimal = ZERO,
        color: str | None = None,
        size: str | None = None,
    ) -> Stone:
        if not number:
            raise ValidationError("number", "is required")
        stone = Stone(
            number=number,
            inventory_type=inventory_type,
            name=name,
            color=color,
            size=size,
            quantity=self._non_negative("quantity", quantity),
            unit=unit,
            weight_per_piece=self._non_negative("weight_per_piece", weight_per_piece),
            created_by_id=actor_id,
        )
        return self._insert(stone, "Stone", f"{number}/{inventory_type.value}")

    def add_paper(
        self,
        width: int,
        name: str,
        pieces_per_roll: int,
        actor_id: UUID,
        inventory_type: InventoryType = InventoryType.INTERNAL,
        quantity: Decimal = ZERO,
        weight_per_piece: Decimal = ZERO,
    ) -> Paper:
        if self._paper_widths is not None and width not in self._paper_widths:
            raise ValidationError(
                "width", f"must be one of {list(self._paper_widths)} (got {width})"
            )
        if pieces_per_roll < 1:
            raise ValidationError("pieces_per_roll", f"must be >= 1 (got {pieces_per_roll})")
        paper = Paper(
            width=width,
            inventory_type=inventory_type,
            name=name,
            quantity=self._non_negative("quantity", quantity),
            pieces_per_roll=pieces_per_roll,
            weight_per_piece=self._non_negative("weight_per_piece", weight_per_piece),
            created_by_id=actor_id,
        )
        return self._insert(paper, "Paper", f'{width}"/{inventory_type.value}')

    def add_plastic(
        self,
        name: str,
        actor_id: UUID,
        quantity: Decimal = ZERO,
        width: Decimal | None = None,
        unit: str = "pcs",
    ) -> Plastic:
        if not name:
            raise ValidationError("name", "is required")
        plastic = Plastic(
            name=name,
            width=width,
            quantity=self._non_negative("quantity", quantity),
            unit=unit,
            created_by_id=actor_id,
        )
        return self._insert(plastic, "Plastic", name)

    def add_tape(
        self,
        name: str,
        actor_id: UUID,
        quantity: Decimal = ZERO,
        unit: str = "pcs",
    ) -> Tape:
        if not name:
            raise ValidationError("name", "is required")
        tape = Tape(
            name=name,
            quantity=self._non_negative("quantity", quantity),
            unit=unit,
            created_by_id=actor_id,
        )
        return self._insert(tape, "Tape", name)

    # =========================================================================
    # Designs
    # =========================================================================

    def add_design(
        self,
        number: str,
        name: str,
        actor_id: UUID,
        prices: Mapping[str, Decimal] | None = None,
        default_stones: Iterable[StoneLine] = (),
        image_url: str | None = None,
        currencies: Iterable[str] | None = None,
    ) -> Design:
        """
        Create a design with its prices and default bill of materials.

        Args:
            prices: currency -> unit price.  Currencies are checked against
                ``currencies`` when given.
            default_stones: default stone lines copied onto new orders.
        """
        allowed = tuple(currencies) if currencies is not None else None
        design = Design(
            number=number,
            name=name,
            image_url=image_url,
            created_by_id=actor_id,
        )
        for currency, price in (prices or {}).items():
            if allowed is not None and currency not in allowed:
                raise ValidationError(
                    "prices.currency", f"must be one of {list(allowed)} (got {currency!r})"
                )
            design.prices.append(
                DesignPrice(
                    currency=currency,
                    price=self._non_negative("prices.price", price),
                    created_by_id=actor_id,
                )
            )
        for position, line in enumerate(default_stones):
            design.default_stones.append(
                DesignStone(
                    position=position,
                    stone_number=line.stone_number,
                    quantity=line.quantity,
                    created_by_id=actor_id,
                )
            )
        return self._insert(design, "Design", number)

    def get_design(self, design_id: UUID) -> Design:
        """
        Raises:
            DesignNotFoundError: if the design does not exist.
        """
        design = self.session.get(Design, design_id)
        if design is None:
            raise DesignNotFoundError(str(design_id))
        return design
