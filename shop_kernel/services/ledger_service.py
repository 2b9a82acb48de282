"""
InventoryLedger -- atomic quantity counters for stones, paper, plastic, tape.

Responsibility:
    The only code path that changes a stock quantity.  Purchases and returns
    increment counters; order finalization decrements them; administrators
    may correct a counter directly.

Architecture position:
    Kernel > Services -- imperative shell, owns counter mutations.
    Called by the order service (finalization) and the inventory entry
    service (purchases/returns) in ``shop_modules``.

Invariants enforced:
    - No counter is ever negative.  A decrement larger than the stock on
      hand clamps at zero and reports the shortfall as an InsufficientStock
      value on the returned LedgerMovement.  Nothing is silently dropped.
    - Every mutation is a single conditional UPDATE that compares the row's
      version with the version just read (compare-and-swap).  A concurrent
      writer makes the UPDATE match zero rows and the ledger re-reads and
      retries; it never writes a quantity computed from a stale read.
    - An unknown key is an error (UnknownInventoryKeyError), never an
      implicit insert.

Failure modes:
    - UnknownInventoryKeyError: key does not resolve to a record.
    - ValidationError: non-positive amount or negative target quantity.
    - OptimisticLockError: the compare-and-swap lost max_retries times.

Audit relevance:
    Every mutation logs ``ledger_increment`` / ``ledger_decrement`` /
    ``ledger_quantity_set`` with the before and after quantities.  Clamped
    decrements additionally log ``insufficient_stock`` at WARNING.
"""

from __future__ import annotations

import dataclasses
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update

from shop_kernel.db.types import pieces_in_rolls, round_quantity
from shop_kernel.domain.values import (
    InventoryKind,
    LedgerKey,
    LedgerMovement,
    PaperKey,
    PlasticKey,
    StoneKey,
    TapeKey,
)
from shop_kernel.exceptions import (
    OptimisticLockError,
    UnknownInventoryKeyError,
    ValidationError,
)
from shop_kernel.logging_config import get_logger
from shop_kernel.models.inventory import Paper, Plastic, Stone, Tape
from shop_kernel.services.base import BaseService

logger = get_logger("services.ledger")

DEFAULT_MAX_RETRIES = 5

ZERO = Decimal("0")

InventoryRecord = Stone | Paper | Plastic | Tape

_MODELS: dict[InventoryKind, type] = {
    InventoryKind.STONES: Stone,
    InventoryKind.PAPER: Paper,
    InventoryKind.PLASTIC: Plastic,
    InventoryKind.TAPE: Tape,
}


def _key_criteria(key: LedgerKey) -> tuple:
    if isinstance(key, StoneKey):
        return (Stone.number == key.number, Stone.inventory_type == key.inventory_type.value)
    if isinstance(key, PaperKey):
        return (Paper.width == key.width, Paper.inventory_type == key.inventory_type.value)
    if isinstance(key, PlasticKey):
        return (Plastic.name == key.name,)
    if isinstance(key, TapeKey):
        return (Tape.name == key.name,)
    raise ValidationError("inventoryType", f"unsupported ledger key {key!r}")


class InventoryLedger(BaseService):
    """
    Compare-and-swap quantity counters keyed by ``LedgerKey``.

    Contract:
        Never commits.  Each call flushes one conditional UPDATE inside the
        caller's transaction, so a batch of movements commits or rolls back
        together.

    Guarantees:
        - quantity_after >= 0 for every returned LedgerMovement.
        - applied == requested unless stock was insufficient.
    """

    def __init__(self, session, max_retries: int = DEFAULT_MAX_RETRIES):
        super().__init__(session)
        if max_retries < 1:
            raise ValidationError("ledger_max_retries", "must be >= 1")
        self._max_retries = max_retries

    # =========================================================================
    # Lookups
    # =========================================================================

    def find(self, key: LedgerKey) -> InventoryRecord | None:
        """Return the record for ``key`` or None."""
        model = _MODELS[key.kind]
        stmt = select(model).where(*_key_criteria(key))
        return self.session.execute(stmt).scalar_one_or_none()

    def resolve(self, key: LedgerKey) -> InventoryRecord:
        """
        Return the record for ``key``.

        Raises:
            UnknownInventoryKeyError: if no record has this key.
        """
        record = self.find(key)
        if record is None:
            raise UnknownInventoryKeyError(key.kind.value, str(key))
        return record

    def _lock(self, key: LedgerKey) -> InventoryRecord:
        """Read the current row, FOR UPDATE where the dialect supports it."""
        model = _MODELS[key.kind]
        stmt = (
            select(model)
            .where(*_key_criteria(key))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        record = self.session.execute(stmt).scalar_one_or_none()
        if record is None:
            raise UnknownInventoryKeyError(key.kind.value, str(key))
        return record

    def get_quantity(self, key: LedgerKey) -> Decimal:
        """Current quantity on hand (rolls for paper)."""
        model = _MODELS[key.kind]
        stmt = select(model.quantity).where(*_key_criteria(key))
        quantity = self.session.execute(stmt).scalar_one_or_none()
        if quantity is None:
            raise UnknownInventoryKeyError(key.kind.value, str(key))
        return quantity

    def available_paper_pieces(self, key: PaperKey) -> Decimal:
        """Rolls on hand times pieces per roll."""
        stmt = select(Paper.quantity, Paper.pieces_per_roll).where(*_key_criteria(key))
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            raise UnknownInventoryKeyError(key.kind.value, str(key))
        return pieces_in_rolls(row.quantity, row.pieces_per_roll)

    # =========================================================================
    # Mutations
    # =========================================================================

    def increment(
        self,
        key: LedgerKey,
        amount: Decimal,
        actor_id: UUID | None = None,
    ) -> LedgerMovement:
        """
        Add ``amount`` to the counter for ``key``.

        Raises:
            ValidationError: amount <= 0.
            UnknownInventoryKeyError: key does not exist.
            OptimisticLockError: compare-and-swap retries exhausted.
        """
        self._require_positive(key, amount)
        movement = self._apply(key, lambda before: amount, amount, actor_id)
        logger.info(
            "ledger_increment",
            extra={
                "kind": key.kind.value,
                "key": str(key),
                "amount": str(amount),
                "quantity_before": str(movement.quantity_before),
                "quantity_after": str(movement.quantity_after),
            },
        )
        return movement

    def decrement(
        self,
        key: LedgerKey,
        amount: Decimal,
        actor_id: UUID | None = None,
    ) -> LedgerMovement:
        """
        Subtract ``amount`` from the counter for ``key``, clamping at zero.

        Postconditions:
            quantity_after == max(0, quantity_before - amount);
            movement.insufficient_stock is set when the clamp engaged.

        Raises:
            ValidationError: amount <= 0.
            UnknownInventoryKeyError: key does not exist.
            OptimisticLockError: compare-and-swap retries exhausted.
        """
        self._require_positive(key, amount)
        movement = self._apply(
            key, lambda before: -min(amount, before), amount, actor_id
        )
        self._log_decrement(movement)
        return movement

    def decrement_paper_pieces(
        self,
        key: PaperKey,
        pieces: int,
        actor_id: UUID | None = None,
    ) -> LedgerMovement:
        """
        Deduct paper consumed in pieces from a counter kept in rolls.

        The clamp is computed in pieces and the remaining rolls are derived
        from the remaining pieces, so consuming a roll piece by piece leaves
        exactly zero even when pieces_per_roll does not divide evenly.  The
        returned movement is expressed in pieces so a shortfall reads in the
        unit the order consumed.
        """
        requested = Decimal(pieces)
        self._require_positive(key, requested)
        record = self.resolve(key)
        pieces_per_roll = record.pieces_per_roll

        def delta_for(before: Decimal) -> Decimal:
            on_hand = pieces_in_rolls(before, pieces_per_roll)
            remaining = on_hand - min(requested, on_hand)
            after = ZERO if remaining == 0 else round_quantity(remaining / pieces_per_roll)
            return after - before

        in_rolls = self._apply(
            key, delta_for, round_quantity(requested / pieces_per_roll), actor_id
        )
        before_pieces = pieces_in_rolls(in_rolls.quantity_before, pieces_per_roll)
        movement = LedgerMovement(
            kind=InventoryKind.PAPER,
            key=str(key),
            requested=requested,
            applied=min(requested, before_pieces),
            quantity_before=before_pieces,
            quantity_after=pieces_in_rolls(in_rolls.quantity_after, pieces_per_roll),
        )
        self._log_decrement(movement)
        return movement

    def set_quantity(
        self,
        key: LedgerKey,
        quantity: Decimal,
        actor_id: UUID | None = None,
    ) -> LedgerMovement:
        """
        Overwrite the counter for ``key`` (stock-take correction).

        Still goes through compare-and-swap so a concurrent movement is not
        lost silently: the correction applies to the latest version.
        """
        if quantity < 0:
            raise ValidationError("quantity", f"must be >= 0 (got {quantity})")
        movement = self._apply(key, lambda before: quantity - before, quantity, actor_id)
        movement = dataclasses.replace(movement, requested=movement.applied)
        logger.warning(
            "ledger_quantity_set",
            extra={
                "kind": key.kind.value,
                "key": str(key),
                "quantity_before": str(movement.quantity_before),
                "quantity_after": str(movement.quantity_after),
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        return movement

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _require_positive(key: LedgerKey, amount: Decimal) -> None:
        if amount <= 0:
            raise ValidationError(
                "quantity", f"must be > 0 for {key.kind.value} {key} (got {amount})"
            )

    def _apply(self, key, delta_for, requested: Decimal, actor_id) -> LedgerMovement:
        """
        Compare-and-swap loop.

        ``delta_for(before)`` returns the signed change to apply given the
        quantity just read; it is re-evaluated on every retry.
        """
        model = _MODELS[key.kind]
        for attempt in range(1, self._max_retries + 1):
            record = self._lock(key)
            before = record.quantity
            seen_version = record.version
            delta = delta_for(before)
            after = before + delta

            values = {
                "quantity": after,
                "version": seen_version + 1,
                "updated_at": func.now(),
            }
            if actor_id is not None:
                values["updated_by_id"] = actor_id

            result = self.session.execute(
                update(model)
                .where(model.id == record.id, model.version == seen_version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                self.session.expire(record, ["quantity", "version", "updated_at"])
                return LedgerMovement(
                    kind=key.kind,
                    key=str(key),
                    requested=requested,
                    applied=abs(delta),
                    quantity_before=before,
                    quantity_after=after,
                )

            logger.info(
                "ledger_cas_retry",
                extra={
                    "kind": key.kind.value,
                    "key": str(key),
                    "attempt": attempt,
                    "seen_version": seen_version,
                },
            )

        logger.error(
            "ledger_cas_exhausted",
            extra={"kind": key.kind.value, "key": str(key), "attempts": self._max_retries},
        )
        raise OptimisticLockError(key.kind.value, str(key), self._max_retries)

    def _log_decrement(self, movement: LedgerMovement) -> None:
        logger.info(
            "ledger_decrement",
            extra={
                "kind": movement.kind.value,
                "key": movement.key,
                "requested": str(movement.requested),
                "applied": str(movement.applied),
                "quantity_before": str(movement.quantity_before),
                "quantity_after": str(movement.quantity_after),
            },
        )
        shortage = movement.insufficient_stock
        if shortage is not None:
            logger.warning(
                "insufficient_stock",
                extra={
                    "code": shortage.code,
                    "kind": shortage.kind.value,
                    "key": shortage.key,
                    "requested": str(shortage.requested),
                    "deducted": str(shortage.deducted),
                    "shortfall": str(shortage.shortfall),
                },
            )
