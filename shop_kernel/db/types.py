"""
Module: shop_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for quantity,
    weight and money columns.  Centralizes precision so that every model and
    service uses identical type definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the kernel.  Quantities, weights and amounts use
      Decimal with explicit precision.
    - round_money() and round_quantity() are the only sanctioned rounding
      functions for persisted values.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from sqlalchemy import Numeric, String


# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Stock quantity or weight in grams: same storage precision as Money
Quantity = Annotated[Decimal, Numeric(38, 9)]

# Short identifier strings (stone numbers, enum values)
ShortCode = Annotated[str, String(50)]

# Human-readable names
Name = Annotated[str, String(200)]

# Long text for notes and descriptions
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
QUANTITY_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


def round_quantity(value: Decimal) -> Decimal:
    """Quantize a stock quantity to storage precision."""
    return round_money(value, QUANTITY_DECIMAL_PLACES)


def decimal_places_of(value: Decimal) -> int:
    """
    Number of significant fractional digits in ``value``.

    Trailing zeros do not count: ``Decimal("1.50")`` has one.
    """
    normalized = value.normalize()
    exponent = normalized.as_tuple().exponent
    if not isinstance(exponent, int) or exponent >= 0:
        return 0
    return -exponent


# Rolls are stored to 9 places, so rolls x pieces_per_roll may sit a few
# storage units off a whole piece after uneven conversions.
PIECE_TOLERANCE = Decimal("1E-6")


def pieces_in_rolls(rolls: Decimal, pieces_per_roll: int) -> Decimal:
    """Pieces held by a roll counter, snapped to a whole piece within tolerance."""
    pieces = rolls * pieces_per_roll
    whole = pieces.to_integral_value()
    if abs(pieces - whole) <= PIECE_TOLERANCE:
        return whole
    return pieces
