"""Decimal amount validation and token unit conversion."""

from decimal import Decimal, InvalidOperation
from typing import Union

from clearlink.errors import InvalidAmountError

AmountLike = Union[Decimal, int, str]


def parse_amount(amount: AmountLike) -> Decimal:
    """Coerce an amount to a positive finite Decimal.

    Floats are rejected since they cannot carry an exact decimal value.

    Raises:
        InvalidAmountError: If the amount is not a positive finite number
    """
    if isinstance(amount, (float, bool)):
        raise InvalidAmountError(f"Amount must be a Decimal, int or str, got {type(amount).__name__}")

    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation:
        raise InvalidAmountError(f"Invalid amount: {amount!r}")

    if not value.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value}")
    if value <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {value}")
    return value


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Convert a token amount to its integer base units.

    Raises:
        InvalidAmountError: If the amount has more precision than the token
    """
    scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(
            f"Amount {amount} has more than {decimals} decimal places"
        )
    return int(scaled)


def from_base_units(units: int, decimals: int) -> Decimal:
    """Convert integer base units back to a token amount."""
    return Decimal(units).scaleb(-decimals)
