"""
Fixed-point <-> decimal conversion.

Every amount crossing the chain boundary is an unsigned 256-bit integer
scaled by the token's decimal exponent. Conversions here work on the
integer coefficient of a Decimal directly and never consult the decimal
context, so no rounding can happen at any precision.
"""

from decimal import Decimal, DecimalTuple, InvalidOperation
from typing import Union

from ethtrader.errors import InvalidAmount, Overflow, PrecisionLoss, Step

UINT256_MAX = 2**256 - 1
MAX_DECIMALS = 77  # 10**77 < 2**256 < 10**78
UINT256_DIGITS = len(str(UINT256_MAX))


def _check_decimals(decimals: int) -> None:
    if not isinstance(decimals, int) or decimals < 0 or decimals > MAX_DECIMALS:
        raise InvalidAmount(f"Unsupported decimal exponent: {decimals}", Step.CONVERSION)


def parse_amount(value: Union[str, int, Decimal]) -> Decimal:
    """Parse a user-supplied amount into a finite, non-negative Decimal.

    Floats are rejected: they cannot carry an exact decimal amount.
    """
    if isinstance(value, float):
        raise InvalidAmount(f"Amount must be a decimal string, got float {value!r}", Step.CONVERSION)
    if isinstance(value, str) and "_" in value:
        raise InvalidAmount(f"Invalid amount: {value!r}", Step.CONVERSION)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidAmount(f"Invalid amount: {value!r}", Step.CONVERSION) from None
    if not amount.is_finite():
        raise InvalidAmount(f"Amount must be finite: {value!r}", Step.CONVERSION)
    if amount.is_signed() and amount != 0:
        raise InvalidAmount(f"Amount must not be negative: {value!r}", Step.CONVERSION)
    return amount


def to_decimal(raw: int, decimals: int) -> Decimal:
    """Convert a raw on-chain integer into a Decimal with scale ``decimals``.

    Args:
        raw: Unsigned integer amount in the token's smallest unit
        decimals: Token decimal exponent

    Returns:
        Decimal equal to raw / 10**decimals, carrying exactly ``decimals``
        fractional digits.
    """
    _check_decimals(decimals)
    if not isinstance(raw, int) or raw < 0 or raw > UINT256_MAX:
        raise Overflow(f"Raw amount out of uint256 range: {raw}", Step.CONVERSION)
    digits = tuple(int(c) for c in str(raw))
    return Decimal(DecimalTuple(0, digits, -decimals))


def to_raw(value: Union[str, int, Decimal], decimals: int) -> int:
    """Convert a decimal amount into the token's raw integer units.

    Raises:
        PrecisionLoss: value has more fractional digits than ``decimals``
        Overflow: scaled value does not fit in uint256
        InvalidAmount: value is not a finite non-negative number
    """
    _check_decimals(decimals)
    amount = parse_amount(value)
    _, digits, exponent = amount.as_tuple()
    significant = "".join(str(d) for d in digits).rstrip("0")
    if not significant:
        return 0
    # Trailing zeros folded into the exponent; bounds are checked on digit
    # counts before any power of ten is built.
    shift = exponent + (len(digits) - len(significant)) + decimals

    if shift < 0:
        raise PrecisionLoss(
            f"{amount} has more than {decimals} fractional digits",
            Step.CONVERSION,
        )
    if len(significant) + shift > UINT256_DIGITS:
        raise Overflow(f"{amount} scaled by 10^{decimals} exceeds uint256", Step.CONVERSION)

    raw = int(significant) * 10**shift
    if raw > UINT256_MAX:
        raise Overflow(f"{amount} scaled by 10^{decimals} exceeds uint256", Step.CONVERSION)
    return raw


def format_amount(value: Decimal) -> str:
    """Render a Decimal as a plain fixed-point string (no exponent notation)."""
    return format(value, "f")
