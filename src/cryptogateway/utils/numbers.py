from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Final

# Exchanges quote and accept amounts to at most 8 decimal places.
AMOUNT_PLACES: Final[Decimal] = Decimal("0.00000001")


def to_decimal(value: Any) -> Decimal:
    """Converts a JSON number or numeric string to a Decimal.

    Floats are converted through `str` so that `0.1` stays `0.1`.

    Raises:
        ValueError: If the value is not a finite number.
    """
    if isinstance(value, bool) or not isinstance(value, str | int | float | Decimal):
        err_msg = f"Not a number: {value!r}"
        raise ValueError(err_msg)
    try:
        result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        err_msg = f"Not a number: {value!r}"
        raise ValueError(err_msg) from e
    if not result.is_finite():
        err_msg = f"Not a finite number: {value!r}"
        raise ValueError(err_msg)
    return result


def fee_fraction(percent: str) -> Decimal:
    """Turns a configured fee percentage into a fraction, e.g. "0.25" -> 0.00250000.

    The result is rounded half-up to 8 decimal places.

    Raises:
        ValueError: If `percent` is not a number.
    """
    return (to_decimal(percent) / Decimal(100)).quantize(
        AMOUNT_PLACES, rounding=ROUND_HALF_UP
    )


def format_amount(value: Decimal) -> str:
    """Formats a price or quantity for an exchange request.

    At most 8 decimal places (rounded half-up), no trailing zeros and never
    exponent notation: Decimal("0.000000015") -> "0.00000002",
    Decimal("2.50000000") -> "2.5", Decimal("1E+2") -> "100".
    """
    quantized = value.quantize(AMOUNT_PLACES, rounding=ROUND_HALF_UP)
    text = f"{quantized:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
