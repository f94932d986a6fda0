from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cryptogateway.adapters.bittrex import DATE_FORMATS
from cryptogateway.utils.numbers import fee_fraction, format_amount, to_decimal
from cryptogateway.utils.time import parse_exchange_timestamp


@pytest.mark.parametrize(
    ("percent", "expected"),
    [
        ("0.25", "0.00250000"),
        ("0.2", "0.00200000"),
        ("0", "0E-8"),
        ("0.000000005", "0"),
        ("0.0000005", "0.00000001"),
    ],
)
def test_fee_fraction(percent: str, expected: str) -> None:
    assert fee_fraction(percent) == Decimal(expected)


def test_fee_fraction_keeps_eight_places() -> None:
    assert str(fee_fraction("0.25")) == "0.00250000"


def test_fee_fraction_rejects_garbage() -> None:
    with pytest.raises(ValueError, match="Not a number"):
        fee_fraction("a quarter")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Decimal("2.50000000"), "2.5"),
        (Decimal("100"), "100"),
        (Decimal("1E+2"), "100"),
        (Decimal("0.00000001"), "0.00000001"),
        (Decimal("0.000000015"), "0.00000002"),
        (Decimal("0.000000004"), "0"),
        (Decimal("1234.567890123"), "1234.56789012"),
    ],
)
def test_format_amount(value: Decimal, expected: str) -> None:
    assert format_amount(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("0.1", Decimal("0.1")),
        (0.1, Decimal("0.1")),
        (3, Decimal(3)),
        (Decimal("1.5"), Decimal("1.5")),
    ],
)
def test_to_decimal(value: object, expected: Decimal) -> None:
    assert to_decimal(value) == expected


@pytest.mark.parametrize(
    "value",
    [None, True, "abc", "NaN", "Infinity", [1], [0, [5], 0], (0, (5,), 0), {"v": 1}],
)
def test_to_decimal_rejects_non_numbers(value: object) -> None:
    with pytest.raises(ValueError, match="number"):
        to_decimal(value)


def test_timestamp_with_and_without_fraction_parse_to_same_instant() -> None:
    with_fraction = parse_exchange_timestamp("2014-07-09T03:21:20.000", DATE_FORMATS)
    without_fraction = parse_exchange_timestamp("2014-07-09T03:21:20", DATE_FORMATS)

    expected = datetime(2014, 7, 9, 3, 21, 20, tzinfo=timezone.utc)
    assert with_fraction == without_fraction == expected


def test_timestamp_keeps_milliseconds() -> None:
    parsed = parse_exchange_timestamp("2014-07-09T03:21:20.153", DATE_FORMATS)
    assert parsed.microsecond == 153_000


@pytest.mark.parametrize("value", ["09/07/2014 03:21", "", "2014-07-09"])
def test_unparseable_timestamp_raises(value: str) -> None:
    with pytest.raises(ValueError, match="Illegal date/time format"):
        parse_exchange_timestamp(value, DATE_FORMATS)


def test_non_string_timestamp_raises() -> None:
    with pytest.raises(ValueError, match="Unsupported timestamp type"):
        parse_exchange_timestamp(1404876080, DATE_FORMATS)
