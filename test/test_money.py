from decimal import Decimal

import pytest

from shopledger.domain.errors import ValidationError
from shopledger.domain.money import format_amount, format_currency, from_cents, to_cents, to_decimal


@pytest.mark.parametrize(
    "value,expected",
    [
        ("100", Decimal("100.00")),
        (" 12.5 ", Decimal("12.50")),
        (19.99, Decimal("19.99")),
        (7, Decimal("7.00")),
        ("0.005", Decimal("0.01")),
        (Decimal("2.675"), Decimal("2.68")),
    ],
)
def test_to_decimal(value, expected):
    assert to_decimal(value) == expected


@pytest.mark.parametrize("value", [None, True, "", "abc", "inf", "NaN"])
def test_to_decimal_rejects(value):
    with pytest.raises(ValidationError):
        to_decimal(value, "Price")


def test_cents_conversion():
    assert to_cents("1234.56") == 123456
    assert to_cents(0.1) == 10
    assert from_cents(123456) == Decimal("1234.56")
    assert from_cents(None) == Decimal("0.00")


def test_format_currency():
    assert format_currency(Decimal("1234.56")) == "AR$ 1.234,56"
    assert format_currency(0) == "AR$ 0,00"
    assert format_currency("1234567.5") == "AR$ 1.234.567,50"
    assert format_amount(-980) == "-980,00"
