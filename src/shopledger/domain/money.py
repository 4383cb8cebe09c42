from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from shopledger.domain.errors import ValidationError

CENT = Decimal("0.01")


def to_decimal(value: object, field: str = "amount") -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number.")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be a number. Received: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number.")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: object, field: str = "amount") -> int:
    return int(to_decimal(value, field) * 100)


def from_cents(cents: int | None) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(CENT)


def format_amount(amount: object) -> str:
    """1234.5 -> '1.234,50' (es-AR grouping)."""
    value = to_decimal(amount)
    sign = "-" if value < 0 else ""
    whole, frac = f"{abs(value):.2f}".split(".")
    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    return f"{sign}{'.'.join(groups)},{frac}"


def format_currency(amount: object) -> str:
    return f"AR$ {format_amount(amount)}"
