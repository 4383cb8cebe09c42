from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

PENDING = "pending"
DEBT = "debt"
PAID = "paid"
CANCELLED = "cancelled"
SALE_STATES = (PENDING, DEBT, PAID, CANCELLED)
# states whose lines hold a stock reservation
RESERVING_STATES = (PENDING, DEBT)

PAYMENT_METHODS = ("cash", "debit_card", "credit_card", "transfer")

ENTRY = "entry"
EXIT = "exit"
MOVEMENT_TYPES = (ENTRY, EXIT)

ADJUST_ADD = "add"
ADJUST_REPLACE = "replace"


@dataclass(frozen=True)
class Article:
    id: int
    code: int
    name: str
    cost_price: Decimal
    sale_price: Decimal
    stock_available: int
    stock_reserved: int
    size: Optional[str] = None
    color: Optional[str] = None
    season: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    active: int = 1


@dataclass(frozen=True)
class Customer:
    id: int
    name: str
    surname: str
    national_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    active: int = 1

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}".strip()


@dataclass(frozen=True)
class CustomerSummary:
    customer: Customer
    pending_total: Decimal
    debt_total: Decimal
    paid_total: Decimal


@dataclass(frozen=True)
class Sale:
    id: int
    customer_id: Optional[int]
    datetime: str
    total: Decimal
    state: str
    payment_method: Optional[str]
    notes: Optional[str]


@dataclass(frozen=True)
class SaleLine:
    id: int
    sale_id: int
    article_id: int
    qty: int
    unit_price: Decimal
    line_state: str

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.qty


@dataclass(frozen=True)
class CashMovement:
    id: int
    datetime: str
    movement_type: str
    amount: Decimal
    payment_method: Optional[str]
    concept: str
    sale_id: Optional[int] = None


@dataclass(frozen=True)
class CashSummary:
    entries: Decimal
    exits: Decimal

    @property
    def balance(self) -> Decimal:
        return self.entries - self.exits


@dataclass(frozen=True)
class PaymentConfirmation:
    sale_id: int
    payment_method: str
    total: Decimal


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        if self.total <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size
