from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from shopledger.domain.errors import ValidationError
from shopledger.domain.models import (
    ENTRY,
    EXIT,
    MOVEMENT_TYPES,
    PAYMENT_METHODS,
    CashMovement,
    CashSummary,
    Page,
)
from shopledger.domain.money import from_cents, to_cents
from shopledger.repositories.unit_of_work import SqliteUnitOfWork, UnitOfWork
from shopledger.services.inventory_service import check_id
from shopledger.services.notification_service import CASH_POSTED, EventBus

log = logging.getLogger("shopledger.cash")


def check_payment_method(method: Optional[str], required: bool = False) -> Optional[str]:
    if method is None or not str(method).strip():
        if required:
            raise ValidationError("Payment method is required.")
        return None
    method = str(method).strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {method}. Expected one of: {', '.join(PAYMENT_METHODS)}")
    return method


def validated_movement(movement_type: str, amount, method: Optional[str], concept: str) -> tuple[str, int, Optional[str], str]:
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type: {movement_type!r}")
    amount_cents = to_cents(amount, "Amount")
    if amount_cents <= 0:
        raise ValidationError("Amount must be > 0.")
    concept = (concept or "").strip()
    if not concept:
        raise ValidationError("Concept is required.")
    return movement_type, amount_cents, check_payment_method(method), concept


class CashService:
    def __init__(
        self,
        repo,
        uow_factory: Callable[[], UnitOfWork] | None = None,
        events: EventBus | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repo = repo
        self.uow_factory = uow_factory or (lambda: SqliteUnitOfWork(repo))
        self.events = events or EventBus(clock)
        self.clock = clock

    def post(
        self,
        movement_type: str,
        amount,
        payment_method: Optional[str],
        concept: str,
        sale_id: Optional[int] = None,
    ) -> int:
        movement_type, amount_cents, method, concept = validated_movement(movement_type, amount, payment_method, concept)
        if sale_id is not None:
            sale_id = check_id(sale_id, "Sale id")
        dt_iso = self.clock().replace(microsecond=0).isoformat(sep=" ")
        with self.uow_factory() as uow:
            movement_id = uow.insert_cash_movement(dt_iso, movement_type, amount_cents, method, concept, sale_id)
        log.info(
            "cash_posted movement_id=%s type=%s amount=%s method=%s sale_id=%s",
            movement_id, movement_type, from_cents(amount_cents), method, sale_id,
            extra={"movement_id": movement_id, "amount": from_cents(amount_cents)},
        )
        self.events.publish(
            CASH_POSTED,
            movement_id=movement_id,
            movement_type=movement_type,
            amount=from_cents(amount_cents),
            payment_method=method,
            sale_id=sale_id,
        )
        return movement_id

    def post_purchase(self, amount, payment_method: Optional[str], concept: str) -> int:
        return self.post(EXIT, amount, payment_method, concept)

    def post_withdrawal(self, amount, concept: str = "Withdrawal") -> int:
        return self.post(EXIT, amount, "cash", concept)

    def post_entry(self, amount, payment_method: Optional[str], concept: str) -> int:
        return self.post(ENTRY, amount, payment_method, concept)

    def list_movements(
        self,
        page: int = 1,
        page_size: int = 20,
        start_iso: str | None = None,
        end_iso: str | None = None,
        movement_type: str | None = None,
        payment_method: str | None = None,
    ) -> Page[CashMovement]:
        if page < 1 or page_size < 1:
            raise ValidationError("Page and page size must be >= 1.")
        if movement_type is not None and movement_type not in MOVEMENT_TYPES:
            raise ValidationError(f"Unknown movement type: {movement_type!r}")
        method = check_payment_method(payment_method)
        items, total = self.repo.list_cash_movements(
            (page - 1) * page_size,
            page_size,
            start_iso=start_iso,
            end_iso=end_iso,
            movement_type=movement_type,
            payment_method=method,
        )
        return Page(items=items, total=total, page=page, page_size=page_size)

    def summary(self, start_iso: str | None = None, end_iso: str | None = None) -> CashSummary:
        entries, exits = self.repo.cash_totals(start_iso, end_iso)
        return CashSummary(entries=from_cents(entries), exits=from_cents(exits))

    def totals_by_method(self, start_iso: str | None = None, end_iso: str | None = None) -> dict[Optional[str], Decimal]:
        return {method: from_cents(cents) for method, cents in self.repo.cash_entries_by_method(start_iso, end_iso)}

    def movements_for_sale(self, sale_id: int) -> list[CashMovement]:
        return self.repo.movements_for_sale(check_id(sale_id, "Sale id"))
