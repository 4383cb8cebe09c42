from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Callable, Iterable, Optional

import logging
from shopledger.domain.errors import (
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from shopledger.domain.models import (
    CANCELLED,
    ENTRY,
    PAID,
    RESERVING_STATES,
    SALE_STATES,
    Page,
    PaymentConfirmation,
    Sale,
    SaleLine,
)
from shopledger.domain.money import from_cents, to_cents
from shopledger.repositories.unit_of_work import SqliteUnitOfWork
from shopledger.services.cash_service import check_payment_method, validated_movement
from shopledger.services.inventory_service import check_id, check_qty
from shopledger.services.notification_service import (
    CASH_POSTED,
    SALE_CREATED,
    SALE_DELETED,
    SALE_LINE_ADDED,
    SALE_LINE_REMOVED,
    SALE_STATE_CHANGED,
    EventBus,
)

log = logging.getLogger("shopledger.sales")


class SalesService:
    """Sale lifecycle: pending / debt / paid / cancelled.

    Lines in ``pending`` and ``debt`` sales hold a stock reservation. Moving a
    sale to ``paid`` turns the reservation into a sale and posts one cash entry
    for the sale total, all in the same transaction. Lines always carry the
    same state as their sale.
    """

    def __init__(
        self,
        repo,
        uow_factory: Callable[[], SqliteUnitOfWork] | None = None,
        events: EventBus | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repo = repo
        self.uow_factory = uow_factory or (lambda: SqliteUnitOfWork(repo))
        self.events = events or EventBus(clock)
        self.clock = clock

    def _now_iso(self) -> str:
        return self.clock().replace(microsecond=0).isoformat(sep=" ")

    def _payment_method_for(self, target: str, payment_method: Optional[str]) -> Optional[str]:
        if target != PAID:
            if payment_method is not None and str(payment_method).strip():
                raise ValidationError("A payment method only applies to paid sales.")
            return None
        if payment_method is None or not str(payment_method).strip():
            raise InvalidTransitionError("Choose a payment method before confirming the payment.", target=PAID)
        return check_payment_method(payment_method, required=True)

    def _line_price_cents(self, article, unit_price) -> int:
        cents = to_cents(article.sale_price if unit_price is None else unit_price, "Unit price")
        if cents <= 0:
            raise ValidationError(f"Unit price must be > 0 (article {article.code}).")
        return cents

    def _validated_items(self, items: Iterable[dict]) -> list[tuple[int, int, int]]:
        items = list(items)
        if not items:
            raise ValidationError("A sale needs at least one line.")

        out: list[tuple[int, int, int]] = []
        # aggregate by article so repeated lines cannot oversell
        qty_by_article: Counter[int] = Counter()
        for it in items:
            try:
                raw_id, raw_qty = it["article_id"], it["qty"]
            except (KeyError, TypeError) as exc:
                raise ValidationError(f"Invalid sale line: {it!r}") from exc
            article_id = check_id(raw_id, "Article id")
            qty = check_qty(raw_qty)

            article = self.repo.get_article(article_id)
            if not article:
                raise NotFoundError(f"Article {article_id} not found.")
            price_cents = self._line_price_cents(article, it.get("unit_price"))

            qty_by_article[article_id] += qty
            if qty_by_article[article_id] > article.stock_available:
                raise InsufficientStockError(
                    f"Not enough stock for article {article.code}. "
                    f"Requested: {qty_by_article[article_id]}, available: {article.stock_available}",
                    article_id=article_id,
                    requested=qty_by_article[article_id],
                    available=article.stock_available,
                )
            out.append((article_id, qty, price_cents))
        return out

    def _post_sale_entry(self, uow, sale_id: int, total_cents: int, method: str, dt_iso: str) -> int:
        movement_type, amount_cents, method, concept = validated_movement(
            ENTRY, from_cents(total_cents), method, f"Sale #{sale_id}"
        )
        return uow.insert_cash_movement(dt_iso, movement_type, amount_cents, method, concept, sale_id)

    # ---------- Commands ----------
    def create_sale(
        self,
        customer_id: Optional[int],
        items: Iterable[dict],
        initial_state: str = "pending",
        payment_method: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """
        items: [{article_id, qty, unit_price?}]
        """
        if initial_state not in SALE_STATES:
            raise ValidationError(f"Unknown sale state: {initial_state!r}")
        if initial_state == CANCELLED:
            raise InvalidTransitionError("A sale cannot be created as cancelled.", target=CANCELLED)
        method = self._payment_method_for(initial_state, payment_method)
        lines = self._validated_items(items)
        notes = (notes or "").strip() or None
        if customer_id is not None:
            customer_id = check_id(customer_id, "Customer id")

        dt_iso = self._now_iso()
        movement_id = None
        with self.uow_factory() as uow:
            if customer_id is not None and not uow.customer_is_active(customer_id):
                raise NotFoundError("Customer not found.")
            sale_id = uow.insert_sale(customer_id, dt_iso, initial_state, method, notes)
            for article_id, qty, price_cents in lines:
                uow.reserve_stock(article_id, qty)
                uow.insert_sale_line(sale_id, article_id, qty, price_cents, initial_state, dt_iso)
            total_cents = uow.refresh_sale_total(sale_id)
            if initial_state == PAID:
                for article_id, qty, _price in lines:
                    uow.commit_stock(article_id, qty)
                movement_id = self._post_sale_entry(uow, sale_id, total_cents, method, dt_iso)

        log.info(
            "sale_created sale_id=%s customer_id=%s lines=%s state=%s total=%s",
            sale_id, customer_id, len(lines), initial_state, from_cents(total_cents),
            extra={"sale_id": sale_id, "total": from_cents(total_cents)},
        )
        self.events.publish(
            SALE_CREATED, sale_id=sale_id, customer_id=customer_id, state=initial_state, total=from_cents(total_cents)
        )
        if movement_id is not None:
            self.events.publish(
                CASH_POSTED, movement_id=movement_id, movement_type=ENTRY, amount=from_cents(total_cents),
                payment_method=method, sale_id=sale_id,
            )
        return sale_id

    def change_state(self, sale_id: int, target: str, payment_method: Optional[str] = None) -> Sale:
        return self._transition(sale_id, target, payment_method)

    def prepare_payment(self, sale_id: int, payment_method: Optional[str]) -> PaymentConfirmation:
        """First step of a payment: pick the method, review the total."""
        method = self._payment_method_for(PAID, payment_method)
        sale = self.get_sale(sale_id)
        if sale.state == PAID:
            raise InvalidTransitionError(f"Sale #{sale.id} is already paid.", current=PAID, target=PAID)
        return PaymentConfirmation(sale_id=sale.id, payment_method=method, total=sale.total)

    def confirm_payment(self, confirmation: PaymentConfirmation) -> Sale:
        return self._transition(
            confirmation.sale_id, PAID, confirmation.payment_method, expected_total=confirmation.total
        )

    def _transition(self, sale_id: int, target: str, payment_method: Optional[str], expected_total=None) -> Sale:
        sale_id = check_id(sale_id, "Sale id")
        if target not in SALE_STATES:
            raise ValidationError(f"Unknown sale state: {target!r}")
        method = self._payment_method_for(target, payment_method)

        dt_iso = self._now_iso()
        movement_id = None
        with self.uow_factory() as uow:
            sale = uow.get_sale(sale_id)
            if not sale:
                raise NotFoundError(f"Sale {sale_id} not found.")
            current = sale.state
            if current == target:
                return sale
            if expected_total is not None and sale.total != expected_total:
                raise InvalidTransitionError(
                    f"Sale #{sale.id} total changed from {expected_total} to {sale.total}. Review the payment again.",
                    current=current,
                    target=target,
                )
            if current == PAID:
                raise InvalidTransitionError(
                    f"Sale #{sale.id} is paid; it can only be deleted.", current=current, target=target
                )

            lines = uow.sale_lines(sale.id)
            if current == CANCELLED:
                # reactivation takes stock again, like a new sale
                for line in lines:
                    uow.reserve_stock(line.article_id, line.qty)
            if target == PAID:
                for line in lines:
                    uow.commit_stock(line.article_id, line.qty)
            elif target == CANCELLED:
                for line in lines:
                    uow.release_stock(line.article_id, line.qty)

            uow.set_sale_state(sale.id, target, method)
            total_cents = uow.refresh_sale_total(sale.id)
            if target == PAID:
                movement_id = self._post_sale_entry(uow, sale.id, total_cents, method, dt_iso)
            updated = uow.get_sale(sale.id)

        log.info(
            "sale_state_changed sale_id=%s from=%s to=%s method=%s", sale_id, current, target, method,
            extra={"sale_id": updated.id, "state": target},
        )
        self.events.publish(SALE_STATE_CHANGED, sale_id=updated.id, previous=current, state=target, payment_method=method)
        if movement_id is not None:
            self.events.publish(
                CASH_POSTED, movement_id=movement_id, movement_type=ENTRY, amount=updated.total,
                payment_method=method, sale_id=updated.id,
            )
        return updated

    def add_line(self, sale_id: int, article_id: int, qty: int, unit_price=None) -> int:
        sale_id = check_id(sale_id, "Sale id")
        article_id = check_id(article_id, "Article id")
        qty = check_qty(qty)
        article = self.repo.get_article(article_id)
        if not article:
            raise NotFoundError(f"Article {article_id} not found.")
        price_cents = self._line_price_cents(article, unit_price)

        with self.uow_factory() as uow:
            sale = uow.get_sale(sale_id)
            if not sale:
                raise NotFoundError(f"Sale {sale_id} not found.")
            if sale.state not in RESERVING_STATES:
                raise InvalidTransitionError(
                    f"Lines can only be added to pending or debt sales (sale #{sale.id} is {sale.state}).",
                    current=sale.state,
                )
            uow.reserve_stock(article.id, qty)
            line_id = uow.insert_sale_line(sale.id, article.id, qty, price_cents, sale.state, self._now_iso())
            total_cents = uow.refresh_sale_total(sale.id)

        log.info("sale_line_added sale_id=%s line_id=%s article_id=%s qty=%s", sale_id, line_id, article.id, qty)
        self.events.publish(SALE_LINE_ADDED, sale_id=sale_id, line_id=line_id, total=from_cents(total_cents))
        return line_id

    def remove_line(self, sale_id: int, line_id: int) -> None:
        sale_id = check_id(sale_id, "Sale id")
        line_id = check_id(line_id, "Line id")
        with self.uow_factory() as uow:
            sale = uow.get_sale(sale_id)
            if not sale:
                raise NotFoundError(f"Sale {sale_id} not found.")
            if sale.state not in RESERVING_STATES:
                raise InvalidTransitionError(
                    f"Lines can only be removed from pending or debt sales (sale #{sale.id} is {sale.state}).",
                    current=sale.state,
                )
            lines = uow.sale_lines(sale.id)
            line = next((ln for ln in lines if ln.id == line_id), None)
            if line is None:
                raise NotFoundError(f"Line {line_id} not found in sale #{sale.id}.")
            if len(lines) == 1:
                raise ValidationError("A sale needs at least one line. Delete the sale instead.")
            uow.release_stock(line.article_id, line.qty)
            uow.delete_sale_line(line.id)
            total_cents = uow.refresh_sale_total(sale.id)

        log.info("sale_line_removed sale_id=%s line_id=%s", sale_id, line_id)
        self.events.publish(SALE_LINE_REMOVED, sale_id=sale_id, line_id=line_id, total=from_cents(total_cents))

    def delete_sale(self, sale_id: int) -> None:
        """Paid sales keep their stock and cash effects; reserving sales give their stock back."""
        with self.uow_factory() as uow:
            sale = uow.get_sale(check_id(sale_id, "Sale id"))
            if not sale:
                raise NotFoundError(f"Sale {sale_id} not found.")
            if sale.state in RESERVING_STATES:
                for line in uow.sale_lines(sale.id):
                    uow.release_stock(line.article_id, line.qty)
            uow.delete_sale(sale.id)

        log.info("sale_deleted sale_id=%s state=%s total=%s", sale.id, sale.state, sale.total)
        self.events.publish(SALE_DELETED, sale_id=sale.id, state=sale.state, total=sale.total)

    # ---------- Queries ----------
    def get_sale(self, sale_id: int) -> Sale:
        sale = self.repo.get_sale(check_id(sale_id, "Sale id"))
        if not sale:
            raise NotFoundError(f"Sale {sale_id} not found.")
        return sale

    def sale_lines(self, sale_id: int) -> list[SaleLine]:
        return self.repo.sale_lines(check_id(sale_id, "Sale id"))

    def list_sales(
        self,
        page: int = 1,
        page_size: int = 20,
        state: str | None = None,
        start_iso: str | None = None,
        end_iso: str | None = None,
    ) -> Page[Sale]:
        if page < 1 or page_size < 1:
            raise ValidationError("Page and page size must be >= 1.")
        if state is not None and state not in SALE_STATES:
            raise ValidationError(f"Unknown sale state: {state!r}")
        items, total = self.repo.list_sales((page - 1) * page_size, page_size, state, start_iso, end_iso)
        return Page(items=items, total=total, page=page, page_size=page_size)

    def list_sales_for_customer(self, customer_id: int) -> list[Sale]:
        return self.repo.list_sales_for_customer(check_id(customer_id, "Customer id"))
