from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from shopledger.domain.errors import ValidationError, NotFoundError
from shopledger.domain.models import ADJUST_ADD, ADJUST_REPLACE, Article, Page
from shopledger.domain.money import to_cents
from shopledger.repositories.unit_of_work import SqliteUnitOfWork
from shopledger.services.notification_service import EventBus, STOCK_ADJUSTED

log = logging.getLogger(__name__)

FIRST_ARTICLE_CODE = 1000
TEXT_FIELDS = ("size", "color", "season", "category", "description")


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def check_qty(qty) -> int:
    if isinstance(qty, bool):
        raise ValidationError(f"Quantity must be an integer. Received: {qty!r}")
    try:
        value = int(qty)
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise ValidationError(f"Quantity must be an integer. Received: {qty!r}") from exc
    # int() truncates floats and Decimals
    if not isinstance(qty, (int, str)) and value != qty:
        raise ValidationError(f"Quantity must be an integer. Received: {qty!r}")
    if value <= 0:
        raise ValidationError("Quantity must be > 0.")
    return value


def check_id(value, label: str = "Id") -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(f"{label} must be an integer. Received: {value!r}")
    try:
        number = int(value)
    except ValueError as exc:
        raise ValidationError(f"{label} must be an integer. Received: {value!r}") from exc
    if number <= 0:
        raise ValidationError(f"{label} must be > 0.")
    return number


class InventoryService:
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

    # ---------- Stock counters ----------
    def reserve(self, article_id: int, qty: int) -> None:
        qty = check_qty(qty)
        with self.uow_factory() as uow:
            uow.reserve_stock(check_id(article_id, "Article id"), qty)
        log.info("stock_reserved article_id=%s qty=%s", article_id, qty)

    def release(self, article_id: int, qty: int) -> None:
        qty = check_qty(qty)
        with self.uow_factory() as uow:
            uow.release_stock(check_id(article_id, "Article id"), qty)
        log.info("stock_released article_id=%s qty=%s", article_id, qty)

    def commit_sale(self, article_id: int, qty: int) -> None:
        qty = check_qty(qty)
        with self.uow_factory() as uow:
            uow.commit_stock(check_id(article_id, "Article id"), qty)
        log.info("stock_committed article_id=%s qty=%s", article_id, qty)

    def adjust(self, article_id: int, delta: int, mode: str = ADJUST_ADD) -> int:
        """Manual restock. Returns the new stock_available."""
        article_id = check_id(article_id, "Article id")
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError("Stock delta must be an integer.")
        if mode not in (ADJUST_ADD, ADJUST_REPLACE):
            raise ValidationError(f"Unknown adjustment mode: {mode!r}")
        if mode == ADJUST_REPLACE and delta < 0:
            raise ValidationError("Replacement stock must be >= 0.")
        with self.uow_factory() as uow:
            available = uow.adjust_stock(article_id, delta, mode)
        log.info("stock_adjusted article_id=%s delta=%s mode=%s available=%s", article_id, delta, mode, available)
        self.events.publish(STOCK_ADJUSTED, article_id=article_id, delta=delta, mode=mode, stock_available=available)
        return available

    # ---------- Articles ----------
    def next_code(self) -> int:
        current = self.repo.max_article_code()
        return current + 1 if current is not None else FIRST_ARTICLE_CODE

    def _article_fields(
        self,
        name,
        sale_price,
        cost_price,
        stock,
        extra: dict,
    ) -> dict:
        name = _clean(name)
        if not name:
            raise ValidationError("Name is required.")
        if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
            raise ValidationError("Stock must be an integer >= 0.")
        sale_cents = to_cents(sale_price, "Sale price")
        cost_cents = to_cents(cost_price, "Cost price")
        if sale_cents < 0 or cost_cents < 0:
            raise ValidationError("Prices must be >= 0.")
        fields = {
            "name": name,
            "sale_price_cents": sale_cents,
            "cost_price_cents": cost_cents,
            "stock_available": stock,
        }
        for key in TEXT_FIELDS:
            fields[key] = _clean(extra.get(key))
        return fields

    def create_article(
        self,
        name: str,
        sale_price,
        cost_price=0,
        stock: int = 0,
        code: int | None = None,
        **extra,
    ) -> int:
        unknown = set(extra) - set(TEXT_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown article fields: {', '.join(sorted(unknown))}")
        fields = self._article_fields(name, sale_price, cost_price, stock, extra)
        if code is not None:
            fields["code"] = check_id(code, "Code")

        with self.uow_factory() as uow:
            if "code" not in fields:
                current = uow.max_article_code()
                fields["code"] = current + 1 if current is not None else FIRST_ARTICLE_CODE
            article_id = uow.insert_article(fields, self._now_iso())
        log.info("article_created article_id=%s code=%s", article_id, fields["code"])
        return article_id

    def update_article(self, article_id: int, **changes) -> None:
        allowed = {"name", "sale_price", "cost_price", *TEXT_FIELDS}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        if not changes:
            return

        fields: dict = {}
        for key, value in changes.items():
            if key == "name":
                name = _clean(value)
                if not name:
                    raise ValidationError("Name is required.")
                fields["name"] = name
            elif key in ("sale_price", "cost_price"):
                cents = to_cents(value, key.replace("_", " ").capitalize())
                if cents < 0:
                    raise ValidationError("Prices must be >= 0.")
                fields[f"{key}_cents"] = cents
            else:
                fields[key] = _clean(value)

        with self.uow_factory() as uow:
            updated = uow.update_article(check_id(article_id, "Article id"), fields)
        if not updated:
            raise NotFoundError("Article not found.")

    def deactivate_article(self, article_id: int) -> None:
        with self.uow_factory() as uow:
            removed = uow.deactivate_article(check_id(article_id, "Article id"))
        if not removed:
            raise NotFoundError("Article not found.")
        log.info("article_deactivated article_id=%s", article_id)

    def get_article(self, article_id: int) -> Article:
        article = self.repo.get_article(check_id(article_id, "Article id"))
        if not article:
            raise NotFoundError("Article not found.")
        return article

    def get_article_by_code(self, code: int) -> Article:
        article = self.repo.get_article_by_code(check_id(code, "Code"))
        if not article:
            raise NotFoundError(f"Article with code {code} not found.")
        return article

    def list_articles(
        self,
        page: int = 1,
        page_size: int = 20,
        category: str | None = None,
        search: str | None = None,
    ) -> Page[Article]:
        if page < 1 or page_size < 1:
            raise ValidationError("Page and page size must be >= 1.")
        items, total = self.repo.list_articles((page - 1) * page_size, page_size, category=category, search=search)
        return Page(items=items, total=total, page=page, page_size=page_size)

    def list_categories(self) -> list[str]:
        return self.repo.list_categories()
