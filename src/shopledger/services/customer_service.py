from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from shopledger.domain.errors import NotFoundError, ValidationError
from shopledger.domain.models import Customer, CustomerSummary, Page, Sale
from shopledger.repositories.unit_of_work import SqliteUnitOfWork
from shopledger.services.inventory_service import check_id

log = logging.getLogger(__name__)

CONTACT_FIELDS = ("national_id", "phone", "email", "address")


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class CustomerService:
    def __init__(
        self,
        repo,
        uow_factory: Callable[[], SqliteUnitOfWork] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repo = repo
        self.uow_factory = uow_factory or (lambda: SqliteUnitOfWork(repo))
        self.clock = clock

    def _validated(self, fields: dict) -> dict:
        out = {}
        for key, value in fields.items():
            out[key] = _clean(value)
        if "name" in out and not out["name"]:
            raise ValidationError("Name is required.")
        if "surname" in out and not out["surname"]:
            raise ValidationError("Surname is required.")
        email = out.get("email")
        if email and "@" not in email:
            raise ValidationError(f"Invalid email: {email}")
        return out

    def create_customer(
        self,
        name: str,
        surname: str,
        national_id: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        address: str | None = None,
    ) -> int:
        fields = self._validated(
            {
                "name": name,
                "surname": surname,
                "national_id": national_id,
                "phone": phone,
                "email": email,
                "address": address,
            }
        )
        created_at = self.clock().replace(microsecond=0).isoformat(sep=" ")
        with self.uow_factory() as uow:
            customer_id = uow.insert_customer(fields, created_at)
        log.info("customer_created customer_id=%s", customer_id)
        return customer_id

    def update_customer(self, customer_id: int, **changes) -> None:
        unknown = set(changes) - {"name", "surname", *CONTACT_FIELDS}
        if unknown:
            raise ValidationError(f"Unknown customer fields: {', '.join(sorted(unknown))}")
        if not changes:
            return
        fields = self._validated(changes)
        with self.uow_factory() as uow:
            updated = uow.update_customer(check_id(customer_id, "Customer id"), fields)
        if not updated:
            raise NotFoundError("Customer not found.")

    def deactivate_customer(self, customer_id: int) -> None:
        with self.uow_factory() as uow:
            removed = uow.deactivate_customer(check_id(customer_id, "Customer id"))
        if not removed:
            raise NotFoundError("Customer not found.")
        log.info("customer_deactivated customer_id=%s", customer_id)

    def get_customer(self, customer_id: int) -> Customer:
        customer = self.repo.get_customer(check_id(customer_id, "Customer id"))
        if not customer:
            raise NotFoundError("Customer not found.")
        return customer

    def list_customers(self, page: int = 1, page_size: int = 20, search: str | None = None) -> Page[CustomerSummary]:
        if page < 1 or page_size < 1:
            raise ValidationError("Page and page size must be >= 1.")
        items, total = self.repo.list_customers((page - 1) * page_size, page_size, search=search)
        return Page(items=items, total=total, page=page, page_size=page_size)

    def customer_balance(self, customer_id: int) -> CustomerSummary:
        summary = self.repo.customer_summary(check_id(customer_id, "Customer id"))
        if not summary:
            raise NotFoundError("Customer not found.")
        return summary

    def sales_for_customer(self, customer_id: int) -> list[Sale]:
        customer = self.get_customer(customer_id)
        return self.repo.list_sales_for_customer(customer.id)
