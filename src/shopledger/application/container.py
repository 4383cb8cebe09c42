from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from shopledger.config import Settings
from shopledger.repositories.sqlite_repo import SqliteRepository
from shopledger.repositories.unit_of_work import SqliteUnitOfWork
from shopledger.services.cash_service import CashService
from shopledger.services.customer_service import CustomerService
from shopledger.services.excel_service import ExcelService
from shopledger.services.inventory_service import InventoryService
from shopledger.services.notification_service import EventBus, WebhookNotifier
from shopledger.services.reporting_service import ReportingService
from shopledger.services.sales_service import SalesService
from shopledger.services.search_service import SearchService


@dataclass(frozen=True)
class AppContainer:
    repo: SqliteRepository
    events: EventBus
    inventory: InventoryService
    customers: CustomerService
    sales: SalesService
    cash: CashService
    excel: ExcelService
    reporting: ReportingService
    search: SearchService


def build_container(
    db_path: Path | str,
    settings: Settings | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> AppContainer:
    timeout = settings.db_timeout if settings else 30.0
    repo = SqliteRepository(db_path, timeout=timeout)
    repo.init_db()

    events = EventBus(clock)
    if settings and settings.webhook_url:
        events.subscribe(WebhookNotifier(settings.webhook_url))

    def uow_factory() -> SqliteUnitOfWork:
        return SqliteUnitOfWork(repo)

    return AppContainer(
        repo=repo,
        events=events,
        inventory=InventoryService(repo, uow_factory, events, clock),
        customers=CustomerService(repo, uow_factory, clock),
        sales=SalesService(repo, uow_factory, events, clock),
        cash=CashService(repo, uow_factory, events, clock),
        excel=ExcelService(repo, uow_factory, events, clock),
        reporting=ReportingService(repo),
        search=SearchService(repo),
    )
