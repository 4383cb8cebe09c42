from .inventory_service import InventoryService
from .customer_service import CustomerService
from .sales_service import SalesService
from .cash_service import CashService
from .excel_service import ExcelService
from .reporting_service import ReportingService
from .search_service import SearchService
from .notification_service import EventBus, WebhookNotifier

__all__ = [
    "InventoryService",
    "CustomerService",
    "SalesService",
    "CashService",
    "ExcelService",
    "ReportingService",
    "SearchService",
    "EventBus",
    "WebhookNotifier",
]
