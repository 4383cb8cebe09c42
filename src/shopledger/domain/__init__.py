from .models import Article, Customer, CustomerSummary, Sale, SaleLine, CashMovement, CashSummary, Page
from .errors import (
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    InvalidTransitionError,
    DuplicateKeyError,
    StorageUnavailableError,
)

__all__ = [
    "Article",
    "Customer",
    "CustomerSummary",
    "Sale",
    "SaleLine",
    "CashMovement",
    "CashSummary",
    "Page",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "InvalidTransitionError",
    "DuplicateKeyError",
    "StorageUnavailableError",
]
