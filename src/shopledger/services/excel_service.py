from __future__ import annotations

import logging
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Callable

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from shopledger.domain.errors import ValidationError
from shopledger.domain.money import to_cents
from shopledger.repositories.unit_of_work import SqliteUnitOfWork
from shopledger.services.inventory_service import FIRST_ARTICLE_CODE
from shopledger.services.notification_service import ARTICLES_IMPORTED, EventBus

log = logging.getLogger(__name__)

# positional columns of the import sheet
COL_QTY, COL_NAME, COL_DESCRIPTION, COL_SIZE, COL_COLOR, COL_PRICE, COL_SEASON = range(7)


def _cell(row: tuple, idx: int):
    return row[idx] if idx < len(row) else None


def _text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _quantity(value) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 1
    number = float(value)
    if not number.is_integer() or number < 0:
        raise ValueError(f"invalid quantity {value!r}")
    return int(number)


class ExcelService:
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

    def _read_rows(self, path: str | Path) -> list[tuple]:
        try:
            wb = load_workbook(path, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, FileNotFoundError, KeyError, OSError) as exc:
            raise ValidationError(f"Could not read spreadsheet {path}: {exc}") from exc
        try:
            ws = wb.worksheets[0]
            return [tuple(r) for r in ws.iter_rows(min_row=2, values_only=True)]
        finally:
            wb.close()

    def import_articles_excel(self, path: str | Path) -> tuple[int, int]:
        """
        One article per unit. Row 1 is a header; columns by position:
          quantity | name | description | size | color | price | season
        Codes continue from the current highest code, in row order.
        """
        rows = self._read_rows(path)

        parsed: list[tuple[int, dict]] = []
        skipped = 0
        for idx, row in enumerate(rows, start=2):
            if all(v is None for v in row):
                continue
            name = _text(_cell(row, COL_NAME))
            if not name:
                skipped += 1
                continue
            try:
                qty = _quantity(_cell(row, COL_QTY))
                price = _cell(row, COL_PRICE)
                price_cents = to_cents(0 if price is None or price == "" else price, "Price")
                if price_cents < 0:
                    raise ValueError(f"negative price {price!r}")
            except (ValueError, TypeError, ValidationError) as e:
                log.warning("Excel import skipped row %s: %s", idx, e)
                skipped += 1
                continue
            parsed.append(
                (
                    qty,
                    {
                        "name": name,
                        "description": _text(_cell(row, COL_DESCRIPTION)),
                        "size": _text(_cell(row, COL_SIZE)),
                        "color": _text(_cell(row, COL_COLOR)),
                        "season": _text(_cell(row, COL_SEASON)),
                        "sale_price_cents": price_cents,
                        "cost_price_cents": 0,
                        "stock_available": 1,
                    },
                )
            )

        created_at = self.clock().replace(microsecond=0).isoformat(sep=" ")
        created = 0
        with self.uow_factory() as uow:
            current = uow.max_article_code()
            next_code = current + 1 if current is not None else FIRST_ARTICLE_CODE
            first_code = next_code
            for qty, fields in parsed:
                for _ in range(qty):
                    uow.insert_article({**fields, "code": next_code}, created_at)
                    next_code += 1
                    created += 1

        log.info("articles_imported path=%s created=%s skipped=%s", path, created, skipped)
        if created:
            self.events.publish(
                ARTICLES_IMPORTED, created=created, skipped=skipped, first_code=first_code, last_code=next_code - 1
            )
        return created, skipped
