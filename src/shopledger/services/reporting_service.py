from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from shopledger.domain.errors import ValidationError
from shopledger.domain.money import from_cents

UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class ArticleSales:
    article_id: int
    code: int
    name: str
    category: str
    units: int
    revenue: Decimal
    margin: Decimal
    last_sold: str


@dataclass(frozen=True)
class CustomerSpend:
    customer_id: int
    name: str
    surname: str
    spent: Decimal
    purchases: int
    last_purchase: str


@dataclass(frozen=True)
class CategoryRevenue:
    category: str
    revenue: Decimal
    units: int


@dataclass(frozen=True)
class DailyRevenue:
    day: str
    total: Decimal
    sales: int


@dataclass(frozen=True)
class DashboardStats:
    customers: int
    articles: int
    sales_today: Decimal
    stock_total: int


class ReportingService:
    def __init__(self, repo):
        self.repo = repo

    def top_articles(
        self,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
        limit: int = 10,
        by: str = "revenue",
    ) -> list[ArticleSales]:
        if by not in ("revenue", "margin", "units"):
            raise ValidationError(f"Unknown ranking: {by!r}")
        rows = self.repo.top_articles(start_iso, end_iso, limit, by)
        return [
            ArticleSales(
                article_id=int(r[0]),
                code=int(r[1]),
                name=str(r[2]),
                category=str(r[3]) or UNCATEGORIZED,
                units=int(r[4]),
                revenue=from_cents(r[5]),
                margin=from_cents(r[6]),
                last_sold=str(r[7]),
            )
            for r in rows
        ]

    def top_customers(self, start_iso: Optional[str] = None, end_iso: Optional[str] = None, limit: int = 10) -> list[CustomerSpend]:
        rows = self.repo.top_customers(start_iso, end_iso, limit)
        return [
            CustomerSpend(
                customer_id=int(r[0]),
                name=str(r[1]),
                surname=str(r[2]),
                spent=from_cents(r[3]),
                purchases=int(r[4]),
                last_purchase=str(r[5]),
            )
            for r in rows
        ]

    def revenue_by_category(self, start_iso: Optional[str] = None, end_iso: Optional[str] = None) -> list[CategoryRevenue]:
        return [
            CategoryRevenue(category=r[0] or UNCATEGORIZED, revenue=from_cents(r[1]), units=int(r[2]))
            for r in self.repo.revenue_by_category(start_iso, end_iso)
        ]

    def daily_revenue(self, start_iso: Optional[str] = None, end_iso: Optional[str] = None, limit: int = 30) -> list[DailyRevenue]:
        return [
            DailyRevenue(day=str(r[0]), total=from_cents(r[1]), sales=int(r[2]))
            for r in self.repo.daily_revenue(start_iso, end_iso, limit)
        ]

    def dashboard_stats(self, day: date | None = None) -> DashboardStats:
        day = day or date.today()
        start = f"{day.isoformat()} 00:00:00"
        end = f"{(day + timedelta(days=1)).isoformat()} 00:00:00"
        return DashboardStats(
            customers=self.repo.count_active_customers(),
            articles=self.repo.count_active_articles(),
            sales_today=from_cents(self.repo.sales_total_between(start, end)),
            stock_total=self.repo.stock_total(),
        )

    def export_report_excel(self, path: str | Path, start_iso: str, end_iso: str) -> None:
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def pct(cell):
            cell.number_format = "0.00%"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
            ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        detail_rows = self.repo.sale_detail_rows(start_iso, end_iso)
        paid_rows = [r for r in detail_rows if r[2] == "paid"]
        revenue = sum((from_cents(r[7] * r[8]) for r in paid_rows), Decimal("0.00"))
        margin = sum((from_cents(r[7] * (r[8] - r[9])) for r in paid_rows), Decimal("0.00"))
        paid_sales = len({r[0] for r in paid_rows})
        entries, exits = self.repo.cash_totals(start_iso, end_iso)
        movements = self.repo.cash_movement_rows(start_iso, end_iso)

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Summary"
        ws["A1"].font = Font(bold=True, size=14)

        ws["A3"] = "Window"
        ws["B3"] = f"{start_iso}  ->  {end_iso}"

        rows = [
            ("Paid sales", paid_sales, "int"),
            ("Revenue", float(revenue), "money"),
            ("Gross margin", float(margin), "money"),
            ("Cash entries", float(from_cents(entries)), "money"),
            ("Cash exits", float(from_cents(exits)), "money"),
            ("Cash balance", float(from_cents(entries - exits)), "money"),
        ]

        start_row = 5
        for i, (label, val, kind) in enumerate(rows):
            r = start_row + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if kind == "money":
                money(ws[f"B{r}"])

        set_widths(ws, {"A": 24, "B": 34})

        # -------- 2) Sales Detail --------
        ws2 = wb.create_sheet("Sales Detail")
        ws2.append([
            "Sale ID", "Datetime", "State", "Method", "Customer",
            "Code", "Article",
            "Qty", "Unit Price", "Unit Cost",
            "Line Total", "Line Margin", "Margin %"
        ])
        bold_row(ws2, 1)

        out_row = 2
        for sale_id, dt, state, method, customer, code, name, qty, price_c, cost_c in detail_rows:
            line_total = from_cents(qty * price_c)
            line_margin = from_cents(qty * (price_c - cost_c))
            margin_pct = float(line_margin / line_total) if line_total else 0.0
            ws2.append([
                int(sale_id), dt, state, method, customer,
                int(code), name,
                int(qty), float(from_cents(price_c)), float(from_cents(cost_c)),
                float(line_total), float(line_margin), margin_pct
            ])
            for col in "IJKL":
                money(ws2[f"{col}{out_row}"])
            pct(ws2[f"M{out_row}"])
            out_row += 1

        ws2.freeze_panes = "A2"
        set_widths(ws2, {
            "A": 10, "B": 22, "C": 12, "D": 14, "E": 26,
            "F": 10, "G": 34,
            "H": 6, "I": 14, "J": 14,
            "K": 16, "L": 16, "M": 10
        })
        if ws2.max_row >= 2:
            add_table(ws2, "SalesDetail", 1, 1, ws2.max_row, 13)

        # -------- 3) Cash Movements --------
        ws3 = wb.create_sheet("Cash Movements")
        ws3.append(["Movement ID", "Datetime", "Type", "Amount", "Method", "Concept", "Sale ID"])
        bold_row(ws3, 1)

        out_row = 2
        for m in movements:
            ws3.append([
                m.id, m.datetime, m.movement_type, float(m.amount),
                m.payment_method, m.concept, m.sale_id
            ])
            money(ws3[f"D{out_row}"])
            out_row += 1

        ws3.freeze_panes = "A2"
        set_widths(ws3, {"A": 12, "B": 22, "C": 8, "D": 14, "E": 14, "F": 34, "G": 10})
        if ws3.max_row >= 2:
            add_table(ws3, "CashMovements", 1, 1, ws3.max_row, 7)

        wb.save(path)
