from __future__ import annotations

import sqlite3
import shutil
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from shopledger.domain.errors import StorageUnavailableError, ValidationError
from shopledger.domain.models import (
    PAID,
    PAYMENT_METHODS,
    MOVEMENT_TYPES,
    SALE_STATES,
    Article,
    CashMovement,
    Customer,
    CustomerSummary,
    Sale,
    SaleLine,
)
from shopledger.domain.money import from_cents

ARTICLE_COLUMNS = (
    "id, code, name, cost_price_cents, sale_price_cents, stock_available, stock_reserved, "
    "size, color, season, category, description, active"
)
CUSTOMER_COLUMNS = "id, name, surname, national_id, phone, email, address, active"
SALE_COLUMNS = "id, customer_id, datetime, total_cents, state, payment_method, notes"
LINE_COLUMNS = "id, sale_id, article_id, qty, unit_price_cents, line_state"
MOVEMENT_COLUMNS = "id, datetime, movement_type, amount_cents, payment_method, concept, sale_id"


@contextmanager
def storage_guard() -> Iterator[None]:
    try:
        yield
    except sqlite3.OperationalError as exc:
        raise StorageUnavailableError(f"Database unavailable: {exc}") from exc


def _opt(value) -> Optional[str]:
    return str(value) if value is not None else None


def article_from_row(r) -> Article:
    return Article(
        id=int(r[0]),
        code=int(r[1]),
        name=str(r[2]),
        cost_price=from_cents(r[3]),
        sale_price=from_cents(r[4]),
        stock_available=int(r[5]),
        stock_reserved=int(r[6]),
        size=_opt(r[7]),
        color=_opt(r[8]),
        season=_opt(r[9]),
        category=_opt(r[10]),
        description=_opt(r[11]),
        active=int(r[12]),
    )


def customer_from_row(r) -> Customer:
    return Customer(
        id=int(r[0]),
        name=str(r[1]),
        surname=str(r[2]),
        national_id=_opt(r[3]),
        phone=_opt(r[4]),
        email=_opt(r[5]),
        address=_opt(r[6]),
        active=int(r[7]),
    )


def _check_method(method) -> Optional[str]:
    if method is not None and method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method in storage: {method!r}")
    return method


def sale_from_row(r) -> Sale:
    if r[4] not in SALE_STATES:
        raise ValidationError(f"Unknown sale state in storage: {r[4]!r} (sale {r[0]})")
    return Sale(
        id=int(r[0]),
        customer_id=int(r[1]) if r[1] is not None else None,
        datetime=str(r[2]),
        total=from_cents(r[3]),
        state=str(r[4]),
        payment_method=_check_method(r[5]),
        notes=_opt(r[6]),
    )


def line_from_row(r) -> SaleLine:
    if r[5] not in SALE_STATES:
        raise ValidationError(f"Unknown line state in storage: {r[5]!r} (line {r[0]})")
    return SaleLine(
        id=int(r[0]),
        sale_id=int(r[1]),
        article_id=int(r[2]),
        qty=int(r[3]),
        unit_price=from_cents(r[4]),
        line_state=str(r[5]),
    )


def movement_from_row(r) -> CashMovement:
    if r[2] not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type in storage: {r[2]!r} (movement {r[0]})")
    return CashMovement(
        id=int(r[0]),
        datetime=str(r[1]),
        movement_type=str(r[2]),
        amount=from_cents(r[3]),
        payment_method=_check_method(r[4]),
        concept=str(r[5]),
        sale_id=int(r[6]) if r[6] is not None else None,
    )


def _like(term: str) -> str:
    return f"%{term.strip().lower()}%"


def _window(column: str, start_iso: Optional[str], end_iso: Optional[str]) -> tuple[list[str], list]:
    clauses: list[str] = []
    params: list = []
    if start_iso:
        clauses.append(f"{column} >= ?")
        params.append(start_iso)
    if end_iso:
        clauses.append(f"{column} < ?")
        params.append(end_iso)
    return clauses, params


def _where(clauses: list[str]) -> str:
    return ("WHERE " + " AND ".join(clauses)) if clauses else ""


class SqliteRepository:
    def __init__(self, db_path: Path | str, timeout: float = 30.0):
        self.db_path = str(db_path)
        self.timeout = float(timeout)

    def _conn(self) -> sqlite3.Connection:
        # autocommit mode: write transactions are opened explicitly by the unit of work
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _fetchall(self, sql: str, params: tuple | list = ()) -> list:
        with storage_guard():
            conn = self._conn()
            try:
                return conn.execute(sql, tuple(params)).fetchall()
            finally:
                conn.close()

    def _fetchone(self, sql: str, params: tuple | list = ()):
        with storage_guard():
            conn = self._conn()
            try:
                return conn.execute(sql, tuple(params)).fetchone()
            finally:
                conn.close()

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        backup_path = self._create_pre_migration_backup()
        conn = self._conn()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN IMMEDIATE")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_base),
                (2, self._migration_v2_indexes),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            cur.execute("COMMIT")
        except Exception as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            conn.close()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        conn.close()
        if backup_path is not None and current_version == len(migrations):
            # nothing was migrated
            backup_path.unlink(missing_ok=True)

    def schema_version(self) -> int:
        row = self._fetchone("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        return int(row[0])

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS articles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            code INTEGER UNIQUE NOT NULL CHECK(code > 0),
            name TEXT NOT NULL,
            size TEXT,
            color TEXT,
            season TEXT,
            category TEXT,
            description TEXT,
            cost_price_cents INTEGER NOT NULL DEFAULT 0 CHECK(cost_price_cents >= 0),
            sale_price_cents INTEGER NOT NULL DEFAULT 0 CHECK(sale_price_cents >= 0),
            stock_available INTEGER NOT NULL DEFAULT 0 CHECK(stock_available >= 0),
            stock_reserved INTEGER NOT NULL DEFAULT 0 CHECK(stock_reserved >= 0),
            active INTEGER NOT NULL DEFAULT 1 CHECK(active IN (0,1)),
            created_at TEXT NOT NULL
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS customers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            surname TEXT NOT NULL,
            national_id TEXT,
            phone TEXT,
            email TEXT,
            address TEXT,
            active INTEGER NOT NULL DEFAULT 1 CHECK(active IN (0,1)),
            created_at TEXT NOT NULL
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sales (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            customer_id INTEGER REFERENCES customers(id),
            datetime TEXT NOT NULL,
            total_cents INTEGER NOT NULL DEFAULT 0 CHECK(total_cents >= 0),
            state TEXT NOT NULL CHECK(state IN ('pending','debt','paid','cancelled')),
            payment_method TEXT CHECK(payment_method IS NULL OR payment_method IN ('cash','debit_card','credit_card','transfer')),
            notes TEXT
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sale_lines (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sale_id INTEGER NOT NULL,
            article_id INTEGER NOT NULL,
            qty INTEGER NOT NULL CHECK(qty > 0),
            unit_price_cents INTEGER NOT NULL CHECK(unit_price_cents > 0),
            line_state TEXT NOT NULL CHECK(line_state IN ('pending','debt','paid','cancelled')),
            created_at TEXT NOT NULL,
            FOREIGN KEY(sale_id) REFERENCES sales(id) ON DELETE CASCADE,
            FOREIGN KEY(article_id) REFERENCES articles(id)
        )
        """
        )

        # sale_id is a plain reference: deleting a sale never rewrites the ledger
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS cash_movements (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            datetime TEXT NOT NULL,
            movement_type TEXT NOT NULL CHECK(movement_type IN ('entry','exit')),
            amount_cents INTEGER NOT NULL CHECK(amount_cents > 0),
            payment_method TEXT CHECK(payment_method IS NULL OR payment_method IN ('cash','debit_card','credit_card','transfer')),
            concept TEXT NOT NULL,
            sale_id INTEGER
        )
        """
        )

    def _migration_v2_indexes(self, cur: sqlite3.Cursor) -> None:
        cur.execute("CREATE INDEX IF NOT EXISTS ix_sales_customer ON sales(customer_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS ix_sales_datetime ON sales(datetime)")
        cur.execute("CREATE INDEX IF NOT EXISTS ix_sale_lines_sale ON sale_lines(sale_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS ix_sale_lines_article ON sale_lines(article_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS ix_cash_movements_datetime ON cash_movements(datetime)")
        cur.execute("CREATE INDEX IF NOT EXISTS ix_cash_movements_sale ON cash_movements(sale_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS ix_articles_category ON articles(category)")

    def integrity_check(self) -> str:
        row = self._fetchone("PRAGMA integrity_check")
        return str(row[0]) if row else "unknown"

    # ---------- Articles ----------
    def get_article(self, article_id: int, include_inactive: bool = False) -> Optional[Article]:
        active = "" if include_inactive else " AND active=1"
        r = self._fetchone(f"SELECT {ARTICLE_COLUMNS} FROM articles WHERE id=?{active}", (int(article_id),))
        return article_from_row(r) if r else None

    def get_article_by_code(self, code: int) -> Optional[Article]:
        r = self._fetchone(f"SELECT {ARTICLE_COLUMNS} FROM articles WHERE code=? AND active=1", (int(code),))
        return article_from_row(r) if r else None

    def max_article_code(self) -> Optional[int]:
        row = self._fetchone("SELECT MAX(code) FROM articles")
        return int(row[0]) if row and row[0] is not None else None

    def list_articles(
        self,
        offset: int,
        limit: int,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> tuple[list[Article], int]:
        clauses = ["active = 1"]
        params: list = []
        if category:
            clauses.append("category = ?")
            params.append(category)
        if search and search.strip():
            clauses.append(
                "(lower(name) LIKE ? OR CAST(code AS TEXT) LIKE ? OR lower(COALESCE(size,'')) LIKE ? "
                "OR lower(COALESCE(color,'')) LIKE ?)"
            )
            params.extend([_like(search)] * 4)
        where = _where(clauses)

        total = int(self._fetchone(f"SELECT COUNT(*) FROM articles {where}", params)[0])
        rows = self._fetchall(
            f"SELECT {ARTICLE_COLUMNS} FROM articles {where} ORDER BY code LIMIT ? OFFSET ?",
            params + [int(limit), int(offset)],
        )
        return [article_from_row(r) for r in rows], total

    def list_categories(self) -> list[str]:
        rows = self._fetchall(
            """
            SELECT DISTINCT category FROM articles
            WHERE active=1 AND category IS NOT NULL AND category <> ''
            ORDER BY category
            """
        )
        return [str(r[0]) for r in rows]

    def count_active_articles(self) -> int:
        return int(self._fetchone("SELECT COUNT(*) FROM articles WHERE active=1")[0])

    def stock_total(self) -> int:
        return int(self._fetchone("SELECT COALESCE(SUM(stock_available), 0) FROM articles WHERE active=1")[0])

    def search_articles(self, term: str, limit: int) -> list[Article]:
        rows = self._fetchall(
            f"""
            SELECT {ARTICLE_COLUMNS} FROM articles
            WHERE active=1 AND (lower(name) LIKE ? OR lower(COALESCE(color,'')) LIKE ? OR CAST(code AS TEXT) LIKE ?)
            ORDER BY code
            LIMIT ?
            """,
            (_like(term), _like(term), _like(term), int(limit)),
        )
        return [article_from_row(r) for r in rows]

    # ---------- Customers ----------
    def get_customer(self, customer_id: int, include_inactive: bool = False) -> Optional[Customer]:
        active = "" if include_inactive else " AND active=1"
        r = self._fetchone(f"SELECT {CUSTOMER_COLUMNS} FROM customers WHERE id=?{active}", (int(customer_id),))
        return customer_from_row(r) if r else None

    def count_active_customers(self) -> int:
        return int(self._fetchone("SELECT COUNT(*) FROM customers WHERE active=1")[0])

    def _customer_summary_sql(self, where: str) -> str:
        cols = ", ".join(f"c.{c.strip()}" for c in CUSTOMER_COLUMNS.split(","))
        return f"""
            SELECT {cols},
                   COALESCE(SUM(CASE WHEN sl.line_state='pending' THEN sl.qty * sl.unit_price_cents END), 0),
                   COALESCE(SUM(CASE WHEN sl.line_state='debt' THEN sl.qty * sl.unit_price_cents END), 0),
                   COALESCE(SUM(CASE WHEN sl.line_state='paid' THEN sl.qty * sl.unit_price_cents END), 0)
            FROM customers c
            LEFT JOIN sales s ON s.customer_id = c.id
            LEFT JOIN sale_lines sl ON sl.sale_id = s.id
            {where}
            GROUP BY c.id
        """

    @staticmethod
    def _summary_from_row(r) -> CustomerSummary:
        return CustomerSummary(
            customer=customer_from_row(r[:8]),
            pending_total=from_cents(r[8]),
            debt_total=from_cents(r[9]),
            paid_total=from_cents(r[10]),
        )

    def list_customers(self, offset: int, limit: int, search: Optional[str] = None) -> tuple[list[CustomerSummary], int]:
        clauses = ["c.active = 1"]
        params: list = []
        if search and search.strip():
            clauses.append(
                "(lower(c.name) LIKE ? OR lower(c.surname) LIKE ? OR lower(COALESCE(c.national_id,'')) LIKE ?)"
            )
            params.extend([_like(search)] * 3)
        where = _where(clauses)

        total = int(self._fetchone(f"SELECT COUNT(*) FROM customers c {where}", params)[0])
        rows = self._fetchall(
            self._customer_summary_sql(where) + " ORDER BY c.surname, c.name, c.id LIMIT ? OFFSET ?",
            params + [int(limit), int(offset)],
        )
        return [self._summary_from_row(r) for r in rows], total

    def customer_summary(self, customer_id: int) -> Optional[CustomerSummary]:
        r = self._fetchone(self._customer_summary_sql("WHERE c.id = ?"), (int(customer_id),))
        return self._summary_from_row(r) if r else None

    def search_customers(self, term: str, limit: int) -> list[Customer]:
        rows = self._fetchall(
            f"""
            SELECT {CUSTOMER_COLUMNS} FROM customers
            WHERE active=1 AND (lower(name) LIKE ? OR lower(surname) LIKE ? OR lower(COALESCE(national_id,'')) LIKE ?)
            ORDER BY surname, name
            LIMIT ?
            """,
            (_like(term), _like(term), _like(term), int(limit)),
        )
        return [customer_from_row(r) for r in rows]

    # ---------- Sales ----------
    def get_sale(self, sale_id: int) -> Optional[Sale]:
        r = self._fetchone(f"SELECT {SALE_COLUMNS} FROM sales WHERE id=?", (int(sale_id),))
        return sale_from_row(r) if r else None

    def sale_lines(self, sale_id: int) -> list[SaleLine]:
        rows = self._fetchall(f"SELECT {LINE_COLUMNS} FROM sale_lines WHERE sale_id=? ORDER BY id", (int(sale_id),))
        return [line_from_row(r) for r in rows]

    def list_sales(
        self,
        offset: int,
        limit: int,
        state: Optional[str] = None,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
        customer_id: Optional[int] = None,
    ) -> tuple[list[Sale], int]:
        clauses, params = _window("datetime", start_iso, end_iso)
        if state:
            clauses.append("state = ?")
            params.append(state)
        if customer_id is not None:
            clauses.append("customer_id = ?")
            params.append(int(customer_id))
        where = _where(clauses)

        total = int(self._fetchone(f"SELECT COUNT(*) FROM sales {where}", params)[0])
        rows = self._fetchall(
            f"SELECT {SALE_COLUMNS} FROM sales {where} ORDER BY datetime DESC, id DESC LIMIT ? OFFSET ?",
            params + [int(limit), int(offset)],
        )
        return [sale_from_row(r) for r in rows], total

    def list_sales_for_customer(self, customer_id: int) -> list[Sale]:
        rows = self._fetchall(
            f"SELECT {SALE_COLUMNS} FROM sales WHERE customer_id=? ORDER BY datetime DESC, id DESC",
            (int(customer_id),),
        )
        return [sale_from_row(r) for r in rows]

    def sales_total_between(self, start_iso: str, end_iso: str) -> int:
        row = self._fetchone(
            """
            SELECT COALESCE(SUM(total_cents), 0) FROM sales
            WHERE datetime >= ? AND datetime < ? AND state <> 'cancelled'
            """,
            (start_iso, end_iso),
        )
        return int(row[0])

    # ---------- Cash ----------
    def list_cash_movements(
        self,
        offset: int,
        limit: int,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
        movement_type: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> tuple[list[CashMovement], int]:
        clauses, params = _window("datetime", start_iso, end_iso)
        if movement_type:
            clauses.append("movement_type = ?")
            params.append(movement_type)
        if payment_method:
            clauses.append("payment_method = ?")
            params.append(payment_method)
        where = _where(clauses)

        total = int(self._fetchone(f"SELECT COUNT(*) FROM cash_movements {where}", params)[0])
        rows = self._fetchall(
            f"SELECT {MOVEMENT_COLUMNS} FROM cash_movements {where} ORDER BY datetime DESC, id DESC LIMIT ? OFFSET ?",
            params + [int(limit), int(offset)],
        )
        return [movement_from_row(r) for r in rows], total

    def cash_totals(self, start_iso: Optional[str] = None, end_iso: Optional[str] = None) -> tuple[int, int]:
        clauses, params = _window("datetime", start_iso, end_iso)
        row = self._fetchone(
            f"""
            SELECT COALESCE(SUM(CASE WHEN movement_type='entry' THEN amount_cents END), 0),
                   COALESCE(SUM(CASE WHEN movement_type='exit' THEN amount_cents END), 0)
            FROM cash_movements {_where(clauses)}
            """,
            params,
        )
        return int(row[0]), int(row[1])

    def cash_entries_by_method(self, start_iso: Optional[str] = None, end_iso: Optional[str] = None) -> list[tuple[Optional[str], int]]:
        clauses, params = _window("datetime", start_iso, end_iso)
        clauses.append("movement_type = 'entry'")
        rows = self._fetchall(
            f"""
            SELECT payment_method, SUM(amount_cents) AS total
            FROM cash_movements {_where(clauses)}
            GROUP BY payment_method
            ORDER BY total DESC
            """,
            params,
        )
        return [(_opt(r[0]), int(r[1])) for r in rows]

    def movements_for_sale(self, sale_id: int) -> list[CashMovement]:
        rows = self._fetchall(
            f"SELECT {MOVEMENT_COLUMNS} FROM cash_movements WHERE sale_id=? ORDER BY id",
            (int(sale_id),),
        )
        return [movement_from_row(r) for r in rows]

    # ---------- Reports ----------
    def top_articles(self, start_iso: Optional[str], end_iso: Optional[str], limit: int, order_by: str) -> list[tuple]:
        order = {"revenue": "revenue_cents", "margin": "margin_cents", "units": "units"}[order_by]
        clauses, params = _window("s.datetime", start_iso, end_iso)
        clauses.append("s.state = ?")
        params.append(PAID)
        rows = self._fetchall(
            f"""
            SELECT a.id, a.code, a.name, COALESCE(a.category, ''),
                   SUM(sl.qty) AS units,
                   SUM(sl.qty * sl.unit_price_cents) AS revenue_cents,
                   SUM(sl.qty * (sl.unit_price_cents - a.cost_price_cents)) AS margin_cents,
                   MAX(s.datetime)
            FROM sale_lines sl
            JOIN sales s ON s.id = sl.sale_id
            JOIN articles a ON a.id = sl.article_id
            {_where(clauses)}
            GROUP BY a.id
            ORDER BY {order} DESC, a.code
            LIMIT ?
            """,
            params + [int(limit)],
        )
        return [tuple(r) for r in rows]

    def top_customers(self, start_iso: Optional[str], end_iso: Optional[str], limit: int) -> list[tuple]:
        clauses, params = _window("s.datetime", start_iso, end_iso)
        clauses.extend(["s.state = ?", "s.customer_id IS NOT NULL"])
        params.append(PAID)
        rows = self._fetchall(
            f"""
            SELECT c.id, c.name, c.surname,
                   SUM(s.total_cents) AS spent_cents,
                   COUNT(s.id),
                   MAX(s.datetime)
            FROM sales s
            JOIN customers c ON c.id = s.customer_id
            {_where(clauses)}
            GROUP BY c.id
            ORDER BY spent_cents DESC, c.id
            LIMIT ?
            """,
            params + [int(limit)],
        )
        return [tuple(r) for r in rows]

    def revenue_by_category(self, start_iso: Optional[str], end_iso: Optional[str]) -> list[tuple]:
        clauses, params = _window("s.datetime", start_iso, end_iso)
        clauses.append("s.state = ?")
        params.append(PAID)
        rows = self._fetchall(
            f"""
            SELECT NULLIF(a.category, '') AS cat,
                   SUM(sl.qty * sl.unit_price_cents) AS revenue_cents,
                   SUM(sl.qty)
            FROM sale_lines sl
            JOIN sales s ON s.id = sl.sale_id
            JOIN articles a ON a.id = sl.article_id
            {_where(clauses)}
            GROUP BY cat
            ORDER BY revenue_cents DESC
            """,
            params,
        )
        return [tuple(r) for r in rows]

    def daily_revenue(self, start_iso: Optional[str], end_iso: Optional[str], limit: int) -> list[tuple]:
        clauses, params = _window("datetime", start_iso, end_iso)
        clauses.append("state = ?")
        params.append(PAID)
        rows = self._fetchall(
            f"""
            SELECT substr(datetime, 1, 10) AS d, SUM(total_cents), COUNT(*)
            FROM sales
            {_where(clauses)}
            GROUP BY d
            ORDER BY d DESC
            LIMIT ?
            """,
            params + [int(limit)],
        )
        return [tuple(r) for r in rows]

    def sale_detail_rows(self, start_iso: str, end_iso: str) -> list[tuple]:
        rows = self._fetchall(
            """
            SELECT s.id, s.datetime, s.state, s.payment_method,
                   c.name || ' ' || c.surname,
                   a.code, a.name, sl.qty, sl.unit_price_cents, a.cost_price_cents
            FROM sale_lines sl
            JOIN sales s ON s.id = sl.sale_id
            JOIN articles a ON a.id = sl.article_id
            LEFT JOIN customers c ON c.id = s.customer_id
            WHERE s.datetime >= ? AND s.datetime < ?
            ORDER BY s.datetime, s.id, sl.id
            """,
            (start_iso, end_iso),
        )
        return [tuple(r) for r in rows]

    def cash_movement_rows(self, start_iso: str, end_iso: str) -> list[CashMovement]:
        rows = self._fetchall(
            f"""
            SELECT {MOVEMENT_COLUMNS} FROM cash_movements
            WHERE datetime >= ? AND datetime < ?
            ORDER BY datetime, id
            """,
            (start_iso, end_iso),
        )
        return [movement_from_row(r) for r in rows]
