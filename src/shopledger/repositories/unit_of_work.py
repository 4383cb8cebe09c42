from __future__ import annotations

import sqlite3
from typing import Optional, Protocol

from shopledger.domain.errors import (
    DuplicateKeyError,
    InsufficientStockError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from shopledger.domain.models import ADJUST_ADD, ADJUST_REPLACE, Sale, SaleLine
from shopledger.repositories.sqlite_repo import (
    LINE_COLUMNS,
    SALE_COLUMNS,
    line_from_row,
    sale_from_row,
    storage_guard,
)


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def reserve_stock(self, article_id: int, qty: int) -> None: ...
    def release_stock(self, article_id: int, qty: int) -> None: ...
    def commit_stock(self, article_id: int, qty: int) -> None: ...
    def insert_cash_movement(
        self, datetime_iso: str, movement_type: str, amount_cents: int,
        payment_method: Optional[str], concept: str, sale_id: Optional[int] = None,
    ) -> int: ...


class SqliteUnitOfWork:
    """One SQLite write transaction.

    ``BEGIN IMMEDIATE`` takes the database write lock up front, so concurrent
    commands touching the same article counters run one after the other.
    Everything done through this object commits together on a clean exit
    and rolls back on any exception.
    """

    def __init__(self, repo):
        self.repo = repo
        self.conn: sqlite3.Connection | None = None
        self.cur: sqlite3.Cursor | None = None

    def __enter__(self) -> "SqliteUnitOfWork":
        with storage_guard():
            self.conn = self.repo._conn()
            try:
                self.conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError:
                self.conn.close()
                raise
        self.cur = self.conn.cursor()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        conn = self.conn
        try:
            if exc_type is None:
                with storage_guard():
                    conn.execute("COMMIT")
            elif conn.in_transaction:
                conn.execute("ROLLBACK")
        finally:
            conn.close()
            self.conn = None
            self.cur = None
        if exc_type is not None and issubclass(exc_type, sqlite3.OperationalError):
            raise StorageUnavailableError(f"Database unavailable: {exc}") from exc
        return None

    # ---------- Stock counters ----------
    def _stock_row(self, article_id: int):
        self.cur.execute(
            "SELECT code, stock_available, stock_reserved, active FROM articles WHERE id=?",
            (int(article_id),),
        )
        return self.cur.fetchone()

    def reserve_stock(self, article_id: int, qty: int) -> None:
        self.cur.execute(
            """
            UPDATE articles
            SET stock_available = stock_available - ?, stock_reserved = stock_reserved + ?
            WHERE id = ? AND active = 1 AND stock_available >= ?
            """,
            (int(qty), int(qty), int(article_id), int(qty)),
        )
        if self.cur.rowcount > 0:
            return
        row = self._stock_row(article_id)
        if not row or int(row[3]) != 1:
            raise NotFoundError(f"Article {article_id} not found.")
        raise InsufficientStockError(
            f"Not enough stock for article {row[0]}. Requested: {qty}, available: {row[1]}",
            article_id=int(article_id),
            requested=int(qty),
            available=int(row[1]),
        )

    def release_stock(self, article_id: int, qty: int) -> None:
        self.cur.execute(
            """
            UPDATE articles
            SET stock_available = stock_available + ?, stock_reserved = stock_reserved - ?
            WHERE id = ? AND stock_reserved >= ?
            """,
            (int(qty), int(qty), int(article_id), int(qty)),
        )
        if self.cur.rowcount > 0:
            return
        row = self._stock_row(article_id)
        if not row:
            raise NotFoundError(f"Article {article_id} not found.")
        raise ValidationError(f"Cannot release {qty} units of article {row[0]}: only {row[2]} reserved.")

    def commit_stock(self, article_id: int, qty: int) -> None:
        self.cur.execute(
            "UPDATE articles SET stock_reserved = stock_reserved - ? WHERE id = ? AND stock_reserved >= ?",
            (int(qty), int(article_id), int(qty)),
        )
        if self.cur.rowcount > 0:
            return
        row = self._stock_row(article_id)
        if not row:
            raise NotFoundError(f"Article {article_id} not found.")
        raise ValidationError(f"Cannot sell {qty} units of article {row[0]}: only {row[2]} reserved.")

    def adjust_stock(self, article_id: int, delta: int, mode: str) -> int:
        if mode == ADJUST_ADD:
            self.cur.execute(
                """
                UPDATE articles SET stock_available = stock_available + ?
                WHERE id = ? AND active = 1 AND stock_available + ? >= 0
                """,
                (int(delta), int(article_id), int(delta)),
            )
        elif mode == ADJUST_REPLACE:
            self.cur.execute(
                "UPDATE articles SET stock_available = ? WHERE id = ? AND active = 1",
                (int(delta), int(article_id)),
            )
        else:
            raise ValidationError(f"Unknown adjustment mode: {mode!r}")

        changed = self.cur.rowcount
        row = self._stock_row(article_id)
        if not row or int(row[3]) != 1:
            raise NotFoundError(f"Article {article_id} not found.")
        if changed == 0:
            raise InsufficientStockError(
                f"Adjustment of {delta} would leave article {row[0]} below zero. Available: {row[1]}",
                article_id=int(article_id),
                requested=-int(delta),
                available=int(row[1]),
            )
        return int(row[1])

    # ---------- Articles ----------
    def insert_article(self, fields: dict, created_at: str) -> int:
        try:
            self.cur.execute(
                """
                INSERT INTO articles (
                    code, name, size, color, season, category, description,
                    cost_price_cents, sale_price_cents, stock_available, stock_reserved, active, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, 1, ?)
                """,
                (
                    int(fields["code"]),
                    fields["name"],
                    fields.get("size"),
                    fields.get("color"),
                    fields.get("season"),
                    fields.get("category"),
                    fields.get("description"),
                    int(fields.get("cost_price_cents", 0)),
                    int(fields.get("sale_price_cents", 0)),
                    int(fields.get("stock_available", 0)),
                    created_at,
                ),
            )
        except sqlite3.IntegrityError as exc:
            if "articles.code" in str(exc):
                raise DuplicateKeyError(f"Article code {fields['code']} is already in use.", key=int(fields["code"])) from exc
            raise ValidationError(f"Invalid article data: {exc}") from exc
        return int(self.cur.lastrowid)

    def max_article_code(self) -> Optional[int]:
        self.cur.execute("SELECT MAX(code) FROM articles")
        row = self.cur.fetchone()
        return int(row[0]) if row and row[0] is not None else None

    def update_article(self, article_id: int, fields: dict) -> bool:
        assignments = ", ".join(f"{col}=?" for col in fields)
        self.cur.execute(
            f"UPDATE articles SET {assignments} WHERE id=? AND active=1",
            (*fields.values(), int(article_id)),
        )
        return self.cur.rowcount > 0

    def deactivate_article(self, article_id: int) -> bool:
        self.cur.execute("UPDATE articles SET active=0 WHERE id=? AND active=1", (int(article_id),))
        return self.cur.rowcount > 0

    # ---------- Customers ----------
    def insert_customer(self, fields: dict, created_at: str) -> int:
        self.cur.execute(
            """
            INSERT INTO customers (name, surname, national_id, phone, email, address, active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, 1, ?)
            """,
            (
                fields["name"],
                fields["surname"],
                fields.get("national_id"),
                fields.get("phone"),
                fields.get("email"),
                fields.get("address"),
                created_at,
            ),
        )
        return int(self.cur.lastrowid)

    def update_customer(self, customer_id: int, fields: dict) -> bool:
        assignments = ", ".join(f"{col}=?" for col in fields)
        self.cur.execute(
            f"UPDATE customers SET {assignments} WHERE id=? AND active=1",
            (*fields.values(), int(customer_id)),
        )
        return self.cur.rowcount > 0

    def deactivate_customer(self, customer_id: int) -> bool:
        self.cur.execute("UPDATE customers SET active=0 WHERE id=? AND active=1", (int(customer_id),))
        return self.cur.rowcount > 0

    def customer_is_active(self, customer_id: int) -> bool:
        self.cur.execute("SELECT 1 FROM customers WHERE id=? AND active=1", (int(customer_id),))
        return self.cur.fetchone() is not None

    # ---------- Sales ----------
    def get_sale(self, sale_id: int) -> Optional[Sale]:
        self.cur.execute(f"SELECT {SALE_COLUMNS} FROM sales WHERE id=?", (int(sale_id),))
        r = self.cur.fetchone()
        return sale_from_row(r) if r else None

    def sale_lines(self, sale_id: int) -> list[SaleLine]:
        self.cur.execute(f"SELECT {LINE_COLUMNS} FROM sale_lines WHERE sale_id=? ORDER BY id", (int(sale_id),))
        return [line_from_row(r) for r in self.cur.fetchall()]

    def insert_sale(
        self,
        customer_id: Optional[int],
        datetime_iso: str,
        state: str,
        payment_method: Optional[str],
        notes: Optional[str],
    ) -> int:
        self.cur.execute(
            """
            INSERT INTO sales (customer_id, datetime, total_cents, state, payment_method, notes)
            VALUES (?, ?, 0, ?, ?, ?)
            """,
            (customer_id, datetime_iso, state, payment_method, notes),
        )
        return int(self.cur.lastrowid)

    def insert_sale_line(
        self, sale_id: int, article_id: int, qty: int, unit_price_cents: int, line_state: str, created_at: str
    ) -> int:
        self.cur.execute(
            """
            INSERT INTO sale_lines (sale_id, article_id, qty, unit_price_cents, line_state, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (int(sale_id), int(article_id), int(qty), int(unit_price_cents), line_state, created_at),
        )
        return int(self.cur.lastrowid)

    def delete_sale_line(self, line_id: int) -> None:
        self.cur.execute("DELETE FROM sale_lines WHERE id=?", (int(line_id),))

    def set_sale_state(self, sale_id: int, state: str, payment_method: Optional[str]) -> None:
        self.cur.execute(
            "UPDATE sales SET state=?, payment_method=? WHERE id=?",
            (state, payment_method, int(sale_id)),
        )
        self.cur.execute("UPDATE sale_lines SET line_state=? WHERE sale_id=?", (state, int(sale_id)))

    def refresh_sale_total(self, sale_id: int) -> int:
        self.cur.execute(
            "SELECT COALESCE(SUM(qty * unit_price_cents), 0) FROM sale_lines WHERE sale_id=?",
            (int(sale_id),),
        )
        total_cents = int(self.cur.fetchone()[0])
        self.cur.execute("UPDATE sales SET total_cents=? WHERE id=?", (total_cents, int(sale_id)))
        return total_cents

    def delete_sale(self, sale_id: int) -> None:
        self.cur.execute("DELETE FROM sales WHERE id=?", (int(sale_id),))

    # ---------- Cash ----------
    def insert_cash_movement(
        self,
        datetime_iso: str,
        movement_type: str,
        amount_cents: int,
        payment_method: Optional[str],
        concept: str,
        sale_id: Optional[int] = None,
    ) -> int:
        self.cur.execute(
            """
            INSERT INTO cash_movements (datetime, movement_type, amount_cents, payment_method, concept, sale_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (datetime_iso, movement_type, int(amount_cents), payment_method, concept, sale_id),
        )
        return int(self.cur.lastrowid)
