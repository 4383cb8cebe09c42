import sqlite3

import pytest

from shopledger.repositories.sqlite_repo import SqliteRepository


def _tables(db_path):
    conn = sqlite3.connect(db_path)
    try:
        return {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    finally:
        conn.close()


def test_fresh_database_gets_all_migrations(tmp_path):
    db = tmp_path / "shop.db"
    repo = SqliteRepository(db)

    repo.init_db()

    assert repo.schema_version() == 2
    assert {"articles", "customers", "sales", "sale_lines", "cash_movements", "schema_migrations"} <= _tables(db)
    assert repo.integrity_check() == "ok"


def test_migrations_are_idempotent(tmp_path):
    db = tmp_path / "shop.db"
    repo = SqliteRepository(db)
    repo.init_db()

    repo.init_db()
    repo.init_db()

    assert repo.schema_version() == 2
    # no pre-migration backup is kept when nothing was applied
    assert list(tmp_path.glob("*.bak")) == []


def test_counter_checks_are_enforced_by_the_schema(tmp_path):
    db = tmp_path / "shop.db"
    SqliteRepository(db).init_db()

    conn = sqlite3.connect(db)
    try:
        conn.execute(
            "INSERT INTO articles (code, name, cost_price_cents, sale_price_cents, stock_available, stock_reserved, active, created_at) "
            "VALUES (1000, 'Remera', 0, 100, 1, 0, 1, '2024-01-01 00:00:00')"
        )
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("UPDATE articles SET stock_available = -1 WHERE code = 1000")
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("UPDATE articles SET stock_reserved = -1 WHERE code = 1000")
    finally:
        conn.close()


class BrokenIndexesRepository(SqliteRepository):
    def _migration_v2_indexes(self, cur):
        raise sqlite3.OperationalError("disk I/O error")


def test_failed_migration_restores_previous_database(tmp_path):
    db = tmp_path / "shop.db"
    SqliteRepository(db).init_db()

    conn = sqlite3.connect(db)
    conn.execute(
        "INSERT INTO articles (code, name, cost_price_cents, sale_price_cents, stock_available, stock_reserved, active, created_at) "
        "VALUES (1000, 'Remera', 0, 100, 4, 0, 1, '2024-01-01 00:00:00')"
    )
    conn.execute("DELETE FROM schema_migrations WHERE version = 2")
    conn.commit()
    conn.close()

    repo = BrokenIndexesRepository(db)
    with pytest.raises(RuntimeError, match="restored"):
        repo.init_db()

    assert repo.schema_version() == 1
    article = repo.get_article_by_code(1000)
    assert article.stock_available == 4
    assert len(list(tmp_path.glob("shop.pre_migration_*.bak"))) == 1

    SqliteRepository(db).init_db()
    assert SqliteRepository(db).schema_version() == 2
