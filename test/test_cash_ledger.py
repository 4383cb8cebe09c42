from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from conftest import make_article

from shopledger.domain.errors import StorageUnavailableError, ValidationError
from shopledger.repositories.sqlite_repo import SqliteRepository
from shopledger.services.cash_service import CashService


def test_manual_movements_and_balance(app):
    app.cash.post_entry("1000", "cash", "Opening float")
    app.cash.post_purchase("250.50", "transfer", "Fabric supplier")
    app.cash.post_withdrawal("100")

    summary = app.cash.summary()

    assert summary.entries == Decimal("1000.00")
    assert summary.exits == Decimal("350.50")
    assert summary.balance == Decimal("649.50")

    exits = app.cash.list_movements(movement_type="exit")
    assert exits.total == 2
    assert {m.concept for m in exits.items} == {"Fabric supplier", "Withdrawal"}
    withdrawal = next(m for m in exits.items if m.concept == "Withdrawal")
    assert withdrawal.payment_method == "cash"
    assert withdrawal.sale_id is None


def test_amount_is_rounded_to_cents(app):
    app.cash.post_entry("10.005", None, "Tip jar")

    (movement,) = app.cash.list_movements().items
    assert movement.amount == Decimal("10.01")
    assert movement.payment_method is None


@pytest.mark.parametrize(
    "movement_type,amount,method,concept",
    [
        ("entry", "0", "cash", "x"),
        ("entry", "-5", "cash", "x"),
        ("entry", "nan", "cash", "x"),
        ("entry", "abc", "cash", "x"),
        ("entry", "5", "cheque", "x"),
        ("entry", "5", "cash", "   "),
        ("refund", "5", "cash", "x"),
    ],
)
def test_invalid_movements_are_rejected(app, movement_type, amount, method, concept):
    with pytest.raises(ValidationError):
        app.cash.post(movement_type, amount, method, concept)
    assert app.cash.list_movements().total == 0


def test_payment_method_is_normalised(app):
    app.cash.post_entry("5", "  Debit_Card ", "Card top-up")

    (movement,) = app.cash.list_movements().items
    assert movement.payment_method == "debit_card"


def test_period_window_and_method_totals(app, clock):
    aid = make_article(app, stock=10)
    app.sales.create_sale(None, [{"article_id": aid, "qty": 1, "unit_price": "100"}], "paid", "cash")
    clock.now += timedelta(days=1)
    app.sales.create_sale(None, [{"article_id": aid, "qty": 2, "unit_price": "100"}], "paid", "transfer")
    app.cash.post_entry("50", "cash", "Alteration")
    app.cash.post_withdrawal("30")

    day_two = app.cash.summary("2024-05-11 00:00:00", "2024-05-12 00:00:00")
    assert day_two.entries == Decimal("250.00")
    assert day_two.exits == Decimal("30.00")

    assert app.cash.summary().balance == Decimal("320.00")
    assert app.cash.totals_by_method() == {"transfer": Decimal("200.00"), "cash": Decimal("150.00")}

    page = app.cash.list_movements(page=1, page_size=2)
    assert page.total == 4
    assert page.pages == 2
    assert page.items[0].datetime == "2024-05-11 12:00:00"


def test_list_movements_rejects_bad_filters(app):
    with pytest.raises(ValidationError):
        app.cash.list_movements(movement_type="refund")
    with pytest.raises(ValidationError):
        app.cash.list_movements(payment_method="cheque")
    with pytest.raises(ValidationError):
        app.cash.list_movements(page=0)


def test_movement_timestamps_come_from_the_clock(tmp_path):
    repo = SqliteRepository(tmp_path / "shop.db")
    repo.init_db()
    cash = CashService(repo, clock=lambda: datetime(2023, 12, 31, 23, 59, 59, 999))

    cash.post_entry("1", "cash", "Year end")

    (movement,) = repo.list_cash_movements(0, 10)[0]
    assert movement.datetime == "2023-12-31 23:59:59"


def test_unreachable_database_raises_storage_error(tmp_path):
    # a directory cannot be opened as a database file
    repo = SqliteRepository(tmp_path)
    cash = CashService(repo)

    with pytest.raises(StorageUnavailableError):
        cash.summary()
    with pytest.raises(StorageUnavailableError):
        cash.post_entry("10", "cash", "Float")
