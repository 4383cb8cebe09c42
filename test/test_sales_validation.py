from decimal import Decimal

import pytest

from conftest import make_article, stock_of

from shopledger.domain.errors import InsufficientStockError, NotFoundError, ValidationError


def test_empty_sale_is_rejected(app):
    with pytest.raises(ValidationError):
        app.sales.create_sale(None, [])


def test_repeated_lines_cannot_oversell(app):
    aid = make_article(app, stock=5)
    items = [{"article_id": aid, "qty": 3}, {"article_id": aid, "qty": 3}]

    with pytest.raises(InsufficientStockError) as exc_info:
        app.sales.create_sale(None, items)

    assert exc_info.value.requested == 6
    assert exc_info.value.available == 5
    assert stock_of(app, aid) == (5, 0)
    assert app.sales.list_sales().total == 0


def test_one_bad_line_rejects_the_whole_sale(app):
    ok = make_article(app, stock=5)
    short = make_article(app, stock=1, name="Jean")

    with pytest.raises(InsufficientStockError):
        app.sales.create_sale(None, [{"article_id": ok, "qty": 2}, {"article_id": short, "qty": 2}])

    assert stock_of(app, ok) == (5, 0)
    assert stock_of(app, short) == (1, 0)
    assert app.sales.list_sales().total == 0


def test_unit_price_defaults_to_article_price(app):
    aid = make_article(app, stock=5, price="199.99")

    sale_id = app.sales.create_sale(None, [{"article_id": aid, "qty": 2}])

    (line,) = app.sales.sale_lines(sale_id)
    assert line.unit_price == Decimal("199.99")
    assert line.subtotal == Decimal("399.98")
    assert app.sales.get_sale(sale_id).total == Decimal("399.98")


@pytest.mark.parametrize("price", ["0", "-5", "abc", None])
def test_unit_price_must_be_positive(app, price):
    aid = make_article(app, stock=5, price="0")

    with pytest.raises(ValidationError):
        app.sales.create_sale(None, [{"article_id": aid, "qty": 1, "unit_price": price}])


@pytest.mark.parametrize("qty", [0, -2, 1.5, "two", Decimal("2.5"), float("nan")])
def test_line_quantity_must_be_positive_integer(app, qty):
    aid = make_article(app, stock=5)

    with pytest.raises(ValidationError):
        app.sales.create_sale(None, [{"article_id": aid, "qty": qty}])


def test_malformed_line(app):
    with pytest.raises(ValidationError):
        app.sales.create_sale(None, [{"qty": 1}])


@pytest.mark.parametrize("bad_id", ["abc", 1.5, None, True, 0])
def test_malformed_ids_are_validation_errors(app, bad_id):
    aid = make_article(app, stock=5)
    sale_id = app.sales.create_sale(None, [{"article_id": aid, "qty": 1}])

    with pytest.raises(ValidationError):
        app.sales.create_sale(None, [{"article_id": bad_id, "qty": 1}])
    with pytest.raises(ValidationError):
        app.sales.add_line(bad_id, aid, 1)
    with pytest.raises(ValidationError):
        app.sales.remove_line(sale_id, bad_id)
    with pytest.raises(ValidationError):
        app.sales.change_state(bad_id, "cancelled")
    with pytest.raises(ValidationError):
        app.sales.get_sale(bad_id)

    assert stock_of(app, aid) == (4, 1)


def test_malformed_customer_id_opens_no_sale(app):
    aid = make_article(app, stock=5)

    with pytest.raises(ValidationError):
        app.sales.create_sale("abc", [{"article_id": aid, "qty": 1}])

    assert app.sales.list_sales().total == 0
    assert stock_of(app, aid) == (5, 0)


def test_numeric_text_ids_are_accepted(app):
    aid = make_article(app, stock=5)

    sale_id = app.sales.create_sale(None, [{"article_id": str(aid), "qty": "2"}])

    assert app.sales.get_sale(str(sale_id)).total == Decimal("200.00")


def test_unknown_article_or_customer(app):
    aid = make_article(app, stock=5)

    with pytest.raises(NotFoundError):
        app.sales.create_sale(None, [{"article_id": 999, "qty": 1}])
    with pytest.raises(NotFoundError):
        app.sales.create_sale(42, [{"article_id": aid, "qty": 1}])

    assert stock_of(app, aid) == (5, 0)


def test_inactive_customer_cannot_buy(app):
    aid = make_article(app, stock=5)
    cid = app.customers.create_customer("Ana", "Paz")
    app.customers.deactivate_customer(cid)

    with pytest.raises(NotFoundError):
        app.sales.create_sale(cid, [{"article_id": aid, "qty": 1}])
    assert stock_of(app, aid) == (5, 0)


def test_notes_are_trimmed(app):
    aid = make_article(app, stock=5)

    sale_id = app.sales.create_sale(None, [{"article_id": aid, "qty": 1}], notes="  gift wrap ")
    blank_id = app.sales.create_sale(None, [{"article_id": aid, "qty": 1}], notes="   ")

    assert app.sales.get_sale(sale_id).notes == "gift wrap"
    assert app.sales.get_sale(blank_id).notes is None


def test_unknown_sale(app):
    with pytest.raises(NotFoundError):
        app.sales.change_state(123, "cancelled")
    with pytest.raises(NotFoundError):
        app.sales.get_sale(123)
    with pytest.raises(ValidationError):
        app.sales.change_state(123, "refunded")
