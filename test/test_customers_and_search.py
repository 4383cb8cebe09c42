from decimal import Decimal

import pytest

from conftest import make_article

from shopledger.domain.errors import NotFoundError, ValidationError


def test_create_and_update_customer(app):
    cid = app.customers.create_customer(" Ana ", "Paz", national_id="30111222", email="ana@example.com")

    c = app.customers.get_customer(cid)
    assert c.full_name == "Ana Paz"
    assert c.national_id == "30111222"

    app.customers.update_customer(cid, phone="11-5555-0000", email=None)
    c = app.customers.get_customer(cid)
    assert c.phone == "11-5555-0000"
    assert c.email is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "", "surname": "Paz"},
        {"name": "Ana", "surname": "  "},
        {"name": "Ana", "surname": "Paz", "email": "ana.example.com"},
    ],
)
def test_customer_validation(app, kwargs):
    with pytest.raises(ValidationError):
        app.customers.create_customer(**kwargs)


def test_update_rejects_unknown_fields_and_customers(app):
    cid = app.customers.create_customer("Ana", "Paz")

    with pytest.raises(ValidationError):
        app.customers.update_customer(cid, vip=True)
    with pytest.raises(NotFoundError):
        app.customers.update_customer(999, name="Eva")
    with pytest.raises(NotFoundError):
        app.customers.deactivate_customer(999)
    with pytest.raises(ValidationError):
        app.customers.get_customer("ana")
    with pytest.raises(ValidationError):
        app.customers.customer_balance(None)


def test_balances_follow_line_states(app):
    aid = make_article(app, stock=20)
    cid = app.customers.create_customer("Ana", "Paz")
    line = {"article_id": aid, "qty": 1}
    app.sales.create_sale(cid, [dict(line, unit_price="100")])
    app.sales.create_sale(cid, [dict(line, unit_price="200")], "debt")
    app.sales.create_sale(cid, [dict(line, unit_price="300")], "paid", "cash")
    cancelled = app.sales.create_sale(cid, [dict(line, unit_price="400")])
    app.sales.change_state(cancelled, "cancelled")

    summary = app.customers.customer_balance(cid)

    assert summary.pending_total == Decimal("100.00")
    assert summary.debt_total == Decimal("200.00")
    assert summary.paid_total == Decimal("300.00")
    assert len(app.customers.sales_for_customer(cid)) == 4


def test_list_customers_with_search(app):
    app.customers.create_customer("Ana", "Paz")
    app.customers.create_customer("Bruno", "Alvarez", national_id="28999111")
    gone = app.customers.create_customer("Carla", "Zeta")
    app.customers.deactivate_customer(gone)

    page = app.customers.list_customers()
    assert [s.customer.surname for s in page.items] == ["Alvarez", "Paz"]
    assert all(s.paid_total == Decimal("0.00") for s in page.items)

    assert [s.customer.name for s in app.customers.list_customers(search="2899").items] == ["Bruno"]

    with pytest.raises(NotFoundError):
        app.customers.get_customer(gone)
    with pytest.raises(NotFoundError):
        app.customers.sales_for_customer(gone)


def test_global_search_needs_two_characters(app):
    app.customers.create_customer("Ana", "Paz")
    make_article(app, name="Remera")

    for term in ("", " ", "a", None):
        results = app.search.global_search(term)
        assert results.customers == []
        assert results.articles == []


def test_global_search_matches_customers_and_articles(app):
    app.customers.create_customer("Marta", "Gomez")
    app.customers.create_customer("Ana", "Martinez")
    make_article(app, name="Remera Martina")
    make_article(app, name="Jean", color="Marron")
    hidden = make_article(app, name="Martillo")
    app.inventory.deactivate_article(hidden)

    results = app.search.global_search("mar")

    assert [c.surname for c in results.customers] == ["Gomez", "Martinez"]
    assert [a.name for a in results.articles] == ["Remera Martina", "Jean"]


def test_global_search_caps_each_group(app):
    for i in range(7):
        make_article(app, name=f"Remera {i}")
        app.customers.create_customer(f"Remo{i}", "Perez")

    results = app.search.global_search("Rem")

    assert len(results.articles) == 5
    assert len(results.customers) == 5
