import logging
from decimal import Decimal

import pytest
from openpyxl import Workbook

from conftest import make_article

from shopledger.domain.errors import ValidationError

HEADER = ["Cantidad", "Nombre", "Descripcion", "Talle", "Color", "Precio", "Temporada"]


def _sheet(path, rows):
    wb = Workbook()
    ws = wb.active
    ws.append(HEADER)
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


def _all_articles(app):
    return app.inventory.list_articles(page_size=100).items


def test_import_creates_one_article_per_unit(app, tmp_path, caplog):
    make_article(app, code=1500, name="Existente")
    path = _sheet(
        tmp_path / "stock.xlsx",
        [
            [2, "Remera", "Algodon", "M", "Negro", 100, "Verano"],
            [None, "Jean", None, 42, "Azul", 250.5, None],
            [3, "Buzo", "Frisa", "L", "Gris", "180", "Invierno"],
            [1, None, "sin nombre", "S", "Rojo", 90, None],
            [None, None, None, None, None, None, None],
            ["dos", "Campera", None, None, None, 300, None],
        ],
    )

    with caplog.at_level(logging.WARNING):
        created, skipped = app.excel.import_articles_excel(path)

    assert (created, skipped) == (6, 2)
    imported = [a for a in _all_articles(app) if a.code > 1500]
    assert [(a.code, a.name) for a in imported] == [
        (1501, "Remera"),
        (1502, "Remera"),
        (1503, "Jean"),
        (1504, "Buzo"),
        (1505, "Buzo"),
        (1506, "Buzo"),
    ]
    assert all(a.stock_available == 1 and a.stock_reserved == 0 for a in imported)
    assert all(a.cost_price == Decimal("0.00") for a in imported)

    jean = app.inventory.get_article_by_code(1503)
    assert jean.sale_price == Decimal("250.50")
    assert jean.size == "42"
    assert jean.description is None
    assert app.inventory.get_article_by_code(1501).season == "Verano"

    assert "skipped row 7" in caplog.text


def test_import_into_empty_catalogue_starts_at_1000(app, tmp_path):
    path = _sheet(tmp_path / "stock.xlsx", [[1, "Remera", None, None, None, 100, None]])

    assert app.excel.import_articles_excel(path) == (1, 0)
    assert app.inventory.get_article_by_code(1000).name == "Remera"


def test_import_with_only_blank_rows_creates_nothing(app, tmp_path):
    received = []
    app.events.subscribe(received.append)
    path = _sheet(tmp_path / "empty.xlsx", [[None] * 7])

    assert app.excel.import_articles_excel(path) == (0, 0)
    assert _all_articles(app) == []
    assert received == []


def test_import_publishes_summary_event(app, tmp_path):
    received = []
    app.events.subscribe(received.append)
    path = _sheet(tmp_path / "stock.xlsx", [[2, "Remera", None, None, None, 100, None]])

    app.excel.import_articles_excel(path)

    (event,) = received
    assert event.kind == "articles_imported"
    assert event.payload == {"created": 2, "skipped": 0, "first_code": 1000, "last_code": 1001}


def test_unreadable_file_is_a_validation_error(app, tmp_path):
    bogus = tmp_path / "stock.xlsx"
    bogus.write_text("not a workbook")

    with pytest.raises(ValidationError):
        app.excel.import_articles_excel(bogus)
    with pytest.raises(ValidationError):
        app.excel.import_articles_excel(tmp_path / "missing.xlsx")
