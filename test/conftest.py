import sys
from datetime import datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


class FixedClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 5, 10, 12, 0, 0))


@pytest.fixture
def app(tmp_path: Path, clock: FixedClock):
    from shopledger.application.container import build_container

    return build_container(tmp_path / "shop.db", clock=clock)


def make_article(app, stock: int = 10, price="100", cost="40", **extra) -> int:
    extra.setdefault("name", "Remera")
    return app.inventory.create_article(sale_price=price, cost_price=cost, stock=stock, **extra)


def stock_of(app, article_id: int) -> tuple[int, int]:
    a = app.repo.get_article(article_id, include_inactive=True)
    return a.stock_available, a.stock_reserved
