import json
import logging
from decimal import Decimal

import pytest
import requests

from conftest import make_article

from shopledger.domain.errors import InsufficientStockError
from shopledger.services.notification_service import Event, EventBus, WebhookNotifier


class FakeResponse:
    def __init__(self, status_code: int = 200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, status_code: int = 200, exc: Exception | None = None):
        self.status_code = status_code
        self.exc = exc
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        if self.exc:
            raise self.exc
        return FakeResponse(self.status_code)


def test_sale_commands_publish_events_after_commit(app):
    received = []
    app.events.subscribe(received.append)
    aid = make_article(app, stock=5)

    sale_id = app.sales.create_sale(None, [{"article_id": aid, "qty": 2, "unit_price": "50"}])
    app.sales.change_state(sale_id, "paid", "cash")

    assert [e.kind for e in received] == ["sale_created", "sale_state_changed", "cash_posted"]
    assert received[0].payload["total"] == Decimal("100.00")
    assert received[1].payload == {"sale_id": sale_id, "previous": "pending", "state": "paid", "payment_method": "cash"}
    assert received[2].payload["amount"] == Decimal("100.00")


def test_events_are_stamped_with_the_app_clock(app, clock):
    received = []
    app.events.subscribe(received.append)
    aid = make_article(app, stock=5)

    sale_id = app.sales.create_sale(None, [{"article_id": aid, "qty": 1}])

    (event,) = received
    assert event.occurred_at == "2024-05-10 12:00:00"
    assert event.occurred_at == app.sales.get_sale(sale_id).datetime


def test_rejected_command_publishes_nothing(app):
    received = []
    app.events.subscribe(received.append)
    aid = make_article(app, stock=1)

    with pytest.raises(InsufficientStockError):
        app.sales.create_sale(None, [{"article_id": aid, "qty": 2}])

    assert received == []


def test_failing_handler_does_not_undo_the_command(app, caplog):
    def boom(event):
        raise RuntimeError("subscriber crashed")

    app.events.subscribe(boom)
    aid = make_article(app, stock=5)

    with caplog.at_level(logging.ERROR):
        sale_id = app.sales.create_sale(None, [{"article_id": aid, "qty": 1}])

    assert app.sales.get_sale(sale_id).state == "pending"
    assert "event_handler_failed" in caplog.text


def test_unsubscribe():
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe(received.append)

    bus.publish("stock_adjusted", article_id=1)
    unsubscribe()
    unsubscribe()
    bus.publish("stock_adjusted", article_id=2)

    assert [e.payload["article_id"] for e in received] == [1]


def test_webhook_posts_event_json():
    session = FakeSession()
    notifier = WebhookNotifier("https://hooks.example.com/shop", timeout=2.0, session=session)

    notifier(Event(kind="cash_posted", payload={"amount": Decimal("12.50"), "sale_id": 7}, occurred_at="2024-05-10 12:00:00"))

    (call,) = session.calls
    assert call["url"] == "https://hooks.example.com/shop"
    assert call["timeout"] == 2.0
    assert call["headers"]["Content-Type"] == "application/json"
    assert json.loads(call["data"]) == {
        "kind": "cash_posted",
        "payload": {"amount": "12.50", "sale_id": 7},
        "occurred_at": "2024-05-10 12:00:00",
    }


def test_webhook_failures_are_logged_not_raised(caplog):
    event = Event(kind="sale_deleted", payload={"sale_id": 1})

    with caplog.at_level(logging.WARNING):
        WebhookNotifier("https://hooks.example.com", session=FakeSession(status_code=503))(event)
        WebhookNotifier(
            "https://hooks.example.com", session=FakeSession(exc=requests.ConnectionError("refused"))
        )(event)

    assert caplog.text.count("webhook_failed") == 2
