from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

import requests

log = logging.getLogger(__name__)

SALE_CREATED = "sale_created"
SALE_STATE_CHANGED = "sale_state_changed"
SALE_LINE_ADDED = "sale_line_added"
SALE_LINE_REMOVED = "sale_line_removed"
SALE_DELETED = "sale_deleted"
CASH_POSTED = "cash_posted"
STOCK_ADJUSTED = "stock_adjusted"
ARTICLES_IMPORTED = "articles_imported"


@dataclass(frozen=True)
class Event:
    kind: str
    payload: dict = field(default_factory=dict)
    occurred_at: str = field(default_factory=lambda: datetime.now().replace(microsecond=0).isoformat(sep=" "))

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=_json_default, ensure_ascii=False)


def _json_default(value):
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


Handler = Callable[[Event], None]


class EventBus:
    """In-process publish/subscribe for committed state changes.

    Events are published after the transaction commits. A handler that
    raises is logged and skipped; the command it reports on stays committed.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._handlers: list[Handler] = []
        self.clock = clock

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, kind: str, **payload) -> Event:
        occurred_at = self.clock().replace(microsecond=0).isoformat(sep=" ")
        event = Event(kind=kind, payload=payload, occurred_at=occurred_at)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                log.exception("event_handler_failed kind=%s handler=%r", kind, handler)
        return event


class WebhookNotifier:
    """POSTs each event as JSON to `url`.

    Runs inside `EventBus.publish`, so the command that published the event
    waits for the request. Each call can block for up to `timeout` seconds and
    a paid sale publishes two events. Failures are logged, never raised.
    """

    def __init__(self, url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self, event: Event) -> None:
        try:
            r = self.session.post(
                self.url,
                data=event.to_json(),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            log.warning("webhook_failed url=%s kind=%s error=%s", self.url, event.kind, e)
