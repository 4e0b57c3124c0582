"""
Minimal publish/subscribe bus.

The store and the bulk submitter publish state changes here; UI code
subscribes instead of polling. Handlers run synchronously in publish order.
"""

from datetime import datetime, timezone
from typing import Any, Callable, NamedTuple, Optional

import structlog

logger = structlog.get_logger(__name__)

RECORDS_CHANGED = "records_changed"
LOADING_CHANGED = "loading_changed"
ERROR_CHANGED = "error_changed"
SUBMIT_STATUS_CHANGED = "submit_status_changed"

ALL_EVENTS = "*"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event], Any]


class EventBus:
    def __init__(self):
        self._subscribers: dict[str, list[Handler]] = {}

    def subscribe(self, handler: Handler, name: str = ALL_EVENTS) -> Callable[[], None]:
        """Register `handler` for `name` (default: every event). Returns an unsubscribe function."""
        self._subscribers.setdefault(name, []).append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(handler, name)

        return unsubscribe

    def unsubscribe(self, handler: Handler, name: str = ALL_EVENTS) -> None:
        handlers = self._subscribers.get(name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def publish(self, name: str, payload: Optional[dict] = None) -> list[Any]:
        handlers = list(self._subscribers.get(name, [])) + list(self._subscribers.get(ALL_EVENTS, []))
        if not handlers:
            return []

        event = Event(
            name=name,
            ts=datetime.now(timezone.utc).isoformat(),
            payload=payload or {},
        )

        results = []
        for handler in handlers:
            try:
                results.append(handler(event))
            except Exception:
                # State has already changed; one bad observer must not hide it from the rest
                logger.exception("event_handler_failed", event_name=name)
        return results

    def clear(self) -> None:
        self._subscribers.clear()
