import threading
from collections import deque
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Literal

from backend.logging_config import get_logger

log = get_logger(__name__)

EventName = Literal[
    "session:status-changed",
    "teacher:checkin",
    "teacher:checkout",
    "session:time-update",
    "substitute:assigned",
]
Handler = Callable[[str, dict[str, Any]], None]


class EventBus:
    """
    One-way publisher for realtime notifications.

    Publishing never fails the caller: a handler that raises is logged and
    skipped. Callers publish only after their transaction has committed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: dict[str, list[Handler]] = {}
        self._wildcard: list[Handler] = []

    def subscribe(self, handler: Handler, event: str | None = None) -> None:
        with self._lock:
            if event is None:
                self._wildcard.append(handler)
            else:
                self._handlers.setdefault(event, []).append(handler)

    def unsubscribe(self, handler: Handler) -> None:
        with self._lock:
            if handler in self._wildcard:
                self._wildcard.remove(handler)
            for handlers in self._handlers.values():
                if handler in handlers:
                    handlers.remove(handler)

    def publish(self, event: EventName, payload: dict[str, Any]) -> None:
        body = {**payload, "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds")}
        with self._lock:
            targets = [*self._handlers.get(event, []), *self._wildcard]

        for handler in targets:
            try:
                handler(event, body)
            except Exception:
                log.exception("event_handler_failed", event=event, handler=getattr(handler, "__name__", repr(handler)))


class RecentEvents:
    """Bounded in-memory feed of published events for the admin dashboard."""

    def __init__(self, maxlen: int = 200):
        self._events: deque[dict[str, Any]] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __call__(self, event: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self._events.append({"event": event, **payload})

    def snapshot(self, event: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        with self._lock:
            rows = list(self._events)
        if event:
            rows = [row for row in rows if row["event"] == event]
        return rows[-limit:][::-1]
