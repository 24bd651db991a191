from collections.abc import Iterator

from fastapi import Request

from backend.clock import Clock
from backend.events import EventBus
from database.db import connect_db
from database.store import AttendanceStore


def get_store() -> Iterator[AttendanceStore]:
    conn = connect_db()
    try:
        yield AttendanceStore(conn)
    finally:
        conn.close()


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_events(request: Request) -> EventBus:
    return request.app.state.events
