import math
from datetime import timedelta
from typing import TypedDict

from backend.clock import Clock, ceil_minutes
from backend.config import AUTO_CLOSE_ENABLED, AUTO_CLOSE_GRACE_MINUTES, CHECKIN_EARLY_MINUTES
from backend.events import EventBus
from backend.logging_config import get_logger
from backend.models import Session
from database.db import transaction
from database.store import AttendanceStore

log = get_logger(__name__)


class TimingTickSummary(TypedDict):
    date: str
    time_updates: int
    auto_closed: list[int]


class SessionTimingNotifier:
    """
    Minute tick over today's scheduled/ongoing sessions.

    Publishes `session:time-update` countdowns and closes ongoing sessions
    that ran AUTO_CLOSE_GRACE_MINUTES past their planned end. Sessions from
    earlier days are left for the stale-checkout path.
    """

    def __init__(
        self,
        store: AttendanceStore,
        clock: Clock,
        events: EventBus,
        *,
        auto_close: bool = AUTO_CLOSE_ENABLED,
        grace_minutes: int = AUTO_CLOSE_GRACE_MINUTES,
    ):
        self.store = store
        self.clock = clock
        self.events = events
        self.auto_close = auto_close
        self.grace = timedelta(minutes=grace_minutes)

    def tick(self) -> TimingTickSummary:
        now = self.clock.now()
        summary: TimingTickSummary = {"date": now.date, "time_updates": 0, "auto_closed": []}

        for session in self.store.sessions_on(now.date, ("scheduled", "ongoing")):
            start = now.at(session.planned_start)
            end = now.at(session.planned_end)

            if self.auto_close and session.status == "ongoing":
                minutes_past_end = math.floor((now.moment - end).total_seconds() / 60)
                if timedelta(minutes=minutes_past_end) >= self.grace:
                    if self._auto_close(session):
                        summary["auto_closed"].append(session.id)
                    continue

            until_check_in = ceil_minutes(start - timedelta(minutes=CHECKIN_EARLY_MINUTES) - now.moment)
            until_check_out = ceil_minutes(end - now.moment)
            self.events.publish(
                "session:time-update",
                {
                    "session_id": session.id,
                    "minutes_until_check_in": until_check_in,
                    "minutes_until_check_out": until_check_out,
                    "can_check_in": until_check_in <= 0,
                    "can_check_out": until_check_out <= 0,
                    "status": session.status,
                },
            )
            summary["time_updates"] += 1

        return summary

    def _auto_close(self, session: Session) -> bool:
        end_time = session.planned_end
        with transaction(self.store.conn):
            current = self.store.get_session(session.id)
            if not current or current.status != "ongoing":
                return False
            self.store.update_session(session.id, status="completed", end_time=end_time)
            open_rows = self.store.open_session_attendance(session.id)
            for row in open_rows:
                self.store.update_attendance(
                    row.id,
                    check_out_time=end_time,
                    notes="[AUTO-CHECKOUT] Session closed automatically after its end time",
                )

        log.info("session_auto_closed", session_id=session.id, end_time=end_time, attendance_closed=len(open_rows))
        self.events.publish(
            "session:status-changed",
            {"session_id": session.id, "status": "completed", "check_out_time": end_time, "auto_checkout": True},
        )
        self.events.publish(
            "teacher:checkout",
            {"session_id": session.id, "teacher_id": session.effective_teacher_id, "auto_checkout": True},
        )
        return True
