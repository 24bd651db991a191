from typing import TypedDict

from backend.clock import Clock
from backend.models import ActiveSessionInfo
from database.store import AttendanceStore


class IntegrityMetrics(TypedDict):
    duplicate_active_sessions: int
    duplicate_teachers: list[int]
    orphaned_attendance: int
    active_sessions_count: int
    healthy: bool


class ActiveSessionGuard:
    """
    Answers "is this teacher currently inside a session?".

    Always read from the ledger, never cached: the check-in resolver calls
    this after taking the write lock so the answer is current for the whole
    transaction.
    """

    def __init__(self, store: AttendanceStore):
        self.store = store

    def has_active_session(self, teacher_id: int) -> ActiveSessionInfo | None:
        return self.store.active_session_for(teacher_id)

    def integrity_metrics(self, clock: Clock) -> IntegrityMetrics:
        duplicates = self.store.duplicate_active_sessions()
        orphaned = self.store.count_open_regular_rows(clock.now().date)
        return {
            "duplicate_active_sessions": len(duplicates),
            "duplicate_teachers": [int(d["teacher_id"]) for d in duplicates],
            "orphaned_attendance": orphaned,
            "active_sessions_count": self.store.count_sessions_with_status("ongoing"),
            "healthy": not duplicates,
        }
