from typing import TypedDict

from backend.clock import Clock, parse_date, weekday_of
from backend.logging_config import get_logger
from backend.exceptions import ValidationError
from database.db import transaction
from database.store import AttendanceStore

log = get_logger(__name__)

SWEPT_SESSION_STATUSES = ("scheduled", "ongoing", "completed")
LEAVE_STATUSES = {"sick", "permission"}
_LEAVE_LABELS = {"sick": "Sick", "permission": "Permission"}


class AlphaFillSummary(TypedDict, total=False):
    date: str
    regular_created: int
    session_created: int
    leave_cascaded: int
    skipped: str


class ReconciliationSweep:
    """
    Nightly "auto-fill alpha": infer unexcused absence for everyone who was
    expected on a date and left no record.

    Every row creation is its own short transaction with the existence check
    inside it, so re-running for the same date creates nothing new and a
    crash mid-run leaves only complete rows behind.
    """

    def __init__(self, store: AttendanceStore, clock: Clock):
        self.store = store
        self.clock = clock

    def auto_fill_alpha(self, target_date: str | None = None) -> AlphaFillSummary:
        date = target_date or self.clock.yesterday()
        try:
            parse_date(date)
        except ValueError:
            raise ValidationError("date must be formatted as YYYY-MM-DD.")

        day_of_week = weekday_of(date)
        summary: AlphaFillSummary = {
            "date": date,
            "regular_created": 0,
            "session_created": 0,
            "leave_cascaded": 0,
        }

        if day_of_week in (6, 7):
            log.info("alpha_fill_skipped", date=date, reason="weekend")
            summary["skipped"] = "weekend"
            return summary

        holidays = self.store.holidays_on(date)
        if holidays:
            reasons = ", ".join(h["reason"] for h in holidays)
            log.info("alpha_fill_skipped", date=date, reason="holiday", holidays=reasons)
            summary["skipped"] = f"holiday: {reasons}"
            return summary

        try:
            summary["regular_created"] = self._fill_regular(date, day_of_week)
            session_created, leave_cascaded = self._fill_sessions(date)
        except Exception:
            log.exception("alpha_fill_failed", **summary)
            raise
        summary["session_created"] = session_created
        summary["leave_cascaded"] = leave_cascaded

        log.info("alpha_fill_completed", **summary)
        return summary

    def _fill_regular(self, date: str, day_of_week: int) -> int:
        created = 0
        for hours in self.store.working_hours_for_weekday(day_of_week):
            teacher_id = int(hours["teacher_id"])
            with transaction(self.store.conn):
                if self.store.get_regular_attendance(teacher_id, date):
                    continue
                self.store.insert_attendance(
                    teacher_id=teacher_id,
                    date=date,
                    status="alpha",
                    notes="Auto-generated: absent without notice",
                )
            created += 1
        return created

    def _fill_sessions(self, date: str) -> tuple[int, int]:
        created = 0
        cascaded = 0
        for session in self.store.sessions_on(date, SWEPT_SESSION_STATUSES):
            teacher_id = session.effective_teacher_id
            with transaction(self.store.conn):
                if self.store.session_attendance_exists(teacher_id, session.id):
                    continue

                leave = self.store.get_regular_attendance(teacher_id, date)
                if leave and leave.status in LEAVE_STATUSES:
                    self.store.insert_attendance(
                        teacher_id=teacher_id,
                        session_id=session.id,
                        date=date,
                        status=leave.status,
                        notes=f"Auto-cascade: {_LEAVE_LABELS[leave.status]} - {leave.notes or 'no details'}",
                    )
                    cascaded += 1
                    continue

                if session.substitute_teacher_id:
                    note = "Auto-generated: substitute teacher absent without notice"
                else:
                    note = "Auto-generated: did not teach, no notice"
                self.store.insert_attendance(
                    teacher_id=teacher_id,
                    session_id=session.id,
                    date=date,
                    status="alpha",
                    notes=note,
                )
            created += 1
        return created, cascaded
