from typing import Any, TypedDict

from backend.clock import Clock, parse_date, weekday_of
from backend.config import LEAVE_HISTORY_LIMIT
from backend.exceptions import ErrorCode, NotFoundError, ValidationError
from backend.logging_config import get_logger
from backend.models import LEAVE_TYPES
from database.db import transaction
from database.store import AttendanceStore

log = get_logger(__name__)


class LeaveResult(TypedDict):
    created: bool
    auto_checked_out: bool
    impacted_sessions: int
    message: str


def submit_leave(
    store: AttendanceStore,
    clock: Clock,
    *,
    teacher_id: int,
    leave_type: str,
    date: str,
    reason: str,
    assignment_text: str | None = None,
) -> LeaveResult:
    """
    Record a sick/permission day and push it onto the teacher's sessions for
    that date right away, instead of waiting for the nightly sweep.

    Completed sessions are left alone (the teacher taught them). Owned
    schedules with no session yet get a `scheduled` shell so the gap shows
    up for substitute planning.
    """
    clean_reason = (reason or "").strip()
    clean_assignment = (assignment_text or "").strip() or None

    if leave_type not in LEAVE_TYPES:
        raise ValidationError('Leave type must be "sick" or "permission".', ErrorCode.INVALID_LEAVE_TYPE)
    if not clean_reason:
        raise ValidationError("A reason is required.")
    try:
        parse_date(date)
    except ValueError:
        raise ValidationError("date must be formatted as YYYY-MM-DD.")

    now = clock.now()
    auto_checked_out = False
    impacted = 0

    with transaction(store.conn):
        if not store.get_teacher(teacher_id):
            raise NotFoundError("Teacher not found.")

        regular = store.get_regular_attendance(teacher_id, date)
        if regular:
            fields: dict[str, Any] = {"status": leave_type, "notes": clean_reason}
            if clean_assignment:
                fields["assignment_text"] = clean_assignment
            if regular.is_open:
                fields["check_out_time"] = now.time
                auto_checked_out = True
            store.update_attendance(regular.id, **fields)
        else:
            store.insert_attendance(
                teacher_id=teacher_id,
                date=date,
                status=leave_type,
                notes=clean_reason,
                assignment_text=clean_assignment,
            )

        sessions = store.owned_open_sessions_on(teacher_id, date)
        for session in sessions:
            existing = store.get_session_attendance(teacher_id, session.id)
            if existing:
                if existing.status == leave_type:
                    continue
                fields = {"status": leave_type, "notes": f"Leave: {clean_reason}"}
                if existing.is_open:
                    fields["check_out_time"] = now.time
                store.update_attendance(existing.id, **fields)
            else:
                store.insert_attendance(
                    teacher_id=teacher_id,
                    session_id=session.id,
                    date=date,
                    status=leave_type,
                    notes=f"Cascade: {clean_reason}",
                )
            impacted += 1

        has_session = {s.schedule_id for s in sessions}
        for schedule in store.owned_schedules(teacher_id=teacher_id, day_of_week=weekday_of(date)):
            if schedule.id in has_session or store.find_session(schedule.id, date):
                continue
            shell = store.create_session(
                schedule_id=schedule.id,
                date=date,
                status="scheduled",
                start_time=schedule.start_time,
                end_time=schedule.end_time,
            )
            store.insert_attendance(
                teacher_id=teacher_id,
                session_id=shell.id,
                date=date,
                status=leave_type,
                notes=f"Cascade (pre-generated): {clean_reason}",
            )
            impacted += 1

    log.info(
        "leave_submitted",
        teacher_id=teacher_id,
        leave_type=leave_type,
        date=date,
        impacted_sessions=impacted,
        auto_checked_out=auto_checked_out,
    )

    message = "Leave updated." if regular else "Leave submitted."
    if auto_checked_out:
        message += " You have been checked out automatically."
    if impacted:
        message += f" {impacted} session(s) marked as needing a substitute."
    return {
        "created": regular is None,
        "auto_checked_out": auto_checked_out,
        "impacted_sessions": impacted,
        "message": message,
    }


def leave_history(store: AttendanceStore, teacher_id: int, limit: int = LEAVE_HISTORY_LIMIT) -> list[dict[str, Any]]:
    return [row.to_dict() for row in store.leave_history(teacher_id, limit)]
