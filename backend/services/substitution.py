from typing import Any

from backend.clock import Clock, parse_date, weekday_of
from backend.events import EventBus
from backend.exceptions import NotFoundError, PolicyRejection, ErrorCode, ValidationError
from backend.logging_config import get_logger
from database.db import transaction
from database.store import AttendanceStore

log = get_logger(__name__)


def assign_substitute(
    store: AttendanceStore,
    events: EventBus,
    *,
    session_id: int,
    teacher_id: int,
) -> dict[str, Any]:
    with transaction(store.conn):
        session = store.get_session(session_id)
        if not session:
            raise NotFoundError("Session not found.")
        teacher = store.get_teacher(teacher_id)
        if not teacher:
            raise NotFoundError("Teacher not found.")
        if session.is_terminal:
            raise PolicyRejection(
                f"Session is already {session.status}.",
                ErrorCode.SESSION_COMPLETED,
            )
        if teacher_id == session.owner_teacher_id:
            raise ValidationError("The schedule owner cannot substitute for their own session.")
        store.update_session(session.id, substitute_teacher_id=teacher_id)

    log.info("substitute_assigned", session_id=session.id, substitute_teacher_id=teacher_id)
    events.publish(
        "substitute:assigned",
        {
            "session_id": session.id,
            "teacher_id": teacher_id,
            "teacher_name": teacher["full_name"],
            "class_name": session.class_name,
            "subject_name": session.subject_name,
            "date": session.date,
        },
    )
    return {"session_id": session.id, "substitute_teacher_id": teacher_id, "teacher_name": teacher["full_name"]}


def plan_day(store: AttendanceStore, clock: Clock, date: str | None = None) -> dict[str, Any]:
    """
    Pre-create `scheduled` sessions for every active schedule on a date so
    that substitutes can be assigned before anyone scans. Idempotent;
    holidays and weekends without schedules produce nothing.
    """
    target = date or clock.now().date
    try:
        parse_date(target)
    except ValueError:
        raise ValidationError("date must be formatted as YYYY-MM-DD.")

    if store.holidays_on(target, school_wide_only=True):
        return {"date": target, "created": 0, "skipped": "holiday"}

    created = 0
    for schedule in store.active_schedules_for_weekday(weekday_of(target)):
        with transaction(store.conn):
            if store.find_session(schedule.id, target):
                continue
            store.create_session(
                schedule_id=schedule.id,
                date=target,
                status="scheduled",
            )
        created += 1

    log.info("sessions_planned", date=target, created=created)
    return {"date": target, "created": created}
