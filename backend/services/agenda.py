from datetime import timedelta
from typing import Any

from backend.clock import CivilNow, Clock, ceil_minutes, round_half_up, weekday_of
from backend.config import CHECKIN_EARLY_MINUTES, EARLY_CHECKOUT_MARGIN_MINUTES
from backend.exceptions import NotFoundError
from backend.services.session_guard import ActiveSessionGuard
from database.store import AttendanceStore


def teacher_agenda(store: AttendanceStore, teacher_id: int, date: str) -> list[dict[str, Any]]:
    """Owned schedules for the weekday plus substitute sessions, by start time."""
    agenda: list[dict[str, Any]] = []
    for schedule in store.owned_schedules(teacher_id=teacher_id, day_of_week=weekday_of(date)):
        agenda.append(
            {
                "type": "regular",
                "schedule_id": schedule.id,
                "class_id": schedule.class_id,
                "class_name": schedule.class_name,
                "subject_name": schedule.subject_name,
                "start_time": schedule.start_time,
                "end_time": schedule.end_time,
                "is_substitute": False,
            }
        )
    for session in store.substitute_sessions_on(teacher_id, date):
        agenda.append(
            {
                "type": "substitute",
                "schedule_id": session.schedule_id,
                "session_id": session.id,
                "class_id": session.class_id,
                "class_name": session.class_name,
                "subject_name": session.subject_name,
                "start_time": session.planned_start,
                "end_time": session.planned_end,
                "is_substitute": True,
            }
        )
    agenda.sort(key=lambda item: item["start_time"])
    return agenda


def my_active_session(store: AttendanceStore, teacher_id: int) -> dict[str, Any] | None:
    active = ActiveSessionGuard(store).has_active_session(teacher_id)
    return active.to_dict() if active else None


def current_session(store: AttendanceStore, clock: Clock, teacher_id: int) -> dict[str, Any]:
    """
    What the teacher's home screen should show: the active session if any,
    otherwise the next not-finished agenda item today, otherwise the first
    one tomorrow.
    """
    now = clock.now()
    active = ActiveSessionGuard(store).has_active_session(teacher_id)
    if active:
        return {"current_session": _active_payload(store, now, active.session_id, teacher_id)}

    for item in teacher_agenda(store, teacher_id, now.date):
        session = store.find_session(item["schedule_id"], now.date)
        if session and session.status == "completed":
            continue
        if now.moment > now.at(item["end_time"]):
            continue
        return {"current_session": _upcoming_payload(now, now.date, item, session)}

    tomorrow = (now.moment + timedelta(days=1)).strftime("%Y-%m-%d")
    upcoming = teacher_agenda(store, teacher_id, tomorrow)
    if upcoming:
        item = upcoming[0]
        session = store.find_session(item["schedule_id"], tomorrow)
        return {"current_session": _upcoming_payload(now, tomorrow, item, session)}

    return {"current_session": None, "message": "No upcoming sessions found."}


def _active_payload(store: AttendanceStore, now: CivilNow, session_id: int, teacher_id: int) -> dict[str, Any]:
    session = store.get_session(session_id)
    if session is None:
        raise NotFoundError("Session not found.")
    is_stale = session.date != now.date
    end = now.at(session.planned_end, on=session.date)
    if is_stale:
        until_check_out = -1
    else:
        until_check_out = ceil_minutes(end - timedelta(minutes=EARLY_CHECKOUT_MARGIN_MINUTES) - now.moment)
    start = now.at(session.schedule_start, on=session.date)
    return {
        "id": session.id,
        "schedule_id": session.schedule_id,
        "date": session.date,
        "class_id": session.class_id,
        "class_name": session.class_name,
        "subject_name": session.subject_name,
        "start_time": session.start_time,
        "end_time": session.planned_end,
        "schedule_start_time": session.schedule_start,
        "schedule_end_time": session.schedule_end,
        "duration_minutes": round_half_up((end - start).total_seconds() / 60),
        "status": "active",
        "is_stale": is_stale,
        "has_check_in": True,
        "can_check_in": False,
        "can_check_out": until_check_out <= 0,
        "minutes_until_check_in": 0,
        "minutes_until_check_out": until_check_out,
        "is_substitute": session.substitute_teacher_id == teacher_id,
    }


def _upcoming_payload(now: CivilNow, date: str, item: dict[str, Any], session) -> dict[str, Any]:
    window_open = now.at(item["start_time"], on=date) - timedelta(minutes=CHECKIN_EARLY_MINUTES)
    until_check_in = ceil_minutes(window_open - now.moment)
    return {
        "id": session.id if session else None,
        "schedule_id": item["schedule_id"],
        "date": date,
        "class_id": item["class_id"],
        "class_name": item["class_name"],
        "subject_name": item["subject_name"],
        "start_time": item["start_time"],
        "end_time": item["end_time"],
        "status": "ongoing" if session and session.status == "ongoing" else "scheduled",
        "has_check_in": False,
        "can_check_in": until_check_in <= 0,
        "can_check_out": False,
        "minutes_until_check_in": until_check_in,
        "minutes_until_check_out": 0,
        "is_substitute": item["is_substitute"],
    }
