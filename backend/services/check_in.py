import json
import sqlite3
from dataclasses import replace
from datetime import timedelta
from typing import Any, TypedDict

from backend.clock import Clock, CivilNow, ceil_minutes
from backend.config import CHECKIN_EARLY_MINUTES
from backend.events import EventBus
from backend.exceptions import (
    DuplicateEntryError,
    ErrorCode,
    NotFoundError,
    AccessDeniedError,
    PolicyRejection,
    SessionConflictError,
    ValidationError,
)
from backend.geofence import check_point
from backend.logging_config import get_logger
from backend.models import ActiveSessionInfo, Schedule, Session
from backend.services.session_guard import ActiveSessionGuard
from database.db import CLASS_QR_TYPE, transaction
from database.store import AttendanceStore

log = get_logger(__name__)


class CheckInSession(TypedDict):
    id: int
    schedule_id: int
    class_id: int
    class_name: str | None
    subject_name: str | None
    date: str
    start_time: str | None
    status: str
    is_substitute: bool


class CheckInResult(TypedDict, total=False):
    valid: bool
    message: str
    idempotent: bool
    session: CheckInSession
    students: list[dict[str, Any]]
    holidays: list[dict[str, Any]]


def parse_class_qr(qr_data: str) -> tuple[int, str]:
    """Return (class_id, token) from a class-session QR payload."""
    if not qr_data or not qr_data.strip():
        raise ValidationError("QR data is required.", ErrorCode.INVALID_QR)
    try:
        parsed = json.loads(qr_data)
    except (TypeError, ValueError):
        raise ValidationError("QR code format is invalid.", ErrorCode.INVALID_QR)

    if not isinstance(parsed, dict):
        raise ValidationError("QR code format is invalid.", ErrorCode.INVALID_QR)
    if parsed.get("type") != CLASS_QR_TYPE or not parsed.get("id") or not parsed.get("token"):
        raise ValidationError("QR code is not a class session code.", ErrorCode.INVALID_QR)

    try:
        class_id = int(parsed["id"])
    except (TypeError, ValueError):
        raise ValidationError("QR code format is invalid.", ErrorCode.INVALID_QR)
    return class_id, str(parsed["token"])


class CheckInResolver:
    """
    Turns a class QR scan into an ongoing session plus the teacher's session
    attendance row.

    Gates run in a fixed order and the first failure wins: geofence,
    school-wide holiday, QR payload, active-session guard, candidate
    resolution, early window. Everything from the QR lookup onward runs
    inside one BEGIN IMMEDIATE transaction.
    """

    def __init__(self, store: AttendanceStore, clock: Clock, events: EventBus):
        self.store = store
        self.clock = clock
        self.events = events
        self.guard = ActiveSessionGuard(store)
        self.early = timedelta(minutes=CHECKIN_EARLY_MINUTES)

    def check_in(
        self,
        *,
        teacher_id: int,
        qr_data: str,
        lat: float | None = None,
        lng: float | None = None,
    ) -> CheckInResult:
        now = self.clock.now()

        self._check_geofence(lat, lng)

        holidays = self.store.holidays_on(now.date, school_wide_only=True)
        if holidays:
            reasons = ", ".join(h["reason"] for h in holidays)
            log.info("check_in_on_holiday", teacher_id=teacher_id, date=now.date)
            return {
                "valid": False,
                "message": f"Today is a holiday: {reasons}.",
                "holidays": [{"date": h["date"], "reason": h["reason"], "type": h["type"]} for h in holidays],
            }

        class_id, token = parse_class_qr(qr_data)

        try:
            with transaction(self.store.conn):
                result = self._check_in_locked(
                    now=now,
                    teacher_id=teacher_id,
                    class_id=class_id,
                    token=token,
                    lat=lat,
                    lng=lng,
                )
        except sqlite3.IntegrityError as exc:
            log.warning("check_in_integrity_conflict", teacher_id=teacher_id, class_id=class_id, error=str(exc))
            raise DuplicateEntryError("Attendance for this session was recorded concurrently. Please retry.")

        session = result["session"]
        if not result.get("idempotent"):
            log.info(
                "teacher_checked_in",
                teacher_id=teacher_id,
                session_id=session["id"],
                class_id=class_id,
                substitute=session["is_substitute"],
            )
            self.events.publish(
                "session:status-changed",
                {"session_id": session["id"], "status": session["status"], "teacher_id": teacher_id, "has_check_in": True},
            )
            self.events.publish(
                "teacher:checkin",
                {"session_id": session["id"], "teacher_id": teacher_id, "class_name": session["class_name"]},
            )
        return result

    def _check_geofence(self, lat: float | None, lng: float | None) -> None:
        if lat is None or lng is None:
            return
        fence = self.store.active_geofence()
        if not fence:
            return
        check = check_point(lat, lng, fence)
        if not check.inside:
            raise PolicyRejection(
                f"Outside the allowed area ({check.rounded_distance}m).",
                ErrorCode.OUTSIDE_GEOFENCE,
                details={"distance": check.rounded_distance, "radius_meters": check.radius_m},
            )

    def _check_in_locked(
        self,
        *,
        now: CivilNow,
        teacher_id: int,
        class_id: int,
        token: str,
        lat: float | None,
        lng: float | None,
    ) -> CheckInResult:
        cls = self.store.get_class(class_id)
        if not cls:
            raise NotFoundError("Class not found.")
        if cls["qr_code_data"] != token:
            raise PolicyRejection(
                "QR code is invalid or expired. Ask an admin to regenerate it.",
                ErrorCode.QR_TOKEN_MISMATCH,
            )

        teacher = self.store.get_teacher(teacher_id)
        if not teacher or not teacher["is_active"]:
            raise AccessDeniedError("You are not a registered teacher.")

        active = self.guard.has_active_session(teacher_id)
        if active:
            if active.class_id == class_id and active.date == now.date:
                return self._already_checked_in(active, cls)
            raise SessionConflictError(
                f"Finish {active.class_name} - {active.subject_name} before starting a new session.",
                active_session=active.to_dict(),
            )

        schedule, session, is_substitute = self._resolve_candidate(now, teacher_id, class_id)

        window_open = now.at(schedule.start_time) - self.early
        if now.moment < window_open:
            wait = ceil_minutes(window_open - now.moment)
            raise PolicyRejection(
                f"Check-in is too early. Wait {wait} more minute(s).",
                ErrorCode.TOO_EARLY,
                details={"minutes_to_wait": wait},
            )

        session, session_changed = self._open_session(now, schedule, session)

        existing = self.store.get_session_attendance(teacher_id, session.id)
        if existing and existing.check_out_time:
            raise PolicyRejection(
                "You have already completed this session (check-out recorded).",
                ErrorCode.ALREADY_CHECKED_OUT,
            )

        row_written = False
        late_minutes = max(0, int((now.moment - now.at(schedule.start_time)).total_seconds() // 60))
        if existing is None:
            self.store.insert_attendance(
                teacher_id=teacher_id,
                session_id=session.id,
                date=now.date,
                check_in_time=now.time,
                status="present",
                late_minutes=late_minutes,
                latitude=lat,
                longitude=lng,
            )
            row_written = True
        elif existing.check_in_time is None:
            # Leave rows cascaded onto the session carry no check-in; a real scan replaces them.
            log.info(
                "leave_row_overridden_by_check_in",
                teacher_id=teacher_id,
                session_id=session.id,
                previous_status=existing.status,
            )
            self.store.update_attendance(
                existing.id,
                status="present",
                check_in_time=now.time,
                late_minutes=late_minutes,
                latitude=lat,
                longitude=lng,
                notes=f"Checked in while on {existing.status} leave",
            )
            row_written = True

        return {
            "valid": True,
            "message": "Check-in successful. Session started.",
            "idempotent": not (session_changed or row_written),
            "session": self._session_payload(session, is_substitute),
            "students": self.store.class_roster(class_id),
        }

    def _resolve_candidate(
        self,
        now: CivilNow,
        teacher_id: int,
        class_id: int,
    ) -> tuple[Schedule, Session | None, bool]:
        too_early: list[Schedule] = []
        for schedule in self.store.owned_schedules(
            teacher_id=teacher_id,
            day_of_week=now.weekday,
            class_id=class_id,
        ):
            if now.moment < now.at(schedule.start_time) - self.early:
                too_early.append(schedule)
                continue
            existing = self.store.find_session(schedule.id, now.date)
            if existing and existing.status == "completed":
                continue
            return schedule, existing, False

        substitute = self.store.substitute_session(teacher_id=teacher_id, class_id=class_id, date=now.date)
        if substitute:
            schedule = self.store.get_schedule(substitute.schedule_id)
            if schedule:
                return schedule, substitute, True

        if too_early:
            window_open = now.at(too_early[0].start_time) - self.early
            wait = ceil_minutes(window_open - now.moment)
            raise PolicyRejection(
                f"Check-in is too early. Wait {wait} more minute(s).",
                ErrorCode.TOO_EARLY,
                details={"minutes_to_wait": wait},
            )
        raise PolicyRejection(
            "No active schedule or substitute assignment can be checked in right now.",
            ErrorCode.NO_ACTIVE_SCHEDULE,
        )

    def _open_session(
        self,
        now: CivilNow,
        schedule: Schedule,
        session: Session | None,
    ) -> tuple[Session, bool]:
        """Return the ongoing session and whether this scan created or promoted it."""
        if session is None:
            session = self.store.find_session(schedule.id, now.date)

        if session is None:
            created = self.store.create_session(
                schedule_id=schedule.id,
                date=now.date,
                start_time=now.time,
                status="ongoing",
            )
            return created, True

        if session.status == "completed":
            raise PolicyRejection("This session is already completed.", ErrorCode.SESSION_COMPLETED)
        if session.status != "ongoing":
            self.store.update_session(session.id, status="ongoing", start_time=now.time)
            return replace(session, status="ongoing", start_time=now.time), True
        return session, False

    def _already_checked_in(self, active: ActiveSessionInfo, cls: dict[str, Any]) -> CheckInResult:
        session = self.store.get_session(active.session_id)
        if session is None:
            raise NotFoundError("Session not found.")
        return {
            "valid": True,
            "message": "Already checked in to this session.",
            "idempotent": True,
            "session": self._session_payload(session, active.is_substitute),
            "students": self.store.class_roster(int(cls["id"])),
        }

    @staticmethod
    def _session_payload(session: Session, is_substitute: bool) -> CheckInSession:
        return {
            "id": session.id,
            "schedule_id": session.schedule_id,
            "class_id": session.class_id,
            "class_name": session.class_name,
            "subject_name": session.subject_name,
            "date": session.date,
            "start_time": session.start_time,
            "status": session.status,
            "is_substitute": is_substitute,
        }
