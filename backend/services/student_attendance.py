from typing import Any

from backend.clock import Clock
from backend.exceptions import AccessDeniedError, ErrorCode, NotFoundError, ValidationError
from backend.logging_config import get_logger
from backend.models import STUDENT_ATTENDANCE_STATUSES
from database.db import transaction
from database.store import AttendanceStore

log = get_logger(__name__)


def save_student_attendance(
    store: AttendanceStore,
    clock: Clock,
    *,
    session_id: int,
    teacher_id: int,
    statuses: list[dict[str, Any]],
) -> dict[str, Any]:
    """Bulk upsert the roster marks for one session; all or nothing."""
    if not statuses:
        raise ValidationError("statuses must be a non-empty list.")

    now = clock.now()
    with transaction(store.conn):
        session = store.get_session(session_id)
        if not session:
            raise NotFoundError("Session not found.")
        if not session.can_be_operated_by(teacher_id):
            raise AccessDeniedError(
                "You are neither the owner nor the substitute of this session.",
                ErrorCode.SESSION_ACCESS_DENIED,
            )

        roster = store.student_ids_in_class(session.class_id)
        for item in statuses:
            student_id = int(item["student_id"])
            status = str(item["status"])
            if status not in STUDENT_ATTENDANCE_STATUSES:
                raise ValidationError(f"Unknown attendance status '{status}'.")
            if student_id not in roster:
                raise ValidationError(f"Student {student_id} is not in this class.")
            store.upsert_student_attendance(
                session_id=session_id,
                student_id=student_id,
                status=status,
                marked_at=f"{now.date} {now.time}",
                marked_by=teacher_id,
                notes=item.get("notes"),
            )

    log.info("student_attendance_saved", session_id=session_id, teacher_id=teacher_id, count=len(statuses))
    return {"session_id": session_id, "saved": len(statuses)}


def get_student_attendance(store: AttendanceStore, session_id: int) -> list[dict[str, Any]]:
    if not store.get_session(session_id):
        raise NotFoundError("Session not found.")
    return store.student_attendance_for(session_id)
