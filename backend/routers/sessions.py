from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from backend.clock import Clock
from backend.deps import get_clock, get_events, get_store
from backend.events import EventBus
from backend.security import require_session, require_teacher
from backend.services.agenda import current_session, my_active_session
from backend.services.check_in import CheckInResolver
from backend.services.check_out import CheckOutArbiter
from backend.services.student_attendance import get_student_attendance, save_student_attendance
from database.store import AttendanceStore

router = APIRouter(prefix="/sessions")


class CheckInRequest(BaseModel):
    qr_data: str
    lat: float | None = None
    lng: float | None = None


class CheckOutRequest(BaseModel):
    early_checkout_reason: str | None = None


class StudentMark(BaseModel):
    student_id: int
    status: str
    notes: str | None = None


class StudentAttendanceRequest(BaseModel):
    statuses: list[StudentMark] = Field(default_factory=list)


@router.post("/check-in")
def check_in(
    payload: CheckInRequest,
    teacher_id: int = Depends(require_teacher),
    store: AttendanceStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    events: EventBus = Depends(get_events),
):
    return CheckInResolver(store, clock, events).check_in(
        teacher_id=teacher_id,
        qr_data=payload.qr_data,
        lat=payload.lat,
        lng=payload.lng,
    )


@router.post("/{session_id}/check-out")
def check_out(
    session_id: int,
    payload: CheckOutRequest | None = None,
    teacher_id: int = Depends(require_teacher),
    store: AttendanceStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    events: EventBus = Depends(get_events),
):
    return CheckOutArbiter(store, clock, events).check_out(
        session_id=session_id,
        teacher_id=teacher_id,
        early_checkout_reason=payload.early_checkout_reason if payload else None,
    )


@router.post("/{session_id}/student-attendance")
def save_students(
    session_id: int,
    payload: StudentAttendanceRequest,
    teacher_id: int = Depends(require_teacher),
    store: AttendanceStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    return save_student_attendance(
        store,
        clock,
        session_id=session_id,
        teacher_id=teacher_id,
        statuses=[mark.model_dump() for mark in payload.statuses],
    )


@router.get("/{session_id}/student-attendance")
def list_students(
    session_id: int,
    _session: dict = Depends(require_session),
    store: AttendanceStore = Depends(get_store),
):
    return get_student_attendance(store, session_id)


@router.get("/my-active")
def my_active(
    teacher_id: int = Depends(require_teacher),
    store: AttendanceStore = Depends(get_store),
):
    return my_active_session(store, teacher_id)


@router.get("/my-current")
def my_current(
    teacher_id: int = Depends(require_teacher),
    store: AttendanceStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    return current_session(store, clock, teacher_id)
