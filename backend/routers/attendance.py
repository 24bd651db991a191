from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from backend.clock import Clock
from backend.deps import get_clock, get_store
from backend.security import require_session, require_teacher
from backend.services.leave import leave_history, submit_leave
from database.store import AttendanceStore

router = APIRouter()


class LeaveRequest(BaseModel):
    type: str
    date: str
    reason: str
    assignment_text: str | None = None


@router.get("/attendance")
def attendance(
    date: str | None = None,
    teacher_id: int | None = None,
    session: dict = Depends(require_session),
    store: AttendanceStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    if session.get("role") == "teacher":
        # Teachers only see their own ledger.
        if teacher_id is not None and teacher_id != session["teacher_id"]:
            raise HTTPException(status_code=403, detail="Teachers can only view their own attendance.")
        teacher_id = session["teacher_id"]
    target = date or clock.now().date
    return {"date": target, "rows": store.attendance_on(target, teacher_id)}


@router.post("/attendance/leave", status_code=201)
def leave(
    payload: LeaveRequest,
    teacher_id: int = Depends(require_teacher),
    store: AttendanceStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    return submit_leave(
        store,
        clock,
        teacher_id=teacher_id,
        leave_type=payload.type,
        date=payload.date,
        reason=payload.reason,
        assignment_text=payload.assignment_text,
    )


@router.get("/attendance/leave-history")
def my_leave_history(
    teacher_id: int = Depends(require_teacher),
    store: AttendanceStore = Depends(get_store),
):
    return leave_history(store, teacher_id)
