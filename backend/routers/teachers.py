import sqlite3

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from backend.clock import normalize_hms
from backend.config import DEFAULT_WORK_END, DEFAULT_WORK_START
from backend.security import require_admin, require_session
from database.db import (
    add_teacher,
    get_all_teachers,
    get_schedules,
    get_teacher_by_id,
    get_working_hours,
    set_working_hours,
)

router = APIRouter()


class TeacherCreate(BaseModel):
    full_name: str
    username: str
    password: str
    employee_id: str | None = None
    phone: str | None = None


class WorkingHoursEntry(BaseModel):
    day_of_week: int
    start_time: str | None = None
    end_time: str | None = None


@router.get("/teachers")
def teachers(_session: dict = Depends(require_session)):
    return get_all_teachers()


@router.get("/teachers/{teacher_id}")
def teacher_detail(teacher_id: int, _session: dict = Depends(require_session)):
    row = get_teacher_by_id(teacher_id)
    if not row:
        return {"found": False}
    return {"found": True, **row}


@router.post("/teachers")
def create_teacher(payload: TeacherCreate, _session: dict = Depends(require_admin)):
    full_name = payload.full_name.strip()
    username = payload.username.strip()
    password = payload.password.strip()
    employee_id = (payload.employee_id or "").strip() or None

    if not full_name or not username or not password:
        raise HTTPException(status_code=400, detail="Full name, username and password are required.")

    try:
        new_id = add_teacher(
            full_name,
            username,
            password,
            employee_id=employee_id,
            phone=payload.phone,
        )
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Username or employee ID already exists.")

    return {
        "id": new_id,
        "full_name": full_name,
        "username": username,
        "employee_id": employee_id,
    }


@router.get("/teachers/{teacher_id}/schedules")
def teacher_schedules(teacher_id: int, _session: dict = Depends(require_session)):
    if not get_teacher_by_id(teacher_id):
        raise HTTPException(status_code=404, detail="Teacher not found.")
    return get_schedules(teacher_id=teacher_id)


@router.get("/teachers/{teacher_id}/working-hours")
def teacher_working_hours(teacher_id: int, _session: dict = Depends(require_session)):
    return get_working_hours(teacher_id)


@router.put("/teachers/{teacher_id}/working-hours")
def update_working_hours(
    teacher_id: int,
    payload: list[WorkingHoursEntry],
    _session: dict = Depends(require_admin),
):
    if not get_teacher_by_id(teacher_id):
        raise HTTPException(status_code=404, detail="Teacher not found.")

    for entry in payload:
        if not 1 <= entry.day_of_week <= 7:
            raise HTTPException(status_code=400, detail="day_of_week must be between 1 (Mon) and 7 (Sun).")
        try:
            start = normalize_hms(entry.start_time) if entry.start_time else DEFAULT_WORK_START.strftime("%H:%M:%S")
            end = normalize_hms(entry.end_time) if entry.end_time else DEFAULT_WORK_END.strftime("%H:%M:%S")
        except ValueError:
            raise HTTPException(status_code=400, detail="Times must be formatted as HH:MM or HH:MM:SS.")
        if start >= end:
            raise HTTPException(status_code=400, detail="start_time must be before end_time.")
        set_working_hours(teacher_id, entry.day_of_week, start, end)

    return get_working_hours(teacher_id)
