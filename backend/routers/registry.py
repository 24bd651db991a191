import sqlite3

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from backend.clock import normalize_hms, parse_date
from backend.config import DEFAULT_GEOFENCE_RADIUS_METERS
from backend.geofence import MAX_RADIUS_METERS, MIN_RADIUS_METERS
from backend.models import HOLIDAY_TYPES
from backend.security import require_admin, require_session
from database.db import (
    add_class,
    add_holiday,
    add_schedule,
    add_student,
    add_subject,
    get_active_geofence,
    get_all_classes,
    get_all_subjects,
    get_holidays,
    get_schedules,
    get_students_by_class,
    set_holiday_active,
    set_schedule_active,
    upsert_geofence,
)

router = APIRouter()


class SubjectCreate(BaseModel):
    name: str
    code: str | None = None


class ClassCreate(BaseModel):
    name: str
    level: str | None = None
    academic_year: str | None = None
    homeroom_teacher_id: int | None = None


class StudentCreate(BaseModel):
    nis: str
    name: str
    gender: str


class ScheduleCreate(BaseModel):
    teacher_id: int
    class_id: int
    subject_id: int
    day_of_week: int
    start_time: str
    end_time: str
    academic_year: str


class GeofenceUpdate(BaseModel):
    latitude: float
    longitude: float
    radius_meters: int = DEFAULT_GEOFENCE_RADIUS_METERS
    label: str | None = None


class HolidayCreate(BaseModel):
    date: str
    reason: str
    type: str = "school"
    class_id: int | None = None


def _required(value: str, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise HTTPException(status_code=400, detail=f"{field} is required.")
    return value


# -----------------------------
# Subjects & classes
# -----------------------------
@router.get("/subjects")
def subjects(_session: dict = Depends(require_session)):
    return get_all_subjects()


@router.post("/subjects")
def create_subject(payload: SubjectCreate, _session: dict = Depends(require_admin)):
    name = _required(payload.name, "Name")
    code = (payload.code or "").strip() or None
    try:
        new_id = add_subject(name, code)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Subject code already exists.")
    return {"id": new_id, "name": name, "code": code}


@router.get("/classes")
def classes(_session: dict = Depends(require_session)):
    return get_all_classes()


@router.post("/classes")
def create_class(payload: ClassCreate, _session: dict = Depends(require_admin)):
    name = _required(payload.name, "Name")
    try:
        new_id = add_class(
            name,
            level=payload.level,
            academic_year=payload.academic_year,
            homeroom_teacher_id=payload.homeroom_teacher_id,
        )
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Homeroom teacher not found.")
    return {"id": new_id, "name": name, "level": payload.level, "academic_year": payload.academic_year}


@router.get("/classes/{class_id}/students")
def class_students(class_id: int, _session: dict = Depends(require_session)):
    return get_students_by_class(class_id)


@router.post("/classes/{class_id}/students")
def create_student(class_id: int, payload: StudentCreate, _session: dict = Depends(require_admin)):
    nis = _required(payload.nis, "NIS")
    name = _required(payload.name, "Name")
    gender = payload.gender.strip().upper()
    if gender not in {"M", "F"}:
        raise HTTPException(status_code=400, detail="Gender must be M or F.")

    try:
        new_id = add_student(nis, name, class_id, gender)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="NIS already exists or class not found.")
    return {"id": new_id, "nis": nis, "name": name, "class_id": class_id, "gender": gender}


# -----------------------------
# Schedules
# -----------------------------
@router.get("/schedules")
def schedules(
    teacher_id: int | None = None,
    class_id: int | None = None,
    day_of_week: int | None = None,
    _session: dict = Depends(require_session),
):
    return get_schedules(teacher_id=teacher_id, class_id=class_id, day_of_week=day_of_week)


@router.post("/schedules")
def create_schedule(payload: ScheduleCreate, _session: dict = Depends(require_admin)):
    if not 1 <= payload.day_of_week <= 7:
        raise HTTPException(status_code=400, detail="day_of_week must be between 1 (Mon) and 7 (Sun).")
    try:
        start = normalize_hms(payload.start_time)
        end = normalize_hms(payload.end_time)
    except ValueError:
        raise HTTPException(status_code=400, detail="Times must be formatted as HH:MM or HH:MM:SS.")
    if start >= end:
        raise HTTPException(status_code=400, detail="start_time must be before end_time.")
    academic_year = _required(payload.academic_year, "Academic year")

    try:
        new_id = add_schedule(
            teacher_id=payload.teacher_id,
            class_id=payload.class_id,
            subject_id=payload.subject_id,
            day_of_week=payload.day_of_week,
            start_time=start,
            end_time=end,
            academic_year=academic_year,
        )
    except sqlite3.IntegrityError:
        raise HTTPException(
            status_code=409,
            detail="Schedule conflicts with an existing slot or references an unknown record.",
        )

    return {
        "id": new_id,
        "teacher_id": payload.teacher_id,
        "class_id": payload.class_id,
        "subject_id": payload.subject_id,
        "day_of_week": payload.day_of_week,
        "start_time": start,
        "end_time": end,
        "academic_year": academic_year,
    }


@router.delete("/schedules/{schedule_id}")
def deactivate_schedule(schedule_id: int, _session: dict = Depends(require_admin)):
    # Sessions keep pointing at the schedule, so it is only switched off.
    if not set_schedule_active(schedule_id, False):
        raise HTTPException(status_code=404, detail="Schedule not found.")
    return {"ok": True, "id": schedule_id, "is_active": False}


# -----------------------------
# Geofence
# -----------------------------
@router.get("/geofence")
def geofence(_session: dict = Depends(require_session)):
    fence = get_active_geofence()
    if not fence:
        return {"configured": False}
    return {"configured": True, **fence}


@router.put("/geofence")
def update_geofence(payload: GeofenceUpdate, _session: dict = Depends(require_admin)):
    if not MIN_RADIUS_METERS <= payload.radius_meters <= MAX_RADIUS_METERS:
        raise HTTPException(
            status_code=400,
            detail=f"radius_meters must be between {MIN_RADIUS_METERS} and {MAX_RADIUS_METERS}.",
        )
    if not -90 <= payload.latitude <= 90 or not -180 <= payload.longitude <= 180:
        raise HTTPException(status_code=400, detail="Coordinates are out of range.")
    return upsert_geofence(payload.latitude, payload.longitude, payload.radius_meters, payload.label)


# -----------------------------
# Holidays
# -----------------------------
@router.get("/holidays")
def holidays(month: str | None = None, _session: dict = Depends(require_session)):
    return get_holidays(month=month)


@router.post("/holidays")
def create_holiday(payload: HolidayCreate, _session: dict = Depends(require_admin)):
    try:
        parse_date(payload.date)
    except ValueError:
        raise HTTPException(status_code=400, detail="Date must be formatted as YYYY-MM-DD.")
    reason = _required(payload.reason, "Reason")
    if payload.type not in HOLIDAY_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown holiday type: {payload.type}")

    new_id = add_holiday(payload.date, reason, payload.type, payload.class_id)
    return {"id": new_id, "date": payload.date, "reason": reason, "type": payload.type, "class_id": payload.class_id}


@router.delete("/holidays/{holiday_id}")
def deactivate_holiday(holiday_id: int, _session: dict = Depends(require_admin)):
    if not set_holiday_active(holiday_id, False):
        raise HTTPException(status_code=404, detail="Holiday not found.")
    return {"ok": True, "id": holiday_id, "is_active": False}
