from dataclasses import asdict, dataclass
from typing import Any, Literal

SessionStatus = Literal["scheduled", "ongoing", "completed", "cancelled"]
TeacherAttendanceStatus = Literal["present", "late", "absent", "sick", "permission", "alpha"]
StudentAttendanceStatus = Literal["present", "absent", "sick", "permission", "late", "alpha"]
LeaveType = Literal["sick", "permission"]
HolidayType = Literal["national", "school", "meeting"]

SESSION_STATUSES: set[str] = {"scheduled", "ongoing", "completed", "cancelled"}
TERMINAL_SESSION_STATUSES: set[str] = {"completed", "cancelled"}
TEACHER_ATTENDANCE_STATUSES: set[str] = {"present", "late", "absent", "sick", "permission", "alpha"}
STUDENT_ATTENDANCE_STATUSES: set[str] = {"present", "absent", "sick", "permission", "late", "alpha"}
LEAVE_TYPES: set[str] = {"sick", "permission"}
HOLIDAY_TYPES: set[str] = {"national", "school", "meeting"}


def _row_get(row: Any, key: str, default: Any = None) -> Any:
    try:
        return row[key]
    except (IndexError, KeyError):
        return default


@dataclass
class Schedule:
    id: int
    teacher_id: int
    class_id: int
    subject_id: int
    day_of_week: int
    start_time: str
    end_time: str
    academic_year: str
    is_active: bool
    class_name: str | None = None
    subject_name: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> "Schedule":
        return cls(
            id=int(row["id"]),
            teacher_id=int(row["teacher_id"]),
            class_id=int(row["class_id"]),
            subject_id=int(row["subject_id"]),
            day_of_week=int(row["day_of_week"]),
            start_time=str(row["start_time"]),
            end_time=str(row["end_time"]),
            academic_year=str(row["academic_year"]),
            is_active=bool(row["is_active"]),
            class_name=_row_get(row, "class_name"),
            subject_name=_row_get(row, "subject_name"),
        )


@dataclass
class Session:
    """A dated occurrence of a schedule, joined with the schedule fields it inherits."""

    id: int
    schedule_id: int
    date: str
    start_time: str | None
    end_time: str | None
    status: SessionStatus
    substitute_teacher_id: int | None
    notes: str | None
    owner_teacher_id: int
    class_id: int
    class_name: str | None
    subject_name: str | None
    schedule_start: str
    schedule_end: str

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SESSION_STATUSES

    @property
    def effective_teacher_id(self) -> int:
        return self.substitute_teacher_id or self.owner_teacher_id

    @property
    def planned_start(self) -> str:
        return self.start_time or self.schedule_start

    @property
    def planned_end(self) -> str:
        return self.end_time or self.schedule_end

    def can_be_operated_by(self, teacher_id: int) -> bool:
        return teacher_id in (self.owner_teacher_id, self.substitute_teacher_id)

    @classmethod
    def from_row(cls, row: Any) -> "Session":
        substitute = row["substitute_teacher_id"]
        return cls(
            id=int(row["id"]),
            schedule_id=int(row["schedule_id"]),
            date=str(row["date"]),
            start_time=row["start_time"],
            end_time=row["end_time"],
            status=row["status"],
            substitute_teacher_id=int(substitute) if substitute is not None else None,
            notes=row["notes"],
            owner_teacher_id=int(row["owner_teacher_id"]),
            class_id=int(row["class_id"]),
            class_name=_row_get(row, "class_name"),
            subject_name=_row_get(row, "subject_name"),
            schedule_start=str(row["schedule_start"]),
            schedule_end=str(row["schedule_end"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AttendanceRecord:
    id: int
    teacher_id: int
    date: str
    status: TeacherAttendanceStatus
    check_in_time: str | None
    check_out_time: str | None
    late_minutes: int
    early_checkout_minutes: int
    latitude: float | None
    longitude: float | None
    notes: str | None
    assignment_text: str | None

    kind = "regular"

    @property
    def is_open(self) -> bool:
        return self.check_in_time is not None and self.check_out_time is None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, **asdict(self)}


@dataclass
class RegularAttendance(AttendanceRecord):
    """Day-level presence row (no session)."""

    kind = "regular"


@dataclass
class SessionAttendance(AttendanceRecord):
    """Per-session presence row."""

    session_id: int = 0

    kind = "session"


def attendance_from_row(row: Any) -> RegularAttendance | SessionAttendance:
    common = dict(
        id=int(row["id"]),
        teacher_id=int(row["teacher_id"]),
        date=str(row["date"]),
        status=row["status"],
        check_in_time=row["check_in_time"],
        check_out_time=row["check_out_time"],
        late_minutes=int(row["late_minutes"] or 0),
        early_checkout_minutes=int(row["early_checkout_minutes"] or 0),
        latitude=row["latitude"],
        longitude=row["longitude"],
        notes=row["notes"],
        assignment_text=row["assignment_text"],
    )
    if row["session_id"] is None:
        return RegularAttendance(**common)
    return SessionAttendance(session_id=int(row["session_id"]), **common)


@dataclass
class ActiveSessionInfo:
    session_id: int
    schedule_id: int
    class_id: int
    class_name: str | None
    subject_name: str | None
    start_time: str | None
    date: str
    is_substitute: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
