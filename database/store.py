"""
Query layer behind the attendance engine.

`AttendanceStore` wraps one connection and groups the reads/writes the
services need: schedules, sessions, the teacher attendance ledger and the
lookups (classes, geofence, holidays, working hours) around them. It never
opens transactions itself; callers wrap mutations in `database.db.transaction`.
"""

import sqlite3
from collections.abc import Iterable
from typing import Any

from backend.models import (
    ActiveSessionInfo,
    RegularAttendance,
    Schedule,
    Session,
    SessionAttendance,
    attendance_from_row,
)

_SESSION_SELECT = """
    SELECT s.id, s.schedule_id, s.date, s.start_time, s.end_time, s.status,
           s.substitute_teacher_id, s.notes,
           sc.teacher_id AS owner_teacher_id, sc.class_id,
           sc.start_time AS schedule_start, sc.end_time AS schedule_end,
           c.name AS class_name, su.name AS subject_name
    FROM sessions s
    JOIN schedules sc ON sc.id = s.schedule_id
    JOIN classes c ON c.id = sc.class_id
    JOIN subjects su ON su.id = sc.subject_id
"""

_SCHEDULE_SELECT = """
    SELECT sc.id, sc.teacher_id, sc.class_id, sc.subject_id, sc.day_of_week,
           sc.start_time, sc.end_time, sc.academic_year, sc.is_active,
           c.name AS class_name, su.name AS subject_name
    FROM schedules sc
    JOIN classes c ON c.id = sc.class_id
    JOIN subjects su ON su.id = sc.subject_id
"""

_ATTENDANCE_COLUMNS = """
    id, teacher_id, session_id, date, check_in_time, check_out_time, status,
    late_minutes, early_checkout_minutes, latitude, longitude, notes, assignment_text
"""

_SESSION_UPDATABLE = {"start_time", "end_time", "status", "substitute_teacher_id", "notes"}
_ATTENDANCE_UPDATABLE = {
    "check_in_time",
    "check_out_time",
    "status",
    "late_minutes",
    "early_checkout_minutes",
    "latitude",
    "longitude",
    "notes",
    "assignment_text",
}


def _placeholders(values: Iterable[Any]) -> str:
    return ", ".join("?" for _ in values)


class AttendanceStore:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # -----------------------------
    # Lookups
    # -----------------------------
    def get_teacher(self, teacher_id: int) -> dict[str, Any] | None:
        row = self.conn.execute(
            "SELECT id, full_name, username, is_active FROM teachers WHERE id = ?",
            (teacher_id,),
        ).fetchone()
        return dict(row) if row else None

    def get_class(self, class_id: int) -> dict[str, Any] | None:
        row = self.conn.execute(
            "SELECT id, name, level, academic_year, qr_code_data FROM classes WHERE id = ?",
            (class_id,),
        ).fetchone()
        return dict(row) if row else None

    def class_roster(self, class_id: int) -> list[dict[str, Any]]:
        rows = self.conn.execute(
            """
            SELECT id, nis, name, gender
            FROM students
            WHERE class_id = ?
            ORDER BY name ASC
            """,
            (class_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def student_ids_in_class(self, class_id: int) -> set[int]:
        rows = self.conn.execute("SELECT id FROM students WHERE class_id = ?", (class_id,)).fetchall()
        return {int(r["id"]) for r in rows}

    def active_geofence(self) -> dict[str, Any] | None:
        row = self.conn.execute(
            """
            SELECT id, label, latitude, longitude, radius_meters
            FROM geofences
            WHERE is_active = 1
            ORDER BY id
            LIMIT 1
            """
        ).fetchone()
        return dict(row) if row else None

    def holidays_on(self, date: str, *, school_wide_only: bool = False) -> list[dict[str, Any]]:
        scope = "AND class_id IS NULL" if school_wide_only else ""
        rows = self.conn.execute(
            f"""
            SELECT id, date, reason, type, class_id
            FROM holiday_events
            WHERE date = ? AND is_active = 1 {scope}
            ORDER BY id
            """,
            (date,),
        ).fetchall()
        return [dict(r) for r in rows]

    def working_hours_for_weekday(self, day_of_week: int) -> list[dict[str, Any]]:
        rows = self.conn.execute(
            """
            SELECT wh.teacher_id, wh.start_time, wh.end_time
            FROM teacher_working_hours wh
            JOIN teachers t ON t.id = wh.teacher_id
            WHERE wh.day_of_week = ? AND t.is_active = 1
            ORDER BY wh.teacher_id
            """,
            (day_of_week,),
        ).fetchall()
        return [dict(r) for r in rows]

    # -----------------------------
    # Schedules
    # -----------------------------
    def get_schedule(self, schedule_id: int) -> Schedule | None:
        row = self.conn.execute(f"{_SCHEDULE_SELECT} WHERE sc.id = ?", (schedule_id,)).fetchone()
        return Schedule.from_row(row) if row else None

    def owned_schedules(
        self,
        *,
        teacher_id: int,
        day_of_week: int,
        class_id: int | None = None,
    ) -> list[Schedule]:
        params: list[Any] = [teacher_id, day_of_week]
        class_clause = ""
        if class_id is not None:
            class_clause = "AND sc.class_id = ?"
            params.append(class_id)
        rows = self.conn.execute(
            f"""
            {_SCHEDULE_SELECT}
            WHERE sc.teacher_id = ? AND sc.day_of_week = ? AND sc.is_active = 1 {class_clause}
            ORDER BY sc.start_time ASC, sc.id ASC
            """,
            params,
        ).fetchall()
        return [Schedule.from_row(r) for r in rows]

    def active_schedules_for_weekday(self, day_of_week: int) -> list[Schedule]:
        rows = self.conn.execute(
            f"""
            {_SCHEDULE_SELECT}
            WHERE sc.day_of_week = ? AND sc.is_active = 1
            ORDER BY sc.start_time ASC, sc.id ASC
            """,
            (day_of_week,),
        ).fetchall()
        return [Schedule.from_row(r) for r in rows]

    # -----------------------------
    # Sessions
    # -----------------------------
    def get_session(self, session_id: int) -> Session | None:
        row = self.conn.execute(f"{_SESSION_SELECT} WHERE s.id = ?", (session_id,)).fetchone()
        return Session.from_row(row) if row else None

    def find_session(self, schedule_id: int, date: str) -> Session | None:
        row = self.conn.execute(
            f"{_SESSION_SELECT} WHERE s.schedule_id = ? AND s.date = ?",
            (schedule_id, date),
        ).fetchone()
        return Session.from_row(row) if row else None

    def create_session(
        self,
        *,
        schedule_id: int,
        date: str,
        status: str,
        start_time: str | None = None,
        end_time: str | None = None,
        substitute_teacher_id: int | None = None,
        notes: str | None = None,
    ) -> Session:
        cur = self.conn.execute(
            """
            INSERT INTO sessions (schedule_id, date, start_time, end_time, status, substitute_teacher_id, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (schedule_id, date, start_time, end_time, status, substitute_teacher_id, notes),
        )
        row = self.conn.execute(f"{_SESSION_SELECT} WHERE s.id = ?", (cur.lastrowid,)).fetchone()
        return Session.from_row(row)

    def update_session(self, session_id: int, **fields: Any) -> None:
        unknown = set(fields) - _SESSION_UPDATABLE
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")
        if not fields:
            return
        assignments = ", ".join(f"{name} = ?" for name in fields)
        self.conn.execute(
            f"UPDATE sessions SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (*fields.values(), session_id),
        )

    def substitute_session(self, *, teacher_id: int, class_id: int, date: str) -> Session | None:
        row = self.conn.execute(
            f"""
            {_SESSION_SELECT}
            WHERE s.date = ?
              AND s.substitute_teacher_id = ?
              AND sc.class_id = ?
              AND s.status != 'completed'
            ORDER BY sc.start_time ASC, s.id ASC
            LIMIT 1
            """,
            (date, teacher_id, class_id),
        ).fetchone()
        return Session.from_row(row) if row else None

    def sessions_on(self, date: str, statuses: Iterable[str] | None = None) -> list[Session]:
        params: list[Any] = [date]
        status_clause = ""
        if statuses is not None:
            wanted = list(statuses)
            status_clause = f"AND s.status IN ({_placeholders(wanted)})"
            params.extend(wanted)
        rows = self.conn.execute(
            f"""
            {_SESSION_SELECT}
            WHERE s.date = ? {status_clause}
            ORDER BY sc.start_time ASC, s.id ASC
            """,
            params,
        ).fetchall()
        return [Session.from_row(r) for r in rows]

    def owned_open_sessions_on(self, teacher_id: int, date: str) -> list[Session]:
        rows = self.conn.execute(
            f"""
            {_SESSION_SELECT}
            WHERE s.date = ? AND sc.teacher_id = ? AND s.status != 'completed'
            ORDER BY sc.start_time ASC
            """,
            (date, teacher_id),
        ).fetchall()
        return [Session.from_row(r) for r in rows]

    def substitute_sessions_on(self, teacher_id: int, date: str) -> list[Session]:
        rows = self.conn.execute(
            f"""
            {_SESSION_SELECT}
            WHERE s.date = ? AND s.substitute_teacher_id = ?
            ORDER BY sc.start_time ASC
            """,
            (date, teacher_id),
        ).fetchall()
        return [Session.from_row(r) for r in rows]

    # -----------------------------
    # Teacher attendance ledger
    # -----------------------------
    def get_regular_attendance(self, teacher_id: int, date: str) -> RegularAttendance | None:
        row = self.conn.execute(
            f"""
            SELECT {_ATTENDANCE_COLUMNS}
            FROM teacher_attendance
            WHERE teacher_id = ? AND date = ? AND session_id IS NULL
            """,
            (teacher_id, date),
        ).fetchone()
        return attendance_from_row(row) if row else None  # type: ignore[return-value]

    def get_session_attendance(self, teacher_id: int, session_id: int) -> SessionAttendance | None:
        row = self.conn.execute(
            f"""
            SELECT {_ATTENDANCE_COLUMNS}
            FROM teacher_attendance
            WHERE teacher_id = ? AND session_id = ?
            """,
            (teacher_id, session_id),
        ).fetchone()
        return attendance_from_row(row) if row else None  # type: ignore[return-value]

    def session_attendance_exists(self, teacher_id: int, session_id: int) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM teacher_attendance WHERE teacher_id = ? AND session_id = ?",
            (teacher_id, session_id),
        ).fetchone()
        return row is not None

    def insert_attendance(
        self,
        *,
        teacher_id: int,
        date: str,
        status: str,
        session_id: int | None = None,
        check_in_time: str | None = None,
        check_out_time: str | None = None,
        late_minutes: int = 0,
        latitude: float | None = None,
        longitude: float | None = None,
        notes: str | None = None,
        assignment_text: str | None = None,
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO teacher_attendance (
                teacher_id, session_id, date, check_in_time, check_out_time, status,
                late_minutes, latitude, longitude, notes, assignment_text
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                teacher_id,
                session_id,
                date,
                check_in_time,
                check_out_time,
                status,
                late_minutes,
                latitude,
                longitude,
                notes,
                assignment_text,
            ),
        )
        return int(cur.lastrowid)

    def update_attendance(self, attendance_id: int, **fields: Any) -> None:
        unknown = set(fields) - _ATTENDANCE_UPDATABLE
        if unknown:
            raise ValueError(f"Unknown attendance fields: {sorted(unknown)}")
        if not fields:
            return
        assignments = ", ".join(f"{name} = ?" for name in fields)
        self.conn.execute(
            f"UPDATE teacher_attendance SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (*fields.values(), attendance_id),
        )

    def open_session_attendance(self, session_id: int) -> list[SessionAttendance]:
        rows = self.conn.execute(
            f"""
            SELECT {_ATTENDANCE_COLUMNS}
            FROM teacher_attendance
            WHERE session_id = ? AND check_in_time IS NOT NULL AND check_out_time IS NULL
            """,
            (session_id,),
        ).fetchall()
        return [attendance_from_row(r) for r in rows]  # type: ignore[misc]

    def active_session_for(self, teacher_id: int) -> ActiveSessionInfo | None:
        row = self.conn.execute(
            """
            SELECT s.id AS session_id, s.schedule_id, s.start_time, s.date,
                   s.substitute_teacher_id, sc.class_id,
                   c.name AS class_name, su.name AS subject_name
            FROM teacher_attendance ta
            JOIN sessions s ON s.id = ta.session_id
            JOIN schedules sc ON sc.id = s.schedule_id
            JOIN classes c ON c.id = sc.class_id
            JOIN subjects su ON su.id = sc.subject_id
            WHERE ta.teacher_id = ?
              AND ta.session_id IS NOT NULL
              AND ta.check_out_time IS NULL
              AND s.status = 'ongoing'
            ORDER BY s.date DESC, s.start_time DESC
            LIMIT 1
            """,
            (teacher_id,),
        ).fetchone()
        if not row:
            return None
        return ActiveSessionInfo(
            session_id=int(row["session_id"]),
            schedule_id=int(row["schedule_id"]),
            class_id=int(row["class_id"]),
            class_name=row["class_name"],
            subject_name=row["subject_name"],
            start_time=row["start_time"],
            date=str(row["date"]),
            is_substitute=row["substitute_teacher_id"] == teacher_id,
        )

    def leave_history(self, teacher_id: int, limit: int) -> list[RegularAttendance]:
        rows = self.conn.execute(
            f"""
            SELECT {_ATTENDANCE_COLUMNS}
            FROM teacher_attendance
            WHERE teacher_id = ?
              AND session_id IS NULL
              AND status IN ('sick', 'permission')
            ORDER BY date DESC, id DESC
            LIMIT ?
            """,
            (teacher_id, limit),
        ).fetchall()
        return [attendance_from_row(r) for r in rows]  # type: ignore[misc]

    def attendance_on(self, date: str, teacher_id: int | None = None) -> list[dict[str, Any]]:
        params: list[Any] = [date]
        teacher_clause = ""
        if teacher_id is not None:
            teacher_clause = "AND ta.teacher_id = ?"
            params.append(teacher_id)
        rows = self.conn.execute(
            f"""
            SELECT ta.id, ta.teacher_id, t.full_name, ta.session_id, ta.date,
                   ta.check_in_time, ta.check_out_time, ta.status, ta.late_minutes,
                   ta.early_checkout_minutes, ta.notes,
                   c.name AS class_name, su.name AS subject_name
            FROM teacher_attendance ta
            JOIN teachers t ON t.id = ta.teacher_id
            LEFT JOIN sessions s ON s.id = ta.session_id
            LEFT JOIN schedules sc ON sc.id = s.schedule_id
            LEFT JOIN classes c ON c.id = sc.class_id
            LEFT JOIN subjects su ON su.id = sc.subject_id
            WHERE ta.date = ? {teacher_clause}
            ORDER BY t.full_name, ta.session_id IS NOT NULL, sc.start_time
            """,
            params,
        ).fetchall()
        return [dict(r) for r in rows]

    # -----------------------------
    # Integrity
    # -----------------------------
    def duplicate_active_sessions(self) -> list[dict[str, Any]]:
        rows = self.conn.execute(
            """
            SELECT ta.teacher_id, COUNT(*) AS active_count
            FROM teacher_attendance ta
            JOIN sessions s ON s.id = ta.session_id
            WHERE ta.session_id IS NOT NULL
              AND ta.check_out_time IS NULL
              AND s.status = 'ongoing'
            GROUP BY ta.teacher_id
            HAVING COUNT(*) > 1
            """
        ).fetchall()
        return [dict(r) for r in rows]

    def count_open_regular_rows(self, before_date: str) -> int:
        row = self.conn.execute(
            """
            SELECT COUNT(*) AS n
            FROM teacher_attendance
            WHERE session_id IS NULL
              AND check_in_time IS NOT NULL
              AND check_out_time IS NULL
              AND date < ?
            """,
            (before_date,),
        ).fetchone()
        return int(row["n"])

    def count_sessions_with_status(self, status: str) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) AS n FROM sessions WHERE status = ?",
            (status,),
        ).fetchone()
        return int(row["n"])

    # -----------------------------
    # Student attendance
    # -----------------------------
    def upsert_student_attendance(
        self,
        *,
        session_id: int,
        student_id: int,
        status: str,
        marked_at: str,
        marked_by: int | None,
        notes: str | None = None,
    ) -> None:
        self.conn.execute(
            """
            INSERT INTO student_attendance (student_id, session_id, status, marked_at, marked_by, notes)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (student_id, session_id)
            DO UPDATE SET status = excluded.status,
                          marked_at = excluded.marked_at,
                          marked_by = excluded.marked_by,
                          notes = excluded.notes
            """,
            (student_id, session_id, status, marked_at, marked_by, notes),
        )

    def student_attendance_for(self, session_id: int) -> list[dict[str, Any]]:
        rows = self.conn.execute(
            """
            SELECT st.id AS student_id, st.nis, st.name, sa.status, sa.marked_at, sa.notes
            FROM student_attendance sa
            JOIN students st ON st.id = sa.student_id
            WHERE sa.session_id = ?
            ORDER BY st.name ASC
            """,
            (session_id,),
        ).fetchall()
        return [dict(r) for r in rows]
