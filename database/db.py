import hashlib
import hmac
import secrets
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from backend.config import (
    ADMIN_PASSWORD,
    ADMIN_USERNAME,
    DB_BUSY_TIMEOUT_SECONDS,
    DB_PATH,
    DEFAULT_GEOFENCE_RADIUS_METERS,
)


PASSWORD_HASH_ALGO = "pbkdf2_sha256"
PASSWORD_HASH_ITERATIONS = 120_000
CLASS_QR_TYPE = "class-session"


def _hash_password(password: str, *, salt: str | None = None) -> str:
    salt_value = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        PASSWORD_HASH_ITERATIONS,
    ).hex()
    return f"{PASSWORD_HASH_ALGO}${PASSWORD_HASH_ITERATIONS}${salt_value}${digest}"


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        algo, rounds_text, salt_value, expected_digest = password_hash.split("$", 3)
        rounds = int(rounds_text)
    except (ValueError, TypeError):
        return False

    if algo != PASSWORD_HASH_ALGO or rounds <= 0:
        return False

    candidate_digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        rounds,
    ).hex()
    return hmac.compare_digest(candidate_digest, expected_digest)


def connect_db() -> sqlite3.Connection:
    # Autocommit mode: every write path opens its own BEGIN IMMEDIATE block
    # through `transaction()`.
    conn = sqlite3.connect(
        str(DB_PATH),
        timeout=DB_BUSY_TIMEOUT_SECONDS,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Serialize writers: BEGIN IMMEDIATE takes the database write lock up front
    so that read-then-write sequences (guard check, find-or-create) cannot
    interleave with another writer.
    """
    if conn.in_transaction:
        yield conn
        return

    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


@contextmanager
def _use_conn(conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
    owns_conn = conn is None
    active_conn = conn or connect_db()
    try:
        yield active_conn
    finally:
        if owns_conn:
            active_conn.close()


def _ensure_default_admin(cursor: sqlite3.Cursor) -> None:
    username = (ADMIN_USERNAME or "").strip()
    password = (ADMIN_PASSWORD or "").strip()
    if not username or not password:
        return

    cursor.execute(
        """
        SELECT id
        FROM admin_users
        WHERE username = ? COLLATE NOCASE
        """,
        (username,),
    )
    if cursor.fetchone():
        return

    cursor.execute(
        """
        INSERT INTO admin_users (username, password_hash)
        VALUES (?, ?)
        """,
        (username, _hash_password(password)),
    )


SCHEMA = """
CREATE TABLE IF NOT EXISTS admin_users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE COLLATE NOCASE,
    password_hash TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS teachers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    full_name TEXT NOT NULL,
    employee_id TEXT UNIQUE,
    username TEXT NOT NULL UNIQUE COLLATE NOCASE,
    password_hash TEXT NOT NULL,
    phone TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS subjects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    code TEXT UNIQUE
);

CREATE TABLE IF NOT EXISTS classes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    level TEXT,
    academic_year TEXT,
    homeroom_teacher_id INTEGER,
    qr_code_data TEXT,
    FOREIGN KEY (homeroom_teacher_id) REFERENCES teachers(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS students (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    nis TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    class_id INTEGER NOT NULL,
    gender TEXT NOT NULL CHECK (gender IN ('M', 'F')),
    FOREIGN KEY (class_id) REFERENCES classes(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS schedules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    teacher_id INTEGER NOT NULL,
    class_id INTEGER NOT NULL,
    subject_id INTEGER NOT NULL,
    day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 1 AND 7),
    start_time TEXT NOT NULL,        -- HH:MM:SS
    end_time TEXT NOT NULL,          -- HH:MM:SS
    academic_year TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    FOREIGN KEY (teacher_id) REFERENCES teachers(id) ON DELETE CASCADE,
    FOREIGN KEY (class_id) REFERENCES classes(id) ON DELETE CASCADE,
    FOREIGN KEY (subject_id) REFERENCES subjects(id) ON DELETE CASCADE,
    UNIQUE (teacher_id, day_of_week, start_time, academic_year)
);

CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    schedule_id INTEGER NOT NULL,
    date TEXT NOT NULL,              -- YYYY-MM-DD
    start_time TEXT,                 -- HH:MM:SS, actual start once ongoing
    end_time TEXT,                   -- HH:MM:SS
    status TEXT NOT NULL DEFAULT 'scheduled'
        CHECK (status IN ('scheduled', 'ongoing', 'completed', 'cancelled')),
    substitute_teacher_id INTEGER,
    notes TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (schedule_id) REFERENCES schedules(id) ON DELETE CASCADE,
    FOREIGN KEY (substitute_teacher_id) REFERENCES teachers(id) ON DELETE SET NULL,
    UNIQUE (schedule_id, date)
);

CREATE TABLE IF NOT EXISTS teacher_attendance (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    teacher_id INTEGER NOT NULL,
    session_id INTEGER,              -- NULL = regular (day-level) row
    date TEXT NOT NULL,
    check_in_time TEXT,
    check_out_time TEXT,
    status TEXT NOT NULL
        CHECK (status IN ('present', 'late', 'absent', 'sick', 'permission', 'alpha')),
    late_minutes INTEGER NOT NULL DEFAULT 0,
    early_checkout_minutes INTEGER NOT NULL DEFAULT 0,
    latitude REAL,
    longitude REAL,
    notes TEXT,
    assignment_text TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (teacher_id) REFERENCES teachers(id) ON DELETE CASCADE,
    FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE SET NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS unique_teacher_regular_attendance
    ON teacher_attendance (teacher_id, date)
    WHERE session_id IS NULL;

CREATE UNIQUE INDEX IF NOT EXISTS unique_teacher_session_attendance
    ON teacher_attendance (teacher_id, session_id)
    WHERE session_id IS NOT NULL;

CREATE INDEX IF NOT EXISTS idx_teacher_attendance_date
    ON teacher_attendance (date);

CREATE TABLE IF NOT EXISTS student_attendance (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL,
    session_id INTEGER NOT NULL,
    status TEXT NOT NULL
        CHECK (status IN ('present', 'absent', 'sick', 'permission', 'late', 'alpha')),
    marked_at TEXT,
    marked_by INTEGER,
    notes TEXT,
    FOREIGN KEY (student_id) REFERENCES students(id) ON DELETE CASCADE,
    FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE,
    FOREIGN KEY (marked_by) REFERENCES teachers(id) ON DELETE SET NULL,
    UNIQUE (student_id, session_id)
);

CREATE TABLE IF NOT EXISTS teacher_working_hours (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    teacher_id INTEGER NOT NULL,
    day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 1 AND 7),
    start_time TEXT NOT NULL DEFAULT '07:00:00',
    end_time TEXT NOT NULL DEFAULT '15:00:00',
    FOREIGN KEY (teacher_id) REFERENCES teachers(id) ON DELETE CASCADE,
    UNIQUE (teacher_id, day_of_week)
);

CREATE TABLE IF NOT EXISTS geofences (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    label TEXT NOT NULL DEFAULT 'Sekolah',
    latitude REAL NOT NULL,
    longitude REAL NOT NULL,
    radius_meters INTEGER NOT NULL DEFAULT 100,
    is_active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS holiday_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    reason TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'school' CHECK (type IN ('national', 'school', 'meeting')),
    class_id INTEGER,                -- NULL = school-wide
    is_active INTEGER NOT NULL DEFAULT 1,
    FOREIGN KEY (class_id) REFERENCES classes(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_holiday_events_date ON holiday_events (date);
"""


def create_tables():
    conn = connect_db()
    try:
        conn.executescript(SCHEMA)
        with transaction(conn):
            _ensure_default_admin(conn.cursor())
    finally:
        conn.close()


def clear_all_tables():
    conn = connect_db()
    try:
        with transaction(conn):
            for table in (
                "student_attendance",
                "teacher_attendance",
                "sessions",
                "schedules",
                "teacher_working_hours",
                "holiday_events",
                "geofences",
                "students",
                "classes",
                "subjects",
                "teachers",
            ):
                conn.execute(f"DELETE FROM {table}")
    finally:
        conn.close()


# -----------------------------
# Admin users
# -----------------------------
def create_admin_user(username: str, password: str) -> int:
    clean_username = username.strip()
    clean_password = password.strip()
    if not clean_username or not clean_password:
        raise ValueError("Username and password are required.")

    with _use_conn(None) as conn, transaction(conn):
        cur = conn.execute(
            """
            INSERT INTO admin_users (username, password_hash)
            VALUES (?, ?)
            """,
            (clean_username, _hash_password(clean_password)),
        )
        return int(cur.lastrowid)


def verify_admin_credentials(username: str, password: str) -> dict | None:
    clean_username = username.strip()
    clean_password = password.strip()
    if not clean_username or not clean_password:
        return None

    with _use_conn(None) as conn:
        row = conn.execute(
            """
            SELECT id, username, password_hash
            FROM admin_users
            WHERE username = ? COLLATE NOCASE
            """,
            (clean_username,),
        ).fetchone()

    if not row or not _verify_password(clean_password, row["password_hash"]):
        return None
    return {"id": int(row["id"]), "username": row["username"]}


# -----------------------------
# Teachers
# -----------------------------
def add_teacher(
    full_name: str,
    username: str,
    password: str,
    *,
    employee_id: str | None = None,
    phone: str | None = None,
    conn: sqlite3.Connection | None = None,
) -> int:
    with _use_conn(conn) as active_conn, transaction(active_conn):
        cur = active_conn.execute(
            """
            INSERT INTO teachers (full_name, employee_id, username, password_hash, phone)
            VALUES (?, ?, ?, ?, ?)
            """,
            (full_name, employee_id, username, _hash_password(password), phone),
        )
        return int(cur.lastrowid)


def get_all_teachers(*, conn: sqlite3.Connection | None = None) -> list[dict[str, Any]]:
    with _use_conn(conn) as active_conn:
        rows = active_conn.execute(
            """
            SELECT id, full_name, employee_id, username, phone, is_active, created_at
            FROM teachers
            ORDER BY full_name
            """
        ).fetchall()
    return [dict(r) for r in rows]


def get_teacher_by_id(teacher_id: int, *, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
    with _use_conn(conn) as active_conn:
        row = active_conn.execute(
            """
            SELECT id, full_name, employee_id, username, phone, is_active
            FROM teachers
            WHERE id = ?
            """,
            (teacher_id,),
        ).fetchone()
    return dict(row) if row else None


def verify_teacher_credentials(username: str, password: str) -> dict | None:
    clean_username = username.strip()
    clean_password = password.strip()
    if not clean_username or not clean_password:
        return None

    with _use_conn(None) as conn:
        row = conn.execute(
            """
            SELECT id, full_name, username, password_hash, is_active
            FROM teachers
            WHERE username = ? COLLATE NOCASE
            """,
            (clean_username,),
        ).fetchone()

    if not row or not row["is_active"]:
        return None
    if not _verify_password(clean_password, row["password_hash"]):
        return None
    return {"id": int(row["id"]), "username": row["username"], "full_name": row["full_name"]}


# -----------------------------
# Subjects, classes, students
# -----------------------------
def add_subject(name: str, code: str | None = None, *, conn: sqlite3.Connection | None = None) -> int:
    with _use_conn(conn) as active_conn, transaction(active_conn):
        cur = active_conn.execute(
            "INSERT INTO subjects (name, code) VALUES (?, ?)",
            (name, code),
        )
        return int(cur.lastrowid)


def get_all_subjects(*, conn: sqlite3.Connection | None = None) -> list[dict[str, Any]]:
    with _use_conn(conn) as active_conn:
        rows = active_conn.execute("SELECT id, name, code FROM subjects ORDER BY name").fetchall()
    return [dict(r) for r in rows]


def add_class(
    name: str,
    *,
    level: str | None = None,
    academic_year: str | None = None,
    homeroom_teacher_id: int | None = None,
    conn: sqlite3.Connection | None = None,
) -> int:
    with _use_conn(conn) as active_conn, transaction(active_conn):
        cur = active_conn.execute(
            """
            INSERT INTO classes (name, level, academic_year, homeroom_teacher_id, qr_code_data)
            VALUES (?, ?, ?, ?, ?)
            """,
            (name, level, academic_year, homeroom_teacher_id, secrets.token_hex(16)),
        )
        return int(cur.lastrowid)


def get_all_classes(*, conn: sqlite3.Connection | None = None) -> list[dict[str, Any]]:
    with _use_conn(conn) as active_conn:
        rows = active_conn.execute(
            """
            SELECT id, name, level, academic_year, homeroom_teacher_id
            FROM classes
            ORDER BY name
            """
        ).fetchall()
    return [dict(r) for r in rows]


def regenerate_class_token(class_id: int, *, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
    """
    Rotate the class's QR token. Codes printed before the rotation stop
    validating immediately.
    """
    token = secrets.token_hex(16)
    with _use_conn(conn) as active_conn, transaction(active_conn):
        row = active_conn.execute("SELECT id, name FROM classes WHERE id = ?", (class_id,)).fetchone()
        if not row:
            return None
        active_conn.execute("UPDATE classes SET qr_code_data = ? WHERE id = ?", (token, class_id))
    return {"type": CLASS_QR_TYPE, "id": int(row["id"]), "name": row["name"], "token": token}


def get_class_qr_payload(class_id: int, *, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
    with _use_conn(conn) as active_conn:
        row = active_conn.execute(
            "SELECT id, name, qr_code_data FROM classes WHERE id = ?",
            (class_id,),
        ).fetchone()
    if not row:
        return None
    if not row["qr_code_data"]:
        return regenerate_class_token(class_id, conn=conn)
    return {"type": CLASS_QR_TYPE, "id": int(row["id"]), "name": row["name"], "token": row["qr_code_data"]}


def add_student(
    nis: str,
    name: str,
    class_id: int,
    gender: str,
    *,
    conn: sqlite3.Connection | None = None,
) -> int:
    with _use_conn(conn) as active_conn, transaction(active_conn):
        cur = active_conn.execute(
            "INSERT INTO students (nis, name, class_id, gender) VALUES (?, ?, ?, ?)",
            (nis, name, class_id, gender),
        )
        return int(cur.lastrowid)


def get_students_by_class(class_id: int, *, conn: sqlite3.Connection | None = None) -> list[dict[str, Any]]:
    with _use_conn(conn) as active_conn:
        rows = active_conn.execute(
            """
            SELECT id, nis, name, gender
            FROM students
            WHERE class_id = ?
            ORDER BY name ASC
            """,
            (class_id,),
        ).fetchall()
    return [dict(r) for r in rows]


# -----------------------------
# Schedules & working hours
# -----------------------------
def add_schedule(
    *,
    teacher_id: int,
    class_id: int,
    subject_id: int,
    day_of_week: int,
    start_time: str,
    end_time: str,
    academic_year: str,
    conn: sqlite3.Connection | None = None,
) -> int:
    with _use_conn(conn) as active_conn, transaction(active_conn):
        cur = active_conn.execute(
            """
            INSERT INTO schedules (
                teacher_id, class_id, subject_id, day_of_week,
                start_time, end_time, academic_year
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (teacher_id, class_id, subject_id, day_of_week, start_time, end_time, academic_year),
        )
        return int(cur.lastrowid)


def get_schedules(
    *,
    teacher_id: int | None = None,
    class_id: int | None = None,
    day_of_week: int | None = None,
    conn: sqlite3.Connection | None = None,
) -> list[dict[str, Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if teacher_id is not None:
        clauses.append("sc.teacher_id = ?")
        params.append(teacher_id)
    if class_id is not None:
        clauses.append("sc.class_id = ?")
        params.append(class_id)
    if day_of_week is not None:
        clauses.append("sc.day_of_week = ?")
        params.append(day_of_week)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    with _use_conn(conn) as active_conn:
        rows = active_conn.execute(
            f"""
            SELECT sc.id, sc.teacher_id, sc.class_id, sc.subject_id, sc.day_of_week,
                   sc.start_time, sc.end_time, sc.academic_year, sc.is_active,
                   c.name AS class_name, su.name AS subject_name
            FROM schedules sc
            JOIN classes c ON c.id = sc.class_id
            JOIN subjects su ON su.id = sc.subject_id
            {where}
            ORDER BY sc.day_of_week, sc.start_time
            """,
            params,
        ).fetchall()
    return [dict(r) for r in rows]


def set_schedule_active(schedule_id: int, active: bool, *, conn: sqlite3.Connection | None = None) -> bool:
    with _use_conn(conn) as active_conn, transaction(active_conn):
        cur = active_conn.execute(
            "UPDATE schedules SET is_active = ? WHERE id = ?",
            (1 if active else 0, schedule_id),
        )
        return cur.rowcount > 0


def set_working_hours(
    teacher_id: int,
    day_of_week: int,
    start_time: str,
    end_time: str,
    *,
    conn: sqlite3.Connection | None = None,
) -> int:
    with _use_conn(conn) as active_conn, transaction(active_conn):
        active_conn.execute(
            """
            INSERT INTO teacher_working_hours (teacher_id, day_of_week, start_time, end_time)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (teacher_id, day_of_week)
            DO UPDATE SET start_time = excluded.start_time, end_time = excluded.end_time
            """,
            (teacher_id, day_of_week, start_time, end_time),
        )
        row = active_conn.execute(
            "SELECT id FROM teacher_working_hours WHERE teacher_id = ? AND day_of_week = ?",
            (teacher_id, day_of_week),
        ).fetchone()
        return int(row["id"])


def get_working_hours(teacher_id: int, *, conn: sqlite3.Connection | None = None) -> list[dict[str, Any]]:
    with _use_conn(conn) as active_conn:
        rows = active_conn.execute(
            """
            SELECT id, teacher_id, day_of_week, start_time, end_time
            FROM teacher_working_hours
            WHERE teacher_id = ?
            ORDER BY day_of_week
            """,
            (teacher_id,),
        ).fetchall()
    return [dict(r) for r in rows]


# -----------------------------
# Geofence & holidays
# -----------------------------
def upsert_geofence(
    latitude: float,
    longitude: float,
    radius_meters: int = DEFAULT_GEOFENCE_RADIUS_METERS,
    label: str | None = None,
    *,
    conn: sqlite3.Connection | None = None,
) -> dict[str, Any]:
    with _use_conn(conn) as active_conn, transaction(active_conn):
        row = active_conn.execute(
            "SELECT id, label FROM geofences WHERE is_active = 1 ORDER BY id LIMIT 1"
        ).fetchone()
        if row:
            active_conn.execute(
                """
                UPDATE geofences
                SET label = ?, latitude = ?, longitude = ?, radius_meters = ?
                WHERE id = ?
                """,
                (label or row["label"], latitude, longitude, radius_meters, row["id"]),
            )
            fence_id = int(row["id"])
        else:
            cur = active_conn.execute(
                """
                INSERT INTO geofences (label, latitude, longitude, radius_meters, is_active)
                VALUES (?, ?, ?, ?, 1)
                """,
                (label or "Sekolah", latitude, longitude, radius_meters),
            )
            fence_id = int(cur.lastrowid)
        saved = active_conn.execute("SELECT * FROM geofences WHERE id = ?", (fence_id,)).fetchone()
    return dict(saved)


def get_active_geofence(*, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
    with _use_conn(conn) as active_conn:
        row = active_conn.execute(
            """
            SELECT id, label, latitude, longitude, radius_meters, is_active
            FROM geofences
            WHERE is_active = 1
            ORDER BY id
            LIMIT 1
            """
        ).fetchone()
    return dict(row) if row else None


def add_holiday(
    date: str,
    reason: str,
    holiday_type: str = "school",
    class_id: int | None = None,
    *,
    conn: sqlite3.Connection | None = None,
) -> int:
    with _use_conn(conn) as active_conn, transaction(active_conn):
        cur = active_conn.execute(
            """
            INSERT INTO holiday_events (date, reason, type, class_id, is_active)
            VALUES (?, ?, ?, ?, 1)
            """,
            (date, reason, holiday_type, class_id),
        )
        return int(cur.lastrowid)


def get_holidays(
    *,
    month: str | None = None,
    conn: sqlite3.Connection | None = None,
) -> list[dict[str, Any]]:
    where = "WHERE date LIKE ?" if month else ""
    params = (f"{month}-%",) if month else ()
    with _use_conn(conn) as active_conn:
        rows = active_conn.execute(
            f"""
            SELECT id, date, reason, type, class_id, is_active
            FROM holiday_events
            {where}
            ORDER BY date
            """,
            params,
        ).fetchall()
    return [dict(r) for r in rows]


def set_holiday_active(holiday_id: int, active: bool, *, conn: sqlite3.Connection | None = None) -> bool:
    with _use_conn(conn) as active_conn, transaction(active_conn):
        cur = active_conn.execute(
            "UPDATE holiday_events SET is_active = ? WHERE id = ?",
            (1 if active else 0, holiday_id),
        )
        return cur.rowcount > 0
