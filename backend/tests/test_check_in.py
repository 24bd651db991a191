import json
import sqlite3
import threading

import pytest

import database.db as db
from backend.exceptions import DuplicateEntryError, ErrorCode, PresensiError, SessionConflictError, ValidationError
from backend.services.check_in import CheckInResolver, parse_class_qr
from backend.services.check_out import CheckOutArbiter
from backend.services.leave import submit_leave
from backend.services.substitution import assign_substitute, plan_day
from database.store import AttendanceStore

from conftest import MONDAY


def _count(store, table: str) -> int:
    return store.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def test_parse_class_qr_rejects_malformed_payloads():
    for bad in ["", "not-json", "[1, 2]", json.dumps({"type": "student", "id": 1, "token": "x"})]:
        with pytest.raises(ValidationError) as exc:
            parse_class_qr(bad)
        assert exc.value.error_code == ErrorCode.INVALID_QR

    assert parse_class_qr(json.dumps({"type": "class-session", "id": "4", "token": "abc"})) == (4, "abc")


def test_window_opens_ten_minutes_before_start(store, clock, events, school):
    resolver = CheckInResolver(store, clock, events)

    clock.set(f"{MONDAY} 06:49:00")
    with pytest.raises(PresensiError) as exc:
        resolver.check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])
    assert exc.value.error_code == ErrorCode.TOO_EARLY
    assert exc.value.details["minutes_to_wait"] == 1
    assert _count(store, "sessions") == 0
    assert _count(store, "teacher_attendance") == 0

    clock.set(f"{MONDAY} 06:51:00")
    result = resolver.check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])
    assert result["valid"] is True
    assert result["idempotent"] is False
    assert result["session"]["status"] == "ongoing"
    assert result["session"]["start_time"] == "06:51:00"
    assert result["session"]["is_substitute"] is False


def test_late_scan_records_late_minutes_but_stays_present(store, clock, events, school):
    clock.set(f"{MONDAY} 07:12:30")
    result = CheckInResolver(store, clock, events).check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])

    row = store.get_session_attendance(school["teacher_id"], result["session"]["id"])
    assert row.status == "present"
    assert row.late_minutes == 12
    assert row.check_in_time == "07:12:30"


def test_double_scan_is_idempotent(store, clock, events, school):
    resolver = CheckInResolver(store, clock, events)

    first = resolver.check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])
    second = resolver.check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])

    assert second["valid"] is True
    assert second["idempotent"] is True
    assert second["session"]["id"] == first["session"]["id"]
    assert _count(store, "sessions") == 1
    assert _count(store, "teacher_attendance") == 1
    assert events.names().count("teacher:checkin") == 1


def test_adjacent_schedule_resolves_to_the_next_slot(store, clock, events, seed, school):
    next_id = seed.schedule(
        teacher_id=school["teacher_id"],
        class_id=school["class_id"],
        subject_id=school["subject_id"],
        start="07:40:00",
        end="08:20:00",
    )
    resolver = CheckInResolver(store, clock, events)

    first = resolver.check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])
    assert first["session"]["schedule_id"] == school["schedule_id"]

    clock.set(f"{MONDAY} 07:35:00")
    CheckOutArbiter(store, clock, events).check_out(session_id=first["session"]["id"], teacher_id=school["teacher_id"])

    clock.set(f"{MONDAY} 07:41:00")
    second = resolver.check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])
    assert second["session"]["schedule_id"] == next_id
    assert second["session"]["id"] != first["session"]["id"]


def test_second_class_is_blocked_while_a_session_is_open(store, clock, events, seed, school):
    other_class = seed.class_("X-B")
    seed.schedule(
        teacher_id=school["teacher_id"],
        class_id=other_class,
        subject_id=school["subject_id"],
        start="07:05:00",
        end="07:45:00",
    )
    resolver = CheckInResolver(store, clock, events)
    first = resolver.check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])

    with pytest.raises(SessionConflictError) as exc:
        resolver.check_in(teacher_id=school["teacher_id"], qr_data=seed.qr(other_class))

    assert exc.value.status_code == 409
    assert exc.value.details["active_session"]["session_id"] == first["session"]["id"]
    assert _count(store, "sessions") == 1


def test_rotated_token_is_rejected(store, clock, events, school):
    db.regenerate_class_token(school["class_id"])

    with pytest.raises(PresensiError) as exc:
        CheckInResolver(store, clock, events).check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])
    assert exc.value.error_code == ErrorCode.QR_TOKEN_MISMATCH


def test_unknown_class_is_not_found(store, clock, events, school):
    qr = json.dumps({"type": "class-session", "id": 999, "token": "nope"})
    with pytest.raises(PresensiError) as exc:
        CheckInResolver(store, clock, events).check_in(teacher_id=school["teacher_id"], qr_data=qr)
    assert exc.value.status_code == 404


def test_school_holiday_returns_invalid_without_writes(store, clock, events, school):
    db.add_holiday(MONDAY, "Isra Miraj", "national")

    result = CheckInResolver(store, clock, events).check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])

    assert result["valid"] is False
    assert result["holidays"][0]["reason"] == "Isra Miraj"
    assert _count(store, "sessions") == 0


def test_class_without_schedule_reports_no_active_schedule(store, clock, events, seed, school):
    empty_class = seed.class_("XI-C")
    with pytest.raises(PresensiError) as exc:
        CheckInResolver(store, clock, events).check_in(teacher_id=school["teacher_id"], qr_data=seed.qr(empty_class))
    assert exc.value.error_code == ErrorCode.NO_ACTIVE_SCHEDULE


def test_substitute_checks_into_the_assigned_session(store, clock, events, seed, school):
    substitute_id = seed.teacher(username="sari", full_name="Sari Dewi")
    plan_day(store, clock, MONDAY)
    session = store.find_session(school["schedule_id"], MONDAY)
    assign_substitute(store, events, session_id=session.id, teacher_id=substitute_id)

    result = CheckInResolver(store, clock, events).check_in(teacher_id=substitute_id, qr_data=school["qr"])

    assert result["session"]["id"] == session.id
    assert result["session"]["is_substitute"] is True
    assert store.get_session(session.id).status == "ongoing"
    assert store.get_session_attendance(substitute_id, session.id) is not None


def test_scan_after_filing_leave_starts_the_session(store, clock, events, school):
    teacher_id = school["teacher_id"]
    clock.set(f"{MONDAY} 06:00:00")
    submit_leave(store, clock, teacher_id=teacher_id, leave_type="sick", date=MONDAY, reason="fever")
    session = store.find_session(school["schedule_id"], MONDAY)
    assert session.status == "scheduled"

    clock.set(f"{MONDAY} 07:03:00")
    result = CheckInResolver(store, clock, events).check_in(teacher_id=teacher_id, qr_data=school["qr"])

    assert result["idempotent"] is False
    assert result["session"]["id"] == session.id
    assert result["session"]["status"] == "ongoing"
    assert "session:status-changed" in events.names()
    assert "teacher:checkin" in events.names()
    row = store.get_session_attendance(teacher_id, session.id)
    assert row.status == "present"
    assert row.check_in_time == "07:03:00"
    assert row.late_minutes == 3
    assert _count(store, "teacher_attendance") == 2

    clock.set(f"{MONDAY} 07:35:00")
    CheckOutArbiter(store, clock, events).check_out(session_id=session.id, teacher_id=teacher_id)
    row = store.get_session_attendance(teacher_id, session.id)
    assert row.status == "present"
    assert row.check_out_time == "07:35:00"


def test_concurrent_scans_for_two_classes_open_one_session(db_path, clock, events, seed, school):
    other_class = seed.class_("X-B")
    seed.schedule(
        teacher_id=school["teacher_id"],
        class_id=other_class,
        subject_id=school["subject_id"],
        start="07:05:00",
        end="07:45:00",
    )
    barrier = threading.Barrier(2)
    outcomes: list[object] = []
    lock = threading.Lock()

    def scan(qr: str) -> None:
        conn = db.connect_db()
        try:
            resolver = CheckInResolver(AttendanceStore(conn), clock, events)
            barrier.wait()
            try:
                resolver.check_in(teacher_id=school["teacher_id"], qr_data=qr)
                outcome: object = "ok"
            except PresensiError as exc:
                outcome = exc
            with lock:
                outcomes.append(outcome)
        finally:
            conn.close()

    threads = [
        threading.Thread(target=scan, args=(school["qr"],)),
        threading.Thread(target=scan, args=(seed.qr(other_class),)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(outcomes) == 2
    assert outcomes.count("ok") == 1
    assert sum(isinstance(o, SessionConflictError) for o in outcomes) == 1

    conn = db.connect_db()
    try:
        ongoing = conn.execute("SELECT COUNT(*) FROM sessions WHERE status = 'ongoing'").fetchone()[0]
    finally:
        conn.close()
    assert ongoing == 1


def test_unique_indexes_reject_duplicate_attendance_rows(store, school):
    teacher_id = school["teacher_id"]
    with db.transaction(store.conn):
        session = store.create_session(schedule_id=school["schedule_id"], date=MONDAY, status="ongoing")
        store.insert_attendance(teacher_id=teacher_id, date=MONDAY, status="sick")
        store.insert_attendance(teacher_id=teacher_id, date=MONDAY, status="present", session_id=session.id)

    with pytest.raises(sqlite3.IntegrityError):
        with db.transaction(store.conn):
            store.insert_attendance(teacher_id=teacher_id, date=MONDAY, status="permission")

    with pytest.raises(sqlite3.IntegrityError):
        with db.transaction(store.conn):
            store.insert_attendance(teacher_id=teacher_id, date=MONDAY, status="present", session_id=session.id)

    assert _count(store, "teacher_attendance") == 2


def test_integrity_conflict_surfaces_as_duplicate_entry(store, clock, events, school, monkeypatch):
    def conflicting_insert(self, **kwargs):
        raise sqlite3.IntegrityError("UNIQUE constraint failed: teacher_attendance.teacher_id")

    monkeypatch.setattr(AttendanceStore, "insert_attendance", conflicting_insert)

    with pytest.raises(DuplicateEntryError) as exc:
        CheckInResolver(store, clock, events).check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.DUPLICATE_ENTRY
    assert exc.value.to_dict()["code"] == "DUPLICATE_ENTRY"
    assert _count(store, "sessions") == 0
    assert events.published == []
