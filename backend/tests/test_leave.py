import pytest

from backend.exceptions import ErrorCode, NotFoundError, ValidationError
from backend.services.check_in import CheckInResolver
from backend.services.leave import leave_history, submit_leave
from backend.services.reconciliation import ReconciliationSweep

from conftest import MONDAY, TUESDAY


@pytest.fixture()
def three_slots(seed, school):
    seed.schedule(
        teacher_id=school["teacher_id"],
        class_id=school["class_id"],
        subject_id=school["subject_id"],
        start="07:40:00",
        end="08:20:00",
    )
    seed.schedule(
        teacher_id=school["teacher_id"],
        class_id=school["class_id"],
        subject_id=school["subject_id"],
        start="08:20:00",
        end="09:00:00",
    )
    return school


def _session_rows(store, teacher_id: int, date: str) -> list:
    return store.conn.execute(
        """
        SELECT session_id, status, notes, check_out_time
        FROM teacher_attendance
        WHERE teacher_id = ? AND date = ? AND session_id IS NOT NULL
        ORDER BY session_id
        """,
        (teacher_id, date),
    ).fetchall()


def test_sick_leave_cascades_onto_every_slot(store, clock, three_slots):
    clock.set(f"{MONDAY} 06:00:00")
    teacher_id = three_slots["teacher_id"]

    result = submit_leave(store, clock, teacher_id=teacher_id, leave_type="sick", date=MONDAY, reason="fever")

    assert result["created"] is True
    assert result["impacted_sessions"] == 3
    assert store.get_regular_attendance(teacher_id, MONDAY).status == "sick"
    rows = _session_rows(store, teacher_id, MONDAY)
    assert [r["status"] for r in rows] == ["sick", "sick", "sick"]
    assert all(r["notes"] == "Cascade (pre-generated): fever" for r in rows)

    # Shells were created as scheduled sessions for substitute planning.
    assert {s.status for s in store.sessions_on(MONDAY)} == {"scheduled"}

    clock.set(f"{TUESDAY} 01:00:00")
    summary = ReconciliationSweep(store, clock).auto_fill_alpha()
    assert summary["session_created"] == 0
    assert [r["status"] for r in _session_rows(store, teacher_id, MONDAY)] == ["sick", "sick", "sick"]


def test_leave_while_teaching_closes_the_open_row(store, clock, events, three_slots):
    teacher_id = three_slots["teacher_id"]
    checked_in = CheckInResolver(store, clock, events).check_in(teacher_id=teacher_id, qr_data=three_slots["qr"])
    clock.set(f"{MONDAY} 07:20:00")

    result = submit_leave(
        store,
        clock,
        teacher_id=teacher_id,
        leave_type="permission",
        date=MONDAY,
        reason="family emergency",
        assignment_text="Read chapter 4",
    )

    assert result["impacted_sessions"] == 3
    row = store.get_session_attendance(teacher_id, checked_in["session"]["id"])
    assert row.status == "permission"
    assert row.notes == "Leave: family emergency"
    assert row.check_out_time == "07:20:00"
    assert store.active_session_for(teacher_id) is None
    assert store.get_regular_attendance(teacher_id, MONDAY).assignment_text == "Read chapter 4"


def test_resubmitting_updates_the_regular_row(store, clock, school):
    teacher_id = school["teacher_id"]
    submit_leave(store, clock, teacher_id=teacher_id, leave_type="sick", date=MONDAY, reason="fever")

    again = submit_leave(store, clock, teacher_id=teacher_id, leave_type="sick", date=MONDAY, reason="still fever")

    assert again["created"] is False
    assert again["impacted_sessions"] == 0
    assert store.get_regular_attendance(teacher_id, MONDAY).notes == "still fever"
    assert len(_session_rows(store, teacher_id, MONDAY)) == 1


def test_invalid_requests_are_rejected(store, clock, school):
    with pytest.raises(ValidationError) as exc:
        submit_leave(store, clock, teacher_id=school["teacher_id"], leave_type="vacation", date=MONDAY, reason="x")
    assert exc.value.error_code == ErrorCode.INVALID_LEAVE_TYPE

    with pytest.raises(ValidationError):
        submit_leave(store, clock, teacher_id=school["teacher_id"], leave_type="sick", date=MONDAY, reason="  ")

    with pytest.raises(ValidationError):
        submit_leave(store, clock, teacher_id=school["teacher_id"], leave_type="sick", date="Monday", reason="x")

    with pytest.raises(NotFoundError):
        submit_leave(store, clock, teacher_id=999, leave_type="sick", date=MONDAY, reason="x")


def test_history_lists_only_leave_days(store, clock, school):
    teacher_id = school["teacher_id"]
    submit_leave(store, clock, teacher_id=teacher_id, leave_type="sick", date=MONDAY, reason="fever")
    submit_leave(store, clock, teacher_id=teacher_id, leave_type="permission", date=TUESDAY, reason="wedding")

    history = leave_history(store, teacher_id)

    assert [h["date"] for h in history] == [TUESDAY, MONDAY]
    assert all(h["kind"] == "regular" for h in history)
