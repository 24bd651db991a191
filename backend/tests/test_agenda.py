from backend.services.agenda import current_session, teacher_agenda
from backend.services.check_in import CheckInResolver
from backend.services.substitution import assign_substitute, plan_day

from conftest import MONDAY


def test_upcoming_slot_counts_down_to_the_window(store, clock, school):
    clock.set(f"{MONDAY} 06:30:00")

    current = current_session(store, clock, school["teacher_id"])["current_session"]

    assert current["status"] == "scheduled"
    assert current["schedule_id"] == school["schedule_id"]
    assert current["minutes_until_check_in"] == 20
    assert current["can_check_in"] is False


def test_active_session_takes_precedence(store, clock, events, school):
    result = CheckInResolver(store, clock, events).check_in(teacher_id=school["teacher_id"], qr_data=school["qr"])
    clock.set(f"{MONDAY} 07:31:00")

    current = current_session(store, clock, school["teacher_id"])["current_session"]

    assert current["id"] == result["session"]["id"]
    assert current["status"] == "active"
    assert current["duration_minutes"] == 40
    assert current["can_check_out"] is True


def test_after_the_last_slot_nothing_is_left_today(store, clock, school):
    clock.set(f"{MONDAY} 10:00:00")

    # Monday's slot is over and Tuesday has nothing scheduled.
    body = current_session(store, clock, school["teacher_id"])
    assert body["current_session"] is None
    assert body["message"] == "No upcoming sessions found."


def test_agenda_merges_substitute_sessions(store, clock, events, seed, school):
    substitute_id = seed.teacher(username="sari", full_name="Sari Dewi")
    plan_day(store, clock, MONDAY)
    session = store.find_session(school["schedule_id"], MONDAY)
    assign_substitute(store, events, session_id=session.id, teacher_id=substitute_id)

    agenda = teacher_agenda(store, substitute_id, MONDAY)

    assert [(item["type"], item["session_id"]) for item in agenda] == [("substitute", session.id)]
