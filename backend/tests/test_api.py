import backend.config as config
import backend.routers.core as core
import database.db as db

from conftest import MONDAY, TUESDAY


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_debug_dbpath_disabled_by_default(client, auth_headers):
    res = client.get("/debug/dbpath", headers=auth_headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "Not found."


def test_debug_dbpath_requires_session_when_enabled(client, monkeypatch, auth_headers):
    monkeypatch.setattr(core, "ENABLE_DEBUG_ENDPOINTS", True)

    res = client.get("/debug/dbpath")
    assert res.status_code == 401

    res = client.get("/debug/dbpath", headers=auth_headers)
    assert res.status_code == 200
    assert "db_path" in res.json()


def test_login_rejects_invalid_credentials(client):
    res = client.post(
        "/auth/login",
        json={"username": config.ADMIN_USERNAME, "password": "wrong-password"},
    )
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid admin credentials."

    res = client.post("/auth/teacher-login", json={"username": "nobody", "password": "secret"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid teacher credentials."


def test_teacher_login_carries_teacher_id(client, school, teacher_headers):
    res = client.get("/auth/me", headers=teacher_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["role"] == "teacher"
    assert body["teacher_id"] == school["teacher_id"]


def test_read_endpoints_require_session(client, auth_headers):
    res = client.get("/teachers")
    assert res.status_code == 401
    assert res.json()["detail"] == "Missing bearer token."

    res = client.get("/attendance")
    assert res.status_code == 401
    assert res.json()["detail"] == "Missing bearer token."

    res = client.get("/teachers", headers=auth_headers)
    assert res.status_code == 200

    res = client.get("/attendance", headers=auth_headers)
    assert res.status_code == 200


def test_create_and_list_teachers(client, auth_headers):
    payload = {
        "full_name": "Test Teacher",
        "username": "test.teacher",
        "password": "secret",
        "employee_id": "EMP_TEST_001",
    }

    res = client.post("/teachers", json=payload, headers=auth_headers)
    assert res.status_code == 200
    data = res.json()
    assert data["id"] >= 1
    assert data["username"] == payload["username"]
    assert data["employee_id"] == payload["employee_id"]

    res = client.post("/teachers", json=payload, headers=auth_headers)
    assert res.status_code == 409

    res = client.get("/teachers", headers=auth_headers)
    assert res.status_code == 200
    rows = res.json()
    assert any(r["id"] == data["id"] for r in rows)
    assert all("password_hash" not in r for r in rows)


def test_registry_writes_are_admin_only(client, teacher_headers):
    res = client.post("/subjects", json={"name": "Fisika"}, headers=teacher_headers)
    assert res.status_code == 403
    assert res.json()["detail"] == "Admin access required."


def test_schedule_times_are_normalized(client, auth_headers, school):
    res = client.post(
        "/schedules",
        json={
            "teacher_id": school["teacher_id"],
            "class_id": school["class_id"],
            "subject_id": school["subject_id"],
            "day_of_week": 2,
            "start_time": "9:00",
            "end_time": "9:40",
            "academic_year": "2024/2025",
        },
        headers=auth_headers,
    )
    assert res.status_code == 200
    assert res.json()["start_time"] == "09:00:00"

    res = client.post(
        "/schedules",
        json={
            "teacher_id": school["teacher_id"],
            "class_id": school["class_id"],
            "subject_id": school["subject_id"],
            "day_of_week": 2,
            "start_time": "10:00",
            "end_time": "09:00",
            "academic_year": "2024/2025",
        },
        headers=auth_headers,
    )
    assert res.status_code == 400


def test_geofence_radius_bounds(client, auth_headers):
    res = client.put(
        "/geofence",
        json={"latitude": -7.936, "longitude": 112.629, "radius_meters": 5},
        headers=auth_headers,
    )
    assert res.status_code == 400

    res = client.put(
        "/geofence",
        json={"latitude": -7.936, "longitude": 112.629, "radius_meters": 100, "label": "SMA 1"},
        headers=auth_headers,
    )
    assert res.status_code == 200
    assert res.json()["radius_meters"] == 100


def test_check_in_and_out_over_http(client, school, teacher_headers, clock, events):
    res = client.post("/sessions/check-in", json={"qr_data": school["qr"]}, headers=teacher_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["valid"] is True
    session_id = body["session"]["id"]

    res = client.get("/sessions/my-active", headers=teacher_headers)
    assert res.status_code == 200
    assert res.json()["session_id"] == session_id

    clock.set(f"{MONDAY} 07:25:00")
    res = client.post(f"/sessions/{session_id}/check-out", headers=teacher_headers)
    assert res.status_code == 400
    error = res.json()
    assert error["code"] == "CHECKOUT_REASON_REQUIRED"
    assert error["requires_reason"] is True
    assert error["available_reasons"][0]["value"] == "class_cancelled"

    res = client.post(
        f"/sessions/{session_id}/check-out",
        json={"early_checkout_reason": "students_absent"},
        headers=teacher_headers,
    )
    assert res.status_code == 200
    assert res.json()["is_early_checkout"] is True
    assert "teacher:checkout" in events.names()


def test_conflicting_check_in_is_409(client, seed, school, teacher_headers):
    other_class = seed.class_("X-B")
    seed.schedule(
        teacher_id=school["teacher_id"],
        class_id=other_class,
        subject_id=school["subject_id"],
        start="07:05:00",
        end="07:45:00",
    )
    client.post("/sessions/check-in", json={"qr_data": school["qr"]}, headers=teacher_headers)

    res = client.post("/sessions/check-in", json={"qr_data": seed.qr(other_class)}, headers=teacher_headers)
    assert res.status_code == 409
    body = res.json()
    assert body["code"] == "SESSION_CONFLICT"
    assert body["active_session"]["class_id"] == school["class_id"]


def test_outside_geofence_reports_distance(client, school, teacher_headers):
    db.upsert_geofence(-7.936, 112.629, 100)

    res = client.post(
        "/sessions/check-in",
        json={"qr_data": school["qr"], "lat": -7.933752, "lng": 112.629},
        headers=teacher_headers,
    )
    assert res.status_code == 400
    body = res.json()
    assert body["code"] == "OUTSIDE_GEOFENCE"
    assert 245 <= body["distance"] <= 255


def test_student_attendance_roundtrip(client, seed, school, teacher_headers):
    ani = db.add_student("1001", "Ani", school["class_id"], "F")
    outsider_class = seed.class_("XII-Z")
    outsider = db.add_student("9001", "Zaki", outsider_class, "M")
    session_id = client.post(
        "/sessions/check-in", json={"qr_data": school["qr"]}, headers=teacher_headers
    ).json()["session"]["id"]

    res = client.post(
        f"/sessions/{session_id}/student-attendance",
        json={"statuses": [{"student_id": outsider, "status": "present"}]},
        headers=teacher_headers,
    )
    assert res.status_code == 400

    res = client.post(
        f"/sessions/{session_id}/student-attendance",
        json={"statuses": [{"student_id": ani, "status": "sick", "notes": "flu"}]},
        headers=teacher_headers,
    )
    assert res.status_code == 200
    assert res.json()["saved"] == 1

    res = client.get(f"/sessions/{session_id}/student-attendance", headers=teacher_headers)
    assert res.status_code == 200
    assert [(r["student_id"], r["status"]) for r in res.json()] == [(ani, "sick")]


def test_leave_endpoint_and_history(client, school, teacher_headers):
    res = client.post(
        "/attendance/leave",
        json={"type": "sick", "date": MONDAY, "reason": "fever"},
        headers=teacher_headers,
    )
    assert res.status_code == 201
    assert res.json()["impacted_sessions"] == 1

    res = client.get("/attendance/leave-history", headers=teacher_headers)
    assert res.status_code == 200
    assert res.json()[0]["status"] == "sick"

    res = client.get("/attendance", params={"date": MONDAY}, headers=teacher_headers)
    assert res.status_code == 200
    assert {r["status"] for r in res.json()["rows"]} == {"sick"}


def test_admin_alpha_fill_and_integrity(client, auth_headers, school, clock):
    res = client.post("/admin/sessions/plan", json={"date": MONDAY}, headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["created"] == 1

    clock.set(f"{TUESDAY} 01:00:00")
    res = client.post("/admin/attendance/alpha-fill", headers=auth_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["ok"] is True
    assert body["date"] == MONDAY
    assert body["session_created"] == 1

    res = client.post("/admin/attendance/alpha-fill", json={"date": "not-a-date"}, headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"

    res = client.get("/admin/integrity", headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["healthy"] is True


def test_substitute_assignment_shows_in_event_feed(client, auth_headers, seed, school):
    substitute_id = seed.teacher(username="sari", full_name="Sari Dewi")
    client.post("/admin/sessions/plan", json={"date": MONDAY}, headers=auth_headers)

    conn = db.connect_db()
    session_id = conn.execute("SELECT id FROM sessions WHERE date = ?", (MONDAY,)).fetchone()["id"]
    conn.close()

    res = client.put(f"/admin/sessions/{session_id}/substitute/{substitute_id}", headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["teacher_name"] == "Sari Dewi"

    res = client.put(f"/admin/sessions/{session_id}/substitute/{school['teacher_id']}", headers=auth_headers)
    assert res.status_code == 400

    res = client.get("/admin/events", params={"event": "substitute:assigned"}, headers=auth_headers)
    assert res.status_code == 200
    assert res.json()[0]["session_id"] == session_id


def test_rotating_class_qr_invalidates_old_code(client, auth_headers, school, teacher_headers):
    res = client.post(f"/admin/classes/{school['class_id']}/qr", headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["token"] not in school["qr"]

    res = client.post("/sessions/check-in", json={"qr_data": school["qr"]}, headers=teacher_headers)
    assert res.status_code == 400
    assert res.json()["code"] == "QR_TOKEN_MISMATCH"


def test_additional_admin_can_log_in(client):
    db.create_admin_user("operator", "op-secret")

    res = client.post("/auth/login", json={"username": "OPERATOR", "password": "op-secret"})
    assert res.status_code == 200
    assert res.json()["role"] == "admin"
