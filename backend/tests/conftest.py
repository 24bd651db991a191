import json

import pytest
from fastapi.testclient import TestClient

import backend.config as config
import backend.main as main
import database.db as db
from backend.clock import FixedClock
from backend.events import EventBus
from database.store import AttendanceStore

# Monday
MONDAY = "2025-01-06"
TUESDAY = "2025-01-07"


class RecordingBus(EventBus):
    """EventBus that also keeps every published (event, payload) pair."""

    def __init__(self):
        super().__init__()
        self.published: list[tuple[str, dict]] = []
        self.subscribe(lambda event, payload: self.published.append((event, payload)))

    def names(self) -> list[str]:
        return [event for event, _ in self.published]


class Seed:
    """Registry fixtures written straight through the db helpers."""

    def teacher(self, username: str = "budi", full_name: str = "Budi Santoso", password: str = "secret") -> int:
        return db.add_teacher(full_name, username, password)

    def subject(self, name: str = "Matematika", code: str | None = None) -> int:
        return db.add_subject(name, code)

    def class_(self, name: str = "X-A") -> int:
        return db.add_class(name, level="X", academic_year="2024/2025")

    def schedule(
        self,
        *,
        teacher_id: int,
        class_id: int,
        subject_id: int,
        start: str = "07:00:00",
        end: str = "07:40:00",
        day_of_week: int = 1,
    ) -> int:
        return db.add_schedule(
            teacher_id=teacher_id,
            class_id=class_id,
            subject_id=subject_id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            academic_year="2024/2025",
        )

    def qr(self, class_id: int) -> str:
        return json.dumps(db.get_class_qr_payload(class_id))


@pytest.fixture()
def db_path(tmp_path, monkeypatch):
    test_db = tmp_path / "presensi_test.db"

    # Point DB to a temp file for isolation.
    monkeypatch.setattr(config, "DB_PATH", test_db)
    monkeypatch.setattr(db, "DB_PATH", test_db)

    db.create_tables()
    return test_db


@pytest.fixture()
def clock():
    return FixedClock(f"{MONDAY} 07:00:00")


@pytest.fixture()
def events():
    return RecordingBus()


@pytest.fixture()
def store(db_path):
    conn = db.connect_db()
    yield AttendanceStore(conn)
    conn.close()


@pytest.fixture()
def seed(db_path):
    return Seed()


@pytest.fixture()
def school(seed):
    """One teacher teaching X-A on Monday 07:00-07:40."""
    teacher_id = seed.teacher()
    class_id = seed.class_()
    subject_id = seed.subject()
    schedule_id = seed.schedule(teacher_id=teacher_id, class_id=class_id, subject_id=subject_id)
    return {
        "teacher_id": teacher_id,
        "class_id": class_id,
        "subject_id": subject_id,
        "schedule_id": schedule_id,
        "qr": seed.qr(class_id),
    }


@pytest.fixture()
def client(db_path, clock, events, monkeypatch):
    monkeypatch.setattr(main, "ENABLE_SCHEDULER", False)

    with TestClient(main.app) as c:
        main.app.state.clock = clock
        main.app.state.events = events
        events.subscribe(main.app.state.recent_events)
        yield c


@pytest.fixture()
def auth_headers(client):
    res = client.post(
        "/auth/login",
        json={
            "username": config.ADMIN_USERNAME,
            "password": config.ADMIN_PASSWORD,
        },
    )
    assert res.status_code == 200
    token = res.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def teacher_headers(client, school):
    res = client.post("/auth/teacher-login", json={"username": "budi", "password": "secret"})
    assert res.status_code == 200
    token = res.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}
