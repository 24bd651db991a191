from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from backend.clock import Clock
from backend.deps import get_clock, get_events, get_store
from backend.events import EventBus
from backend.security import require_admin
from backend.services.reconciliation import ReconciliationSweep
from backend.services.session_guard import ActiveSessionGuard
from backend.services.session_timing import SessionTimingNotifier
from backend.services.substitution import assign_substitute, plan_day
from database.db import clear_all_tables, get_class_qr_payload, regenerate_class_token
from database.store import AttendanceStore

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


class AlphaFillRequest(BaseModel):
    date: str | None = None


class PlanRequest(BaseModel):
    date: str | None = None


@router.post("/attendance/alpha-fill")
def trigger_alpha_fill(
    payload: AlphaFillRequest | None = None,
    store: AttendanceStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    result = ReconciliationSweep(store, clock).auto_fill_alpha(payload.date if payload else None)
    return {"ok": True, "message": "Alpha auto-fill completed.", **result}


@router.post("/sessions/tick")
def trigger_session_tick(
    store: AttendanceStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    events: EventBus = Depends(get_events),
):
    return SessionTimingNotifier(store, clock, events).tick()


@router.get("/integrity")
def integrity(
    store: AttendanceStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    return ActiveSessionGuard(store).integrity_metrics(clock)


@router.post("/sessions/plan")
def plan_sessions(
    payload: PlanRequest | None = None,
    store: AttendanceStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    return plan_day(store, clock, payload.date if payload else None)


@router.put("/sessions/{session_id}/substitute/{teacher_id}")
def set_substitute(
    session_id: int,
    teacher_id: int,
    store: AttendanceStore = Depends(get_store),
    events: EventBus = Depends(get_events),
):
    return assign_substitute(store, events, session_id=session_id, teacher_id=teacher_id)


@router.get("/classes/{class_id}/qr")
def class_qr(class_id: int):
    payload = get_class_qr_payload(class_id)
    if not payload:
        raise HTTPException(status_code=404, detail="Class not found.")
    return payload


@router.post("/classes/{class_id}/qr")
def rotate_class_qr(class_id: int):
    payload = regenerate_class_token(class_id)
    if not payload:
        raise HTTPException(status_code=404, detail="Class not found.")
    return payload


@router.get("/events")
def recent_events(
    request: Request,
    event: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
):
    return request.app.state.recent_events.snapshot(event=event, limit=limit)


@router.post("/reset/hard")
def reset_hard():
    clear_all_tables()
    return {"ok": True, "message": "Reset complete: registry and attendance cleared"}
