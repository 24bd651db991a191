from fastapi import APIRouter, Depends, HTTPException, Query

from backend.config import (
    AUTO_CLOSE_ENABLED,
    AUTO_CLOSE_GRACE_MINUTES,
    CHECKIN_EARLY_MINUTES,
    CHECKOUT_MIN_PERCENT,
    CHECKOUT_REASON_PERCENT,
    DB_PATH,
    EARLY_CHECKOUT_MARGIN_MINUTES,
    ENABLE_DEBUG_ENDPOINTS,
    TIMEZONE,
)
from backend.deps import get_clock, get_store
from backend.geofence import check_point
from backend.security import require_admin, require_session
from backend.services.check_out import EARLY_CHECKOUT_REASONS
from database.store import AttendanceStore

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/debug/dbpath")
def dbpath(_session: dict = Depends(require_admin)):
    if not ENABLE_DEBUG_ENDPOINTS:
        raise HTTPException(status_code=404, detail="Not found.")
    return {"db_path": str(DB_PATH)}


@router.get("/config/attendance")
def attendance_config():
    return {
        "timezone": TIMEZONE,
        "checkin_early_minutes": CHECKIN_EARLY_MINUTES,
        "checkout_min_percent": CHECKOUT_MIN_PERCENT,
        "checkout_reason_percent": CHECKOUT_REASON_PERCENT,
        "early_checkout_margin_minutes": EARLY_CHECKOUT_MARGIN_MINUTES,
        "auto_close_enabled": AUTO_CLOSE_ENABLED,
        "auto_close_grace_minutes": AUTO_CLOSE_GRACE_MINUTES,
        "early_checkout_reasons": EARLY_CHECKOUT_REASONS,
    }


@router.get("/time")
def server_time(clock=Depends(get_clock)):
    now = clock.now()
    return {"date": now.date, "time": now.time, "day_of_week": now.weekday, "iso": now.moment.isoformat()}


@router.get("/geofence/status")
def geofence_status(
    lat: float = Query(...),
    lng: float = Query(...),
    _session: dict = Depends(require_session),
    store: AttendanceStore = Depends(get_store),
):
    fence = store.active_geofence()
    if not fence:
        return {"inside": True, "distance": 0, "radius_meters": 0, "label": "Not configured"}

    check = check_point(lat, lng, fence)
    return {
        "inside": check.inside,
        "distance": check.rounded_distance,
        "radius_meters": check.radius_m,
        "label": check.label,
    }
