import os
import secrets
from datetime import time
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]

DB_PATH = Path(os.getenv("PRESENSI_DB_PATH", BASE_DIR / "database" / "presensi.db"))
DB_BUSY_TIMEOUT_SECONDS = float(os.getenv("PRESENSI_DB_BUSY_TIMEOUT_SECONDS", "10"))
ADMIN_USERNAME = os.getenv("PRESENSI_ADMIN_USERNAME", "admin").strip() or "admin"
ADMIN_PASSWORD = os.getenv("PRESENSI_ADMIN_PASSWORD", "admin123").strip() or "admin123"
SIGNING_KEY = os.getenv("PRESENSI_SIGNING_KEY", "").strip() or secrets.token_urlsafe(32)
AUTH_TOKEN_TTL_SECONDS = int(os.getenv("PRESENSI_AUTH_TOKEN_TTL_SECONDS", "43200"))


def _parse_bool(value: str | None, fallback: bool) -> bool:
    if value is None:
        return fallback
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return fallback


def _parse_csv(value: str | None, fallback: list[str]) -> list[str]:
    if not value:
        return fallback
    parsed = [item.strip() for item in value.split(",") if item.strip()]
    return parsed or fallback


def _parse_time(value: str | None, fallback: time) -> time:
    if not value:
        return fallback
    parts = value.split(":")
    try:
        hh = int(parts[0])
        mm = int(parts[1]) if len(parts) > 1 else 0
        ss = int(parts[2]) if len(parts) > 2 else 0
        return time(hh, mm, ss)
    except ValueError:
        return fallback


def _parse_int(value: str | None, fallback: int, *, minimum: int = 0) -> int:
    if not value:
        return fallback
    try:
        return max(minimum, int(value.strip()))
    except ValueError:
        return fallback


def _parse_log_format(value: str | None) -> str:
    normalized = (value or "").strip().lower()
    if normalized == "json":
        return "json"
    return "console"


CORS_ALLOW_ORIGINS = _parse_csv(
    os.getenv("PRESENSI_CORS_ALLOW_ORIGINS"),
    ["http://localhost:5173", "http://127.0.0.1:5173"],
)
CORS_ALLOW_METHODS = _parse_csv(
    os.getenv("PRESENSI_CORS_ALLOW_METHODS"),
    ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
)
CORS_ALLOW_HEADERS = _parse_csv(
    os.getenv("PRESENSI_CORS_ALLOW_HEADERS"),
    ["Authorization", "Content-Type", "Accept"],
)
CORS_ALLOW_CREDENTIALS = _parse_bool(os.getenv("PRESENSI_CORS_ALLOW_CREDENTIALS"), True)
ENABLE_DEBUG_ENDPOINTS = _parse_bool(os.getenv("PRESENSI_ENABLE_DEBUG_ENDPOINTS"), False)

LOG_LEVEL = (os.getenv("PRESENSI_LOG_LEVEL", "INFO").strip() or "INFO").upper()
LOG_FORMAT = _parse_log_format(os.getenv("PRESENSI_LOG_FORMAT"))

# Institution civil time. All dates/times stored are in this zone.
TIMEZONE = os.getenv("PRESENSI_TIMEZONE", "Asia/Jakarta").strip() or "Asia/Jakarta"

# Session policy
CHECKIN_EARLY_MINUTES = _parse_int(os.getenv("PRESENSI_CHECKIN_EARLY_MINUTES"), 10)
CHECKOUT_MIN_PERCENT = _parse_int(os.getenv("PRESENSI_CHECKOUT_MIN_PERCENT"), 80)
CHECKOUT_REASON_PERCENT = _parse_int(os.getenv("PRESENSI_CHECKOUT_REASON_PERCENT"), 50)
EARLY_CHECKOUT_MARGIN_MINUTES = _parse_int(os.getenv("PRESENSI_EARLY_CHECKOUT_MARGIN_MINUTES"), 10)
AUTO_CLOSE_GRACE_MINUTES = _parse_int(os.getenv("PRESENSI_AUTO_CLOSE_GRACE_MINUTES"), 15)
AUTO_CLOSE_ENABLED = _parse_bool(os.getenv("PRESENSI_AUTO_CLOSE_ENABLED"), True)
LEAVE_HISTORY_LIMIT = _parse_int(os.getenv("PRESENSI_LEAVE_HISTORY_LIMIT"), 50, minimum=1)

# Background jobs
ENABLE_SCHEDULER = _parse_bool(os.getenv("PRESENSI_ENABLE_SCHEDULER"), True)
ALPHA_FILL_AT = _parse_time(os.getenv("PRESENSI_ALPHA_FILL_AT"), time(1, 0))
SESSION_PLANNER_ENABLED = _parse_bool(os.getenv("PRESENSI_SESSION_PLANNER_ENABLED"), False)
SESSION_PLANNER_AT = _parse_time(os.getenv("PRESENSI_SESSION_PLANNER_AT"), time(5, 0))

# Defaults for new registry rows
DEFAULT_GEOFENCE_RADIUS_METERS = _parse_int(os.getenv("PRESENSI_DEFAULT_GEOFENCE_RADIUS_METERS"), 100, minimum=1)
DEFAULT_WORK_START = _parse_time(os.getenv("PRESENSI_DEFAULT_WORK_START"), time(7, 0))
DEFAULT_WORK_END = _parse_time(os.getenv("PRESENSI_DEFAULT_WORK_END"), time(15, 0))
