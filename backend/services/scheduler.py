from apscheduler.schedulers.background import BackgroundScheduler

from backend.clock import Clock
from backend.config import (
    ALPHA_FILL_AT,
    SESSION_PLANNER_AT,
    SESSION_PLANNER_ENABLED,
)
from backend.events import EventBus
from backend.logging_config import get_logger
from backend.services.reconciliation import ReconciliationSweep
from backend.services.session_timing import SessionTimingNotifier
from backend.services.substitution import plan_day
from database.db import connect_db
from database.store import AttendanceStore

log = get_logger(__name__)


def run_alpha_fill(clock: Clock) -> None:
    conn = connect_db()
    try:
        ReconciliationSweep(AttendanceStore(conn), clock).auto_fill_alpha()
    except Exception:
        # Already logged with context by the sweep; retried on the next run.
        log.warning("alpha_fill_job_failed")
    finally:
        conn.close()


def run_session_timing(clock: Clock, events: EventBus) -> None:
    conn = connect_db()
    try:
        SessionTimingNotifier(AttendanceStore(conn), clock, events).tick()
    except Exception:
        log.exception("session_timing_job_failed")
    finally:
        conn.close()


def run_session_planner(clock: Clock) -> None:
    conn = connect_db()
    try:
        plan_day(AttendanceStore(conn), clock)
    except Exception:
        log.exception("session_planner_job_failed")
    finally:
        conn.close()


def build_scheduler(clock: Clock, events: EventBus) -> BackgroundScheduler:
    scheduler = BackgroundScheduler(
        timezone=clock.tz,
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 3600,
        },
    )

    scheduler.add_job(
        run_alpha_fill,
        "cron",
        hour=ALPHA_FILL_AT.hour,
        minute=ALPHA_FILL_AT.minute,
        args=[clock],
        id="alpha_fill",
        replace_existing=True,
    )
    scheduler.add_job(
        run_session_timing,
        "interval",
        minutes=1,
        args=[clock, events],
        id="session_timing",
        replace_existing=True,
    )
    if SESSION_PLANNER_ENABLED:
        scheduler.add_job(
            run_session_planner,
            "cron",
            day_of_week="mon-fri",
            hour=SESSION_PLANNER_AT.hour,
            minute=SESSION_PLANNER_AT.minute,
            args=[clock],
            id="session_planner",
            replace_existing=True,
        )

    log.info(
        "scheduler_configured",
        jobs=[job.id for job in scheduler.get_jobs()],
        timezone=str(clock.tz),
    )
    return scheduler
