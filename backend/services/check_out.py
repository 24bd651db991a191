import math
from datetime import timedelta
from typing import TypedDict

from backend.clock import Clock, ceil_minutes, round_half_up
from backend.config import (
    CHECKOUT_MIN_PERCENT,
    CHECKOUT_REASON_PERCENT,
    EARLY_CHECKOUT_MARGIN_MINUTES,
)
from backend.events import EventBus
from backend.exceptions import (
    AccessDeniedError,
    ErrorCode,
    NotFoundError,
    PolicyRejection,
)
from backend.logging_config import get_logger
from database.db import transaction
from database.store import AttendanceStore

log = get_logger(__name__)

EARLY_CHECKOUT_REASONS: list[dict[str, str]] = [
    {"value": "class_cancelled", "label": "Class cancelled"},
    {"value": "students_absent", "label": "Students absent"},
    {"value": "emergency", "label": "Emergency"},
    {"value": "schedule_conflict", "label": "Schedule conflict"},
    {"value": "material_completed", "label": "Material completed early"},
    {"value": "other", "label": "Other"},
]


class CheckOutResult(TypedDict):
    session_id: int
    message: str
    end_time: str
    is_early_checkout: bool
    is_stale: bool
    elapsed_percent: int
    elapsed_minutes: int
    total_minutes: int


class CheckOutArbiter:
    """
    Decides whether a session may be closed now.

    elapsed_percent is measured from the session's actual start (falling back
    to the schedule start) to its planned end:
      below CHECKOUT_REASON_PERCENT   -> rejected outright
      below CHECKOUT_MIN_PERCENT      -> needs a reason
      otherwise                       -> allowed
    Sessions dated before today skip the policy and are closed as stale.
    """

    def __init__(self, store: AttendanceStore, clock: Clock, events: EventBus):
        self.store = store
        self.clock = clock
        self.events = events

    def check_out(
        self,
        *,
        session_id: int,
        teacher_id: int,
        early_checkout_reason: str | None = None,
    ) -> CheckOutResult:
        now = self.clock.now()
        reason = (early_checkout_reason or "").strip()

        with transaction(self.store.conn):
            session = self.store.get_session(session_id)
            if not session:
                raise NotFoundError("Session not found.")
            if not session.can_be_operated_by(teacher_id):
                raise AccessDeniedError(
                    "You are neither the owner nor the substitute of this session.",
                    ErrorCode.SESSION_ACCESS_DENIED,
                )
            if session.status != "ongoing":
                raise PolicyRejection(
                    f"Session is {session.status}; only an ongoing session can be checked out.",
                    ErrorCode.SESSION_NOT_ONGOING,
                    details={"status": session.status},
                )

            is_stale = session.date != now.date
            start = now.at(session.planned_start, on=session.date)
            end = now.at(session.planned_end, on=session.date)

            total = end - start
            elapsed = now.moment - start
            if total > timedelta(0):
                elapsed_percent = round_half_up(elapsed / total * 100)
            else:
                # Checked in after the planned end; nothing left to wait for.
                elapsed_percent = 100
            elapsed_minutes = round_half_up(elapsed.total_seconds() / 60)
            total_minutes = round_half_up(total.total_seconds() / 60)
            is_early = now.moment < end - timedelta(minutes=EARLY_CHECKOUT_MARGIN_MINUTES)

            if not is_stale and elapsed_percent < CHECKOUT_MIN_PERCENT:
                until_normal = ceil_minutes(total * (CHECKOUT_MIN_PERCENT / 100) - elapsed)
                progress = {
                    "early_checkout": True,
                    "elapsed_percent": elapsed_percent,
                    "elapsed_minutes": elapsed_minutes,
                    "total_minutes": total_minutes,
                    "min_percent": CHECKOUT_MIN_PERCENT,
                }
                if elapsed_percent < CHECKOUT_REASON_PERCENT:
                    raise PolicyRejection(
                        f"Check-out not allowed yet: session is {elapsed_percent}% done "
                        f"({elapsed_minutes}/{total_minutes} min). "
                        f"At least {CHECKOUT_MIN_PERCENT}% of the session must pass.",
                        ErrorCode.CHECKOUT_TOO_EARLY,
                        details={
                            **progress,
                            "requires_reason": False,
                            "can_checkout": False,
                            "minutes_remaining": until_normal,
                            "min_minutes_required": math.ceil(total_minutes * CHECKOUT_MIN_PERCENT / 100),
                        },
                    )
                if not reason:
                    raise PolicyRejection(
                        f"Early check-out needs a reason: session is {elapsed_percent}% done "
                        f"({elapsed_minutes}/{total_minutes} min). "
                        f"Normal check-out opens at {CHECKOUT_MIN_PERCENT}%.",
                        ErrorCode.CHECKOUT_REASON_REQUIRED,
                        details={
                            **progress,
                            "requires_reason": True,
                            "can_checkout": True,
                            "minutes_until_normal_checkout": until_normal,
                            "available_reasons": EARLY_CHECKOUT_REASONS,
                        },
                    )

            self.store.update_session(session.id, status="completed", end_time=now.time)

            attendance = self.store.get_session_attendance(teacher_id, session.id)
            if attendance:
                fields: dict[str, object] = {"check_out_time": now.time}
                if is_stale:
                    fields["notes"] = f"[AUTO-CLOSE] Stale session from {session.date}, closed on {now.date}"
                elif is_early:
                    fields["notes"] = (
                        f"[EARLY CHECKOUT] Reason: {reason or '-'} | "
                        f"Elapsed: {elapsed_minutes}/{total_minutes} min ({elapsed_percent}%)"
                    )
                    fields["early_checkout_minutes"] = max(0, ceil_minutes(end - now.moment))
                self.store.update_attendance(attendance.id, **fields)

        if is_stale:
            log.info("stale_session_closed", session_id=session.id, session_date=session.date, teacher_id=teacher_id)
        elif is_early:
            log.info(
                "early_checkout",
                session_id=session.id,
                teacher_id=teacher_id,
                reason=reason or None,
                elapsed_percent=elapsed_percent,
            )

        self.events.publish(
            "session:status-changed",
            {
                "session_id": session.id,
                "status": "completed",
                "check_out_time": now.time,
                "has_check_in": True,
                "is_early_checkout": is_early,
                "early_checkout_reason": reason if is_early else None,
            },
        )
        self.events.publish(
            "teacher:checkout",
            {"session_id": session.id, "teacher_id": teacher_id, "is_early_checkout": is_early},
        )

        return {
            "session_id": session.id,
            "message": "Session ended early." if is_early else "Session completed.",
            "end_time": now.time,
            "is_early_checkout": is_early,
            "is_stale": is_stale,
            "elapsed_percent": elapsed_percent,
            "elapsed_minutes": elapsed_minutes,
            "total_minutes": total_minutes,
        }
