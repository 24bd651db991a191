import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from backend.config import TIMEZONE

DATE_FMT = "%Y-%m-%d"
TIME_FMT = "%H:%M:%S"


@dataclass(frozen=True)
class CivilNow:
    """A wall-clock reading in the institution timezone."""

    moment: datetime

    @property
    def date(self) -> str:
        return self.moment.strftime(DATE_FMT)

    @property
    def time(self) -> str:
        return self.moment.strftime(TIME_FMT)

    @property
    def weekday(self) -> int:
        # 1 = Monday .. 7 = Sunday
        return self.moment.isoweekday()

    @property
    def tz(self):
        return self.moment.tzinfo

    def at(self, hms: str, on: str | None = None) -> datetime:
        """Return `hms` on `on` (default: today) as an aware datetime."""
        day = parse_date(on) if on else self.moment.date()
        return datetime.combine(day, parse_hms(hms), tzinfo=self.moment.tzinfo)

    def days_ago(self, days: int) -> str:
        return (self.moment.date() - timedelta(days=days)).strftime(DATE_FMT)


class Clock:
    def __init__(self, tz_name: str = TIMEZONE):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> CivilNow:
        return CivilNow(datetime.now(self.tz))

    def yesterday(self) -> str:
        return self.now().days_ago(1)


class FixedClock(Clock):
    """Clock pinned to a given local wall time; used by tests and replays."""

    def __init__(self, local: datetime | str, tz_name: str = TIMEZONE):
        super().__init__(tz_name)
        self.set(local)

    def set(self, local: datetime | str) -> None:
        if isinstance(local, str):
            local = datetime.strptime(local, f"{DATE_FMT} {TIME_FMT}")
        if local.tzinfo is None:
            local = local.replace(tzinfo=self.tz)
        self._moment = local.astimezone(self.tz)

    def advance(self, **delta) -> None:
        self._moment = self._moment + timedelta(**delta)

    def now(self) -> CivilNow:
        return CivilNow(self._moment)


def parse_hms(value: str) -> time:
    parts = value.strip().split(":")
    hh = int(parts[0])
    mm = int(parts[1]) if len(parts) > 1 else 0
    ss = int(parts[2]) if len(parts) > 2 else 0
    return time(hh, mm, ss)


def normalize_hms(value: str) -> str:
    return parse_hms(value).strftime(TIME_FMT)


def parse_date(value: str) -> date:
    return datetime.strptime(value.strip(), DATE_FMT).date()


def weekday_of(value: str) -> int:
    return parse_date(value).isoweekday()


def ceil_minutes(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / 60)


def round_half_up(value: float) -> int:
    # Half-way values round toward +inf (2.5 -> 3, -2.5 -> -2).
    return math.floor(value + 0.5)
