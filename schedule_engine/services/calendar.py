"""Academic calendar arithmetic: week numbers, parity and teaching days."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator, NamedTuple, Optional
from zoneinfo import ZoneInfo

from schedule_engine.core.config import settings
from schedule_engine.services.errors import ProjectionError
from schedule_engine.services.items import Weekday, WeekType


@dataclass(frozen=True)
class CalendarConfig:
    tz: ZoneInfo
    start_month: int = 9
    start_day: int = 1
    rest_weekday: Weekday = Weekday.SUNDAY


def default_calendar() -> CalendarConfig:
    return CalendarConfig(
        tz=ZoneInfo(settings.timezone),
        start_month=settings.education_start_month,
        start_day=settings.education_start_day,
        rest_weekday=Weekday(settings.non_teaching_weekday),
    )


class WeekInfo(NamedTuple):
    number: int
    # None on the non-teaching weekday
    parity: Optional[WeekType]


def to_local_date(value: date | datetime, cfg: CalendarConfig | None = None) -> date:
    """Calendar day of ``value`` in the reference timezone; time of day is dropped."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            cfg = cfg or default_calendar()
            value = value.astimezone(cfg.tz)
        return value.date()
    return value


def education_start(admission_year: int, semester: int, cfg: CalendarConfig | None = None) -> datetime:
    """First day of instruction of the academic year ``semester`` belongs to."""
    cfg = cfg or default_calendar()
    if semester <= 0:
        semester = 1
    elif semester % 2 == 0:
        semester -= 1
    year = admission_year + (semester - 1) // 2
    return datetime(year, cfg.start_month, cfg.start_day, tzinfo=cfg.tz)


def week_info(start: date | datetime, day: date | datetime, cfg: CalendarConfig | None = None) -> WeekInfo:
    cfg = cfg or default_calendar()
    start_day = to_local_date(start, cfg)
    day = to_local_date(day, cfg)
    if day < start_day:
        raise ProjectionError(f"date {day.isoformat()} is before education start {start_day.isoformat()}")

    number = (day - start_day).days // 7 + 1
    if day.weekday() == cfg.rest_weekday:
        return WeekInfo(number, None)
    return WeekInfo(number, WeekType.ODD if number % 2 else WeekType.EVEN)


def teaching_days(start: date | datetime, end: date | datetime, cfg: CalendarConfig | None = None) -> Iterator[date]:
    cfg = cfg or default_calendar()
    current = to_local_date(start, cfg)
    last = to_local_date(end, cfg)
    if current > last:
        return
    while True:
        if current.weekday() != cfg.rest_weekday:
            yield current
        # Stepping past date.max would overflow
        if current == last:
            return
        current += timedelta(days=1)
