"""Projection of cycled schedules onto concrete calendar dates."""
from __future__ import annotations

import dataclasses
from datetime import date, datetime
from typing import List

from schedule_engine.services.calendar import teaching_days, to_local_date, week_info
from schedule_engine.services.calendar_schedule import CalendarSchedule
from schedule_engine.services.cycled import CycledSchedule
from schedule_engine.services.errors import ProjectionError, ScheduleError
from schedule_engine.services.items import ScheduleItem, WeekType
from schedule_engine.services.schedule import Schedule


def items_on_date(cycled: CycledSchedule, start: date | datetime, day: date | datetime) -> List[ScheduleItem]:
    """Lessons of ``cycled`` that take place on ``day``, as calendar items.

    Returned items are copies carrying the date and week number in place of
    the week parity.

    ``start`` is the education start date that week numbering counts from.
    The non-teaching weekday yields no items.
    """
    cfg = cycled.calendar
    day = to_local_date(day, cfg)
    info = week_info(start, day, cfg)
    if info.parity is None:
        return []

    return [
        dataclasses.replace(item, date=day, week_number=info.number, week_type=None)
        for item in cycled.list_items_by_weekday(day.weekday())
        if item.week_type in (info.parity, WeekType.BOTH)
    ]


def materialize_calendar(schedule: Schedule, start: date | datetime) -> Schedule:
    """Build a calendar schedule holding every lesson of the cycled ``schedule`` in its date range."""
    cycled = schedule.cycled
    calendar = CalendarSchedule(cycled.calendar)
    for day in teaching_days(cycled.start_date, cycled.end_date, cycled.calendar):
        try:
            for item in items_on_date(cycled, start, day):
                calendar.add_item(
                    item.discipline,
                    item.teacher_id,
                    item.date,
                    item.students_count,
                    item.lesson_number,
                    item.subgroup,
                    item.week_number,
                    item.lesson_type,
                    item.cabinet,
                )
        except ScheduleError as e:
            raise ProjectionError(str(e), day) from e

    return Schedule(group_id=schedule.group_id, semester=schedule.semester, variant=calendar)
