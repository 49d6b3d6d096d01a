"""Week-pattern schedule: lessons recur by weekday with odd/even/both week parity."""
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from schedule_engine.services.calendar import CalendarConfig, default_calendar
from schedule_engine.services.errors import InvalidDataError, ItemConflictError, ItemNotFoundError, Violations
from schedule_engine.services.items import (
    Cabinet,
    ScheduleItem,
    Weekday,
    WeekType,
    check_item_fields,
    check_slot,
    parse_week_type,
    parse_weekday,
)


def items_conflict(a: ScheduleItem, b: ScheduleItem) -> bool:
    """Whether two cycled items can not share their weekday and lesson number.

    Subgroup 0 is the whole group and overlaps every subgroup. Overlapping
    items clash when they run on the same weeks, and a "both" item runs on
    every week.
    """
    if a.weekday != b.weekday or a.lesson_number != b.lesson_number:
        return False
    if not (a.subgroup == 0 or b.subgroup == 0 or a.subgroup == b.subgroup):
        return False
    return a.week_type == b.week_type or WeekType.BOTH in (a.week_type, b.week_type)


class CycledSchedule:
    def __init__(self, start_date: Optional[date], end_date: Optional[date], calendar: CalendarConfig | None = None):
        self.start_date = start_date
        self.end_date = end_date
        self.calendar = calendar or default_calendar()
        # One bucket per weekday, indexed by Weekday
        self._days: List[List[ScheduleItem]] = [[] for _ in Weekday]

    def list_items(self) -> List[ScheduleItem]:
        """All items, Monday first, insertion order within a day."""
        return [item for bucket in self._days for item in bucket]

    def list_items_by_weekday(self, weekday) -> List[ScheduleItem]:
        return list(self._days[parse_weekday(weekday)])

    def restore_item(self, item: ScheduleItem) -> None:
        """Put back a previously stored item as is, without re-checking it against current rules."""
        self._days[item.weekday].append(item)

    def add_item(
        self,
        discipline: str,
        teacher_id: UUID,
        weekday,
        students_count: int,
        lesson_number: int,
        subgroup: int,
        week_type,
        lesson_type,
        cabinet: Cabinet,
    ) -> ScheduleItem:
        item = self._build_item(discipline, teacher_id, weekday, students_count, lesson_number, subgroup, week_type, lesson_type, cabinet)
        self._check_conflicts(item, self._days[item.weekday])
        self._days[item.weekday].append(item)
        return item

    def remove_item(self, weekday, lesson_number: int, subgroup: int, week_type) -> ScheduleItem:
        day, idx = self._locate(weekday, lesson_number, subgroup, week_type)
        return self._days[day].pop(idx)

    def replace_item(
        self,
        weekday,
        lesson_number: int,
        subgroup: int,
        week_type,
        *,
        discipline: str,
        teacher_id: UUID,
        new_weekday,
        students_count: int,
        new_lesson_number: int,
        new_subgroup: int,
        new_week_type,
        lesson_type,
        cabinet: Cabinet,
    ) -> ScheduleItem:
        """Swap one item for another in a single step; nothing changes if the new item is rejected."""
        day, idx = self._locate(weekday, lesson_number, subgroup, week_type)
        old = self._days[day][idx]
        item = self._build_item(discipline, teacher_id, new_weekday, students_count, new_lesson_number, new_subgroup, new_week_type, lesson_type, cabinet)
        others = [current for current in self._days[item.weekday] if current is not old]
        self._check_conflicts(item, others)

        if item.weekday == day:
            self._days[day][idx] = item
        else:
            self._days[day].pop(idx)
            self._days[item.weekday].append(item)
        return item

    def _build_item(self, discipline, teacher_id, weekday, students_count, lesson_number, subgroup, week_type, lesson_type, cabinet) -> ScheduleItem:
        violations = Violations()
        wd = None
        try:
            wd = parse_weekday(weekday)
        except InvalidDataError as e:
            violations.extend(e)
        if wd is not None and wd == self.calendar.rest_weekday:
            violations.add("weekday", f"no lessons on {wd.name.lower()}")

        wt = None
        try:
            wt = parse_week_type(week_type)
        except InvalidDataError as e:
            violations.extend(e)

        lt = check_item_fields(
            violations,
            discipline=discipline,
            students_count=students_count,
            lesson_number=lesson_number,
            subgroup=subgroup,
            lesson_type=lesson_type,
            cabinet=cabinet,
        )
        violations.raise_if_any()

        return ScheduleItem(
            discipline=discipline,
            teacher_id=teacher_id,
            weekday=wd,
            students_count=students_count,
            lesson_number=lesson_number,
            subgroup=subgroup,
            lesson_type=lt,
            cabinet=cabinet,
            week_type=wt,
        )

    @staticmethod
    def _check_conflicts(item: ScheduleItem, existing: List[ScheduleItem]) -> None:
        for current in existing:
            if items_conflict(current, item):
                raise ItemConflictError(
                    f"lesson {current.lesson_number} on {current.weekday.name.lower()} is taken by "
                    f"'{current.discipline}' (subgroup {current.subgroup}, {current.week_type.value} weeks)",
                    existing=current,
                )

    def _locate(self, weekday, lesson_number: int, subgroup: int, week_type) -> tuple[Weekday, int]:
        violations = Violations()
        check_slot(violations, lesson_number, subgroup)
        wd = wt = None
        try:
            wd = parse_weekday(weekday)
        except InvalidDataError as e:
            violations.extend(e)
        try:
            wt = parse_week_type(week_type)
        except InvalidDataError as e:
            violations.extend(e)
        violations.raise_if_any()

        for idx, item in enumerate(self._days[wd]):
            if item.lesson_number == lesson_number and item.subgroup == subgroup and item.week_type == wt:
                return wd, idx
        raise ItemNotFoundError(
            f"item not found: {wd.name.lower()}, lesson {lesson_number}, subgroup {subgroup}, {wt.value} weeks"
        )
