"""Date-exact schedule: a flat list of lessons on concrete days."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from schedule_engine.services.calendar import CalendarConfig, default_calendar, to_local_date
from schedule_engine.services.errors import ItemConflictError, ItemNotFoundError, Violations
from schedule_engine.services.items import Cabinet, ScheduleItem, Weekday, check_item_fields, check_slot


class CalendarSchedule:
    def __init__(self, calendar: CalendarConfig | None = None):
        self.calendar = calendar or default_calendar()
        self._items: List[ScheduleItem] = []

    def list_items(self) -> List[ScheduleItem]:
        return list(self._items)

    def list_items_by_date(self, day: date | datetime) -> List[ScheduleItem]:
        day = to_local_date(day, self.calendar)
        return [item for item in self._items if item.date == day]

    def restore_item(self, item: ScheduleItem) -> None:
        self._items.append(item)

    def add_item(
        self,
        discipline: str,
        teacher_id: UUID,
        day: Optional[date | datetime],
        students_count: int,
        lesson_number: int,
        subgroup: int,
        week_number: Optional[int],
        lesson_type,
        cabinet: Cabinet,
    ) -> ScheduleItem:
        item = self._build_item(discipline, teacher_id, day, students_count, lesson_number, subgroup, week_number, lesson_type, cabinet)
        self._check_conflicts(item, self._items)
        self._items.append(item)
        return item

    def remove_item(self, day: Optional[date | datetime], lesson_number: int, subgroup: int) -> ScheduleItem:
        return self._items.pop(self._locate(day, lesson_number, subgroup))

    def replace_item(
        self,
        day: Optional[date | datetime],
        lesson_number: int,
        subgroup: int,
        *,
        discipline: str,
        teacher_id: UUID,
        new_day: Optional[date | datetime],
        students_count: int,
        new_lesson_number: int,
        new_subgroup: int,
        week_number: Optional[int],
        lesson_type,
        cabinet: Cabinet,
    ) -> ScheduleItem:
        idx = self._locate(day, lesson_number, subgroup)
        item = self._build_item(discipline, teacher_id, new_day, students_count, new_lesson_number, new_subgroup, week_number, lesson_type, cabinet)
        self._check_conflicts(item, self._items[:idx] + self._items[idx + 1:])
        self._items[idx] = item
        return item

    def _build_item(self, discipline, teacher_id, day, students_count, lesson_number, subgroup, week_number, lesson_type, cabinet) -> ScheduleItem:
        violations = Violations()
        if day is None:
            violations.add("date", "is required")
        else:
            day = to_local_date(day, self.calendar)
            if day.weekday() == self.calendar.rest_weekday:
                violations.add("date", f"no lessons on {Weekday(day.weekday()).name.lower()}")
        if week_number is None or week_number < 1:
            violations.add("week_number", "must be 1 or greater")

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
            weekday=Weekday(day.weekday()),
            students_count=students_count,
            lesson_number=lesson_number,
            subgroup=subgroup,
            lesson_type=lt,
            cabinet=cabinet,
            date=day,
            week_number=week_number,
        )

    @staticmethod
    def _check_conflicts(item: ScheduleItem, existing: List[ScheduleItem]) -> None:
        for current in existing:
            if current.date == item.date and current.lesson_number == item.lesson_number and current.subgroup == item.subgroup:
                raise ItemConflictError(
                    f"lesson {item.lesson_number} for subgroup {item.subgroup} on {item.date.isoformat()} "
                    f"is taken by '{current.discipline}'",
                    existing=current,
                )

    def _locate(self, day, lesson_number: int, subgroup: int) -> int:
        violations = Violations()
        check_slot(violations, lesson_number, subgroup)
        if day is None:
            violations.add("date", "is required")
        violations.raise_if_any()

        day = to_local_date(day, self.calendar)
        for idx, item in enumerate(self._items):
            if item.date == day and item.lesson_number == lesson_number and item.subgroup == subgroup:
                return idx
        raise ItemNotFoundError(f"item not found: {day.isoformat()}, lesson {lesson_number}, subgroup {subgroup}")
