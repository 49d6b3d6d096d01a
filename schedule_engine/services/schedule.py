"""Schedule aggregate: one group's semester schedule in either cycled or calendar form."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Union

from schedule_engine.core.config import settings
from schedule_engine.services.calendar import CalendarConfig
from schedule_engine.services.calendar_schedule import CalendarSchedule
from schedule_engine.services.cycled import CycledSchedule
from schedule_engine.services.errors import InvalidDataError, Violations
from schedule_engine.services.items import ScheduleItem


class ScheduleKind(str, Enum):
    CYCLED = "cycled"
    CALENDAR = "calendar"


@dataclass
class Schedule:
    group_id: uuid.UUID
    semester: int
    variant: Union[CycledSchedule, CalendarSchedule]
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def kind(self) -> ScheduleKind:
        if isinstance(self.variant, CycledSchedule):
            return ScheduleKind.CYCLED
        return ScheduleKind.CALENDAR

    @property
    def cycled(self) -> CycledSchedule:
        if not isinstance(self.variant, CycledSchedule):
            raise InvalidDataError.single("schedule", "schedule is not cycled")
        return self.variant

    @property
    def calendar(self) -> CalendarSchedule:
        if not isinstance(self.variant, CalendarSchedule):
            raise InvalidDataError.single("schedule", "schedule is not a calendar schedule")
        return self.variant

    @classmethod
    def new_cycled(
        cls,
        group_id: uuid.UUID,
        semester: int,
        start_date: Optional[date],
        end_date: Optional[date],
        admission_year: int,
        current_year: int,
        calendar: CalendarConfig | None = None,
    ) -> "Schedule":
        schedule = cls(group_id=group_id, semester=semester, variant=CycledSchedule(start_date, end_date, calendar))
        schedule.validate(admission_year, current_year)
        return schedule

    def validate(self, admission_year: int, current_year: int) -> None:
        """Check semester, admission year and (for cycled schedules) the date range."""
        violations = Violations()
        if self.semester < 0:
            violations.add("semester", "must not be negative")
        elif self.semester > settings.max_semester:
            violations.add("semester", f"must not exceed {settings.max_semester}")

        if admission_year < 0:
            violations.add("admission_year", "must not be negative")
        elif admission_year > current_year:
            violations.add("admission_year", f"{admission_year} is in the future (current year {current_year})")

        if isinstance(self.variant, CycledSchedule):
            start, end = self.variant.start_date, self.variant.end_date
            if start is None or end is None:
                violations.add("date_range", "both start and end dates are required")
            elif start > end:
                violations.add("date_range", "start date is after end date")
            elif (end - start).days + 1 > settings.max_schedule_days:
                violations.add("date_range", f"must not span more than {settings.max_schedule_days} days")

        violations.raise_if_any()

    def list_items(self) -> List[ScheduleItem]:
        return self.variant.list_items()
