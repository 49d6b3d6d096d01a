"""Schedule item value types and the field checks shared by both schedule kinds."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum, IntEnum
from typing import Optional
from uuid import UUID

from schedule_engine.services.errors import InvalidDataError, Violations


class Weekday(IntEnum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class WeekType(str, Enum):
    ODD = "odd"
    EVEN = "even"
    BOTH = "both"


class LessonType(str, Enum):
    LECTURE = "lecture"
    PRACTICE = "practice"
    SEMINAR = "seminar"
    EXAM = "exam"
    LABORATORY = "laboratory"


# Integer codes used by older clients and the legacy CSV import
_WEEK_TYPE_CODES = [WeekType.ODD, WeekType.EVEN, WeekType.BOTH]
_LESSON_TYPE_CODES = [LessonType.LECTURE, LessonType.PRACTICE, LessonType.SEMINAR, LessonType.EXAM, LessonType.LABORATORY]

_LESSON_TYPE_LABELS = {
    LessonType.LECTURE: "лек.",
    LessonType.PRACTICE: "пр.",
    LessonType.SEMINAR: "сем.",
    LessonType.EXAM: "экз.",
    LessonType.LABORATORY: "лаб.",
}

_WEEK_TYPE_LABELS = {
    WeekType.ODD: "Н",
    WeekType.EVEN: "Ч",
    WeekType.BOTH: "",
}


def _parse_enum(enum_cls, codes, value, field: str):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        if 0 <= value < len(codes):
            return codes[value]
    elif isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    raise InvalidDataError.single(field, f"unknown value {value!r}")


def parse_week_type(value) -> WeekType:
    return _parse_enum(WeekType, _WEEK_TYPE_CODES, value, "week_type")


def parse_lesson_type(value) -> LessonType:
    return _parse_enum(LessonType, _LESSON_TYPE_CODES, value, "lesson_type")


def parse_weekday(value) -> Weekday:
    if isinstance(value, Weekday):
        return value
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 6:
        return Weekday(value)
    if isinstance(value, str) and value.strip().upper() in Weekday.__members__:
        return Weekday[value.strip().upper()]
    raise InvalidDataError.single("weekday", f"unknown value {value!r}")


def lesson_type_label(lesson_type: LessonType) -> str:
    return _LESSON_TYPE_LABELS[lesson_type]


def week_type_label(week_type: Optional[WeekType]) -> str:
    if week_type is None:
        return ""
    return _WEEK_TYPE_LABELS[week_type]


@dataclass(frozen=True)
class Cabinet:
    building: str
    auditorium: str

    @property
    def address(self) -> str:
        return f"{self.building}-{self.auditorium}"


@dataclass(frozen=True)
class ScheduleItem:
    discipline: str
    teacher_id: UUID
    weekday: Weekday
    students_count: int
    lesson_number: int
    subgroup: int
    lesson_type: LessonType
    cabinet: Cabinet
    # Cycled items only
    week_type: Optional[WeekType] = None
    # Calendar items only
    date: Optional[date] = None
    week_number: Optional[int] = None


def check_slot(violations: Violations, lesson_number: int, subgroup: int) -> None:
    if lesson_number < 0:
        violations.add("lesson_number", "must not be negative")
    if subgroup < 0:
        violations.add("subgroup", "must not be negative")


def check_item_fields(
    violations: Violations,
    *,
    discipline: str,
    students_count: int,
    lesson_number: int,
    subgroup: int,
    lesson_type,
    cabinet: Optional[Cabinet],
) -> Optional[LessonType]:
    """Record every field problem in ``violations``; returns the parsed lesson type when valid."""
    check_slot(violations, lesson_number, subgroup)
    if students_count < 0:
        violations.add("students_count", "must not be negative")
    if not discipline or not discipline.strip():
        violations.add("discipline", "must not be empty")
    if cabinet is None:
        violations.add("cabinet", "is required")
    else:
        if not cabinet.building:
            violations.add("cabinet", "empty building")
        if not cabinet.auditorium:
            violations.add("cabinet", "empty auditorium")

    try:
        return parse_lesson_type(lesson_type)
    except InvalidDataError as e:
        violations.extend(e)
        return None
