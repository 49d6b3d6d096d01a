import itertools
import uuid
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from schedule_engine.core.config import settings
from schedule_engine.services.calendar import CalendarConfig
from schedule_engine.services.calendar_schedule import CalendarSchedule
from schedule_engine.services.cycled import CycledSchedule, items_conflict
from schedule_engine.services.errors import InvalidDataError, ItemConflictError, ItemNotFoundError
from schedule_engine.services.items import Cabinet, LessonType, Weekday, WeekType
from schedule_engine.services.schedule import Schedule, ScheduleKind

TEACHER = uuid.uuid4()
ROOM = Cabinet(building="A", auditorium="101")


@pytest.fixture
def cycled():
    return CycledSchedule(date(2025, 9, 1), date(2025, 12, 31))


@pytest.fixture
def calendar():
    return CalendarSchedule()


def add_cycled(schedule, weekday=Weekday.MONDAY, lesson=0, subgroup=0, week_type=WeekType.BOTH, **overrides):
    args = dict(
        discipline="Math",
        teacher_id=TEACHER,
        weekday=weekday,
        students_count=25,
        lesson_number=lesson,
        subgroup=subgroup,
        week_type=week_type,
        lesson_type=LessonType.LECTURE,
        cabinet=ROOM,
    )
    args.update(overrides)
    return schedule.add_item(**args)


def add_calendar(schedule, day=date(2025, 9, 2), lesson=0, subgroup=0, week_number=1, **overrides):
    args = dict(
        discipline="Physics",
        teacher_id=TEACHER,
        day=day,
        students_count=25,
        lesson_number=lesson,
        subgroup=subgroup,
        week_number=week_number,
        lesson_type=LessonType.PRACTICE,
        cabinet=ROOM,
    )
    args.update(overrides)
    return schedule.add_item(**args)


# --- cycled schedule: adding ---

def test_cycled_add_item_happy_path(cycled):
    item = add_cycled(cycled)
    assert item.weekday == Weekday.MONDAY
    assert item.week_type == WeekType.BOTH
    assert item.lesson_type == LessonType.LECTURE
    assert item.date is None and item.week_number is None
    assert cycled.list_items() == [item]


def test_cycled_accepts_legacy_codes_and_names(cycled):
    item = add_cycled(cycled, weekday="tuesday", week_type=1, lesson_type=4)
    assert item.weekday == Weekday.TUESDAY
    assert item.week_type == WeekType.EVEN
    assert item.lesson_type == LessonType.LABORATORY


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"weekday": Weekday.SUNDAY}, "weekday"),
        ({"students_count": -1}, "students_count"),
        ({"lesson_number": -1}, "lesson_number"),
        ({"subgroup": -1}, "subgroup"),
        ({"week_type": 3}, "week_type"),
        ({"week_type": "weekly"}, "week_type"),
        ({"lesson_type": 9}, "lesson_type"),
        ({"discipline": ""}, "discipline"),
        ({"cabinet": Cabinet(building="", auditorium="101")}, "cabinet"),
        ({"cabinet": None}, "cabinet"),
    ],
)
def test_cycled_add_item_rejects_invalid_data(cycled, overrides, field):
    add_cycled(cycled, weekday=Weekday.FRIDAY)
    before = len(cycled.list_items())
    with pytest.raises(InvalidDataError) as exc:
        add_cycled(cycled, **overrides)
    assert field in {v.field for v in exc.value.violations}
    assert len(cycled.list_items()) == before


def test_invalid_data_reports_every_violation(cycled):
    with pytest.raises(InvalidDataError) as exc:
        add_cycled(cycled, students_count=-5, discipline="")
    fields = {v.field for v in exc.value.violations}
    assert fields == {"students_count", "discipline"}
    assert "students_count" in str(exc.value)
    assert "discipline" in str(exc.value)


def test_invalid_data_is_not_a_conflict(cycled):
    add_cycled(cycled)
    with pytest.raises(InvalidDataError) as exc:
        add_cycled(cycled, lesson=-1)
    assert not isinstance(exc.value, ItemConflictError)


def test_whole_group_both_conflicts_with_subgroup_even(cycled):
    add_cycled(cycled, subgroup=0, week_type=WeekType.BOTH)
    with pytest.raises(ItemConflictError):
        add_cycled(cycled, subgroup=1, week_type=WeekType.EVEN)
    assert len(cycled.list_items()) == 1


def test_distinct_subgroups_same_parity_do_not_conflict(cycled):
    add_cycled(cycled, subgroup=1, week_type=WeekType.EVEN)
    add_cycled(cycled, subgroup=2, week_type=WeekType.EVEN)
    assert len(cycled.list_items()) == 2


def test_odd_and_even_share_a_slot(cycled):
    add_cycled(cycled, week_type=WeekType.ODD)
    add_cycled(cycled, week_type=WeekType.EVEN)
    with pytest.raises(ItemConflictError):
        add_cycled(cycled, week_type=WeekType.ODD, subgroup=3)


def test_conflicts_are_per_weekday_and_lesson(cycled):
    add_cycled(cycled)
    add_cycled(cycled, lesson=1)
    add_cycled(cycled, weekday=Weekday.TUESDAY)
    assert len(cycled.list_items()) == 3


def test_conflict_error_carries_existing_item(cycled):
    first = add_cycled(cycled, discipline="History")
    with pytest.raises(ItemConflictError) as exc:
        add_cycled(cycled)
    assert exc.value.existing == first
    assert "History" in str(exc.value)


PLACEMENTS = list(itertools.product(list(WeekType), [0, 1, 2]))


@pytest.mark.parametrize("a, b", list(itertools.product(PLACEMENTS, PLACEMENTS)))
def test_conflict_symmetry(a, b):
    def clashes(first, second):
        schedule = CycledSchedule(date(2025, 9, 1), date(2025, 12, 31))
        add_cycled(schedule, week_type=first[0], subgroup=first[1])
        try:
            add_cycled(schedule, week_type=second[0], subgroup=second[1])
        except ItemConflictError:
            return True
        return False

    (wt_a, sg_a), (wt_b, sg_b) = a, b
    overlap = sg_a == 0 or sg_b == 0 or sg_a == sg_b
    expected = overlap and (wt_a == wt_b or WeekType.BOTH in (wt_a, wt_b))
    assert clashes(a, b) == expected
    assert clashes(b, a) == expected


@pytest.mark.parametrize("week_type, subgroup", PLACEMENTS)
def test_whole_group_both_blocks_everything(cycled, week_type, subgroup):
    add_cycled(cycled, subgroup=0, week_type=WeekType.BOTH)
    with pytest.raises(ItemConflictError):
        add_cycled(cycled, subgroup=subgroup, week_type=week_type)


def test_items_conflict_ignores_other_slots(cycled):
    a = add_cycled(cycled)
    b = add_cycled(cycled, lesson=2)
    assert not items_conflict(a, b)
    assert items_conflict(a, a)


def test_custom_rest_weekday():
    cfg = CalendarConfig(tz=ZoneInfo("UTC"), rest_weekday=Weekday.SATURDAY)
    schedule = CycledSchedule(date(2025, 9, 1), date(2025, 12, 31), cfg)
    add_cycled(schedule, weekday=Weekday.SUNDAY)
    with pytest.raises(InvalidDataError):
        add_cycled(schedule, weekday=Weekday.SATURDAY)


# --- cycled schedule: listing and removing ---

def test_list_items_weekday_order_then_insertion(cycled):
    fri = add_cycled(cycled, weekday=Weekday.FRIDAY)
    mon_late = add_cycled(cycled, weekday=Weekday.MONDAY, lesson=3)
    mon_early = add_cycled(cycled, weekday=Weekday.MONDAY, lesson=1)
    sat = add_cycled(cycled, weekday=Weekday.SATURDAY)
    assert cycled.list_items() == [mon_late, mon_early, fri, sat]
    assert cycled.list_items_by_weekday(Weekday.MONDAY) == [mon_late, mon_early]
    assert cycled.list_items_by_weekday(Weekday.WEDNESDAY) == []


def test_list_items_by_weekday_returns_copy(cycled):
    add_cycled(cycled)
    cycled.list_items_by_weekday(Weekday.MONDAY).clear()
    assert len(cycled.list_items()) == 1


def test_remove_item_exact_match(cycled):
    add_cycled(cycled, subgroup=1, week_type=WeekType.ODD)
    keep = add_cycled(cycled, subgroup=2, week_type=WeekType.ODD)
    removed = cycled.remove_item(Weekday.MONDAY, 0, 1, WeekType.ODD)
    assert removed.subgroup == 1
    assert cycled.list_items() == [keep]


def test_remove_item_not_found(cycled):
    add_cycled(cycled, subgroup=1, week_type=WeekType.ODD)
    with pytest.raises(ItemNotFoundError):
        cycled.remove_item(Weekday.MONDAY, 0, 1, WeekType.EVEN)
    with pytest.raises(ItemNotFoundError):
        cycled.remove_item(Weekday.TUESDAY, 0, 1, WeekType.ODD)
    assert len(cycled.list_items()) == 1


def test_remove_item_invalid_arguments(cycled):
    with pytest.raises(InvalidDataError) as exc:
        cycled.remove_item(Weekday.MONDAY, -1, -1, "sometimes")
    assert {v.field for v in exc.value.violations} == {"lesson_number", "subgroup", "week_type"}


def test_replace_item_moves_lesson(cycled):
    add_cycled(cycled, lesson=0)
    add_cycled(cycled, lesson=1, discipline="Chemistry")
    new = cycled.replace_item(
        Weekday.MONDAY, 0, 0, WeekType.BOTH,
        discipline="Math", teacher_id=TEACHER, new_weekday=Weekday.WEDNESDAY,
        students_count=25, new_lesson_number=2, new_subgroup=0, new_week_type=WeekType.ODD,
        lesson_type=LessonType.SEMINAR, cabinet=ROOM,
    )
    assert cycled.list_items_by_weekday(Weekday.WEDNESDAY) == [new]
    assert [i.discipline for i in cycled.list_items_by_weekday(Weekday.MONDAY)] == ["Chemistry"]


def test_replace_item_may_reuse_its_own_slot(cycled):
    add_cycled(cycled, week_type=WeekType.BOTH)
    new = cycled.replace_item(
        Weekday.MONDAY, 0, 0, WeekType.BOTH,
        discipline="Math", teacher_id=TEACHER, new_weekday=Weekday.MONDAY,
        students_count=10, new_lesson_number=0, new_subgroup=0, new_week_type=WeekType.EVEN,
        lesson_type=LessonType.LECTURE, cabinet=ROOM,
    )
    assert cycled.list_items() == [new]


def test_replace_item_conflict_leaves_schedule_untouched(cycled):
    original = add_cycled(cycled, lesson=0)
    other = add_cycled(cycled, lesson=1)
    with pytest.raises(ItemConflictError):
        cycled.replace_item(
            Weekday.MONDAY, 0, 0, WeekType.BOTH,
            discipline="Math", teacher_id=TEACHER, new_weekday=Weekday.MONDAY,
            students_count=25, new_lesson_number=1, new_subgroup=1, new_week_type=WeekType.ODD,
            lesson_type=LessonType.LECTURE, cabinet=ROOM,
        )
    assert cycled.list_items() == [original, other]


# --- calendar schedule ---

def test_calendar_add_item(calendar):
    item = add_calendar(calendar)
    assert item.weekday == Weekday.TUESDAY
    assert item.week_number == 1
    assert item.week_type is None
    assert calendar.list_items() == [item]


def test_calendar_normalizes_time_of_day(calendar):
    item = add_calendar(calendar, day=datetime(2025, 9, 2, 14, 30))
    assert item.date == date(2025, 9, 2)
    calendar.remove_item(date(2025, 9, 2), 0, 0)
    assert calendar.list_items() == []


def test_calendar_converts_aware_datetimes_to_reference_timezone(calendar):
    # 22:00 UTC is already the next day in Moscow
    item = add_calendar(calendar, day=datetime(2025, 9, 1, 22, 0, tzinfo=timezone.utc))
    assert item.date == date(2025, 9, 2)


def test_calendar_conflict_same_date_slot_subgroup(calendar):
    add_calendar(calendar)
    with pytest.raises(ItemConflictError):
        add_calendar(calendar, day=datetime(2025, 9, 2, 8, 0))
    # different subgroup, slot or date is fine; no whole-group overlap on calendars
    add_calendar(calendar, subgroup=1)
    add_calendar(calendar, lesson=1)
    add_calendar(calendar, day=date(2025, 9, 3))
    assert len(calendar.list_items()) == 4


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"day": None}, "date"),
        ({"day": date(2025, 9, 7)}, "date"),  # Sunday
        ({"week_number": 0}, "week_number"),
        ({"week_number": None}, "week_number"),
        ({"lesson_number": -1}, "lesson_number"),
        ({"students_count": -3}, "students_count"),
        ({"lesson_type": "lab"}, "lesson_type"),
        ({"cabinet": Cabinet(building="A", auditorium="")}, "cabinet"),
    ],
)
def test_calendar_rejects_invalid_data(calendar, overrides, field):
    add_calendar(calendar, day=date(2025, 9, 5))
    with pytest.raises(InvalidDataError) as exc:
        add_calendar(calendar, **overrides)
    assert field in {v.field for v in exc.value.violations}
    assert len(calendar.list_items()) == 1


def test_calendar_remove_item(calendar):
    add_calendar(calendar)
    keep = add_calendar(calendar, subgroup=2)
    with pytest.raises(ItemNotFoundError):
        calendar.remove_item(date(2025, 9, 2), 0, 1)
    calendar.remove_item(date(2025, 9, 2), 0, 0)
    assert calendar.list_items() == [keep]


def test_calendar_list_items_by_date(calendar):
    first = add_calendar(calendar)
    add_calendar(calendar, day=date(2025, 9, 3))
    assert calendar.list_items_by_date(date(2025, 9, 2)) == [first]


def test_calendar_replace_item(calendar):
    add_calendar(calendar)
    taken = add_calendar(calendar, lesson=1)
    with pytest.raises(ItemConflictError):
        calendar.replace_item(
            date(2025, 9, 2), 0, 0,
            discipline="Physics", teacher_id=TEACHER, new_day=date(2025, 9, 2),
            students_count=25, new_lesson_number=1, new_subgroup=0, week_number=1,
            lesson_type=LessonType.PRACTICE, cabinet=ROOM,
        )
    new = calendar.replace_item(
        date(2025, 9, 2), 0, 0,
        discipline="Physics", teacher_id=TEACHER, new_day=date(2025, 9, 4),
        students_count=25, new_lesson_number=0, new_subgroup=0, week_number=1,
        lesson_type=LessonType.PRACTICE, cabinet=ROOM,
    )
    assert calendar.list_items() == [new, taken]


# --- schedule aggregate ---

def test_new_cycled_schedule_semester_two():
    schedule = Schedule.new_cycled(uuid.uuid4(), 2, date(2026, 2, 2), date(2026, 2, 8), 2025, 2026)
    assert schedule.kind == ScheduleKind.CYCLED
    assert schedule.cycled.start_date == date(2026, 2, 2)
    assert schedule.list_items() == []


def test_new_cycled_schedule_future_admission_fails():
    with pytest.raises(InvalidDataError) as exc:
        Schedule.new_cycled(uuid.uuid4(), 2, date(2026, 2, 2), date(2026, 2, 8), 2027, 2026)
    assert {v.field for v in exc.value.violations} == {"admission_year"}


@pytest.mark.parametrize(
    "semester, start, end",
    [
        (-1, date(2026, 2, 2), date(2026, 2, 8)),
        (settings.max_semester + 1, date(2026, 2, 2), date(2026, 2, 8)),
        (1, None, None),
        (1, date(2026, 2, 2), None),
        (1, date(2026, 2, 8), date(2026, 2, 2)),
    ],
)
def test_new_cycled_schedule_fails(semester, start, end):
    with pytest.raises(InvalidDataError):
        Schedule.new_cycled(uuid.uuid4(), semester, start, end, 2025, 2026)


def test_date_range_length_is_bounded():
    start = date(2025, 9, 1)
    longest = start + timedelta(days=settings.max_schedule_days - 1)
    Schedule.new_cycled(uuid.uuid4(), 1, start, longest, 2025, 2026)
    with pytest.raises(InvalidDataError) as exc:
        Schedule.new_cycled(uuid.uuid4(), 1, start, longest + timedelta(days=1), 2025, 2026)
    assert {v.field for v in exc.value.violations} == {"date_range"}
    with pytest.raises(InvalidDataError):
        Schedule.new_cycled(uuid.uuid4(), 1, start, date.max, 2025, 2026)


def test_restored_items_skip_current_rules(cycled):
    stored = add_cycled(cycled, weekday=Weekday.MONDAY)
    other = CycledSchedule(date(2025, 9, 1), date(2025, 12, 31), CalendarConfig(tz=ZoneInfo("UTC"), rest_weekday=Weekday.MONDAY))
    other.restore_item(stored)
    assert other.list_items_by_weekday(Weekday.MONDAY) == [stored]
    with pytest.raises(InvalidDataError):
        add_cycled(other, weekday=Weekday.MONDAY, lesson=1)


def test_validate_aggregates_violations():
    with pytest.raises(InvalidDataError) as exc:
        Schedule.new_cycled(uuid.uuid4(), -1, date(2026, 2, 8), date(2026, 2, 2), 2030, 2026)
    assert {v.field for v in exc.value.violations} == {"semester", "admission_year", "date_range"}


def test_validate_after_edit():
    schedule = Schedule.new_cycled(uuid.uuid4(), 1, date(2025, 9, 1), date(2025, 12, 31), 2025, 2026)
    schedule.cycled.end_date = date(2025, 8, 1)
    with pytest.raises(InvalidDataError):
        schedule.validate(2025, 2026)
    schedule.cycled.end_date = date(2025, 12, 30)
    schedule.validate(2025, 2026)


def test_schedule_dispatches_to_variant():
    schedule = Schedule(group_id=uuid.uuid4(), semester=1, variant=CalendarSchedule())
    assert schedule.kind == ScheduleKind.CALENDAR
    add_calendar(schedule.calendar)
    assert len(schedule.list_items()) == 1
    with pytest.raises(InvalidDataError):
        schedule.cycled
    # calendar schedules have no date range to check
    schedule.validate(2025, 2026)


def test_non_teaching_day_rejected_by_both_variants(cycled, calendar):
    with pytest.raises(InvalidDataError):
        add_cycled(cycled, weekday=Weekday.SUNDAY)
    with pytest.raises(InvalidDataError):
        add_calendar(calendar, day=date(2025, 9, 14))
    assert cycled.list_items() == [] and calendar.list_items() == []
