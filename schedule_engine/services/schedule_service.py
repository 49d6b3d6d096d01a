"""Schedule use cases: load an aggregate, apply a domain operation, save it back.

Every mutating use case runs inside the request session; any schedule error
rolls the session back so no partial change is persisted.
"""
import functools
import logging
import time
import uuid
from datetime import date, datetime
from io import BytesIO
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from schedule_engine import models, schemas
from schedule_engine.core.logging_config import schedule_log_context
from schedule_engine.core.monitoring import ITEM_MUTATIONS, MATERIALIZATION_COUNT, MATERIALIZATION_DURATION
from schedule_engine.services import exporter, projector, repository
from schedule_engine.services.calendar import WeekInfo, default_calendar, education_start, week_info
from schedule_engine.services.errors import (
    InvalidDataError,
    ItemConflictError,
    ItemNotFoundError,
    NotFoundError,
    ScheduleError,
    ScheduleExistsError,
    Violations,
)
from schedule_engine.services.items import Cabinet, ScheduleItem
from schedule_engine.services.schedule import Schedule, ScheduleKind

logger = logging.getLogger(__name__)


def _schedule_logged(func):
    """Run a use case taking ``(db, schedule_id, ...)`` with the schedule id in every log record."""

    @functools.wraps(func)
    def wrapper(db, schedule_id, *args, **kwargs):
        with schedule_log_context(schedule_id):
            return func(db, schedule_id, *args, **kwargs)

    return wrapper


def _current_year() -> int:
    return datetime.now(default_calendar().tz).year


def _result_label(err: Optional[Exception]) -> str:
    if err is None:
        return "ok"
    if isinstance(err, ItemConflictError):
        return "conflict"
    if isinstance(err, (ItemNotFoundError, NotFoundError)):
        return "not_found"
    return "invalid"


def get_group(db: Session, group_id: uuid.UUID) -> models.Group:
    group = db.get(models.Group, str(group_id))
    if group is None:
        raise NotFoundError(f"group {group_id} not found")
    return group


def _resolve_cabinet(db: Session, cabinet_id: uuid.UUID) -> Cabinet:
    cabinet = db.get(models.Cabinet, str(cabinet_id))
    if cabinet is None:
        raise NotFoundError(f"cabinet {cabinet_id} not found")
    return Cabinet(building=cabinet.building, auditorium=cabinet.auditorium)


def _check_teacher(db: Session, teacher_id: uuid.UUID) -> None:
    if db.get(models.Teacher, str(teacher_id)) is None:
        raise NotFoundError(f"teacher {teacher_id} not found")


def teachers_by_id(db: Session, teacher_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, models.Teacher]:
    ids = {str(t) for t in teacher_ids}
    if not ids:
        return {}
    rows = db.query(models.Teacher).filter(models.Teacher.id.in_(ids)).all()
    return {uuid.UUID(t.id): t for t in rows}


def _education_start_for(db: Session, schedule: Schedule) -> datetime:
    group = get_group(db, schedule.group_id)
    return education_start(group.admission_year, schedule.semester)


def _require_cycled_fields(entry) -> None:
    violations = Violations()
    if entry.weekday is None:
        violations.add("weekday", "is required for a cycled schedule")
    if entry.week_type is None:
        violations.add("week_type", "is required for a cycled schedule")
    violations.raise_if_any()


def _add_entry(db: Session, schedule: Schedule, entry: schemas.ScheduleItemIn) -> ScheduleItem:
    _check_teacher(db, entry.teacher_id)
    cabinet = _resolve_cabinet(db, entry.cabinet_id)
    if schedule.kind == ScheduleKind.CYCLED:
        _require_cycled_fields(entry)
        return schedule.cycled.add_item(
            entry.discipline, entry.teacher_id, entry.weekday, entry.students_count,
            entry.lesson_number, entry.subgroup, entry.week_type, entry.lesson_type, cabinet,
        )
    return schedule.calendar.add_item(
        entry.discipline, entry.teacher_id, entry.date, entry.students_count,
        entry.lesson_number, entry.subgroup, entry.week_number, entry.lesson_type, cabinet,
    )


def _remove_entry(schedule: Schedule, key: schemas.ScheduleItemKey) -> ScheduleItem:
    if schedule.kind == ScheduleKind.CYCLED:
        _require_cycled_fields(key)
        return schedule.cycled.remove_item(key.weekday, key.lesson_number, key.subgroup, key.week_type)
    return schedule.calendar.remove_item(key.date, key.lesson_number, key.subgroup)


def _save(db: Session, schedule: Schedule) -> None:
    repository.save_schedule(db, schedule)
    db.commit()


def create_schedule(db: Session, request: schemas.ScheduleCreate) -> Schedule:
    logger.info("Create schedule: group=%s semester=%s %s..%s", request.group_id, request.semester, request.start_date, request.end_date)
    group = get_group(db, request.group_id)
    if repository.find_schedule(db, request.group_id, request.semester) is not None:
        raise ScheduleExistsError(f"schedule for group {group.number} and semester {request.semester} already exists")

    schedule = Schedule.new_cycled(
        request.group_id,
        request.semester,
        request.start_date,
        request.end_date,
        group.admission_year,
        _current_year(),
    )
    _save(db, schedule)
    logger.info("Created cycled schedule %s for group %s", schedule.id, group.number)
    return schedule


@_schedule_logged
def get_schedule(db: Session, schedule_id: uuid.UUID) -> Schedule:
    return repository.get_schedule(db, schedule_id)


def list_schedules(db: Session, group_id: Optional[uuid.UUID] = None) -> List[Schedule]:
    return repository.list_schedules(db, group_id)


@_schedule_logged
def delete_schedule(db: Session, schedule_id: uuid.UUID) -> None:
    repository.delete_schedule(db, schedule_id)
    db.commit()
    logger.info("Deleted schedule %s", schedule_id)


@_schedule_logged
def update_schedule(db: Session, schedule_id: uuid.UUID, request: schemas.ScheduleUpdate) -> Schedule:
    schedule = repository.get_schedule(db, schedule_id)
    group = get_group(db, schedule.group_id)

    if request.semester is not None:
        schedule.semester = request.semester
    if schedule.kind == ScheduleKind.CYCLED:
        if request.start_date is not None:
            schedule.cycled.start_date = request.start_date
        if request.end_date is not None:
            schedule.cycled.end_date = request.end_date
    elif request.start_date is not None or request.end_date is not None:
        raise InvalidDataError.single("date_range", "only cycled schedules have a date range")

    schedule.validate(group.admission_year, _current_year())
    if request.semester is not None:
        other = repository.find_schedule(db, schedule.group_id, schedule.semester)
        if other is not None and other.id != schedule.id:
            raise ScheduleExistsError(f"schedule for group {group.number} and semester {schedule.semester} already exists")

    _save(db, schedule)
    logger.info("Updated schedule %s: semester=%s", schedule.id, schedule.semester)
    return schedule


@_schedule_logged
def add_items(db: Session, schedule_id: uuid.UUID, entries: List[schemas.ScheduleItemIn]) -> Schedule:
    """Add all ``entries`` or none of them."""
    schedule = repository.get_schedule(db, schedule_id)
    for idx, entry in enumerate(entries):
        try:
            _add_entry(db, schedule, entry)
        except ScheduleError as e:
            ITEM_MUTATIONS.labels(operation="add", result=_result_label(e)).inc()
            e.input_index = idx
            logger.warning("Add item #%d to schedule %s rejected: %s", idx, schedule_id, e)
            db.rollback()
            raise
        ITEM_MUTATIONS.labels(operation="add", result="ok").inc()

    _save(db, schedule)
    logger.info("Added %d items to schedule %s", len(entries), schedule_id)
    return schedule


@_schedule_logged
def remove_items(db: Session, schedule_id: uuid.UUID, keys: List[schemas.ScheduleItemKey]) -> Schedule:
    schedule = repository.get_schedule(db, schedule_id)
    for idx, key in enumerate(keys):
        try:
            _remove_entry(schedule, key)
        except ScheduleError as e:
            ITEM_MUTATIONS.labels(operation="remove", result=_result_label(e)).inc()
            e.input_index = idx
            logger.warning("Remove item #%d from schedule %s failed: %s", idx, schedule_id, e)
            db.rollback()
            raise
        ITEM_MUTATIONS.labels(operation="remove", result="ok").inc()

    _save(db, schedule)
    logger.info("Removed %d items from schedule %s", len(keys), schedule_id)
    return schedule


@_schedule_logged
def replace_item(db: Session, schedule_id: uuid.UUID, request: schemas.ReplaceItemRequest) -> Schedule:
    schedule = repository.get_schedule(db, schedule_id)
    old, new = request.old, request.new
    try:
        _check_teacher(db, new.teacher_id)
        cabinet = _resolve_cabinet(db, new.cabinet_id)
        if schedule.kind == ScheduleKind.CYCLED:
            _require_cycled_fields(old)
            _require_cycled_fields(new)
            schedule.cycled.replace_item(
                old.weekday, old.lesson_number, old.subgroup, old.week_type,
                discipline=new.discipline,
                teacher_id=new.teacher_id,
                new_weekday=new.weekday,
                students_count=new.students_count,
                new_lesson_number=new.lesson_number,
                new_subgroup=new.subgroup,
                new_week_type=new.week_type,
                lesson_type=new.lesson_type,
                cabinet=cabinet,
            )
        else:
            schedule.calendar.replace_item(
                old.date, old.lesson_number, old.subgroup,
                discipline=new.discipline,
                teacher_id=new.teacher_id,
                new_day=new.date,
                students_count=new.students_count,
                new_lesson_number=new.lesson_number,
                new_subgroup=new.subgroup,
                week_number=new.week_number,
                lesson_type=new.lesson_type,
                cabinet=cabinet,
            )
    except ScheduleError as e:
        ITEM_MUTATIONS.labels(operation="replace", result=_result_label(e)).inc()
        logger.warning("Replace item in schedule %s rejected: %s", schedule_id, e)
        db.rollback()
        raise
    ITEM_MUTATIONS.labels(operation="replace", result="ok").inc()

    _save(db, schedule)
    logger.info("Replaced item in schedule %s", schedule_id)
    return schedule


@_schedule_logged
def items_on_date(db: Session, schedule_id: uuid.UUID, day: date) -> Tuple[WeekInfo, List[ScheduleItem]]:
    schedule = repository.get_schedule(db, schedule_id)
    cycled = schedule.cycled
    start = _education_start_for(db, schedule)
    info = week_info(start, day, cycled.calendar)
    items = projector.items_on_date(cycled, start, day)
    logger.debug("Schedule %s on %s: week %d, %d items", schedule_id, day, info.number, len(items))
    return info, items


@_schedule_logged
def materialize_calendar(db: Session, schedule_id: uuid.UUID) -> Schedule:
    schedule = repository.get_schedule(db, schedule_id)
    start = _education_start_for(db, schedule)
    started = time.perf_counter()
    try:
        calendar = projector.materialize_calendar(schedule, start)
    except ScheduleError as e:
        MATERIALIZATION_COUNT.labels(status="failed").inc()
        logger.warning("Materializing schedule %s failed: %s", schedule_id, e)
        raise
    MATERIALIZATION_DURATION.observe(time.perf_counter() - started)
    MATERIALIZATION_COUNT.labels(status="success").inc()
    logger.info("Materialized schedule %s into %d calendar items", schedule_id, len(calendar.list_items()))
    return calendar


@_schedule_logged
def export_schedule(db: Session, schedule_id: uuid.UUID, fmt: str = "csv", as_calendar: bool = False) -> Tuple[Schedule, str, BytesIO]:
    schedule = materialize_calendar(db, schedule_id) if as_calendar else repository.get_schedule(db, schedule_id)
    group = get_group(db, schedule.group_id)
    teachers = teachers_by_id(db, (item.teacher_id for item in schedule.list_items()))
    buf = exporter.export_schedule(schedule, group.number, teachers, fmt)
    logger.info("Exported schedule %s as %s (calendar=%s)", schedule_id, fmt, as_calendar)
    return schedule, group.number, buf
