"""Loading and saving schedule aggregates through SQLAlchemy.

Saving always replaces the full item set of a schedule. Loading restores the
stored items exactly as they were saved: rules that changed since (for example
the non-teaching weekday) apply to new edits only, so stored lessons are never
dropped by a later save.
"""
import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from schedule_engine import models
from schedule_engine.services.calendar_schedule import CalendarSchedule
from schedule_engine.services.cycled import CycledSchedule
from schedule_engine.services.errors import NotFoundError
from schedule_engine.services.items import (
    Cabinet,
    ScheduleItem,
    parse_lesson_type,
    parse_week_type,
    parse_weekday,
)
from schedule_engine.services.schedule import Schedule, ScheduleKind

logger = logging.getLogger(__name__)


def _item_to_row(item: ScheduleItem, position: int) -> models.ScheduleItem:
    return models.ScheduleItem(
        position=position,
        discipline=item.discipline,
        teacher_id=str(item.teacher_id),
        weekday=int(item.weekday),
        students_count=item.students_count,
        lesson_number=item.lesson_number,
        subgroup=item.subgroup,
        lesson_type=item.lesson_type.value,
        building=item.cabinet.building,
        auditorium=item.cabinet.auditorium,
        week_type=item.week_type.value if item.week_type else None,
        date=item.date,
        week_number=item.week_number,
    )


def _item_from_row(row: models.ScheduleItem) -> ScheduleItem:
    # Enum columns only ever hold values written by _item_to_row; a parse error means a corrupt row
    return ScheduleItem(
        discipline=row.discipline,
        teacher_id=uuid.UUID(row.teacher_id),
        weekday=parse_weekday(row.weekday),
        students_count=row.students_count,
        lesson_number=row.lesson_number,
        subgroup=row.subgroup,
        lesson_type=parse_lesson_type(row.lesson_type),
        cabinet=Cabinet(building=row.building, auditorium=row.auditorium),
        week_type=parse_week_type(row.week_type) if row.week_type is not None else None,
        date=row.date,
        week_number=row.week_number,
    )


def schedule_from_row(row: models.Schedule) -> Schedule:
    if row.kind == ScheduleKind.CYCLED.value:
        variant = CycledSchedule(row.start_date, row.end_date)
    else:
        variant = CalendarSchedule()

    rest_weekday = variant.calendar.rest_weekday
    for item_row in row.items:
        item = _item_from_row(item_row)
        if item.weekday == rest_weekday:
            logger.warning(
                "Stored item id=%s of schedule %s falls on the non-teaching %s",
                item_row.id, row.id, rest_weekday.name.lower(),
            )
        variant.restore_item(item)

    return Schedule(id=uuid.UUID(row.id), group_id=uuid.UUID(row.group_id), semester=row.semester, variant=variant)


def save_schedule(db: Session, schedule: Schedule) -> models.Schedule:
    row = db.get(models.Schedule, str(schedule.id))
    if row is None:
        row = models.Schedule(id=str(schedule.id))
        db.add(row)

    row.group_id = str(schedule.group_id)
    row.semester = schedule.semester
    row.kind = schedule.kind.value
    if schedule.kind == ScheduleKind.CYCLED:
        row.start_date = schedule.cycled.start_date
        row.end_date = schedule.cycled.end_date
    else:
        row.start_date = None
        row.end_date = None

    # delete-orphan cascade drops the previous item rows
    row.items = [_item_to_row(item, pos) for pos, item in enumerate(schedule.list_items())]
    db.flush()
    logger.debug("Saved schedule %s with %d items", schedule.id, len(row.items))
    return row


def get_schedule_row(db: Session, schedule_id: uuid.UUID) -> models.Schedule:
    row = db.get(models.Schedule, str(schedule_id))
    if row is None:
        raise NotFoundError(f"schedule {schedule_id} not found")
    return row


def get_schedule(db: Session, schedule_id: uuid.UUID) -> Schedule:
    return schedule_from_row(get_schedule_row(db, schedule_id))


def find_schedule(db: Session, group_id: uuid.UUID, semester: int) -> Optional[Schedule]:
    row = (
        db.query(models.Schedule)
        .filter(models.Schedule.group_id == str(group_id), models.Schedule.semester == semester)
        .first()
    )
    return schedule_from_row(row) if row else None


def list_schedules(db: Session, group_id: Optional[uuid.UUID] = None) -> List[Schedule]:
    query = db.query(models.Schedule)
    if group_id is not None:
        query = query.filter(models.Schedule.group_id == str(group_id))
    return [schedule_from_row(row) for row in query.order_by(models.Schedule.semester.asc()).all()]


def delete_schedule(db: Session, schedule_id: uuid.UUID) -> None:
    db.delete(get_schedule_row(db, schedule_id))
    db.flush()
