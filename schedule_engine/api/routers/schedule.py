import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from schedule_engine import models, schemas
from schedule_engine.core.database import get_db
from schedule_engine.services import schedule_service as sched_svc
from schedule_engine.services.errors import (
    InvalidDataError,
    ItemConflictError,
    ItemNotFoundError,
    NotFoundError,
    ScheduleError,
    ScheduleExistsError,
)
from schedule_engine.services.items import ScheduleItem
from schedule_engine.services.schedule import Schedule, ScheduleKind

router = APIRouter(prefix="/schedules", tags=["schedule"])
logger = logging.getLogger(__name__)

_MEDIA_TYPES = {
    "csv": "text/csv; charset=utf-8",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _http_error(e: ValueError) -> HTTPException:
    if isinstance(e, (NotFoundError, ItemNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, (ItemConflictError, ScheduleExistsError)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST

    detail = {"message": str(e)}
    if isinstance(e, InvalidDataError):
        detail["violations"] = [{"field": v.field, "reason": v.reason} for v in e.violations]
    if isinstance(e, ScheduleError) and e.input_index is not None:
        detail["input_index"] = e.input_index
    return HTTPException(status_code=code, detail=detail)


def _item_out(item: ScheduleItem, teachers: dict) -> schemas.ScheduleItemOut:
    teacher = teachers.get(item.teacher_id)
    return schemas.ScheduleItemOut(
        discipline=item.discipline,
        teacher_id=item.teacher_id,
        teacher_name=teacher.name if teacher else None,
        weekday=int(item.weekday),
        weekday_name=item.weekday.name.capitalize(),
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


def _to_response(db: Session, schedule: Schedule, with_items: bool = True) -> schemas.ScheduleResponse:
    group = db.get(models.Group, str(schedule.group_id))
    items = schedule.list_items() if with_items else []
    teachers = sched_svc.teachers_by_id(db, (i.teacher_id for i in items))
    resp = schemas.ScheduleResponse(
        id=schedule.id,
        group_id=schedule.group_id,
        group_number=group.number if group else None,
        semester=schedule.semester,
        kind=schedule.kind.value,
        items=[_item_out(i, teachers) for i in items],
    )
    if schedule.kind == ScheduleKind.CYCLED:
        resp.start_date = schedule.cycled.start_date
        resp.end_date = schedule.cycled.end_date
    return resp


@router.post("", response_model=schemas.ScheduleResponse, status_code=status.HTTP_201_CREATED, summary="Create cycled schedule for a group and semester")
def create_schedule(request: schemas.ScheduleCreate, db: Session = Depends(get_db)):
    try:
        schedule = sched_svc.create_schedule(db, request)
        return _to_response(db, schedule)
    except ValueError as e:
        logger.warning("Create schedule failed: %s", e)
        raise _http_error(e)


@router.get("", response_model=schemas.ScheduleListResponse, summary="List schedules")
def list_schedules(group_id: Optional[UUID] = Query(None, description="Filter by group id"), db: Session = Depends(get_db)):
    schedules = sched_svc.list_schedules(db, group_id)
    return schemas.ScheduleListResponse(items=[_to_response(db, s, with_items=False) for s in schedules])


@router.get("/{schedule_id}", response_model=schemas.ScheduleResponse, summary="Get schedule with items")
def get_schedule(schedule_id: UUID, db: Session = Depends(get_db)):
    try:
        return _to_response(db, sched_svc.get_schedule(db, schedule_id))
    except ValueError as e:
        raise _http_error(e)


@router.patch("/{schedule_id}", response_model=schemas.ScheduleResponse, summary="Change semester or date range")
def update_schedule(schedule_id: UUID, request: schemas.ScheduleUpdate, db: Session = Depends(get_db)):
    try:
        logger.info("Update schedule %s: %s", schedule_id, request.model_dump(exclude_none=True))
        return _to_response(db, sched_svc.update_schedule(db, schedule_id, request))
    except ValueError as e:
        logger.warning("Update schedule %s failed: %s", schedule_id, e)
        raise _http_error(e)


@router.delete("/{schedule_id}", summary="Delete schedule")
def delete_schedule(schedule_id: UUID, db: Session = Depends(get_db)):
    try:
        sched_svc.delete_schedule(db, schedule_id)
        return {"deleted": True, "schedule_id": str(schedule_id)}
    except ValueError as e:
        raise _http_error(e)


@router.post("/{schedule_id}/items", response_model=schemas.ScheduleResponse, summary="Add items (all or nothing)")
def add_items(schedule_id: UUID, items: List[schemas.ScheduleItemIn], db: Session = Depends(get_db)):
    """
    Add lessons to a schedule.

    Cycled schedules need `weekday` and `week_type` on every item, calendar
    schedules need `date` and `week_number`. If any item is rejected none are
    added and the response names the failing `input_index`.
    """
    try:
        return _to_response(db, sched_svc.add_items(db, schedule_id, items))
    except ValueError as e:
        raise _http_error(e)


@router.post("/{schedule_id}/items/remove", response_model=schemas.ScheduleResponse, summary="Remove items")
def remove_items(schedule_id: UUID, keys: List[schemas.ScheduleItemKey], db: Session = Depends(get_db)):
    try:
        return _to_response(db, sched_svc.remove_items(db, schedule_id, keys))
    except ValueError as e:
        raise _http_error(e)


@router.put("/{schedule_id}/items", response_model=schemas.ScheduleResponse, summary="Replace one item atomically")
def replace_item(schedule_id: UUID, request: schemas.ReplaceItemRequest, db: Session = Depends(get_db)):
    try:
        return _to_response(db, sched_svc.replace_item(db, schedule_id, request))
    except ValueError as e:
        raise _http_error(e)


@router.get("/{schedule_id}/date/{day}", response_model=schemas.DateItemsResponse, summary="Lessons of a cycled schedule on a date")
def items_on_date(schedule_id: UUID, day: date, db: Session = Depends(get_db)):
    try:
        info, items = sched_svc.items_on_date(db, schedule_id, day)
    except ValueError as e:
        logger.warning("Items on %s for schedule %s failed: %s", day, schedule_id, e)
        raise _http_error(e)
    teachers = sched_svc.teachers_by_id(db, (i.teacher_id for i in items))
    return schemas.DateItemsResponse(
        date=day,
        week_number=info.number,
        week_type=info.parity.value if info.parity else None,
        items=[_item_out(i, teachers) for i in items],
    )


@router.get("/{schedule_id}/calendar", response_model=schemas.ScheduleResponse, summary="Project a cycled schedule onto its date range")
def materialize_calendar(schedule_id: UUID, db: Session = Depends(get_db)):
    try:
        return _to_response(db, sched_svc.materialize_calendar(db, schedule_id))
    except ValueError as e:
        raise _http_error(e)


@router.get("/{schedule_id}/export", summary="Export schedule as csv or xlsx")
def export_schedule(
    schedule_id: UUID,
    format: str = Query("csv", description="csv | xlsx"),
    calendar: bool = Query(False, description="Export a cycled schedule projected onto dates"),
    db: Session = Depends(get_db),
):
    try:
        schedule, group_number, buf = sched_svc.export_schedule(db, schedule_id, format, as_calendar=calendar)
    except ValueError as e:
        logger.warning("Export schedule %s failed: %s", schedule_id, e)
        raise _http_error(e)
    fmt = format.lower()
    filename = f"Schedule_{group_number}_{schedule.semester}_{schedule.kind.value}.{fmt}"
    return StreamingResponse(
        buf,
        media_type=_MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
