import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from schedule_engine import models, schemas
from schedule_engine.core.database import get_db

router = APIRouter(prefix="/dict", tags=["dictionary"])
logger = logging.getLogger(__name__)


def _create(db: Session, row, what: str):
    db.add(row)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Create %s failed: %s", what, e.orig)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{what} already exists")
    db.refresh(row)
    logger.info("Created %s id=%s", what, row.id)
    return row


@router.post("/groups", response_model=schemas.GroupResponse, status_code=status.HTTP_201_CREATED, summary="Create group")
def create_group(request: schemas.GroupCreate, db: Session = Depends(get_db)):
    return _create(db, models.Group(number=request.number, admission_year=request.admission_year), "group")


@router.get("/groups", response_model=List[schemas.GroupResponse], summary="List groups")
def list_groups(q: str | None = None, db: Session = Depends(get_db)):
    query = db.query(models.Group)
    if q:
        query = query.filter(func.lower(models.Group.number).like(f"%{q.lower()}%"))
    return query.order_by(models.Group.number.asc()).all()


@router.post("/teachers", response_model=schemas.TeacherResponse, status_code=status.HTTP_201_CREATED, summary="Create teacher")
def create_teacher(request: schemas.TeacherCreate, db: Session = Depends(get_db)):
    return _create(db, models.Teacher(name=request.name, external_id=request.external_id), "teacher")


@router.get("/teachers", response_model=List[schemas.TeacherResponse], summary="List teachers")
def list_teachers(q: str | None = None, db: Session = Depends(get_db)):
    query = db.query(models.Teacher)
    if q:
        query = query.filter(func.lower(models.Teacher.name).like(f"%{q.lower()}%"))
    return query.order_by(models.Teacher.name.asc()).all()


@router.post("/cabinets", response_model=schemas.CabinetResponse, status_code=status.HTTP_201_CREATED, summary="Create cabinet")
def create_cabinet(request: schemas.CabinetCreate, db: Session = Depends(get_db)):
    return _create(db, models.Cabinet(building=request.building, auditorium=request.auditorium), "cabinet")


@router.get("/cabinets", response_model=List[schemas.CabinetResponse], summary="List cabinets")
def list_cabinets(db: Session = Depends(get_db)):
    return db.query(models.Cabinet).order_by(models.Cabinet.building.asc(), models.Cabinet.auditorium.asc()).all()
