import uuid

from sqlalchemy import Column, Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from schedule_engine.core.database import Base


def _uuid_str() -> str:
    return str(uuid.uuid4())


class Group(Base):
    __tablename__ = "edu_groups"
    id = Column(String(36), primary_key=True, default=_uuid_str)
    number = Column(String, unique=True, index=True, nullable=False)
    admission_year = Column(Integer, nullable=False)
    schedules = relationship("Schedule", back_populates="group", cascade="all, delete-orphan")


class Teacher(Base):
    __tablename__ = "teachers"
    id = Column(String(36), primary_key=True, default=_uuid_str)
    name = Column(String, index=True, nullable=False)
    external_id = Column(String, nullable=True)  # id in the university HR system, used by export


class Cabinet(Base):
    __tablename__ = "cabinets"
    id = Column(String(36), primary_key=True, default=_uuid_str)
    building = Column(String, nullable=False)
    auditorium = Column(String, nullable=False)
    __table_args__ = (UniqueConstraint("building", "auditorium", name="uq_cabinet_address"),)


class Schedule(Base):
    __tablename__ = "schedules"
    id = Column(String(36), primary_key=True)
    group_id = Column(String(36), ForeignKey("edu_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    semester = Column(Integer, nullable=False)
    kind = Column(String, nullable=False)  # cycled | calendar
    # Cycled schedules only
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    group = relationship("Group", back_populates="schedules")
    items = relationship(
        "ScheduleItem",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="ScheduleItem.position",
    )


class ScheduleItem(Base):
    __tablename__ = "schedule_items"
    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(String(36), ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False, index=True)
    # Order of items as returned by the domain listing
    position = Column(Integer, nullable=False, default=0)
    discipline = Column(String, nullable=False)
    teacher_id = Column(String(36), ForeignKey("teachers.id", ondelete="RESTRICT"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)
    students_count = Column(Integer, nullable=False, default=0)
    lesson_number = Column(Integer, nullable=False, default=0)
    subgroup = Column(Integer, nullable=False, default=0)
    lesson_type = Column(String, nullable=False)
    building = Column(String, nullable=False)
    auditorium = Column(String, nullable=False)
    # Cycled items
    week_type = Column(String, nullable=True)
    # Calendar items
    date = Column(Date, nullable=True)
    week_number = Column(Integer, nullable=True)

    schedule = relationship("Schedule", back_populates="items")
    teacher = relationship("Teacher")
