import datetime as dt
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field


class GroupCreate(BaseModel):
    number: str = Field(..., min_length=1)
    admission_year: int = Field(..., ge=0)


class GroupResponse(BaseModel):
    id: UUID
    number: str
    admission_year: int

    class Config:
        from_attributes = True


class TeacherCreate(BaseModel):
    name: str = Field(..., min_length=1)
    external_id: Optional[str] = None


class TeacherResponse(BaseModel):
    id: UUID
    name: str
    external_id: Optional[str] = None

    class Config:
        from_attributes = True


class CabinetCreate(BaseModel):
    building: str = Field(..., min_length=1)
    auditorium: str = Field(..., min_length=1)


class CabinetResponse(BaseModel):
    id: UUID
    building: str
    auditorium: str

    class Config:
        from_attributes = True


class ScheduleCreate(BaseModel):
    group_id: UUID
    semester: int
    # Required: only cycled schedules are created directly, calendar ones are derived
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None


class ScheduleUpdate(BaseModel):
    semester: Optional[int] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None


class ScheduleItemIn(BaseModel):
    discipline: str
    teacher_id: UUID
    cabinet_id: UUID
    students_count: int = 0
    lesson_number: int
    subgroup: int = 0
    # Name ("lecture") or legacy integer code
    lesson_type: Union[int, str]
    # Cycled schedules
    weekday: Optional[Union[int, str]] = Field(None, description="0=Monday ... 6=Sunday, or weekday name")
    week_type: Optional[Union[int, str]] = Field(None, description="odd | even | both, or 0/1/2")
    # Calendar schedules
    date: Optional[dt.date] = None
    week_number: Optional[int] = None


class ScheduleItemKey(BaseModel):
    lesson_number: int
    subgroup: int = 0
    # Cycled schedules
    weekday: Optional[Union[int, str]] = None
    week_type: Optional[Union[int, str]] = None
    # Calendar schedules
    date: Optional[dt.date] = None


class ReplaceItemRequest(BaseModel):
    old: ScheduleItemKey
    new: ScheduleItemIn


class ScheduleItemOut(BaseModel):
    discipline: str
    teacher_id: UUID
    teacher_name: Optional[str] = None
    weekday: int
    weekday_name: str
    students_count: int
    lesson_number: int
    subgroup: int
    lesson_type: str
    building: str
    auditorium: str
    week_type: Optional[str] = None
    date: Optional[dt.date] = None
    week_number: Optional[int] = None


class ScheduleResponse(BaseModel):
    id: UUID
    group_id: UUID
    group_number: Optional[str] = None
    semester: int
    kind: str
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    items: List[ScheduleItemOut] = []


class ScheduleListResponse(BaseModel):
    items: List[ScheduleResponse]


class DateItemsResponse(BaseModel):
    date: dt.date
    week_number: int
    week_type: Optional[str] = None  # None on the non-teaching weekday
    items: List[ScheduleItemOut]
