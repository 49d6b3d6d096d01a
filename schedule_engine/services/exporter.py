"""Tabular export of schedules in the legacy dispatcher layout (CSV or Excel)."""
from io import BytesIO
from typing import Dict, List, Optional
from uuid import UUID

import pandas as pd
from openpyxl.utils import get_column_letter

from schedule_engine import models
from schedule_engine.services.errors import InvalidDataError
from schedule_engine.services.items import ScheduleItem, lesson_type_label, week_type_label
from schedule_engine.services.schedule import Schedule, ScheduleKind

CYCLED_COLUMNS = [
    "Group", "Day", "Les", "Aud", "Week", "Subg", "Name",
    "Subject", "Subj_Type", "Start", "End", "PrepID",
]

CALENDAR_COLUMNS = [
    "Group", "StudInLesson", "Day", "Les", "Aud", "Week", "Subg", "Name",
    "Subject", "Subj_Type", "Date", "PrepID", "Themas",
]

FORMATS = ("csv", "xlsx")


def _subgroup(item: ScheduleItem) -> str:
    return str(item.subgroup) if item.subgroup > 0 else ""


def _cycled_row(group_number: str, item: ScheduleItem, teacher: Optional[models.Teacher]) -> List[str]:
    return [
        group_number,
        str(item.weekday + 1),  # 1 = Monday
        str(item.lesson_number + 1),  # lessons are 1-based in the export
        item.cabinet.address,
        week_type_label(item.week_type),
        _subgroup(item),
        teacher.name if teacher else "",
        item.discipline,
        lesson_type_label(item.lesson_type),
        "-100",
        "-100",
        (teacher.external_id or "") if teacher else "",
    ]


def _calendar_row(group_number: str, item: ScheduleItem, teacher: Optional[models.Teacher]) -> List[str]:
    return [
        group_number,
        str(item.students_count),
        str(item.weekday + 1),
        str(item.lesson_number + 1),
        item.cabinet.address,
        str(item.week_number or 0),
        _subgroup(item),
        teacher.name if teacher else "",
        item.discipline,
        lesson_type_label(item.lesson_type),
        item.date.strftime("%d.%m.%Y") if item.date else "",
        (teacher.external_id or "") if teacher else "",
        "",
    ]


def schedule_frame(schedule: Schedule, group_number: str, teachers: Dict[UUID, models.Teacher]) -> pd.DataFrame:
    if schedule.kind == ScheduleKind.CYCLED:
        columns, build_row = CYCLED_COLUMNS, _cycled_row
    else:
        columns, build_row = CALENDAR_COLUMNS, _calendar_row

    rows = [build_row(group_number, item, teachers.get(item.teacher_id)) for item in schedule.list_items()]
    return pd.DataFrame(rows, columns=columns)


def export_schedule(schedule: Schedule, group_number: str, teachers: Dict[UUID, models.Teacher], fmt: str = "csv") -> BytesIO:
    fmt = (fmt or "").lower()
    if fmt not in FORMATS:
        raise InvalidDataError.single("format", f"unknown export format {fmt!r}, expected one of {', '.join(FORMATS)}")

    df = schedule_frame(schedule, group_number, teachers)
    buf = BytesIO()
    if fmt == "csv":
        buf.write(df.to_csv(index=False).encode("utf-8"))
    else:
        sheet = f"{group_number}-{schedule.semester}"[:31] or "Schedule"
        with pd.ExcelWriter(buf, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=sheet, index=False)
            ws = writer.sheets[sheet]
            ws.freeze_panes = "A2"
            for idx, column in enumerate(df.columns, start=1):
                ws.column_dimensions[get_column_letter(idx)].width = 24 if column in ("Subject", "Name") else 12
    buf.seek(0)
    return buf
