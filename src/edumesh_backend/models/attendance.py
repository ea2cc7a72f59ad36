from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..database.db_enums import AttendanceStatusEnum


class AttendanceEntry(BaseModel):
    student_id: UUID
    status: AttendanceStatusEnum
    notes: Optional[str] = None


class AttendanceMark(BaseModel):
    """The complete attendance sheet of one class for one day."""
    class_id: UUID
    date: date
    attendance: list[AttendanceEntry] = Field(..., min_length=1)


class AttendanceRead(BaseModel):
    id: UUID
    school_id: UUID
    student_id: UUID
    class_id: UUID
    date: date
    status: AttendanceStatusEnum
    notes: Optional[str] = None
    marked_by: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AttendanceMarkResult(BaseModel):
    class_id: UUID
    date: date
    marked: int
    records: list[AttendanceRead]


class AttendanceSummaryRow(BaseModel):
    student_id: UUID
    student_name: str
    class_name: str
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    total: int = 0
    percentage: float = 0.0
