from datetime import date, datetime, time
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..database.db_enums import ExamStatusEnum


class ExamBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    subject_id: UUID
    class_name: str = Field(..., min_length=1, max_length=50)
    exam_date: date
    start_time: time
    end_time: time
    location: Optional[str] = Field(None, max_length=255)
    max_marks: int = Field(100, gt=0)
    instructions: Optional[str] = None

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ExamCreate(ExamBase):
    teacher_id: Optional[UUID] = None # Teachers.id; defaults to the caller for teachers


class ExamUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    exam_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location: Optional[str] = Field(None, max_length=255)
    max_marks: Optional[int] = Field(None, gt=0)
    instructions: Optional[str] = None
    status: Optional[ExamStatusEnum] = None


class ExamRead(ExamBase):
    id: UUID
    school_id: UUID
    teacher_id: Optional[UUID] = None
    status: ExamStatusEnum
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
