from datetime import datetime, time
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SchoolRead(BaseModel):
    id: UUID
    name: str
    code: str
    region: Optional[str] = None
    admin_email: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SchoolUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = None


class SchoolStats(BaseModel):
    total_teachers: int
    total_students: int
    total_parents: int
    total_classes: int
    active_homework: int
    upcoming_exams: int
    attendance_rate: float # percentage of present rows this month


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    code: str = Field(..., min_length=2, max_length=20)
    description: Optional[str] = None
    color: str = Field("#3B82F6", pattern=r"^#[0-9A-Fa-f]{6}$")


class SubjectRead(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    code: str
    description: Optional[str] = None
    color: str

    model_config = ConfigDict(from_attributes=True)


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    subject_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None # Teachers.id, not the user id
    room: Optional[str] = Field(None, max_length=50)
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    @model_validator(mode="after")
    def check_times(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ClassRead(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    subject_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    room: Optional[str] = None
    day_of_week: Optional[int] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
