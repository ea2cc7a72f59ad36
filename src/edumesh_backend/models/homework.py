'''
Homework assignments and submissions: request and response models.
'''
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..database.db_enums import SubmissionStatusEnum


class HomeworkBase(BaseModel):
    """
    Common fields for a homework assignment.
    """
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    subject_id: UUID
    class_name: str = Field(..., min_length=1, max_length=50)
    due_date: date
    max_marks: int = Field(0, ge=0)
    attachments: list[str] = Field(default_factory=list)


class HomeworkCreate(HomeworkBase):
    """
    Payload for creating homework. Teachers own what they create;
    admins must name the owning teacher (Teachers.id).
    """
    teacher_id: Optional[UUID] = None


class HomeworkUpdate(BaseModel):
    """
    All fields optional for a partial update.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[date] = None
    max_marks: Optional[int] = Field(None, ge=0)
    attachments: Optional[list[str]] = None


class SubmissionCreate(BaseModel):
    notes: Optional[str] = None
    attachments: list[str] = Field(default_factory=list)


class GradeSubmission(BaseModel):
    marks_obtained: int = Field(..., ge=0)
    feedback: Optional[str] = None


class SubmissionRead(BaseModel):
    id: UUID
    homework_id: UUID
    student_id: UUID
    notes: Optional[str] = None
    attachments: list[str] = Field(default_factory=list)
    status: SubmissionStatusEnum
    marks_obtained: Optional[int] = None
    feedback: Optional[str] = None
    submitted_at: datetime
    graded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class HomeworkRead(HomeworkBase):
    id: UUID
    school_id: UUID
    teacher_id: UUID
    is_active: bool
    created_at: datetime

    # Filled in for students and parents: the submissions of their linked students.
    submissions: list[SubmissionRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
