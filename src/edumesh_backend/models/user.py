from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..database.db_enums import UserRole

PHONE_PATTERN = r"^\+?[0-9 \-]{7,20}$"


# --- User API Read Models ---

class UserRead(BaseModel):
    """
    Pydantic model for reading user data.
    Corresponds to the db_models.Users ORM model.
    """
    id: UUID
    school_id: UUID
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    avatar_url: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    """Lean user shape nested inside chat payloads."""
    id: UUID
    name: str
    role: UserRole
    avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileRead(UserRead):
    school_name: Optional[str] = None
    school_code: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    avatar_url: Optional[str] = None


# --- Student / Teacher Profiles ---

class StudentCreate(BaseModel):
    """
    Payload for creating a student (one row of a bulk upload too).
    The parent is either an existing user (`parent_id`) or found/created
    by `parent_email`.
    """
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    class_name: str = Field(..., min_length=1, max_length=50)
    roll_number: Optional[str] = Field(None, max_length=20)
    admission_number: Optional[str] = Field(None, max_length=50)
    parent_id: Optional[UUID] = None
    parent_name: Optional[str] = Field(None, min_length=2, max_length=255)
    parent_email: Optional[EmailStr] = None
    parent_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class TeacherCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    employee_id: Optional[str] = Field(None, max_length=50)
    subjects: list[str] = Field(default_factory=list)
    qualification: Optional[str] = None


class StudentRead(BaseModel):
    id: UUID
    user_id: UUID
    school_id: UUID
    name: str
    email: str
    class_name: str
    roll_number: Optional[str] = None
    admission_number: Optional[str] = None
    parent_id: Optional[UUID] = None


class TeacherRead(BaseModel):
    id: UUID
    user_id: UUID
    school_id: UUID
    name: str
    email: str
    employee_id: Optional[str] = None
    subjects: list[str] = Field(default_factory=list)
    qualification: Optional[str] = None


# --- Bulk Upload ---

class BulkStudentsRequest(BaseModel):
    students: list[StudentCreate] = Field(..., min_length=1, max_length=500)


class BulkTeachersRequest(BaseModel):
    teachers: list[TeacherCreate] = Field(..., min_length=1, max_length=500)


class BulkRowResult(BaseModel):
    row: int
    success: bool
    id: Optional[UUID] = None
    message: Optional[str] = None


class BulkUploadResult(BaseModel):
    created: int
    failed: int
    results: list[BulkRowResult]
