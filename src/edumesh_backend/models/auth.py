'''
Request/response shapes for the OTP login and registration flow.
'''
import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from ..database.db_enums import UserRole, OTPMethodEnum
from .user import UserRead, PHONE_PATTERN


def _check_contact(contact: str, method: OTPMethodEnum) -> None:
    if method == OTPMethodEnum.EMAIL and "@" not in contact:
        raise ValueError("contact must be an email address when method is 'email'")
    if method == OTPMethodEnum.PHONE and not re.match(PHONE_PATTERN, contact):
        raise ValueError("contact must be a phone number when method is 'phone'")


class SendOTPRequest(BaseModel):
    contact: str = Field(..., min_length=3, max_length=255)
    method: OTPMethodEnum

    @model_validator(mode="after")
    def validate_contact(self):
        _check_contact(self.contact, self.method)
        return self


class SendOTPResponse(BaseModel):
    contact: str
    method: OTPMethodEnum
    expires_in: int


class VerifyOTPRequest(SendOTPRequest):
    otp: str = Field(..., pattern=r"^\d{4,8}$")


class VerifyOTPResponse(BaseModel):
    verified: bool = True
    user_exists: bool
    requires_registration: bool
    user: Optional[UserRead] = None


class LoginRequest(SendOTPRequest):
    pass


class RegisterRequest(BaseModel):
    """
    Registration after a verified OTP.
    Admins join a school by `school_code` or create one with `school_name`;
    every other role must join an existing school by code.
    """
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    role: UserRole
    school_code: Optional[str] = None
    school_name: Optional[str] = Field(None, min_length=2, max_length=255)
    region: Optional[str] = None
    class_name: Optional[str] = Field(None, max_length=50)
    roll_number: Optional[str] = Field(None, max_length=20)
    employee_id: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def validate_school(self):
        if self.role == UserRole.ADMIN:
            if not self.school_code and not self.school_name:
                raise ValueError("admins must provide either school_code or school_name")
        elif not self.school_code:
            raise ValueError("school_code is required for this role")
        if self.role == UserRole.STUDENT and not self.class_name:
            raise ValueError("class_name is required for students")
        return self


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class AuthSession(BaseModel):
    user: UserRead
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
