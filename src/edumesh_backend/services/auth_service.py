'''
Business logic behind /auth: OTP exchange, registration, login and token refresh.
'''
import time
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.exceptions import UnauthenticatedError
from ..common.logger import log
from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole
from ..models import auth as auth_models
from ..models import user as user_models
from .otp_service import OTPService
from .security import JWTHandler, REFRESH_TOKEN_TYPE, resolve_user_from_token
from .user_service import UserService


class AuthService:
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        user_service: Annotated[UserService, Depends(UserService)],
        otp_service: Annotated[OTPService, Depends(OTPService)]
    ):
        self.db = db
        self.user_service = user_service
        self.otp_service = otp_service

    def _session_for(self, user: db_models.Users) -> auth_models.AuthSession:
        tokens = JWTHandler.create_token_pair(user)
        return auth_models.AuthSession(
            user=user_models.UserRead.model_validate(user),
            **tokens.model_dump()
        )

    # --- OTP ---

    async def send_otp(self, data: auth_models.SendOTPRequest) -> auth_models.SendOTPResponse:
        expires_in = await self.otp_service.send_otp(data.contact, data.method)
        return auth_models.SendOTPResponse(contact=data.contact, method=data.method, expires_in=expires_in)

    async def verify_otp(self, data: auth_models.VerifyOTPRequest) -> auth_models.VerifyOTPResponse:
        if not await self.otp_service.verify_otp(data.contact, data.otp):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired OTP")

        user = await self.user_service.get_user_by_contact(data.contact, data.method)
        return auth_models.VerifyOTPResponse(
            user_exists=user is not None,
            requires_registration=user is None,
            user=user_models.UserRead.model_validate(user) if user else None,
        )

    # --- Registration ---

    async def _find_school(self, school_code: str) -> db_models.Schools:
        stmt = select(db_models.Schools).filter(db_models.Schools.code == school_code)
        school = (await self.db.execute(stmt)).scalars().first()
        if not school:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid school code")
        return school

    async def _create_school(self, data: auth_models.RegisterRequest) -> db_models.Schools:
        # Only admins get here without a school code (enforced by RegisterRequest).
        school = db_models.Schools(
            name=data.school_name,
            code=f"SCH{int(time.time() * 1000)}",
            region=data.region,
            admin_email=data.email.lower(),
        )
        self.db.add(school)
        await self.db.flush()
        log.info(f"Created school {school.id} ({school.code}) for admin {data.email}.")
        return school

    async def register(self, data: auth_models.RegisterRequest) -> auth_models.AuthSession:
        log.info(f"Registration attempt for {data.email} as {data.role.value}.")
        if await self.user_service.contact_in_use(data.email, data.phone):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email or phone already exists")

        # a bad school code must not burn the verified-contact marker
        school = await self._find_school(data.school_code) if data.school_code else None

        verified = await self.otp_service.consume_verification(data.email)
        if not verified and data.phone:
            verified = await self.otp_service.consume_verification(data.phone)
        if not verified:
            raise UnauthenticatedError("OTP verification required before registration")

        try:
            if school is None:
                school = await self._create_school(data)
            user = self.user_service.add_user(school.id, data.name, data.email, data.role, data.phone)
            if data.role == UserRole.STUDENT:
                await self.user_service.add_student(school.id, user, data.class_name, data.roll_number)
            elif data.role == UserRole.TEACHER:
                await self.user_service.add_teacher(school.id, user, data.employee_id)
            else:
                await self.db.flush()
            await self.db.commit()
        except HTTPException:
            raise
        except Exception as e:
            log.error(f"Registration failed for {data.email}: {e}", exc_info=True)
            raise

        log.info(f"Registered user {user.id} ({user.role}) in school {school.id}.")
        return self._session_for(user)

    # --- Login / Refresh ---

    async def login(self, data: auth_models.LoginRequest) -> auth_models.AuthSession:
        if not await self.otp_service.consume_verification(data.contact):
            raise UnauthenticatedError("OTP verification required")

        user = await self.user_service.get_user_by_contact(data.contact, data.method)
        if user is None:
            raise UnauthenticatedError("User not found. Please register first.")
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

        user.last_login = datetime.now(timezone.utc)
        await self.db.commit()
        log.info(f"User {user.id} logged in.")
        return self._session_for(user)

    async def refresh(self, data: auth_models.RefreshRequest) -> auth_models.AuthSession:
        user = await resolve_user_from_token(data.refresh_token, self.user_service, REFRESH_TOKEN_TYPE)
        log.info(f"Refreshed tokens for user {user.id}.")
        return self._session_for(user)
