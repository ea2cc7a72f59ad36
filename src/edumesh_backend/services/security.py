'''
Access Guard: JWT handling and the dependency that resolves the caller.
'''
from datetime import datetime, timedelta, timezone
from typing import Optional, Annotated
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..common.config import settings
from ..common.exceptions import UnauthenticatedError, UnauthorizedError
from ..models.token import TokenPayload, TokenPair
from ..common.logger import log
from ..database import models as db_models
from .user_service import UserService

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# --- JWT Handling ---
class JWTHandler:
    @staticmethod
    def _secret_for(token_type: str) -> str:
        if token_type == REFRESH_TOKEN_TYPE and settings.REFRESH_SECRET_KEY:
            return settings.REFRESH_SECRET_KEY
        return settings.SECRET_KEY

    @classmethod
    def _encode(cls, user: db_models.Users, token_type: str, expires_delta: timedelta) -> str:
        expire = datetime.now(timezone.utc) + expires_delta
        to_encode = {
            "sub": str(user.id),
            "school_id": str(user.school_id),
            "role": user.role,
            "type": token_type,
            "exp": expire,
        }
        return jwt.encode(to_encode, cls._secret_for(token_type), algorithm=settings.ALGORITHM)

    @classmethod
    def create_access_token(
        cls,
        user: db_models.Users,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        return cls._encode(user, ACCESS_TOKEN_TYPE, expires_delta)

    @classmethod
    def create_refresh_token(
        cls,
        user: db_models.Users,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        if expires_delta is None:
            expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        return cls._encode(user, REFRESH_TOKEN_TYPE, expires_delta)

    @classmethod
    def create_token_pair(cls, user: db_models.Users) -> TokenPair:
        return TokenPair(
            access_token=cls.create_access_token(user),
            refresh_token=cls.create_refresh_token(user),
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    @classmethod
    def decode_token(cls, token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> TokenPayload | None:
        try:
            payload = jwt.decode(
                token, cls._secret_for(expected_type), algorithms=[settings.ALGORITHM]
            )
            token_data = TokenPayload(**payload)
        except (JWTError, ValueError) as e: # Catch Pydantic validation errors too
            log.warning(f"JWT decode/validation error: {e}")
            return None
        if token_data.type != expected_type:
            log.warning(f"JWT of type '{token_data.type}' used where '{expected_type}' was expected.")
            return None
        return token_data


# --- Identity Resolution ---

async def resolve_user_from_token(
    token: Optional[str],
    user_service: UserService,
    expected_type: str = ACCESS_TOKEN_TYPE
) -> db_models.Users:
    """
    Resolves the user behind a token.
    Raises UnauthenticatedError (401) for a missing/invalid token and
    UnauthorizedError (403) when the subject is gone, inactive or no
    longer belongs to the school named in the token.
    """
    if not token:
        log.warning("Request without bearer credentials.")
        raise UnauthenticatedError("Authentication required")

    token_data = JWTHandler.decode_token(token, expected_type)
    if token_data is None:
        raise UnauthenticatedError("Invalid or expired token")

    user = await user_service.get_user_by_id(token_data.sub)

    if user is None:
        log.warning(f"User '{token_data.sub}' not found during token verification.")
        raise UnauthorizedError("User no longer exists")

    if not user.is_active:
        log.warning(f"User '{token_data.sub}' is not active.")
        raise UnauthorizedError("Account is deactivated")

    if user.school_id != token_data.school_id:
        log.warning(f"User '{token_data.sub}' token names school {token_data.school_id}, user belongs to {user.school_id}.")
        raise UnauthorizedError("Token does not match the user's school")

    return user


# --- JWT Verification Dependency Function ---
bearer_scheme = HTTPBearer(auto_error=False)

async def verify_token_and_get_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    user_service: Annotated[UserService, Depends(UserService)]
    ) -> db_models.Users:
    """
    Dependency that verifies the bearer JWT and returns the caller's
    Users row, which carries id, school_id and role for every handler.
    """
    token = credentials.credentials if credentials else None
    user = await resolve_user_from_token(token, user_service)
    log.info(f"JWT verified successfully for user: {user.id} (Role: {user.role})")
    return user

