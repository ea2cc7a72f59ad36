'''
API endpoints for OTP authentication, registration and token refresh.
'''
from typing import Annotated
from fastapi import APIRouter, Depends, status

from ..database import models as db_models
from ..models import auth as auth_models
from ..models import user as user_models
from ..models.common import ApiResponse
from ..services.auth_service import AuthService
from ..services.security import verify_token_and_get_user
from ..services.user_service import UserService
from ..common.logger import log

class AuthAPI:
    """
    A class to encapsulate all authentication endpoints.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/auth",
            tags=["Authentication"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
            "/send-otp",
            self.send_otp,
            methods=["POST"],
            response_model=ApiResponse[auth_models.SendOTPResponse],
            summary="Send a one-time code"
        )
        self.router.add_api_route(
            "/verify-otp",
            self.verify_otp,
            methods=["POST"],
            response_model=ApiResponse[auth_models.VerifyOTPResponse],
            summary="Verify a one-time code"
        )
        self.router.add_api_route(
            "/register",
            self.register,
            methods=["POST"],
            response_model=ApiResponse[auth_models.AuthSession],
            status_code=status.HTTP_201_CREATED,
            summary="Register a verified contact"
        )
        self.router.add_api_route(
            "/login",
            self.login,
            methods=["POST"],
            response_model=ApiResponse[auth_models.AuthSession],
            summary="Login with a verified contact"
        )
        self.router.add_api_route(
            "/refresh",
            self.refresh,
            methods=["POST"],
            response_model=ApiResponse[auth_models.AuthSession],
            summary="Exchange a refresh token for a new pair"
        )
        self.router.add_api_route(
            "/logout",
            self.logout,
            methods=["POST"],
            response_model=ApiResponse[None]
        )
        self.router.add_api_route(
            "/profile",
            self.profile,
            methods=["GET"],
            response_model=ApiResponse[user_models.ProfileRead]
        )

    async def send_otp(
        self,
        data: auth_models.SendOTPRequest,
        auth_service: Annotated[AuthService, Depends(AuthService)]
    ):
        result = await auth_service.send_otp(data)
        return ApiResponse(message=f"OTP sent to your {data.method.value}", data=result)

    async def verify_otp(
        self,
        data: auth_models.VerifyOTPRequest,
        auth_service: Annotated[AuthService, Depends(AuthService)]
    ):
        result = await auth_service.verify_otp(data)
        return ApiResponse(message="OTP verified successfully", data=result)

    async def register(
        self,
        data: auth_models.RegisterRequest,
        auth_service: Annotated[AuthService, Depends(AuthService)]
    ):
        """
        Creates the user (and school for a new admin) once the contact has
        passed OTP verification.
        """
        session = await auth_service.register(data)
        return ApiResponse(message="Registration successful", data=session)

    async def login(
        self,
        data: auth_models.LoginRequest,
        auth_service: Annotated[AuthService, Depends(AuthService)]
    ):
        session = await auth_service.login(data)
        return ApiResponse(message="Login successful", data=session)

    async def refresh(
        self,
        data: auth_models.RefreshRequest,
        auth_service: Annotated[AuthService, Depends(AuthService)]
    ):
        session = await auth_service.refresh(data)
        return ApiResponse(message="Token refreshed", data=session)

    async def logout(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)]
    ):
        """Tokens are stateless; the client discards them."""
        log.info(f"User {current_user.id} logged out.")
        return ApiResponse(message="Logged out successfully")

    async def profile(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        return ApiResponse(data=await user_service.get_profile_for_api(current_user))

# Instantiate the class and export its router
auth_api = AuthAPI()
router = auth_api.router
