'''
API endpoints for user profiles and school staff/student management.
'''
from typing import Annotated, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status

from ..database import models as db_models
from ..database.db_enums import UserRole
from ..models import user as user_models
from ..models.common import ApiResponse
from ..services.security import verify_token_and_get_user
from ..services.user_service import UserService

class UsersAPI:
    """
    A class to encapsulate user endpoints.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/users",
            tags=["Users"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/profile",
                self.get_profile,
                methods=["GET"],
                response_model=ApiResponse[user_models.ProfileRead])

        self.router.add_api_route(
                "/profile",
                self.update_profile,
                methods=["PUT"],
                response_model=ApiResponse[user_models.UserRead])

        self.router.add_api_route(
                "/",
                self.list_users,
                methods=["GET"],
                response_model=ApiResponse[list[user_models.UserRead]])

        self.router.add_api_route(
                "/{user_id}/toggle-status",
                self.toggle_status,
                methods=["PUT"],
                response_model=ApiResponse[user_models.UserRead])

        self.router.add_api_route(
                "/students",
                self.create_student,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ApiResponse[user_models.StudentRead])

        self.router.add_api_route(
                "/teachers",
                self.create_teacher,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ApiResponse[user_models.TeacherRead])

        self.router.add_api_route(
                "/bulk/students",
                self.bulk_students,
                methods=["POST"],
                response_model=ApiResponse[user_models.BulkUploadResult])

        self.router.add_api_route(
                "/bulk/teachers",
                self.bulk_teachers,
                methods=["POST"],
                response_model=ApiResponse[user_models.BulkUploadResult])

    async def get_profile(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        return ApiResponse(data=await user_service.get_profile_for_api(current_user))

    async def update_profile(
        self,
        data: user_models.ProfileUpdate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        user = await user_service.update_profile_for_api(data, current_user)
        return ApiResponse(message="Profile updated successfully", data=user)

    async def list_users(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)],
        role: Optional[UserRole] = None,
        search: Optional[str] = None
    ):
        """
        Lists the users of the caller's school. Admins and teachers only.
        """
        return ApiResponse(data=await user_service.list_users_for_api(current_user, role, search))

    async def toggle_status(
        self,
        user_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        user = await user_service.toggle_user_status_for_api(user_id, current_user)
        state = "activated" if user.is_active else "deactivated"
        return ApiResponse(message=f"User {state} successfully", data=user)

    async def create_student(
        self,
        data: user_models.StudentCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        student = await user_service.create_student_for_api(data, current_user)
        return ApiResponse(message="Student created successfully", data=student)

    async def create_teacher(
        self,
        data: user_models.TeacherCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        teacher = await user_service.create_teacher_for_api(data, current_user)
        return ApiResponse(message="Teacher created successfully", data=teacher)

    async def bulk_students(
        self,
        data: user_models.BulkStudentsRequest,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        """
        Per-row results; rows that fail validation are skipped, the rest
        are created. Parents are found or created by e-mail.
        """
        result = await user_service.bulk_create_students_for_api(data, current_user)
        return ApiResponse(message=f"Created {result.created} student(s), {result.failed} failed", data=result)

    async def bulk_teachers(
        self,
        data: user_models.BulkTeachersRequest,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        result = await user_service.bulk_create_teachers_for_api(data, current_user)
        return ApiResponse(message=f"Created {result.created} teacher(s), {result.failed} failed", data=result)

# Instantiate the class and export its router
users_api = UsersAPI()
router = users_api.router
