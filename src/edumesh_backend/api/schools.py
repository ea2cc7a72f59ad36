'''
API endpoints for school information, statistics, subjects and classes.
'''
from typing import Annotated
from fastapi import APIRouter, Depends, status

from ..database import models as db_models
from ..models import school as school_models
from ..models.common import ApiResponse
from ..services.security import verify_token_and_get_user
from ..services.school_service import SchoolService

class SchoolsAPI:
    """
    A class to encapsulate school endpoints.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/schools",
            tags=["Schools"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/info",
                self.get_info,
                methods=["GET"],
                response_model=ApiResponse[school_models.SchoolRead])

        self.router.add_api_route(
                "/info",
                self.update_info,
                methods=["PUT"],
                response_model=ApiResponse[school_models.SchoolRead])

        self.router.add_api_route(
                "/stats",
                self.get_stats,
                methods=["GET"],
                response_model=ApiResponse[school_models.SchoolStats])

        self.router.add_api_route(
                "/subjects",
                self.list_subjects,
                methods=["GET"],
                response_model=ApiResponse[list[school_models.SubjectRead]])

        self.router.add_api_route(
                "/subjects",
                self.create_subject,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ApiResponse[school_models.SubjectRead])

        self.router.add_api_route(
                "/classes",
                self.list_classes,
                methods=["GET"],
                response_model=ApiResponse[list[school_models.ClassRead]])

        self.router.add_api_route(
                "/classes",
                self.create_class,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ApiResponse[school_models.ClassRead])

    async def get_info(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        school_service: Annotated[SchoolService, Depends(SchoolService)]
    ):
        return ApiResponse(data=await school_service.get_school_info_for_api(current_user))

    async def update_info(
        self,
        school_data: school_models.SchoolUpdate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        school_service: Annotated[SchoolService, Depends(SchoolService)]
    ):
        school = await school_service.update_school_info_for_api(school_data, current_user)
        return ApiResponse(message="School updated successfully", data=school)

    async def get_stats(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        school_service: Annotated[SchoolService, Depends(SchoolService)]
    ):
        """
        Dashboard counters. Restricted to Admins and Teachers.
        """
        return ApiResponse(data=await school_service.get_school_stats_for_api(current_user))

    async def list_subjects(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        school_service: Annotated[SchoolService, Depends(SchoolService)]
    ):
        return ApiResponse(data=await school_service.get_subjects_for_api(current_user))

    async def create_subject(
        self,
        subject_data: school_models.SubjectCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        school_service: Annotated[SchoolService, Depends(SchoolService)]
    ):
        subject = await school_service.create_subject_for_api(subject_data, current_user)
        return ApiResponse(message="Subject created successfully", data=subject)

    async def list_classes(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        school_service: Annotated[SchoolService, Depends(SchoolService)]
    ):
        return ApiResponse(data=await school_service.get_classes_for_api(current_user))

    async def create_class(
        self,
        class_data: school_models.ClassCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        school_service: Annotated[SchoolService, Depends(SchoolService)]
    ):
        class_read = await school_service.create_class_for_api(class_data, current_user)
        return ApiResponse(message="Class created successfully", data=class_read)

# Instantiate the class and export its router
schools_api = SchoolsAPI()
router = schools_api.router
