'''
API endpoints for Exams.
'''
from typing import Annotated, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from ..database import models as db_models
from ..database.db_enums import ExamStatusEnum
from ..models import exam as exam_models
from ..models.common import ApiResponse
from ..services.security import verify_token_and_get_user
from ..services.exam_service import ExamService

class ExamsAPI:
    def __init__(self):
        self.router = APIRouter(
            prefix="/exams",
            tags=["Exams"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_exams,
                methods=["GET"],
                response_model=ApiResponse[list[exam_models.ExamRead]])

        self.router.add_api_route(
                "/",
                self.create_exam,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ApiResponse[exam_models.ExamRead])

        self.router.add_api_route(
                "/{exam_id}",
                self.update_exam,
                methods=["PUT"],
                response_model=ApiResponse[exam_models.ExamRead])

        self.router.add_api_route(
                "/{exam_id}",
                self.delete_exam,
                methods=["DELETE"],
                response_model=ApiResponse[None])

    async def list_exams(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        exam_service: Annotated[ExamService, Depends(ExamService)],
        class_name: Optional[str] = None,
        subject_id: Optional[UUID] = None,
        status_filter: Annotated[Optional[ExamStatusEnum], Query(alias="status")] = None
    ):
        exams = await exam_service.get_all_exams_for_api(current_user, class_name, subject_id, status_filter)
        return ApiResponse(data=exams)

    async def create_exam(
        self,
        exam_data: exam_models.ExamCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        exam_service: Annotated[ExamService, Depends(ExamService)]
    ):
        exam = await exam_service.create_exam_for_api(exam_data, current_user)
        return ApiResponse(message="Exam scheduled successfully", data=exam)

    async def update_exam(
        self,
        exam_id: UUID,
        exam_data: exam_models.ExamUpdate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        exam_service: Annotated[ExamService, Depends(ExamService)]
    ):
        exam = await exam_service.update_exam_for_api(exam_id, exam_data, current_user)
        return ApiResponse(message="Exam updated successfully", data=exam)

    async def delete_exam(
        self,
        exam_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        exam_service: Annotated[ExamService, Depends(ExamService)]
    ):
        """
        Deletes an exam. Restricted to Admins.
        """
        await exam_service.delete_exam(exam_id, current_user)
        return ApiResponse(message="Exam deleted successfully")

# Instantiate the class and export its router
exams_api = ExamsAPI()
router = exams_api.router
