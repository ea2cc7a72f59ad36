'''
API endpoints for Homework and homework submissions.
'''
from typing import Annotated, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from ..database import models as db_models
from ..database.db_enums import HomeworkStatusFilter, SubmissionStatusEnum
from ..models import homework as homework_models
from ..models.common import ApiResponse, PaginatedResponse
from ..services.security import verify_token_and_get_user
from ..services.homework_service import HomeworkService

class HomeworkAPI:
    """
    A class to encapsulate endpoints for Homework.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/homework",
            tags=["Homework"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_homework,
                methods=["GET"],
                response_model=PaginatedResponse[homework_models.HomeworkRead])

        self.router.add_api_route(
                "/",
                self.create_homework,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ApiResponse[homework_models.HomeworkRead])

        self.router.add_api_route(
                "/{homework_id}/submit",
                self.submit_homework,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ApiResponse[homework_models.SubmissionRead])

        self.router.add_api_route(
                "/{homework_id}/submissions",
                self.list_submissions,
                methods=["GET"],
                response_model=PaginatedResponse[homework_models.SubmissionRead])

        self.router.add_api_route(
                "/submissions/{submission_id}/grade",
                self.grade_submission,
                methods=["PUT"],
                response_model=ApiResponse[homework_models.SubmissionRead])

        self.router.add_api_route(
                "/{homework_id}",
                self.update_homework,
                methods=["PUT"],
                response_model=ApiResponse[homework_models.HomeworkRead])

        self.router.add_api_route(
                "/{homework_id}",
                self.delete_homework,
                methods=["DELETE"],
                response_model=ApiResponse[None])

    async def list_homework(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        homework_service: Annotated[HomeworkService, Depends(HomeworkService)],
        class_name: Optional[str] = None,
        subject_id: Optional[UUID] = None,
        status_filter: Annotated[Optional[HomeworkStatusFilter], Query(alias="status")] = None,
        page: Annotated[int, Query(ge=1)] = 1,
        limit: Annotated[Optional[int], Query(ge=1, le=100)] = None
    ):
        """
        Retrieves the homework visible to the current user, one page at a time.
        """
        homework, pagination = await homework_service.get_all_homework_for_api(
            current_user, class_name, subject_id, status_filter, page, limit
        )
        return PaginatedResponse(data=homework, pagination=pagination)

    async def create_homework(
        self,
        homework_data: homework_models.HomeworkCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        homework_service: Annotated[HomeworkService, Depends(HomeworkService)]
    ):
        """
        Creates homework for a class. Restricted to Admins and Teachers.
        """
        homework = await homework_service.create_homework_for_api(homework_data, current_user)
        return ApiResponse(message="Homework created successfully", data=homework)

    async def submit_homework(
        self,
        homework_id: UUID,
        submission_data: homework_models.SubmissionCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        homework_service: Annotated[HomeworkService, Depends(HomeworkService)]
    ):
        submission = await homework_service.submit_homework_for_api(homework_id, submission_data, current_user)
        return ApiResponse(message="Homework submitted successfully", data=submission)

    async def list_submissions(
        self,
        homework_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        homework_service: Annotated[HomeworkService, Depends(HomeworkService)],
        status_filter: Annotated[Optional[SubmissionStatusEnum], Query(alias="status")] = None,
        page: Annotated[int, Query(ge=1)] = 1,
        limit: Annotated[Optional[int], Query(ge=1, le=100)] = None
    ):
        submissions, pagination = await homework_service.get_submissions_for_api(
            homework_id, current_user, status_filter, page, limit
        )
        return PaginatedResponse(data=submissions, pagination=pagination)

    async def grade_submission(
        self,
        submission_id: UUID,
        grade_data: homework_models.GradeSubmission,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        homework_service: Annotated[HomeworkService, Depends(HomeworkService)]
    ):
        submission = await homework_service.grade_submission_for_api(submission_id, grade_data, current_user)
        return ApiResponse(message="Submission graded successfully", data=submission)

    async def update_homework(
        self,
        homework_id: UUID,
        homework_data: homework_models.HomeworkUpdate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        homework_service: Annotated[HomeworkService, Depends(HomeworkService)]
    ):
        """
        Updates homework. Restricted to Admins and the owning Teacher.
        """
        homework = await homework_service.update_homework_for_api(homework_id, homework_data, current_user)
        return ApiResponse(message="Homework updated successfully", data=homework)

    async def delete_homework(
        self,
        homework_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        homework_service: Annotated[HomeworkService, Depends(HomeworkService)]
    ):
        await homework_service.delete_homework(homework_id, current_user)
        return ApiResponse(message="Homework deleted successfully")

# Instantiate the class and export its router
homework_api = HomeworkAPI()
router = homework_api.router
