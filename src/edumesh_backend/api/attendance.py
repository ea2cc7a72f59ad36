'''
API endpoints for Attendance.
'''
from datetime import date
from typing import Annotated, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query

from ..database import models as db_models
from ..models import attendance as attendance_models
from ..models.common import ApiResponse
from ..services.security import verify_token_and_get_user
from ..services.attendance_service import AttendanceService

class AttendanceAPI:
    def __init__(self):
        self.router = APIRouter(
            prefix="/attendance",
            tags=["Attendance"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_attendance,
                methods=["GET"],
                response_model=ApiResponse[list[attendance_models.AttendanceRead]])

        self.router.add_api_route(
                "/mark",
                self.mark_attendance,
                methods=["POST"],
                response_model=ApiResponse[attendance_models.AttendanceMarkResult])

        self.router.add_api_route(
                "/summary",
                self.attendance_summary,
                methods=["GET"],
                response_model=ApiResponse[list[attendance_models.AttendanceSummaryRow]])

    async def list_attendance(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        attendance_service: Annotated[AttendanceService, Depends(AttendanceService)],
        class_id: Optional[UUID] = None,
        on_date: Annotated[Optional[date], Query(alias="date")] = None,
        student_id: Optional[UUID] = None
    ):
        records = await attendance_service.get_attendance_for_api(current_user, class_id, on_date, student_id)
        return ApiResponse(data=records)

    async def mark_attendance(
        self,
        attendance_data: attendance_models.AttendanceMark,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        attendance_service: Annotated[AttendanceService, Depends(AttendanceService)]
    ):
        """
        Replaces the attendance sheet of a class for one date.
        Restricted to Admins and the class's Teacher.
        """
        result = await attendance_service.mark_attendance_for_api(attendance_data, current_user)
        return ApiResponse(message="Attendance marked successfully", data=result)

    async def attendance_summary(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        attendance_service: Annotated[AttendanceService, Depends(AttendanceService)],
        student_id: Optional[UUID] = None,
        month: Annotated[Optional[int], Query(ge=1, le=12)] = None,
        year: Annotated[Optional[int], Query(ge=2000, le=2100)] = None
    ):
        rows = await attendance_service.get_attendance_summary_for_api(current_user, student_id, month, year)
        return ApiResponse(data=rows)

# Instantiate the class and export its router
attendance_api = AttendanceAPI()
router = attendance_api.router
