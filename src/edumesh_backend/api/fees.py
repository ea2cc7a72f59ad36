'''
API endpoints for Fees and fee payments.
'''
from typing import Annotated, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from ..database import models as db_models
from ..database.db_enums import FeeStatusEnum
from ..models import fee as fee_models
from ..models.common import ApiResponse
from ..services.security import verify_token_and_get_user
from ..services.fee_service import FeeService

class FeesAPI:
    """
    A class to encapsulate endpoints for Fees.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/fees",
            tags=["Fees"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_fees,
                methods=["GET"],
                response_model=ApiResponse[list[fee_models.FeeRead]])

        self.router.add_api_route(
                "/",
                self.create_fee,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ApiResponse[fee_models.FeeRead])

        self.router.add_api_route(
                "/summary",
                self.fee_summary,
                methods=["GET"],
                response_model=ApiResponse[fee_models.FeeSummary])

        self.router.add_api_route(
                "/{fee_id}/pay",
                self.pay_fee,
                methods=["POST"],
                response_model=ApiResponse[fee_models.FeeRead])

    async def list_fees(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        fee_service: Annotated[FeeService, Depends(FeeService)],
        student_id: Optional[UUID] = None,
        status_filter: Annotated[Optional[FeeStatusEnum], Query(alias="status")] = None
    ):
        fees = await fee_service.get_all_fees_for_api(current_user, student_id, status_filter)
        return ApiResponse(data=fees)

    async def create_fee(
        self,
        fee_data: fee_models.FeeCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        fee_service: Annotated[FeeService, Depends(FeeService)]
    ):
        """
        Creates a pending fee for a student. Restricted to Admins.
        """
        fee = await fee_service.create_fee_for_api(fee_data, current_user)
        return ApiResponse(message="Fee created successfully", data=fee)

    async def fee_summary(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        fee_service: Annotated[FeeService, Depends(FeeService)]
    ):
        return ApiResponse(data=await fee_service.get_fee_summary_for_api(current_user))

    async def pay_fee(
        self,
        fee_id: UUID,
        payment_data: fee_models.FeePayment,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        fee_service: Annotated[FeeService, Depends(FeeService)]
    ):
        """
        Pays a pending fee. Parents may only pay their own children's fees.
        """
        fee = await fee_service.pay_fee_for_api(fee_id, payment_data, current_user)
        return ApiResponse(message="Payment successful", data=fee)

# Instantiate the class and export its router
fees_api = FeesAPI()
router = fees_api.router
