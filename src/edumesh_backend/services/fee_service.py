'''
Fees: creation, payment and summaries.
'''
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.logger import log
from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole, FeeStatusEnum, NotificationTypeEnum
from ..models import fee as fee_models
from .notification_service import NotificationService, NotificationIntent
from .permissions import authorize_roles
from .scope import ScopeFilter, ScopedResource


class FeeService:
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        scope_filter: Annotated[ScopeFilter, Depends(ScopeFilter)],
        notification_service: Annotated[NotificationService, Depends(NotificationService)]
    ):
        self.db = db
        self.scope_filter = scope_filter
        self.notification_service = notification_service

    async def get_all_fees_for_api(
        self,
        current_user: db_models.Users,
        student_id: Optional[UUID] = None,
        status_filter: Optional[FeeStatusEnum] = None
    ) -> list[fee_models.FeeRead]:
        log.info(f"User {current_user.id} (Role: {current_user.role}) listing fees.")
        try:
            scope = await self.scope_filter.resolve(ScopedResource.FEE, current_user)
            if scope.is_empty:
                return []

            stmt = scope.apply(select(db_models.Fees))
            if student_id:
                stmt = stmt.filter(db_models.Fees.student_id == student_id)
            if status_filter:
                stmt = stmt.filter(db_models.Fees.status == status_filter.value)
            stmt = stmt.order_by(db_models.Fees.due_date.asc())

            result = await self.db.execute(stmt)
            return [fee_models.FeeRead.model_validate(f) for f in result.scalars().all()]
        except HTTPException as http_exc:
            raise http_exc
        except Exception as e:
            log.error(f"Database error in get_all_fees_for_api for user {current_user.id}: {e}", exc_info=True)
            raise

    async def create_fee_for_api(self, data: fee_models.FeeCreate, current_user: db_models.Users) -> fee_models.FeeRead:
        authorize_roles(current_user, [UserRole.ADMIN])
        student = await self.db.get(db_models.Students, data.student_id)
        if not student or student.school_id != current_user.school_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")

        fee = db_models.Fees(
            school_id=current_user.school_id,
            status=FeeStatusEnum.PENDING.value,
            **data.model_dump()
        )
        self.db.add(fee)
        await self.db.commit()
        fee_read = fee_models.FeeRead.model_validate(fee)
        log.info(f"Admin {current_user.id} created fee {fee.id} ({fee.amount}) for student {student.id}.")

        if student.parent_id:
            await self.notification_service.fan_out(current_user.school_id, [NotificationIntent(
                student.parent_id,
                "New Fee Due",
                f"{fee_read.title}: {fee_read.amount} due on {fee_read.due_date.isoformat()}",
                NotificationTypeEnum.FEE,
                {"fee_id": fee_read.id, "amount": str(fee_read.amount), "due_date": fee_read.due_date.isoformat()},
            )])
        return fee_read

    async def pay_fee_for_api(self, fee_id: UUID, data: fee_models.FeePayment, current_user: db_models.Users) -> fee_models.FeeRead:
        """
        pending -> paid, checked and set in one UPDATE so two concurrent
        payments cannot both succeed.
        """
        authorize_roles(current_user, [UserRole.PARENT, UserRole.ADMIN])
        log.info(f"User {current_user.id} paying fee {fee_id}.")

        scope = await self.scope_filter.resolve(ScopedResource.FEE, current_user)
        if scope.is_empty:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fee not found")
        fee = (await self.db.execute(
            scope.apply(select(db_models.Fees)).filter(db_models.Fees.id == fee_id)
        )).scalars().first()
        if not fee:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fee not found")

        result = await self.db.execute(
            update(db_models.Fees)
            .where(db_models.Fees.id == fee.id, db_models.Fees.status == FeeStatusEnum.PENDING.value)
            .values(
                status=FeeStatusEnum.PAID.value,
                payment_method=data.payment_method,
                transaction_id=data.transaction_id,
                paid_by=current_user.id,
                paid_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            log.warning(f"Fee {fee_id} payment rejected: status is not pending.")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Fee is already paid or not payable")
        await self.db.commit()

        await self.db.refresh(fee)
        fee_read = fee_models.FeeRead.model_validate(fee)

        student = await self.db.get(db_models.Students, fee.student_id)
        if student and student.parent_id:
            await self.notification_service.fan_out(fee_read.school_id, [NotificationIntent(
                student.parent_id,
                "Payment Successful",
                f"Payment of {fee_read.amount} for {fee_read.title} was received",
                NotificationTypeEnum.FEE,
                {"fee_id": fee_read.id, "transaction_id": data.transaction_id},
            )])
        return fee_read

    async def get_fee_summary_for_api(self, current_user: db_models.Users) -> fee_models.FeeSummary:
        """
        Counts and totals per bucket. Overdue = status overdue, or pending
        with a due date in the past; such rows are not counted as pending.
        """
        summary = fee_models.FeeSummary(
            paid=fee_models.FeeBucket(), pending=fee_models.FeeBucket(), overdue=fee_models.FeeBucket()
        )
        scope = await self.scope_filter.resolve(ScopedResource.FEE, current_user)
        if scope.is_empty:
            return summary

        stmt = scope.apply(select(db_models.Fees.status, db_models.Fees.amount, db_models.Fees.due_date))
        today = date.today()
        for fee_status, amount, due_date in (await self.db.execute(stmt)).all():
            if fee_status == FeeStatusEnum.PAID.value:
                bucket = summary.paid
            elif fee_status == FeeStatusEnum.OVERDUE.value or (fee_status == FeeStatusEnum.PENDING.value and due_date < today):
                bucket = summary.overdue
            elif fee_status == FeeStatusEnum.PENDING.value:
                bucket = summary.pending
            else:
                continue
            bucket.count += 1
            bucket.amount += Decimal(amount)
        return summary
