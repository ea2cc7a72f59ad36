from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..database.db_enums import FeeStatusEnum


class FeeCreate(BaseModel):
    student_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    due_date: date


class FeePayment(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=50)
    transaction_id: str = Field(..., min_length=1, max_length=255)


class FeeRead(BaseModel):
    id: UUID
    school_id: UUID
    student_id: UUID
    title: str
    description: Optional[str] = None
    amount: Decimal
    due_date: date
    status: FeeStatusEnum
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    paid_by: Optional[UUID] = None
    paid_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeeBucket(BaseModel):
    count: int = 0
    amount: Decimal = Decimal("0")


class FeeSummary(BaseModel):
    paid: FeeBucket
    pending: FeeBucket
    overdue: FeeBucket
