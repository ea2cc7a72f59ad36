'''
Response envelope shared by every route tree:
{success, message?, data?} plus `pagination` for paged lists.
'''
import math
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[DataT] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


class PaginatedResponse(BaseModel, Generic[DataT]):
    success: bool = True
    message: Optional[str] = None
    data: list[DataT] = Field(default_factory=list)
    pagination: Pagination


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""
    success: bool = False
    message: str
    errors: Optional[list[FieldError]] = None
