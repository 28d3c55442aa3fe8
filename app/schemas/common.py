import math
from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, Field, model_validator

T = TypeVar("T")


class PaginationMeta(BaseModel):
    count: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_consistency(self):
        if self.total_pages != math.ceil(self.total / self.page_size):
            raise ValueError("total_pages must equal ceil(total / page_size)")
        if self.count > self.page_size:
            raise ValueError("count must not exceed page_size")
        if self.page > max(self.total_pages, 1):
            raise ValueError("page is beyond the last page")
        return self

    @classmethod
    def build(cls, total: int, page: int, page_size: int, count: int) -> "PaginationMeta":
        return cls(
            count=count,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
        )


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every endpoint."""
    success: bool = True
    message: str = ""
    data: Optional[T] = None
    meta: Optional[Any] = None
    error: Optional[str] = None
