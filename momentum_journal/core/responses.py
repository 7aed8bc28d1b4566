"""
Success envelopes and pagination helpers shared by the routers.
"""

import math
from typing import Any, Dict, Generic, List, Optional, TypeVar

from fastapi import Query
from pydantic import BaseModel

T = TypeVar("T")


class ErrorDetail(BaseModel):
    message: str
    code: Optional[str] = None
    status: int
    details: Optional[Any] = None


class Pagination(BaseModel):
    page: int
    pageSize: int
    totalCount: int
    totalPages: int
    hasNext: bool
    hasPrev: bool


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None


class PaginatedEnvelope(Envelope[List[T]], Generic[T]):
    pagination: Pagination


class PageParams:
    """Query parameters shared by every paginated list endpoint."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="1-based page number."),
        pageSize: int = Query(10, ge=1, le=100, description="Items per page."),
    ):
        self.page = page
        self.page_size = pageSize

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def build_pagination(page: int, page_size: int, total_count: int) -> Pagination:
    total_pages = math.ceil(total_count / page_size) if page_size else 0
    return Pagination(
        page=page,
        pageSize=page_size,
        totalCount=total_count,
        totalPages=total_pages,
        hasNext=page < total_pages,
        hasPrev=page > 1,
    )


def ok(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data, "error": None}


def paginated(items: List[Any], params: PageParams, total_count: int) -> Dict[str, Any]:
    return {
        "success": True,
        "data": items,
        "error": None,
        "pagination": build_pagination(params.page, params.page_size, total_count),
    }
