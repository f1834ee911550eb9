"""
Shared API Schemas

Pagination envelope used by every list endpoint.
"""

from pydantic import BaseModel
from typing import Generic, List, TypeVar
import math

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Page of results with totals"""
    status: str = "success"
    results: int
    total: int
    page: int
    pages: int
    data: List[T]


def paginate(items: list, total: int, page: int, limit: int) -> dict:
    return {
        "status": "success",
        "results": len(items),
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if limit else 0,
        "data": items,
    }
