# insegnami/utils/pagination.py
"""Pagination utilities for consistent API responses."""
from math import ceil
from typing import Any, Dict, List, Optional

from fastapi import Query
from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    """Standard pagination parameters."""
    page: int = Field(1, ge=1, description="Page number (starts from 1)")
    limit: int = Field(20, ge=1, le=100, description="Items per page")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Paginator:
    """Pagination utility class."""

    @staticmethod
    def get_pagination_params(
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(20, ge=1, le=100, description="Items per page")
    ) -> PaginationParams:
        """FastAPI dependency for pagination parameters."""
        return PaginationParams(page=page, limit=limit)

    @staticmethod
    def create_response(
        items: List[Any],
        page: int,
        limit: int,
        total: int,
        additional_info: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Create standardized paginated response."""
        total_pages = ceil(total / limit) if limit > 0 else 0
        response = {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_previous": page > 1,
        }
        if additional_info:
            response.update(additional_info)
        return response
