"""
Shared schema pieces: pagination metadata and simple acknowledgement bodies.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict
import math


class PaginatedResponse(BaseModel):
    """Pagination metadata shared by every list response."""

    total: int = Field(
        ...,
        description="Total number of items matching the criteria",
        example=150
    )

    page: int = Field(
        ...,
        description="Current page number",
        example=1
    )

    page_size: int = Field(
        ...,
        description="Number of items per page",
        example=20
    )

    total_pages: int = Field(
        ...,
        description="Total number of pages",
        example=8
    )

    has_next: bool = Field(
        ...,
        description="Whether there are more pages",
        example=True
    )

    has_previous: bool = Field(
        ...,
        description="Whether there are previous pages",
        example=False
    )


def pagination_meta(total: int, page: int, page_size: int) -> Dict[str, Any]:
    """Pagination fields for a list response."""
    total_pages = math.ceil(total / page_size) if total > 0 else 0
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }


class ActionResponse(BaseModel):
    """Plain acknowledgement."""

    message: str = Field(..., example="Operation completed successfully")
