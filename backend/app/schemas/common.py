"""Common schemas used across the application."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from app.config import settings

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic page wrapper.

    Usage:
        response_model=PaginatedResponse[LeadOut]

    Returns:
        {"items": [...], "total": 42, "page": 1, "page_size": 10}

    `total` counts every record matching the caller's scope and filters,
    not just this page.
    """
    items: list[T]
    total: int
    page: int
    page_size: int


class ScopedFilters(BaseModel):
    """Filters shared by every scoped list; ANDed with the view scope."""
    search: str | None = None
    tags: list[str] | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None


class PageParams(BaseModel):
    """1-based page request; list endpoints mix this into their filters."""
    page: int = Field(1, ge=1)
    page_size: int = Field(settings.default_page_size, ge=1, le=settings.max_page_size)
