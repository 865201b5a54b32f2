# ping_backend/schemas/base.py
from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ..config import settings

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Base schema with ORM support"""
    model_config = ConfigDict(from_attributes=True, arbitrary_types_allowed=True)


class PageParams(BaseSchema):
    """Requested page (1-based)"""
    page_number: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)

    @property
    def size(self) -> int:
        return min(self.page_size, settings.MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page_number - 1) * self.size


class PaginatedResult(BaseSchema, Generic[T]):
    items: List[T]
    total_count: int
    page_number: int
    page_size: int

    @classmethod
    def empty(cls, page: PageParams) -> "PaginatedResult[T]":
        return cls(items=[], total_count=0, page_number=page.page_number, page_size=page.size)

    @classmethod
    def build(cls, items: List[T], total_count: int, page: PageParams) -> "PaginatedResult[T]":
        return cls(items=items, total_count=total_count, page_number=page.page_number, page_size=page.size)
