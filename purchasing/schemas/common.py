from dataclasses import dataclass
from typing import Generic, List, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T] = Field(default_factory=list)  # type: ignore[assignment]
    pagination: PaginationMeta


@dataclass(frozen=True)
class PageParams:
    """1-based page window translated to the store's limit/offset."""

    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> PaginationMeta:
        total_pages = max(1, (total + self.limit - 1) // self.limit)
        return PaginationMeta(
            page=self.page,
            limit=self.limit,
            total=total,
            total_pages=total_pages,
            has_next=self.page < total_pages,
            has_prev=self.page > 1,
        )

    def wrap(self, data: Sequence, total: int) -> PaginatedResponse:
        return PaginatedResponse(data=list(data), pagination=self.meta(total))


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> PageParams:
    return PageParams(page=page, limit=limit)
