import math
from datetime import datetime
from typing import Annotated, Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel, Field, PlainSerializer

from shopfloor.shared.utils import ensure_utc

T = TypeVar("T")

# SQLite hands back naive datetimes; responses always carry an explicit UTC offset
UTCDateTime = Annotated[
    datetime, PlainSerializer(lambda v: ensure_utc(v).isoformat(), return_type=str)
]


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "PaginationMeta":
        return cls(total=total, page=page, limit=limit, pages=math.ceil(total / limit) if limit else 0)


class Page(BaseModel, Generic[T]):
    """List envelope: {data, pagination}"""

    data: list[T]
    pagination: PaginationMeta


class PageParams(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> PageParams:
    return PageParams(page=page, limit=limit)


class MessageResponse(BaseModel):
    message: str


class CountResponse(BaseModel):
    updated: int
