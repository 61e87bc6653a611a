from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PageMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    message: str = "OK"
    data: T | None = None


class PagedResponse(CamelModel, Generic[T]):
    success: bool = True
    message: str = "OK"
    data: list[T]
    meta: PageMeta


class MessageResponse(CamelModel):
    success: bool = True
    message: str


def ok(data: T, message: str = "OK") -> ApiResponse[T]:
    return ApiResponse(data=data, message=message)


def paged(data: list[T], meta: PageMeta, message: str = "OK") -> PagedResponse[T]:
    return PagedResponse(data=data, meta=meta, message=message)
