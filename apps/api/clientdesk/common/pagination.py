from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from fastapi import Query
from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

from clientdesk.core.schemas import PageMeta


SortOrder = Literal["asc", "desc"]
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10

RowT = TypeVar("RowT")


@dataclass(slots=True)
class PageParams:
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    search: str | None = None
    sort_order: SortOrder | None = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: str | None = Query(default=None),
    sort_order: SortOrder | None = Query(default=None, alias="sortOrder"),
) -> PageParams:
    return PageParams(page=page, limit=limit, search=search.strip() if search else None, sort_order=sort_order)


def build_meta(params: PageParams, total: int) -> PageMeta:
    return PageMeta(
        page=params.page,
        limit=params.limit,
        total=total,
        total_pages=math.ceil(total / params.limit) if params.limit else 0,
    )


def apply_sort(stmt: Select[Any], column: Any, order: SortOrder | None, default: SortOrder = "desc") -> Select[Any]:
    direction = order or default
    return stmt.order_by(column.asc() if direction == "asc" else column.desc())


def paginate(session: Session, stmt: Select[tuple[RowT]], params: PageParams) -> tuple[Sequence[RowT], PageMeta]:
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = int(session.scalar(count_stmt) or 0)
    rows = session.scalars(stmt.offset(params.offset).limit(params.limit)).all()
    return rows, build_meta(params, total)


def search_filter(term: str, *columns: Any) -> Any:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return or_(*(column.ilike(pattern, escape="\\") for column in columns))
