# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from app.common.constants import DEFAULT_PAGE, DEFAULT_PER_PAGE, MAX_PER_PAGE

T = TypeVar("T")
Number = Union[int, float]


@dataclass(frozen=True)
class PaginationParams:
    page: Number
    per_page: Number


@dataclass
class PaginatedResult(Generic[T]):
    items: List[T]
    page: Number
    per_page: Number
    total: int
    total_pages: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "pagination": {
                "page": self.page,
                "perPage": self.per_page,
                "total": self.total,
                "totalPages": self.total_pages,
            },
        }


def normalize_pagination(page: Optional[Number] = None, per_page: Optional[Number] = None) -> PaginationParams:
    """补默认值并钳制范围：page 只设下限 1，per_page 限制在 [1, MAX_PER_PAGE]"""
    p = max(DEFAULT_PAGE if page is None else page, 1)
    pp = min(max(DEFAULT_PER_PAGE if per_page is None else per_page, 1), MAX_PER_PAGE)
    return PaginationParams(page=p, per_page=pp)


def build_paginated_result(items: List[T], total: int, params: PaginationParams) -> PaginatedResult[T]:
    total_pages = math.ceil(total / params.per_page) if total > 0 else 0
    return PaginatedResult(
        items=items,
        page=params.page,
        per_page=params.per_page,
        total=total,
        total_pages=total_pages,
    )
