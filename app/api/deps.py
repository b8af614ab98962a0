# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from fastapi import Query, Request

from app.common.errors import TooManyRequestsError
from app.common.pagination import PaginationParams, normalize_pagination
from app.common.rate_limit import client_key, log_rejection
from app.infra.context import AppContext


def get_app_context(request: Request) -> AppContext:
    return request.app.state.context


def get_pagination(
    page: Optional[int] = Query(None),
    per_page: Optional[int] = Query(None, alias="perPage"),
) -> PaginationParams:
    return normalize_pagination(page, per_page)


def require_rate_limit(policy: str) -> Callable[[Request], Awaitable[None]]:
    """按策略名叠加限流，例如登录：Depends(require_rate_limit(LOGIN_RATE_LIMIT))"""

    async def _check(request: Request) -> None:
        ctx = get_app_context(request)
        if not ctx.settings.RATE_LIMIT_ENABLED:
            return
        result = await ctx.rate_limiter.consume(policy, client_key(request))
        if not result.allowed:
            log_rejection(request, policy, result)
            raise TooManyRequestsError(detail={"policy": policy, "retry_after": result.retry_after})

    return _check
