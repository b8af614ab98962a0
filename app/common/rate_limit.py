# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""限流（limits，固定窗口计数）

- 全局策略按客户端 IP 计数，挂在中间件上；登录等敏感接口再叠加 login 策略（见 app.api.deps.require_rate_limit）
- 配了 REDIS_URL 时计数放在 Redis（多实例共享）；存储不可用 / 缺依赖时退回进程内存
- 计数存储在运行中出错时放行，只记 warning
- 超限统一走 dispatch_error(TooManyRequestsError)，响应带 Retry-After
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping

from limits import RateLimitItem, RateLimitItemPerSecond
from limits.aio.strategies import FixedWindowRateLimiter
from limits.errors import ConfigurationError
from limits.storage import storage_from_string
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.common.constants import GENERAL_RATE_LIMIT, LOGIN_RATE_LIMIT, RATE_LIMIT_MEMORY_STORAGE
from app.common.errors import TooManyRequestsError
from app.common.exception_handlers import dispatch_error
from app.infra.config import Settings
from app.infra.ylogger import ylogger


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after: int = 0


def _build_storage(uri: str):
    try:
        return storage_from_string(uri)
    except ConfigurationError as e:
        ylogger.warning("Rate limit storage %s unavailable (%s), falling back to in-memory", uri.split("@")[-1], e)
        return storage_from_string(RATE_LIMIT_MEMORY_STORAGE)


class RequestRateLimiter:
    def __init__(
        self,
        policies: Mapping[str, RateLimitItem],
        storage_uri: str = RATE_LIMIT_MEMORY_STORAGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.policies: Dict[str, RateLimitItem] = dict(policies)
        self.storage = _build_storage(storage_uri)
        self.strategy = FixedWindowRateLimiter(self.storage)
        self.clock = clock

    async def consume(self, policy: str, key: str) -> RateLimitResult:
        """消耗一次配额；未知策略名直接抛 KeyError（配置错误）"""
        item = self.policies[policy]
        try:
            if await self.strategy.hit(item, policy, key):
                return RateLimitResult(allowed=True)
            stats = await self.strategy.get_window_stats(item, policy, key)
        except Exception:  # noqa: BLE001
            ylogger.warning("Rate limit storage error, request allowed (policy=%s)", policy, exc_info=True)
            return RateLimitResult(allowed=True)
        return RateLimitResult(allowed=False, retry_after=max(1, math.ceil(stats.reset_time - self.clock())))


def build_rate_limiter(settings: Settings) -> RequestRateLimiter:
    return RequestRateLimiter(
        {
            GENERAL_RATE_LIMIT: RateLimitItemPerSecond(
                settings.RATE_LIMITER_POINTS, settings.RATE_LIMITER_DURATION_IN_SECONDS
            ),
            LOGIN_RATE_LIMIT: RateLimitItemPerSecond(
                settings.LOGIN_LIMITER_POINTS, settings.LOGIN_LIMITER_DURATION_IN_SECONDS
            ),
        },
        storage_uri=settings.rate_limit_storage_uri,
    )


def client_key(request: Request) -> str:
    return request.client.host if request.client else "anonymous"


def log_rejection(request: Request, policy: str, result: RateLimitResult) -> None:
    ylogger.warning(
        "Rate limit exceeded (policy=%s, retry_after=%ss)",
        policy,
        result.retry_after,
        extra={
            "path": request.url.path,
            "method": request.method,
            "user_agent": request.headers.get("user-agent"),
            "client_ip": client_key(request),
        },
    )


def rejection_response(request: Request, result: RateLimitResult) -> Response:
    response = dispatch_error(TooManyRequestsError(), request)
    response.headers["Retry-After"] = str(result.retry_after)
    return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: RequestRateLimiter, policy: str = GENERAL_RATE_LIMIT) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.policy = policy

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        result = await self.limiter.consume(self.policy, client_key(request))
        if result.allowed:
            return await call_next(request)
        log_rejection(request, self.policy, result)
        return rejection_response(request, result)
