# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""CSRF 防护（double-submit cookie）

- 每个缺少 cookie 的请求都会下发一个新 token（包括 GET），客户端 JS 读取后放到 x-csrf-token 头里回传
- GET / HEAD / OPTIONS 不校验；其余方法要求头与 cookie 完全一致
- x-client-type: mobile 的客户端走 bearer token，不受 cookie 攻击影响，直接跳过
- 校验失败交给统一异常出口（dispatch_error）渲染，新下发的 cookie 仍然附在 403 响应上
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.common.constants import (
    CLIENT_TYPE_HEADER,
    CSRF_COOKIE_NAME,
    CSRF_HEADER_NAME,
    CSRF_TOKEN_BYTES,
    MOBILE_CLIENT_TYPE,
    SAFE_METHODS,
)
from app.common.errors import AppError, CsrfMismatchError
from app.common.exception_handlers import dispatch_error


def new_csrf_token() -> str:
    return secrets.token_hex(CSRF_TOKEN_BYTES)


@dataclass(frozen=True)
class CsrfDecision:
    exempt: bool = False
    token: Optional[str] = None
    issued: bool = False
    error: Optional[AppError] = None


def check_csrf(
    method: str,
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
    token_factory: Callable[[], str] = new_csrf_token,
) -> CsrfDecision:
    if headers.get(CLIENT_TYPE_HEADER) == MOBILE_CLIENT_TYPE:
        return CsrfDecision(exempt=True)

    token = cookies.get(CSRF_COOKIE_NAME)
    issued = False
    if not token:
        token = token_factory()
        issued = True

    if method.upper() in SAFE_METHODS:
        return CsrfDecision(token=token, issued=issued)

    header_token = headers.get(CSRF_HEADER_NAME)
    if not header_token or not secrets.compare_digest(header_token.encode("utf-8"), token.encode("utf-8")):
        return CsrfDecision(token=token, issued=issued, error=CsrfMismatchError())

    return CsrfDecision(token=token, issued=issued)


def set_csrf_cookie(response: Response, token: str, *, production: bool) -> None:
    response.set_cookie(
        CSRF_COOKIE_NAME,
        token,
        path="/",
        httponly=False,  # 客户端 JS 需要读取
        secure=production,
        samesite="strict" if production else "lax",
    )


class CsrfMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, production: bool = False) -> None:
        super().__init__(app)
        self.production = production

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        decision = check_csrf(request.method, request.headers, request.cookies)
        if decision.exempt:
            return await call_next(request)

        if decision.error is not None:
            response = dispatch_error(decision.error, request)
        else:
            response = await call_next(request)

        if decision.issued and decision.token:
            set_csrf_cookie(response, decision.token, production=self.production)
        return response
