# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.common.constants import REQUEST_ID_HEADER, SECURITY_HEADERS
from app.common.errors import ServiceUnavailableError
from app.common.exception_handlers import dispatch_error
from app.common.logging import new_request_id, set_request_id


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        request.state.request_id = request_id
        set_request_id(request_id)
        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """安全响应头（helmet 默认集合），路由自己设置过的头不覆盖"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response: Response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class ErrorDispatchMiddleware:
    """兜底异常出口（raw ASGI）

    响应已经开始发送时无法改写，直接抛给 server 默认处理；
    否则渲染统一错误响应。
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:  # noqa: BLE001
            if response_started:
                raise
            response = dispatch_error(exc, Request(scope))
            await response(scope, receive, send)


class ShutdownGuardMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, server_state) -> None:
        super().__init__(app)
        self.server_state = server_state

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self.server_state.shutting_down:
            return dispatch_error(ServiceUnavailableError(), request)
        return await call_next(request)
