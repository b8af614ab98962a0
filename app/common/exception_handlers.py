# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""统一异常出口

失败响应只有一种形状：{"data": null, "code": <int>, "message": "<str>"}，
HTTP 状态由 code 前 3 位决定。非 AppError 的异常只记服务端日志，对外一律返回通用 500。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.common.errors import AppError
from app.common.response_codes import RESPONSE_MESSAGES, ResponseCode, get_response_message, status_from_code
from app.common.logging import get_request_id

logger = logging.getLogger(__name__)


def _err_payload(code: int, message: Optional[str] = None) -> Dict[str, Any]:
    return {
        "data": None,
        "code": int(code),
        "message": message or get_response_message(code),
    }


def error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_err_payload(exc.code, exc.message),
    )


def server_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=status_from_code(ResponseCode.SERVER_ERROR),
        content=_err_payload(ResponseCode.SERVER_ERROR),
    )


def log_unexpected_error(exc: BaseException, request: Optional[Request] = None) -> None:
    """记录未预期异常（message + stack），附带请求上下文"""
    extra: Dict[str, Any] = {"error_code": int(ResponseCode.SERVER_ERROR)}
    if request is not None:
        extra.update(
            path=request.url.path,
            method=request.method,
            user_agent=request.headers.get("user-agent"),
            client_ip=request.client.host if request.client else None,
        )
    logger.error(
        "Application error occurred: %s: %s (request_id=%s)",
        type(exc).__name__,
        exc,
        get_request_id(),
        exc_info=(type(exc), exc, exc.__traceback__),
        extra=extra,
    )


def dispatch_error(exc: Exception, request: Optional[Request] = None) -> JSONResponse:
    if request is not None:
        request.state.error = exc
    if isinstance(exc, AppError):
        if exc.status_code >= 500:
            logger.error("AppError %s: %s detail=%s", exc.code, exc.message, exc.detail)
        return error_response(exc)

    log_unexpected_error(exc, request)
    return server_error_response()


def _code_for_status(status_code: int) -> int:
    if status_code == 404:
        return ResponseCode.NOT_FOUND
    if status_code == 405:
        return ResponseCode.METHOD_NOT_ALLOWED
    if status_code * 100 in RESPONSE_MESSAGES:
        return status_code * 100
    return ResponseCode.BAD_REQUEST if status_code < 500 else ResponseCode.SERVER_ERROR


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return dispatch_error(exc, request)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = dispatch_error(AppError(code=_code_for_status(exc.status_code)), request)
    # Allow / WWW-Authenticate 等协议头保留
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    return dispatch_error(AppError(code=ResponseCode.INVALID_INPUT, detail=exc.errors()), request)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return dispatch_error(exc, request)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
